from __future__ import annotations

import argparse
import json
import logging
import sys

from . import render_diagram
from .diagram import ast_to_diagram, diagram_to_ast
from .errors import DslSyntaxError
from .layout import LayoutOptions, layout_diagram
from .parser import parse_dsl
from .printer import generate_dsl
from .samples import SAMPLE_DSL
from .serialize import ast_to_dict, diagram_to_dict, dumps, export_bundle, load_document
from .types import DiagramGraph

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def setup_logging(level: str = "WARNING") -> None:
    """Send `er_dsl` log records to stderr at the given level."""
    package_logger = logging.getLogger("er_dsl")
    package_logger.setLevel(getattr(logging, level.upper()))
    package_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger.addHandler(handler)
    package_logger.propagate = False


def _read(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _layout_options(args: argparse.Namespace) -> LayoutOptions:
    return LayoutOptions(
        entity_spacing=args.entity_spacing,
        attribute_spacing=args.attribute_spacing,
    )


def _cmd_parse(args: argparse.Namespace) -> str:
    return dumps(ast_to_dict(parse_dsl(_read(args.input))))


def _cmd_diagram(args: argparse.Namespace) -> str:
    text = _read(args.input)
    if args.no_layout:
        graph = ast_to_diagram(parse_dsl(text))
    else:
        graph = render_diagram(text, _layout_options(args))
    return dumps(diagram_to_dict(graph))


def _cmd_export(args: argparse.Namespace) -> str:
    ast = parse_dsl(_read(args.input))
    graph = layout_diagram(ast_to_diagram(ast), _layout_options(args))
    return dumps(export_bundle(ast, graph))


def _cmd_generate(args: argparse.Namespace) -> str:
    document = load_document(json.loads(_read(args.input)))
    if isinstance(document, DiagramGraph):
        document = diagram_to_ast(document)
    return generate_dsl(document)


def _cmd_sample(args: argparse.Namespace) -> str:
    return SAMPLE_DSL.rstrip("\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="er-dsl",
        description="Convert ER diagram text to node/edge graphs and back.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("parse", help="Print the AST of a DSL file as JSON")
    p.add_argument("input", help="Path to DSL text file, or - for stdin")
    p.set_defaults(func=_cmd_parse)

    for name, func, help_text in (
        ("diagram", _cmd_diagram, "Print the positioned diagram graph as JSON"),
        ("export", _cmd_export, "Print an {ast, diagram} bundle as JSON"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("input", help="Path to DSL text file, or - for stdin")
        p.add_argument("--entity-spacing", type=float, default=None, help="Horizontal step between entities")
        p.add_argument("--attribute-spacing", type=float, default=None, help="Horizontal step between attributes")
        p.set_defaults(func=func)
    sub.choices["diagram"].add_argument(
        "--no-layout", action="store_true", help="Leave node rectangles unset"
    )

    p = sub.add_parser("generate", help="Print DSL text for a graph, AST or bundle JSON file")
    p.add_argument("input", help="Path to JSON file, or - for stdin")
    p.set_defaults(func=_cmd_generate)

    p = sub.add_parser("sample", help="Print the reference DSL document")
    p.set_defaults(func=_cmd_sample)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        output = args.func(args)
    except DslSyntaxError as err:
        print(f"Syntax error: {err}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1

    print(output)
    return 0
