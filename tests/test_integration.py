"""Integration tests -- end-to-end text -> graph -> text, and the command line."""
from __future__ import annotations

import json
import logging

import pytest

from er_dsl import (
    ast_to_diagram,
    diagram_to_ast,
    diagram_to_dsl,
    generate_dsl,
    parse_dsl,
    render_diagram,
)
from er_dsl.cli import main
from er_dsl.samples import SAMPLE_DSL
from er_dsl.types import (
    ATTRIBUTE_NODE_TYPES,
    ENTITY_NODE_TYPES,
    RELATIONSHIP_NODE_TYPES,
    RelationshipSide,
)


def count_attributes(attributes) -> int:
    return sum(1 + count_attributes(a.children or []) for a in attributes)


# ============================================================================
# Reference document
# ============================================================================


class TestSampleDocument:
    def test_parse_counts(self):
        ast = parse_dsl(SAMPLE_DSL)
        assert len(ast.entities) == 5
        assert len(ast.relationships) == 3
        assert [r.kind for r in ast.relationships].count("identifying") == 1

    def test_weak_entity_is_identified_by_two_references(self):
        ast = parse_dsl(SAMPLE_DSL)
        weak = [e for e in ast.entities if e.kind == "weak"]
        assert len(weak) == 1
        assert len(weak[0].identified_by) == 2

    def test_forward_transform_counts(self):
        ast = parse_dsl(SAMPLE_DSL)
        graph = ast_to_diagram(ast)

        attribute_total = sum(count_attributes(e.attributes) for e in ast.entities) + sum(
            count_attributes(r.attributes) for r in ast.relationships
        )
        # Store: 4 + 3 nested, Product: 3, OrderItem: 2, Order: 3, Supplier: 3, supplies: 2
        assert attribute_total == 20

        top_level = [n for n in graph.nodes if n.type in ENTITY_NODE_TYPES | RELATIONSHIP_NODE_TYPES]
        attributes = [n for n in graph.nodes if n.type in ATTRIBUTE_NODE_TYPES]
        assert len(top_level) == 8
        assert len(attributes) == attribute_total
        assert len(graph.nodes) == 8 + attribute_total

        relational = [e for e in graph.edges if e.kind == "relational"]
        containment = [e for e in graph.edges if e.kind == "containment"]
        assert len(relational) == 2 * 3
        assert len(containment) == attribute_total

    def test_every_relationship_has_one_edge_per_side(self):
        graph = ast_to_diagram(parse_dsl(SAMPLE_DSL))
        for rel in (n for n in graph.nodes if n.type in RELATIONSHIP_NODE_TYPES):
            incoming = [e for e in graph.edges if e.kind == "relational" and e.target_id == rel.id]
            outgoing = [e for e in graph.edges if e.kind == "relational" and e.source_id == rel.id]
            assert len(incoming) == 1
            assert len(outgoing) == 1

    def test_containment_edges_form_a_forest(self):
        graph = ast_to_diagram(parse_dsl(SAMPLE_DSL))
        targets = [e.target_id for e in graph.edges if e.kind == "containment"]
        assert len(targets) == len(set(targets))


# ============================================================================
# Full pipeline
# ============================================================================


class TestPipeline:
    def test_text_to_graph_and_back(self):
        graph = render_diagram(SAMPLE_DSL)
        assert parse_dsl(diagram_to_dsl(graph)) == parse_dsl(SAMPLE_DSL)

    def test_user_edit_is_reflected_in_text(self):
        graph = render_diagram("Entity A:\n  a PK\nEntity B:\nRelation A (1) — (M) B: has")
        for node in graph.nodes:
            if node.label == "has":
                node.label = "owns"
            node.x = (node.x or 0) + 15
        text = diagram_to_dsl(graph)
        assert "Relation A (1, partial) — (M, partial) B: owns" in text

    def test_reverse_snapshot_is_independent_of_graph(self):
        graph = render_diagram("Entity A:\n  a")
        ast = diagram_to_ast(graph)
        graph.nodes[0].label = "Changed"
        assert ast.entities[0].name == "A"

    def test_render_logs_summary(self, caplog):
        with caplog.at_level(logging.INFO, logger="er_dsl"):
            render_diagram(SAMPLE_DSL)
        assert "Parsed 5 entities and 3 relationships" in caplog.text

    def test_undeclared_entity_survives_text_graph_text(self):
        text = "Entity Product:\n  pid PK\nRelation Store (1, total) -- (M, partial) Product: sells"
        ast = parse_dsl(diagram_to_dsl(ast_to_diagram(parse_dsl(text))))
        assert [e.name for e in ast.entities] == ["Product", "Store"]
        assert ast.relationships[0].left == RelationshipSide("Store", "one", "total")
        assert ast.relationships[0].right == RelationshipSide("Product", "many", "partial")

    def test_deleted_entity_still_prints_parseable_text(self):
        graph = render_diagram("Entity A:\nEntity B:\nRelation A (1) — (M) B: has\n  since")
        a_id = next(n.id for n in graph.nodes if n.label == "A")
        graph.nodes = [n for n in graph.nodes if n.id != a_id]
        ast = parse_dsl(diagram_to_dsl(graph))
        rel = ast.relationships[0]
        assert rel.left.entity == "Unnamed"
        assert rel.right == RelationshipSide("B", "many", "partial")
        assert [a.name for a in rel.attributes] == ["since"]

    def test_generate_then_parse_is_a_fixed_point(self):
        ast = parse_dsl(SAMPLE_DSL)
        assert diagram_to_ast(ast_to_diagram(parse_dsl(generate_dsl(ast)))) == ast


# ============================================================================
# Command line
# ============================================================================


@pytest.fixture(autouse=True)
def restore_package_logger():
    package_logger = logging.getLogger("er_dsl")
    saved = (package_logger.handlers[:], package_logger.level, package_logger.propagate)
    yield
    package_logger.handlers[:] = saved[0]
    package_logger.setLevel(saved[1])
    package_logger.propagate = saved[2]


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "store.er"
    path.write_text(SAMPLE_DSL, encoding="utf-8")
    return path


class TestCli:
    def test_parse_prints_ast_json(self, sample_file, capsys):
        assert main(["parse", str(sample_file)]) == 0
        data = json.loads(capsys.readouterr().out)
        assert len(data["entities"]) == 5

    def test_diagram_prints_positioned_graph(self, sample_file, capsys):
        assert main(["diagram", str(sample_file), "--entity-spacing", "250"]) == 0
        data = json.loads(capsys.readouterr().out)
        entity_xs = [n["x"] for n in data["nodes"] if n["type"] in ("entity", "weak_entity")]
        assert entity_xs == [100, 350, 600, 850, 1100]

    def test_diagram_without_layout(self, sample_file, capsys):
        assert main(["diagram", str(sample_file), "--no-layout"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert all("x" not in n for n in data["nodes"])

    def test_export_then_generate(self, sample_file, tmp_path, capsys):
        assert main(["export", str(sample_file)]) == 0
        bundle_path = tmp_path / "store.json"
        bundle_path.write_text(capsys.readouterr().out, encoding="utf-8")

        assert main(["generate", str(bundle_path)]) == 0
        text = capsys.readouterr().out
        assert parse_dsl(text) == parse_dsl(SAMPLE_DSL)

    def test_sample(self, capsys):
        assert main(["sample"]) == 0
        assert parse_dsl(capsys.readouterr().out) == parse_dsl(SAMPLE_DSL)

    def test_syntax_error_exits_with_1(self, tmp_path, capsys):
        path = tmp_path / "bad.er"
        path.write_text("Relation A (7) — (M) B: r", encoding="utf-8")
        assert main(["parse", str(path)]) == 1
        err = capsys.readouterr().err
        assert "Syntax error" in err
        assert "cardinality" in err
        assert "line 1, column 13" in err

    def test_missing_file_exits_with_1(self, tmp_path, capsys):
        assert main(["parse", str(tmp_path / "nope.er")]) == 1
        assert "Error" in capsys.readouterr().err

    def test_unrecognized_json_exits_with_1(self, tmp_path, capsys):
        path = tmp_path / "odd.json"
        path.write_text('{"foo": 1}', encoding="utf-8")
        assert main(["generate", str(path)]) == 1
        assert "Unrecognized document" in capsys.readouterr().err

    def test_invalid_graph_exits_with_1(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text('{"nodes": [{"id": 1, "type": "bogus", "label": 5}], "edges": []}', encoding="utf-8")
        assert main(["generate", str(path)]) == 1
        assert "Error" in capsys.readouterr().err

    def test_generate_reads_dsl_cardinality_tokens(self, tmp_path, capsys):
        graph = {
            "nodes": [
                {"id": 1, "type": "entity", "label": "A"},
                {"id": 2, "type": "entity", "label": "B"},
                {"id": 3, "type": "relationship", "label": "has"},
            ],
            "edges": [
                {"id": 10, "sourceId": 1, "targetId": 3, "sourceCardinality": "1"},
                {"id": 11, "sourceId": 3, "targetId": 2, "targetCardinality": "M"},
            ],
        }
        path = tmp_path / "graph.json"
        path.write_text(json.dumps(graph), encoding="utf-8")
        assert main(["generate", str(path)]) == 0
        assert "Relation A (1, partial) — (M, partial) B: has" in capsys.readouterr().out

    def test_unknown_log_level_is_a_usage_error(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--log-level", "LOUD", "sample"])
        assert exc.value.code == 2
        assert "invalid choice" in capsys.readouterr().err

    def test_log_level_is_case_insensitive(self, capsys):
        assert main(["--log-level", "debug", "sample"]) == 0
        assert logging.getLogger("er_dsl").level == logging.DEBUG
