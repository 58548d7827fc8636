"""Tests for the JSON shapes exchanged with the renderer."""
from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from er_dsl import ast_to_diagram, layout_diagram, parse_dsl
from er_dsl.samples import SAMPLE_DSL
from er_dsl.serialize import (
    ast_from_dict,
    ast_to_dict,
    diagram_from_dict,
    diagram_to_dict,
    dumps,
    export_bundle,
    load_document,
)
from er_dsl.types import DiagramGraph, ErAst


class TestAstShape:
    def test_top_level_keys(self):
        data = ast_to_dict(parse_dsl(SAMPLE_DSL))
        assert set(data) == {"entities", "relationships"}
        assert len(data["entities"]) == 5
        assert len(data["relationships"]) == 3

    def test_attribute_keys_are_camel_case_and_sparse(self):
        data = ast_to_dict(parse_dsl("Entity A:\n  b FK -> C.c\n  d"))
        fk, plain = data["entities"][0]["attributes"]
        assert fk == {
            "name": "b",
            "kind": "simple",
            "keyRole": "foreign",
            "fkTarget": {"entity": "C", "attribute": "c"},
        }
        assert plain == {"name": "d", "kind": "simple", "keyRole": "none"}

    def test_weak_entity_identified_by(self):
        data = ast_to_dict(parse_dsl("Weak Entity W:\n  Identified By A.a"))
        assert data["entities"][0]["identifiedBy"] == [{"entity": "A", "attribute": "a"}]

    def test_relationship_sides(self):
        data = ast_to_dict(parse_dsl("Relation A (1, total) — (M) B: has"))
        assert data["relationships"][0]["left"] == {
            "entity": "A",
            "cardinality": "one",
            "participation": "total",
        }

    def test_dict_round_trip(self):
        ast = parse_dsl(SAMPLE_DSL + "\nEntity X:\n  t: int\n  f FK")
        assert ast_from_dict(json.loads(dumps(ast_to_dict(ast)))) == ast

    def test_missing_optional_keys_take_defaults(self):
        ast = ast_from_dict(
            {"entities": [{"name": "A", "attributes": [{"name": "a"}]}], "relationships": [{"name": "r"}]}
        )
        assert ast.entities[0].kind == "strong"
        assert ast.entities[0].attributes[0].key == "none"
        assert ast.relationships[0].kind == "normal"
        assert ast.relationships[0].left.entity == ""


class TestDiagramShape:
    def test_node_and_edge_keys(self):
        graph = layout_diagram(ast_to_diagram(parse_dsl("Entity A:\n  a PK\nRelation A (1) — (M) A: r")))
        data = diagram_to_dict(graph)
        assert data["nodes"][0] == {
            "id": "node_1",
            "type": "entity",
            "label": "A",
            "x": 100,
            "y": 250,
            "width": 140,
            "height": 40,
        }
        assert data["nodes"][1]["parentId"] == "node_1"
        assert data["nodes"][1]["isPrimaryKey"] is True
        assert "isForeignKey" not in data["nodes"][1]
        assert data["edges"][0] == {
            "id": "edge_1",
            "sourceId": "node_1",
            "targetId": "node_2",
            "kind": "containment",
        }
        assert data["edges"][1]["sourceCardinality"] == "one"
        assert "targetCardinality" not in data["edges"][1]

    def test_dict_round_trip(self):
        graph = layout_diagram(ast_to_diagram(parse_dsl(SAMPLE_DSL)))
        assert diagram_from_dict(json.loads(dumps(diagram_to_dict(graph)))) == graph

    def test_renderer_edges_without_kind_load(self):
        graph = diagram_from_dict(
            {
                "nodes": [{"id": 1, "type": "entity", "label": "A"}],
                "edges": [{"id": 7, "sourceId": 1, "targetId": 2, "targetCardinality": "many"}],
            }
        )
        assert graph.nodes[0].id == "1"
        assert graph.edges[0].kind is None
        assert graph.edges[0].target_id == "2"


class TestDocuments:
    def test_bundle_holds_both_shapes(self):
        ast = parse_dsl(SAMPLE_DSL)
        bundle = export_bundle(ast, ast_to_diagram(ast))
        assert set(bundle) == {"ast", "diagram"}

    def test_load_bundle_prefers_the_diagram(self):
        ast = parse_dsl(SAMPLE_DSL)
        loaded = load_document(export_bundle(ast, ast_to_diagram(ast)))
        assert isinstance(loaded, DiagramGraph)

    def test_load_bare_shapes(self):
        ast = parse_dsl(SAMPLE_DSL)
        assert load_document(ast_to_dict(ast)) == ast
        assert isinstance(load_document(diagram_to_dict(ast_to_diagram(ast))), DiagramGraph)

    def test_load_ast_only_bundle(self):
        ast = parse_dsl("Entity A:")
        assert load_document({"ast": ast_to_dict(ast)}) == ast

    def test_load_rejects_unknown_documents(self):
        with pytest.raises(ValueError, match="Unrecognized document"):
            load_document({"foo": 1})
        with pytest.raises(ValueError, match="JSON object"):
            load_document([])

    def test_dumps_keeps_em_dash_readable(self):
        assert "—" in dumps({"text": "—"})

    def test_empty_ast(self):
        assert ast_from_dict(ast_to_dict(ErAst())) == ErAst()


# ============================================================================
# Validation
# ============================================================================


class TestValidation:
    def test_unknown_node_type_is_rejected(self):
        with pytest.raises(ValidationError):
            load_document({"nodes": [{"id": 1, "type": "bogus", "label": "A"}], "edges": []})

    def test_non_string_label_is_rejected(self):
        with pytest.raises(ValidationError, match="label"):
            diagram_from_dict({"nodes": [{"id": 1, "type": "entity", "label": 5}]})

    def test_validation_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            load_document({"entities": [{"name": "A", "kind": "sturdy"}]})

    def test_unknown_cardinality_is_rejected(self):
        with pytest.raises(ValidationError, match="sourceCardinality"):
            diagram_from_dict(
                {"edges": [{"id": "e", "sourceId": "a", "targetId": "b", "sourceCardinality": "7"}]}
            )

    def test_dsl_cardinality_tokens_are_read(self):
        graph = diagram_from_dict(
            {
                "edges": [
                    {"id": "e", "sourceId": "a", "targetId": "b", "sourceCardinality": "1", "targetCardinality": "M"}
                ]
            }
        )
        assert graph.edges[0].source_cardinality == "one"
        assert graph.edges[0].target_cardinality == "many"

    def test_dsl_cardinality_tokens_in_ast_sides(self):
        ast = ast_from_dict({"relationships": [{"name": "r", "left": {"entity": "A", "cardinality": "M"}}]})
        assert ast.relationships[0].left.cardinality == "many"

    def test_missing_required_name_is_rejected(self):
        with pytest.raises(ValidationError):
            ast_from_dict({"entities": [{"attributes": []}]})
