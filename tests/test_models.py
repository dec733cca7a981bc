import pytest

from core.models import GraphData, GraphDataError, Node, Relationship
from core.schema_registry import DEFAULT_REGISTRY, SchemaRegistry


def test_payload_is_accepted(graph):
    assert [n.id for n in graph.nodes] == ["brca1", "cancer", "olaparib", "dna-repair"]
    assert graph.node_types == ("gene", "disease", "drug", "pathway")
    assert len(graph.relationships) == 4
    assert graph.node_index["brca1"].name == "BRCA1"


def test_duplicate_node_ids_are_rejected(payload):
    payload["nodes"].append({"id": "brca1", "type": "gene"})
    with pytest.raises(GraphDataError, match="brca1"):
        GraphData.from_payload(payload)


def test_missing_relationships_key_is_rejected():
    with pytest.raises(GraphDataError, match="relationships"):
        GraphData.from_payload({"nodes": []})


def test_node_without_type_is_rejected(payload):
    del payload["nodes"][0]["type"]
    with pytest.raises(GraphDataError, match="nodes/0"):
        GraphData.from_payload(payload)


def test_non_numeric_evolution_weight_is_rejected(payload):
    payload["relationships"][0]["evolution"] = {"2021": "high"}
    with pytest.raises(GraphDataError):
        GraphData.from_payload(payload)


def test_defaults_for_optional_fields():
    node = Node.from_dict({"id": 7, "type": "gene"})
    assert node.id == "7"
    assert node.name == "7"
    assert node.properties == {}

    rel = Relationship.from_dict({"id": 1, "source": 7, "target": 8})
    assert rel.source == "7"
    assert rel.weightage == 1.0
    assert rel.relation == ""
    assert not rel.has_evolution


def test_evolution_points_skip_bad_keys():
    rel = Relationship.from_dict(
        {"id": "e", "source": "a", "target": "b", "evolution": {"2020": 0.5, "later": 1, "2021": True, " 2022 ": 2}}
    )
    assert sorted(rel.evolution_points()) == [(2020, 0.5), (2022, 2.0)]


def test_graph_equality_is_identity(payload):
    a = GraphData.from_payload(payload)
    b = GraphData.from_payload(payload)
    assert a != b
    assert a == a


def test_to_dict_keeps_evolution(graph):
    out = graph.to_dict()
    assert out["relationships"][0]["evolution"] == {"2020": 0, "2022": 0.7}
    assert "evolution" not in out["relationships"][1]


def test_registry_reports_every_problem_in_order(tmp_path):
    problems = DEFAULT_REGISTRY.check(
        "graph_data",
        {"nodes": [{"id": "a"}], "relationships": [{"id": "r", "source": "a"}]},
    )
    assert problems == [
        "at nodes/0: 'type' is a required property",
        "at relationships/0: 'target' is a required property",
    ]

    registry = SchemaRegistry(tmp_path)
    with pytest.raises(FileNotFoundError):
        registry.register("missing")
    with pytest.raises(KeyError):
        registry.validator("missing")
