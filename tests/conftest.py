import pytest

from core.models import GraphData


def _payload():
    return {
        "nodes": [
            {"id": "brca1", "type": "gene", "name": "BRCA1", "properties": {"chromosome": "17"}},
            {"id": "cancer", "type": "disease", "name": "Cancer", "properties": {}},
            {"id": "olaparib", "type": "drug", "name": "Olaparib", "properties": {}},
            {"id": "dna-repair", "type": "pathway", "name": "DNA Repair", "properties": {}},
        ],
        "relationships": [
            {
                "id": "r1",
                "source": "brca1",
                "target": "cancer",
                "relation": "ASSOCIATED_WITH",
                "weightage": 0.9,
                "evolution": {"2020": 0, "2022": 0.7},
            },
            {"id": "r2", "source": "olaparib", "target": "cancer", "relation": "TREATS", "weightage": 0.8},
            {"id": "r3", "source": "brca1", "target": "dna-repair", "relation": "PART_OF", "weightage": 1},
            {"id": "r4", "source": "brca1", "target": "ghost", "relation": "DANGLING"},
        ],
    }


@pytest.fixture
def payload():
    return _payload()


@pytest.fixture
def graph(payload):
    return GraphData.from_payload(payload)
