from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from core.schema_registry import DEFAULT_REGISTRY, SchemaRegistry

LOG = logging.getLogger(__name__)


class GraphDataError(ValueError):
    """Raised when a graph payload cannot be accepted."""


def _as_id(value: Any) -> str:
    return str(value).strip()


@dataclass(frozen=True)
class Node:
    id: str
    type: str
    name: str
    properties: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Node":
        node_id = _as_id(raw["id"])
        return cls(
            id=node_id,
            type=str(raw.get("type") or "unknown"),
            name=str(raw.get("name") or node_id),
            properties=dict(raw.get("properties") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "properties": dict(self.properties),
        }


@dataclass(frozen=True)
class Relationship:
    id: str
    source: str
    target: str
    relation: str
    weightage: float = 1.0
    evolution: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    properties: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Relationship":
        weightage = raw.get("weightage")
        return cls(
            id=_as_id(raw["id"]),
            source=_as_id(raw["source"]),
            target=_as_id(raw["target"]),
            relation=str(raw.get("relation") or ""),
            weightage=1.0 if weightage is None else float(weightage),
            evolution=dict(raw.get("evolution") or {}),
            properties=dict(raw.get("properties") or {}),
        )

    @property
    def has_evolution(self) -> bool:
        return bool(self.evolution)

    def evolution_points(self) -> Iterator[Tuple[int, float]]:
        """Yield (year, weight) pairs; keys that are not integers and non-numeric weights are skipped."""
        for key, weight in self.evolution.items():
            try:
                year = int(str(key).strip())
            except ValueError:
                continue
            if isinstance(weight, bool):
                continue
            try:
                value = float(weight)
            except (TypeError, ValueError):
                continue
            yield year, value

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "relation": self.relation,
            "weightage": self.weightage,
            "properties": dict(self.properties),
        }
        if self.evolution:
            payload["evolution"] = dict(self.evolution)
        return payload


@dataclass(frozen=True, eq=False)
class GraphData:
    """Immutable nodes + relationships for one query result.

    Equality is identity: downstream state is rebuilt whenever a different
    instance arrives, even when its content matches.
    """

    nodes: Tuple[Node, ...] = ()
    relationships: Tuple[Relationship, ...] = ()

    def __post_init__(self) -> None:
        seen: Dict[str, int] = {}
        for node in self.nodes:
            seen[node.id] = seen.get(node.id, 0) + 1
        duplicates = sorted(k for k, v in seen.items() if v > 1)
        if duplicates:
            raise GraphDataError(f"Duplicate node ids: {', '.join(duplicates)}")

    @classmethod
    def from_payload(cls, payload: Any, registry: Optional[SchemaRegistry] = None) -> "GraphData":
        problems = (registry or DEFAULT_REGISTRY).check("graph_data", payload)
        if problems:
            raise GraphDataError(f"Invalid graph payload {problems[0]}")
        data = cls(
            nodes=tuple(Node.from_dict(n) for n in payload.get("nodes") or []),
            relationships=tuple(Relationship.from_dict(r) for r in payload.get("relationships") or []),
        )
        LOG.info("graph-payload-accepted", extra={"nodes": len(data.nodes), "relationships": len(data.relationships)})
        return data

    @property
    def node_types(self) -> Tuple[str, ...]:
        ordered: List[str] = []
        for node in self.nodes:
            if node.type not in ordered:
                ordered.append(node.type)
        return tuple(ordered)

    @property
    def node_index(self) -> Dict[str, Node]:
        return {node.id: node for node in self.nodes}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "relationships": [r.to_dict() for r in self.relationships],
        }
