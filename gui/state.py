from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Collection, Dict, FrozenSet, Iterable, List, Optional, Tuple

from core.models import GraphData, Node, Relationship
from force_graph.force_physics import ForceSimulation, LayoutLink
from gui.interaction import DragController, EvolutionControl, Selection, SelectionController, Viewport

LOG = logging.getLogger(__name__)

DEFAULT_YEAR_WINDOW = (2020, 2025)


@dataclass(frozen=True)
class VisibleLink:
    relationship: Relationship
    is_active: bool = True

    @property
    def id(self) -> str:
        return self.relationship.id

    @property
    def source(self) -> str:
        return self.relationship.source

    @property
    def target(self) -> str:
        return self.relationship.target


@dataclass(frozen=True)
class FilteredGraph:
    nodes: Tuple[Node, ...]
    links: Tuple[VisibleLink, ...]
    node_ids: FrozenSet[str]
    # relationships dropped because an endpoint is hidden or missing
    dropped_links: int = 0
    evolution_year: Optional[int] = None

    @property
    def link_ids(self) -> FrozenSet[str]:
        return frozenset(link.id for link in self.links)

    @property
    def active_links(self) -> int:
        return sum(1 for link in self.links if link.is_active)

    @property
    def identity(self) -> Tuple[Tuple[str, ...], Tuple[Tuple[str, str, str], ...]]:
        """Node ids and link endpoints; activation is not part of identity."""
        return (
            tuple(n.id for n in self.nodes),
            tuple((l.id, l.source, l.target) for l in self.links),
        )

    @property
    def meta(self) -> Dict[str, Any]:
        return {
            "nodes": len(self.nodes),
            "links": len(self.links),
            "active_links": self.active_links,
            "dropped_links": self.dropped_links,
            "evolution_year": self.evolution_year,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "links": [{**l.relationship.to_dict(), "isActive": l.is_active} for l in self.links],
            "meta": self.meta,
        }


EMPTY = FilteredGraph(nodes=(), links=(), node_ids=frozenset())


def is_link_active(relationship: Relationship, evolution_year: Optional[int]) -> bool:
    if evolution_year is None or not relationship.has_evolution:
        return True
    return any(year <= evolution_year and weight > 0 for year, weight in relationship.evolution_points())


def filter_graph(
    data: GraphData,
    node_types: Collection[str],
    evolution_year: Optional[int] = None,
) -> FilteredGraph:
    """Visible nodes by type, links with both endpoints visible, each marked active or not."""
    wanted = frozenset(node_types)
    if wanted.issuperset(data.node_types):
        nodes = tuple(data.nodes)
    else:
        nodes = tuple(n for n in data.nodes if n.type in wanted)
    node_ids = frozenset(n.id for n in nodes)

    links: List[VisibleLink] = []
    dropped = 0
    for rel in data.relationships:
        if rel.source not in node_ids or rel.target not in node_ids:
            dropped += 1
            continue
        links.append(VisibleLink(rel, is_link_active(rel, evolution_year)))

    return FilteredGraph(
        nodes=nodes,
        links=tuple(links),
        node_ids=node_ids,
        dropped_links=dropped,
        evolution_year=evolution_year,
    )


def year_range(data: GraphData, default: Tuple[int, int] = DEFAULT_YEAR_WINDOW) -> Tuple[int, int]:
    years = {year for rel in data.relationships for year, weight in rel.evolution_points() if weight > 0}
    if not years:
        return default
    return min(years), max(years)


@dataclass(frozen=True)
class FilterState:
    node_types: FrozenSet[str] = field(default_factory=frozenset)
    evolution_year: Optional[int] = None

    @classmethod
    def for_data(cls, data: GraphData) -> "FilterState":
        return cls(node_types=frozenset(data.node_types))


class GraphState:
    """
    Session state for one viewport: the current graph, its filters, layout
    and selection. Every mutation goes through these methods so derived
    structures are rebuilt in full before the next tick reads them.
    """

    def __init__(
        self,
        width: float = 960.0,
        height: float = 720.0,
        simulation: Optional[ForceSimulation] = None,
    ) -> None:
        self.simulation = simulation if simulation is not None else ForceSimulation(width, height)
        self.selection = SelectionController()
        self.viewport = Viewport()
        self.drag = DragController(self.simulation)
        self.data: Optional[GraphData] = None
        self.error: Optional[str] = None
        self.query: str = ""
        self.filters = FilterState()
        self.evolution = EvolutionControl(*DEFAULT_YEAR_WINDOW)
        self.snapshot: FilteredGraph = EMPTY
        self.revision = 0
        self._latest_token = 0
        self._pending = False
        self._nodes_by_id: Dict[str, Node] = {}
        self.selection.subscribe(lambda _prev, _cur: self._bump())

    # ------------------------------------------------------------------
    # data lifecycle
    # ------------------------------------------------------------------
    @property
    def loading(self) -> bool:
        return self._pending

    @property
    def node_types(self) -> Tuple[str, ...]:
        return self.data.node_types if self.data else ()

    def _bump(self) -> None:
        self.revision += 1

    def begin_request(self, query: str = "") -> int:
        self._latest_token += 1
        self._pending = True
        self.query = query
        return self._latest_token

    def complete_request(self, token: int, response: Any) -> bool:
        """Apply a fetch result unless a newer request has started since."""
        if token != self._latest_token:
            LOG.info("stale-response-ignored", extra={"token": token, "latest": self._latest_token})
            return False
        self._pending = False
        if getattr(response, "success", False) and response.data is not None:
            self.load(response.data)
        else:
            self.fail(getattr(response, "error", None) or "Failed to fetch graph data")
        return True

    def fail(self, message: str) -> None:
        self._teardown()
        self.error = message
        LOG.warning("graph-error", extra={"error": message, "query": self.query})
        self._bump()

    def _teardown(self) -> None:
        self.drag.node_id = None
        self.selection.clear()
        self.simulation.reset()
        self.viewport.reset()
        self.data = None
        self._nodes_by_id = {}
        self.snapshot = EMPTY
        self.filters = FilterState()

    def load(self, data: GraphData) -> None:
        self._teardown()
        self.error = None
        self.data = data
        self._nodes_by_id = data.node_index
        self.filters = FilterState.for_data(data)
        self.evolution = EvolutionControl(*year_range(data))
        self._refilter(force_restart=True)
        LOG.info(
            "graph-loaded",
            extra={"nodes": len(data.nodes), "relationships": len(data.relationships), "types": list(data.node_types)},
        )

    # ------------------------------------------------------------------
    # filters
    # ------------------------------------------------------------------
    def _refilter(self, force_restart: bool = False) -> None:
        if self.data is None:
            return
        previous = self.snapshot
        snapshot = filter_graph(self.data, self.filters.node_types, self.filters.evolution_year)
        self.snapshot = snapshot
        if force_restart or snapshot.identity != previous.identity:
            self.simulation.set_graph(
                (n.id for n in snapshot.nodes),
                (LayoutLink(l.id, l.source, l.target) for l in snapshot.links),
            )
            self.drag.cancel_if_missing()
        self.selection.prune(snapshot.node_ids, snapshot.link_ids)
        LOG.debug("graph-filtered", extra=snapshot.meta)
        self._bump()

    def set_node_types(self, node_types: Iterable[str]) -> None:
        wanted = frozenset(node_types)
        if wanted == self.filters.node_types:
            return
        self.filters = FilterState(wanted, self.filters.evolution_year)
        self._refilter()

    def toggle_node_type(self, node_type: str) -> None:
        current = set(self.filters.node_types)
        if node_type in current:
            current.discard(node_type)
        else:
            current.add(node_type)
        self.set_node_types(current)

    def _apply_evolution(self) -> Optional[int]:
        cutoff = self.evolution.cutoff
        if cutoff != self.filters.evolution_year:
            self.filters = FilterState(self.filters.node_types, cutoff)
            self._refilter()
        return cutoff

    def set_evolution(self, enabled: bool, year: Optional[int] = None) -> Optional[int]:
        if year is not None:
            self.evolution.set_year(year)
        self.evolution.set_enabled(enabled)
        return self._apply_evolution()

    def toggle_evolution(self) -> Optional[int]:
        self.evolution.toggle()
        return self._apply_evolution()

    def reset_evolution_year(self) -> int:
        self.evolution.reset()
        self._apply_evolution()
        return self.evolution.year

    # ------------------------------------------------------------------
    # interaction
    # ------------------------------------------------------------------
    @property
    def current_selection(self) -> Selection:
        return self.selection.selection

    def click_node(self, node_id: str, anchor: Tuple[float, float]) -> bool:
        if node_id not in self.snapshot.node_ids:
            return False
        return self.selection.click_node(node_id, anchor)

    def click_edge(self, edge_id: str, anchor: Tuple[float, float]) -> bool:
        if edge_id not in self.snapshot.link_ids:
            return False
        return self.selection.click_edge(edge_id, anchor)

    def click_background(self) -> bool:
        return self.selection.click_background()

    def drag_start(self, node_id: str, x: float, y: float) -> bool:
        started = self.drag.begin(node_id, x, y)
        if started:
            self._bump()
        return started

    def drag_move(self, x: float, y: float) -> bool:
        moved = self.drag.move(x, y)
        if moved:
            self._bump()
        return moved

    def drag_end(self) -> bool:
        return self.drag.end()

    def pan(self, dx: float, dy: float) -> None:
        self.viewport.pan(dx, dy)

    def zoom(self, factor: float, sx: float, sy: float) -> None:
        self.viewport.zoom_at(factor, sx, sy)

    def tick(self, steps: int = 1) -> bool:
        if not self.simulation.running:
            return False
        running = self.simulation.tick(steps)
        self._bump()
        return running

    # ------------------------------------------------------------------
    # lookups for rendering
    # ------------------------------------------------------------------
    def node(self, node_id: str) -> Optional[Node]:
        return self._nodes_by_id.get(node_id)

    def link(self, link_id: str) -> Optional[VisibleLink]:
        for link in self.snapshot.links:
            if link.id == link_id:
                return link
        return None

    def stats(self) -> Dict[str, Any]:
        data = self.data
        return {
            "total_nodes": len(data.nodes) if data else 0,
            "total_relationships": len(data.relationships) if data else 0,
            "visible_nodes": len(self.snapshot.nodes),
            "active_relationships": self.snapshot.active_links,
            "evolution_year": self.filters.evolution_year,
        }
