from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Collection, List, Optional, Tuple

from force_graph.force_physics import DRAG_HEAT, ForceSimulation

LOG = logging.getLogger(__name__)

Point = Tuple[float, float]

MIN_ZOOM = 0.1
MAX_ZOOM = 4.0


class SelectionKind(str, Enum):
    NONE = "none"
    NODE = "node"
    EDGE = "edge"


@dataclass(frozen=True)
class Selection:
    kind: SelectionKind = SelectionKind.NONE
    element_id: Optional[str] = None
    anchor: Optional[Point] = None

    @property
    def is_empty(self) -> bool:
        return self.kind is SelectionKind.NONE

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "id": self.element_id,
            "anchor": list(self.anchor) if self.anchor else None,
        }


NOTHING = Selection()

Listener = Callable[[Selection, Selection], None]


class SelectionController:
    """Idle / NodeSelected / EdgeSelected, driven by clicks.

    Listeners get ``(previous, current)`` once per actual change, so
    switching from one element to another is never seen as passing
    through ``none``.
    """

    def __init__(self) -> None:
        self._selection = NOTHING
        self._listeners: List[Listener] = []

    @property
    def selection(self) -> Selection:
        return self._selection

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _transition(self, new: Selection) -> bool:
        previous = self._selection
        if new == previous:
            return False
        self._selection = new
        for listener in list(self._listeners):
            listener(previous, new)
        return True

    def _toggle(self, kind: SelectionKind, element_id: str, anchor: Point) -> bool:
        current = self._selection
        if current.kind is kind and current.element_id == element_id:
            return self._transition(NOTHING)
        return self._transition(Selection(kind, element_id, (float(anchor[0]), float(anchor[1]))))

    def click_node(self, node_id: str, anchor: Point) -> bool:
        return self._toggle(SelectionKind.NODE, node_id, anchor)

    def click_edge(self, edge_id: str, anchor: Point) -> bool:
        return self._toggle(SelectionKind.EDGE, edge_id, anchor)

    def click_background(self) -> bool:
        return self._transition(NOTHING)

    def clear(self) -> bool:
        return self._transition(NOTHING)

    def prune(self, visible_node_ids: Collection[str], visible_link_ids: Collection[str]) -> bool:
        """Drop a selection whose element is no longer visible."""
        current = self._selection
        if current.kind is SelectionKind.NODE and current.element_id not in visible_node_ids:
            return self._transition(NOTHING)
        if current.kind is SelectionKind.EDGE and current.element_id not in visible_link_ids:
            return self._transition(NOTHING)
        return False


@dataclass
class Viewport:
    """Pan/zoom transform between layout (world) and screen coordinates."""

    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0

    def to_screen(self, x: float, y: float) -> Point:
        return x * self.zoom + self.pan_x, y * self.zoom + self.pan_y

    def to_world(self, sx: float, sy: float) -> Point:
        return (sx - self.pan_x) / self.zoom, (sy - self.pan_y) / self.zoom

    def pan(self, dx: float, dy: float) -> None:
        self.pan_x += dx
        self.pan_y += dy

    def zoom_at(self, factor: float, sx: float, sy: float) -> None:
        """Zoom by ``factor`` keeping the screen point (sx, sy) fixed."""
        wx, wy = self.to_world(sx, sy)
        self.zoom = max(MIN_ZOOM, min(MAX_ZOOM, self.zoom * factor))
        self.pan_x = sx - wx * self.zoom
        self.pan_y = sy - wy * self.zoom

    def set(self, zoom: Optional[float] = None, pan: Optional[Point] = None) -> None:
        if zoom is not None:
            self.zoom = max(MIN_ZOOM, min(MAX_ZOOM, float(zoom)))
        if pan is not None:
            self.pan_x, self.pan_y = float(pan[0]), float(pan[1])

    def reset(self) -> None:
        self.zoom = 1.0
        self.pan_x = 0.0
        self.pan_y = 0.0


class DragController:
    """Pins the dragged node to the pointer and keeps the layout warm while dragging."""

    def __init__(self, simulation: ForceSimulation) -> None:
        self.simulation = simulation
        self.node_id: Optional[str] = None

    @property
    def active(self) -> bool:
        return self.node_id is not None

    def begin(self, node_id: str, x: float, y: float) -> bool:
        if self.node_id is not None and self.node_id != node_id:
            self.end()
        if not self.simulation.pin(node_id, x, y):
            return False
        self.node_id = node_id
        self.simulation.heat(DRAG_HEAT)
        LOG.debug("drag-start", extra={"node_id": node_id})
        return True

    def move(self, x: float, y: float) -> bool:
        if self.node_id is None:
            return False
        return self.simulation.pin(self.node_id, x, y)

    def end(self) -> bool:
        if self.node_id is None:
            return False
        self.simulation.unpin(self.node_id)
        self.simulation.heat(0.0)
        LOG.debug("drag-end", extra={"node_id": self.node_id})
        self.node_id = None
        return True

    def cancel_if_missing(self) -> None:
        if self.node_id is not None and self.node_id not in self.simulation:
            self.node_id = None
            self.simulation.heat(0.0)


class EvolutionControl:
    """On/off toggle plus a year slider bounded by the data's year range."""

    def __init__(self, min_year: int, max_year: int) -> None:
        self.min_year = int(min_year)
        self.max_year = int(max_year)
        self.enabled = False
        self.year = self.max_year

    @property
    def cutoff(self) -> Optional[int]:
        return self.year if self.enabled else None

    def toggle(self) -> Optional[int]:
        self.enabled = not self.enabled
        return self.cutoff

    def set_enabled(self, enabled: bool) -> Optional[int]:
        self.enabled = bool(enabled)
        return self.cutoff

    def set_year(self, year: int) -> Optional[int]:
        self.year = max(self.min_year, min(self.max_year, int(year)))
        return self.cutoff

    def reset(self) -> Optional[int]:
        self.year = self.max_year
        return self.cutoff
