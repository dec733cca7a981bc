from __future__ import annotations

from typing import List, Optional, Sequence

# Subdivision stops at this width; points closer than this share one leaf.
MIN_CELL = 1e-6


class QuadCell:
    """Node of a Barnes-Hut quadtree over point indices.

    Internal cells hold four children; leaves hold the indices of the points
    inside them. ``value`` is the summed charge and ``cx``/``cy`` the
    charge-weighted centroid, filled in by :func:`accumulate`.
    """

    __slots__ = ("x0", "y0", "x1", "y1", "children", "points", "value", "cx", "cy")

    def __init__(self, x0: float, y0: float, x1: float, y1: float) -> None:
        self.x0 = x0
        self.y0 = y0
        self.x1 = x1
        self.y1 = y1
        self.children: Optional[List[Optional["QuadCell"]]] = None
        self.points: List[int] = []
        self.value = 0.0
        self.cx = 0.0
        self.cy = 0.0

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def is_leaf(self) -> bool:
        return self.children is None

    def _quadrant(self, x: float, y: float) -> int:
        mx = (self.x0 + self.x1) * 0.5
        my = (self.y0 + self.y1) * 0.5
        return (1 if x >= mx else 0) | (2 if y >= my else 0)

    def _child_bounds(self, quadrant: int) -> tuple[float, float, float, float]:
        mx = (self.x0 + self.x1) * 0.5
        my = (self.y0 + self.y1) * 0.5
        x0, x1 = (mx, self.x1) if quadrant & 1 else (self.x0, mx)
        y0, y1 = (my, self.y1) if quadrant & 2 else (self.y0, my)
        return x0, y0, x1, y1

    def insert(self, idx: int, xs: Sequence[float], ys: Sequence[float]) -> None:
        cell = self
        while True:
            if cell.is_leaf:
                if not cell.points or cell.width <= MIN_CELL:
                    cell.points.append(idx)
                    return
                first = cell.points[0]
                if xs[first] == xs[idx] and ys[first] == ys[idx]:
                    cell.points.append(idx)
                    return
                # split: push existing points down one level
                existing = cell.points
                cell.points = []
                cell.children = [None, None, None, None]
                for p in existing:
                    cell._child_for(p, xs, ys).points.append(p)
            cell = cell._child_for(idx, xs, ys)

    def _child_for(self, idx: int, xs: Sequence[float], ys: Sequence[float]) -> "QuadCell":
        assert self.children is not None
        q = self._quadrant(xs[idx], ys[idx])
        child = self.children[q]
        if child is None:
            child = QuadCell(*self._child_bounds(q))
            self.children[q] = child
        return child


def build_quadtree(xs: Sequence[float], ys: Sequence[float]) -> Optional[QuadCell]:
    """Build a square quadtree covering every point, or None when empty."""
    if not xs:
        return None
    x0, x1 = min(xs), max(xs)
    y0, y1 = min(ys), max(ys)
    size = max(x1 - x0, y1 - y0, 1.0)
    root = QuadCell(x0, y0, x0 + size, y0 + size)
    # nudge the far edge so points on the max boundary fall inside
    root.x1 += size * 1e-9 + 1e-9
    root.y1 += size * 1e-9 + 1e-9
    for idx in range(len(xs)):
        root.insert(idx, xs, ys)
    return root


def accumulate(cell: QuadCell, xs: Sequence[float], ys: Sequence[float], charges: Sequence[float]) -> None:
    """Fill ``value`` and the centroid of every cell bottom-up."""
    if cell.is_leaf:
        total = 0.0
        weight = 0.0
        sx = 0.0
        sy = 0.0
        for p in cell.points:
            c = charges[p]
            total += c
            w = abs(c)
            weight += w
            sx += xs[p] * w
            sy += ys[p] * w
        cell.value = total
        if weight > 0.0:
            cell.cx = sx / weight
            cell.cy = sy / weight
        elif cell.points:
            cell.cx = xs[cell.points[0]]
            cell.cy = ys[cell.points[0]]
        return

    total = 0.0
    weight = 0.0
    sx = 0.0
    sy = 0.0
    for child in cell.children or ():
        if child is None:
            continue
        accumulate(child, xs, ys, charges)
        w = abs(child.value)
        total += child.value
        weight += w
        sx += child.cx * w
        sy += child.cy * w
    cell.value = total
    if weight > 0.0:
        cell.cx = sx / weight
        cell.cy = sy / weight
