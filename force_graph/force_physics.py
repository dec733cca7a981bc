from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from force_graph.force_tree import QuadCell, accumulate, build_quadtree

LOG = logging.getLogger(__name__)

LINK_DISTANCE = 200.0
CHARGE_STRENGTH = -1000.0
COLLIDE_RADIUS = 50.0
CENTER_STRENGTH = 0.1
SEED_JITTER = 100.0
THETA = 0.9
DISTANCE_MIN2 = 1.0
ALPHA_MIN = 0.001
ALPHA_DECAY = 1.0 - ALPHA_MIN ** (1.0 / 300.0)
VELOCITY_DECAY = 0.4
DRAG_HEAT = 0.3
MAX_ITERATIONS = 5000


@dataclass
class Body:
    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    fx: Optional[float] = None
    fy: Optional[float] = None

    @property
    def pinned(self) -> bool:
        return self.fx is not None


@dataclass(frozen=True)
class LayoutLink:
    id: str
    source: str
    target: str


def _build_cells(points: Sequence[Tuple[float, float]], cell_size: float) -> Dict[Tuple[int, int], List[int]]:
    cells: Dict[Tuple[int, int], List[int]] = {}
    for idx, (x, y) in enumerate(points):
        key = (int(math.floor(x / cell_size)), int(math.floor(y / cell_size)))
        cells.setdefault(key, []).append(idx)
    return cells


class ForceSimulation:
    """Force-directed layout over an arena of bodies keyed by node id.

    Each tick decays ``alpha`` toward ``alpha_target``, superposes link,
    many-body, collision and centering forces into body velocities, then
    integrates with velocity damping. Pinned bodies sit on their pin.
    """

    def __init__(
        self,
        width: float = 960.0,
        height: float = 720.0,
        *,
        link_distance: float = LINK_DISTANCE,
        charge_strength: float = CHARGE_STRENGTH,
        collide_radius: float = COLLIDE_RADIUS,
        center_strength: float = CENTER_STRENGTH,
        theta: float = THETA,
        max_iterations: int = MAX_ITERATIONS,
        seed: Optional[int] = None,
    ) -> None:
        self.width = float(width)
        self.height = float(height)
        self.link_distance = link_distance
        self.charge_strength = charge_strength
        self.collide_radius = collide_radius
        self.center_strength = center_strength
        self.theta2 = theta * theta
        self.max_iterations = max_iterations
        self.alpha = 1.0
        self.alpha_min = ALPHA_MIN
        self.alpha_decay = ALPHA_DECAY
        self.alpha_target = 0.0
        self.velocity_decay = VELOCITY_DECAY
        self.running = False
        self.iterations = 0
        self.last_displacement = 0.0
        self._run_iterations = 0
        self._rng = random.Random(seed)
        self._bodies: Dict[str, Body] = {}
        self._links: List[LayoutLink] = []
        self._link_strength: List[float] = []
        self._link_bias: List[float] = []

    # ------------------------------------------------------------------
    # arena
    # ------------------------------------------------------------------
    @property
    def center(self) -> Tuple[float, float]:
        return self.width / 2.0, self.height / 2.0

    @property
    def node_ids(self) -> Tuple[str, ...]:
        return tuple(self._bodies)

    @property
    def links(self) -> Tuple[LayoutLink, ...]:
        return tuple(self._links)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._bodies

    def __len__(self) -> int:
        return len(self._bodies)

    def position(self, node_id: str) -> Optional[Tuple[float, float]]:
        body = self._bodies.get(node_id)
        if body is None:
            return None
        return body.x, body.y

    def positions(self) -> Dict[str, Tuple[float, float]]:
        return {nid: (b.x, b.y) for nid, b in self._bodies.items()}

    def pinned_position(self, node_id: str) -> Optional[Tuple[float, float]]:
        body = self._bodies.get(node_id)
        if body is None or body.fx is None or body.fy is None:
            return None
        return body.fx, body.fy

    def _seed_body(self) -> Body:
        cx, cy = self.center
        return Body(
            x=cx + self._rng.uniform(-SEED_JITTER, SEED_JITTER),
            y=cy + self._rng.uniform(-SEED_JITTER, SEED_JITTER),
        )

    def set_graph(self, node_ids: Iterable[str], links: Iterable[LayoutLink]) -> None:
        """Replace the node and link sets, keeping bodies of persisting ids, and restart hot."""
        previous = self._bodies
        bodies: Dict[str, Body] = {}
        seeded = 0
        for nid in node_ids:
            if nid in bodies:
                continue
            body = previous.get(nid)
            if body is None:
                body = self._seed_body()
                seeded += 1
            bodies[nid] = body
        self._bodies = bodies

        kept: List[LayoutLink] = []
        degree: Dict[str, int] = {}
        for link in links:
            if link.source not in bodies or link.target not in bodies or link.source == link.target:
                continue
            kept.append(link)
            degree[link.source] = degree.get(link.source, 0) + 1
            degree[link.target] = degree.get(link.target, 0) + 1
        self._links = kept
        self._link_strength = [1.0 / min(degree[l.source], degree[l.target]) for l in kept]
        self._link_bias = [degree[l.source] / (degree[l.source] + degree[l.target]) for l in kept]

        LOG.info(
            "layout-restart",
            extra={"nodes": len(bodies), "links": len(kept), "seeded": seeded, "kept": len(bodies) - seeded},
        )
        self.restart()

    def reset(self) -> None:
        self._bodies = {}
        self._links = []
        self._link_strength = []
        self._link_bias = []
        self.alpha = 1.0
        self.alpha_target = 0.0
        self.running = False
        self.iterations = 0
        self._run_iterations = 0
        self.last_displacement = 0.0

    def resize(self, width: float, height: float) -> None:
        self.width = float(width)
        self.height = float(height)

    # ------------------------------------------------------------------
    # control
    # ------------------------------------------------------------------
    def restart(self, alpha: float = 1.0) -> None:
        self.alpha = alpha
        self.running = bool(self._bodies)
        self._run_iterations = 0

    def heat(self, target: float) -> None:
        """Set the residual energy the simulation settles toward and resume it."""
        self.alpha_target = target
        self.running = bool(self._bodies)
        self._run_iterations = 0

    def pin(self, node_id: str, x: float, y: float) -> bool:
        body = self._bodies.get(node_id)
        if body is None:
            return False
        body.fx = body.x = float(x)
        body.fy = body.y = float(y)
        body.vx = body.vy = 0.0
        self._run_iterations = 0
        return True

    def unpin(self, node_id: str) -> bool:
        body = self._bodies.get(node_id)
        if body is None:
            return False
        body.fx = body.fy = None
        return True

    def tick(self, steps: int = 1) -> bool:
        """Advance up to ``steps`` ticks; return whether the simulation is still running."""
        for _ in range(steps):
            if not self.running:
                break
            self._step()
            self.iterations += 1
            self._run_iterations += 1
            if self.alpha < self.alpha_min:
                self.running = False
                LOG.debug("layout-converged", extra={"iterations": self.iterations, "displacement": self.last_displacement})
            elif self._run_iterations >= self.max_iterations:
                self.running = False
                LOG.warning("layout-iteration-ceiling", extra={"iterations": self._run_iterations, "alpha": self.alpha})
        return self.running

    def run(self) -> int:
        """Tick until idle; return the number of ticks taken."""
        start = self.iterations
        while self.running:
            self.tick()
        return self.iterations - start

    # ------------------------------------------------------------------
    # forces
    # ------------------------------------------------------------------
    def _jiggle(self) -> float:
        return (self._rng.random() - 0.5) * 1e-6

    def _step(self) -> None:
        self.alpha += (self.alpha_target - self.alpha) * self.alpha_decay
        bodies = list(self._bodies.values())
        if not bodies:
            return
        self._apply_links()
        self._apply_charge(bodies)
        self._apply_collision(bodies)
        self._apply_center(bodies)

        keep = 1.0 - self.velocity_decay
        moved = 0.0
        for b in bodies:
            ox, oy = b.x, b.y
            if b.fx is None or b.fy is None:
                b.vx *= keep
                b.vy *= keep
                b.x += b.vx
                b.y += b.vy
            else:
                b.x = b.fx
                b.y = b.fy
                b.vx = b.vy = 0.0
            moved = max(moved, math.hypot(b.x - ox, b.y - oy))
        self.last_displacement = moved

    def _apply_links(self) -> None:
        alpha = self.alpha
        distance = self.link_distance
        for link, strength, bias in zip(self._links, self._link_strength, self._link_bias):
            s = self._bodies[link.source]
            t = self._bodies[link.target]
            x = (t.x + t.vx - s.x - s.vx) or self._jiggle()
            y = (t.y + t.vy - s.y - s.vy) or self._jiggle()
            l = math.sqrt(x * x + y * y)
            l = (l - distance) / l * alpha * strength
            x *= l
            y *= l
            t.vx -= x * bias
            t.vy -= y * bias
            s.vx += x * (1.0 - bias)
            s.vy += y * (1.0 - bias)

    def _apply_charge(self, bodies: List[Body]) -> None:
        xs = [b.x for b in bodies]
        ys = [b.y for b in bodies]
        charges = [self.charge_strength] * len(bodies)
        root = build_quadtree(xs, ys)
        if root is None:
            return
        accumulate(root, xs, ys, charges)
        alpha = self.alpha
        for i, b in enumerate(bodies):
            stack: List[QuadCell] = [root]
            while stack:
                cell = stack.pop()
                if not cell.value:
                    continue
                x = cell.cx - b.x
                y = cell.cy - b.y
                l = x * x + y * y
                w = cell.width
                if w * w / self.theta2 < l:
                    # far enough: treat the whole cell as one charge
                    if l < DISTANCE_MIN2:
                        l = math.sqrt(DISTANCE_MIN2 * l)
                    b.vx += x * cell.value * alpha / l
                    b.vy += y * cell.value * alpha / l
                    continue
                if not cell.is_leaf:
                    stack.extend(c for c in cell.children or () if c is not None)
                    continue
                for p in cell.points:
                    if p == i:
                        continue
                    px = (xs[p] - b.x) or self._jiggle()
                    py = (ys[p] - b.y) or self._jiggle()
                    pl = px * px + py * py
                    if pl < DISTANCE_MIN2:
                        pl = math.sqrt(DISTANCE_MIN2 * pl)
                    k = charges[p] * alpha / pl
                    b.vx += px * k
                    b.vy += py * k

    def _apply_collision(self, bodies: List[Body]) -> None:
        radius = self.collide_radius
        if radius <= 0.0:
            return
        reach = radius + radius
        reach2 = reach * reach
        predicted = [(b.x + b.vx, b.y + b.vy) for b in bodies]
        cells = _build_cells(predicted, reach)
        for (cell_x, cell_y), idxs in cells.items():
            neighbors: List[int] = []
            for ox in (-1, 0, 1):
                for oy in (-1, 0, 1):
                    neighbors.extend(cells.get((cell_x + ox, cell_y + oy), []))
            for i in idxs:
                bi = bodies[i]
                xi, yi = predicted[i]
                for j in neighbors:
                    if j <= i:
                        continue
                    bj = bodies[j]
                    x = (xi - bj.x - bj.vx) or self._jiggle()
                    y = (yi - bj.y - bj.vy) or self._jiggle()
                    l = x * x + y * y
                    if l >= reach2:
                        continue
                    l = math.sqrt(l)
                    l = (reach - l) / l
                    x *= l
                    y *= l
                    # equal radii split the correction evenly
                    bi.vx += x * 0.5
                    bi.vy += y * 0.5
                    bj.vx -= x * 0.5
                    bj.vy -= y * 0.5

    def _apply_center(self, bodies: List[Body]) -> None:
        cx, cy = self.center
        n = len(bodies)
        sx = sum(b.x for b in bodies) / n - cx
        sy = sum(b.y for b in bodies) / n - cy
        k = self.center_strength
        for b in bodies:
            b.x -= sx * k
            b.y -= sy * k
