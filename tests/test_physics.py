import math

from force_graph import ForceSimulation, LayoutLink, accumulate, build_quadtree
from force_graph.force_physics import ALPHA_MIN, DRAG_HEAT, SEED_JITTER


def _chain(n):
    ids = [f"n{i}" for i in range(n)]
    links = [LayoutLink(f"l{i}", ids[i], ids[i + 1]) for i in range(n - 1)]
    return ids, links


def test_new_bodies_are_seeded_near_center():
    sim = ForceSimulation(800, 600, seed=1)
    sim.set_graph(["a", "b", "c"], [])
    cx, cy = sim.center
    for x, y in sim.positions().values():
        assert abs(x - cx) <= SEED_JITTER
        assert abs(y - cy) <= SEED_JITTER
    assert sim.running
    assert sim.alpha == 1.0


def test_simulation_converges_and_stops():
    sim = ForceSimulation(seed=3)
    ids, links = _chain(12)
    sim.set_graph(ids, links)
    ticks = sim.run()
    assert not sim.running
    assert sim.alpha < ALPHA_MIN
    assert 250 < ticks < 400
    assert sim.last_displacement < 2.0
    assert sim.tick() is False


def test_linked_nodes_settle_near_rest_distance():
    sim = ForceSimulation(seed=5)
    sim.set_graph(["a", "b"], [LayoutLink("ab", "a", "b")])
    sim.run()
    (ax, ay), (bx, by) = sim.position("a"), sim.position("b")
    assert 150 < math.hypot(ax - bx, ay - by) < 600


def test_collision_keeps_bodies_apart():
    sim = ForceSimulation(seed=11, charge_strength=0.0)
    ids = [f"n{i}" for i in range(6)]
    sim.set_graph(ids, [])
    sim.run()
    pts = list(sim.positions().values())
    closest = min(math.hypot(p[0] - q[0], p[1] - q[1]) for i, p in enumerate(pts) for q in pts[i + 1:])
    assert closest > 60


def test_persisting_bodies_keep_their_positions():
    sim = ForceSimulation(seed=2)
    ids, links = _chain(5)
    sim.set_graph(ids, links)
    sim.run()
    before = sim.positions()

    sim.set_graph(ids[:3], links[:2])
    after = sim.positions()
    assert set(after) == set(ids[:3])
    for nid in ids[:3]:
        assert after[nid] == before[nid]
    assert sim.running


def test_links_with_unknown_or_same_endpoints_are_ignored():
    sim = ForceSimulation(seed=2)
    sim.set_graph(["a", "b"], [LayoutLink("x", "a", "ghost"), LayoutLink("y", "a", "a"), LayoutLink("z", "a", "b")])
    assert [l.id for l in sim.links] == ["z"]


def test_pinned_body_stays_on_its_pin():
    sim = ForceSimulation(seed=4)
    ids, links = _chain(4)
    sim.set_graph(ids, links)
    assert sim.pin("n1", 10.0, 20.0)
    sim.heat(DRAG_HEAT)
    for _ in range(30):
        sim.tick()
        assert sim.position("n1") == (10.0, 20.0)
    assert sim.pinned_position("n1") == (10.0, 20.0)
    assert sim.running

    sim.unpin("n1")
    sim.heat(0.0)
    sim.run()
    assert sim.pinned_position("n1") is None
    assert not sim.running


def test_pin_unknown_node_is_rejected():
    sim = ForceSimulation()
    sim.set_graph(["a"], [])
    assert sim.pin("zzz", 0, 0) is False
    assert sim.unpin("zzz") is False


def test_iteration_ceiling_stops_a_hot_run():
    sim = ForceSimulation(seed=9, max_iterations=40)
    sim.set_graph(["a", "b", "c"], [])
    sim.heat(0.5)
    ticks = sim.run()
    assert ticks == 40
    assert not sim.running

    sim.heat(0.0)
    assert sim.running


def test_reset_discards_bodies():
    sim = ForceSimulation()
    sim.set_graph(["a", "b"], [LayoutLink("ab", "a", "b")])
    sim.reset()
    assert len(sim) == 0
    assert sim.links == ()
    assert not sim.running
    sim.restart()
    assert not sim.running


def test_seeded_runs_are_deterministic():
    ids, links = _chain(6)
    a = ForceSimulation(seed=42)
    b = ForceSimulation(seed=42)
    a.set_graph(ids, links)
    b.set_graph(ids, links)
    a.tick(50)
    b.tick(50)
    assert a.positions() == b.positions()


def test_quadtree_accumulates_total_charge():
    xs = [0.0, 10.0, 10.0, 100.0, 55.5]
    ys = [0.0, 10.0, 10.0, 40.0, 80.0]
    root = build_quadtree(xs, ys)
    accumulate(root, xs, ys, [-1.0] * len(xs))
    assert root.value == -5.0
    assert math.isclose(root.cx, sum(xs) / 5)
    assert math.isclose(root.cy, sum(ys) / 5)

    seen = []
    stack = [root]
    while stack:
        cell = stack.pop()
        if cell.is_leaf:
            seen.extend(cell.points)
        else:
            stack.extend(c for c in cell.children if c is not None)
    assert sorted(seen) == [0, 1, 2, 3, 4]


def test_quadtree_empty():
    assert build_quadtree([], []) is None


def test_other_bodies_keep_moving_after_release():
    sim = ForceSimulation(seed=4)
    ids, links = _chain(5)
    sim.set_graph(ids, links)
    sim.pin("n2", 0.0, 0.0)
    sim.heat(DRAG_HEAT)
    sim.tick(20)

    sim.unpin("n2")
    sim.heat(0.0)
    before = sim.positions()
    sim.tick(5)
    after = sim.positions()
    assert sim.running
    moved = [nid for nid in ids if nid != "n2" and after[nid] != before[nid]]
    assert moved
    assert after["n2"] != (0.0, 0.0)
