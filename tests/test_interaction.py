import pytest

from force_graph import ForceSimulation
from force_graph.force_physics import DRAG_HEAT
from gui.interaction import (
    MAX_ZOOM,
    MIN_ZOOM,
    NOTHING,
    DragController,
    EvolutionControl,
    SelectionController,
    SelectionKind,
    Viewport,
)


def test_click_node_toggles():
    ctl = SelectionController()
    assert ctl.click_node("a", (1, 2))
    assert ctl.selection.kind is SelectionKind.NODE
    assert ctl.selection.anchor == (1.0, 2.0)
    assert ctl.click_node("a", (5, 5))
    assert ctl.selection is NOTHING


def test_switching_elements_never_passes_through_none():
    ctl = SelectionController()
    seen = []
    ctl.subscribe(lambda prev, cur: seen.append((prev.kind, cur.kind, cur.element_id)))
    ctl.click_node("a", (0, 0))
    ctl.click_edge("e1", (0, 0))
    ctl.click_node("b", (0, 0))
    assert seen == [
        (SelectionKind.NONE, SelectionKind.NODE, "a"),
        (SelectionKind.NODE, SelectionKind.EDGE, "e1"),
        (SelectionKind.EDGE, SelectionKind.NODE, "b"),
    ]


def test_background_click_clears_and_is_quiet_when_idle():
    ctl = SelectionController()
    calls = []
    unsubscribe = ctl.subscribe(lambda prev, cur: calls.append(cur))
    assert ctl.click_background() is False
    ctl.click_edge("e", (0, 0))
    assert ctl.click_background() is True
    assert len(calls) == 2
    unsubscribe()
    ctl.click_node("a", (0, 0))
    assert len(calls) == 2


def test_prune_drops_hidden_selection():
    ctl = SelectionController()
    ctl.click_node("a", (0, 0))
    assert ctl.prune({"a", "b"}, set()) is False
    assert ctl.prune({"b"}, set()) is True
    assert ctl.selection.is_empty

    ctl.click_edge("e", (0, 0))
    assert ctl.prune({"a"}, {"f"}) is True


def test_viewport_round_trip_and_clamp():
    vp = Viewport()
    vp.pan(30, -10)
    vp.zoom_at(2.0, 100, 100)
    wx, wy = vp.to_world(*vp.to_screen(12.5, -7))
    assert wx == pytest.approx(12.5)
    assert wy == pytest.approx(-7)
    # the zoom focus stays under the cursor
    before = Viewport(zoom=1.5, pan_x=10, pan_y=20)
    focus = before.to_world(200, 150)
    before.zoom_at(1.3, 200, 150)
    assert before.to_screen(*focus) == pytest.approx((200, 150))

    vp.zoom_at(1000, 0, 0)
    assert vp.zoom == MAX_ZOOM
    vp.zoom_at(1e-6, 0, 0)
    assert vp.zoom == MIN_ZOOM
    vp.reset()
    assert (vp.zoom, vp.pan_x, vp.pan_y) == (1.0, 0.0, 0.0)


def test_drag_pins_and_heats_then_releases():
    sim = ForceSimulation(seed=1)
    sim.set_graph(["a", "b"], [])
    sim.run()
    drag = DragController(sim)

    assert drag.begin("a", 50, 60)
    assert drag.active
    assert sim.alpha_target == DRAG_HEAT
    assert sim.running
    assert drag.move(70, 80)
    sim.tick()
    assert sim.position("a") == (70.0, 80.0)

    assert drag.end()
    assert not drag.active
    assert sim.alpha_target == 0.0
    assert sim.pinned_position("a") is None
    assert drag.end() is False


def test_drag_unknown_node_does_nothing():
    sim = ForceSimulation()
    sim.set_graph(["a"], [])
    drag = DragController(sim)
    assert drag.begin("missing", 0, 0) is False
    assert drag.move(1, 1) is False


def test_drag_cancelled_when_node_disappears():
    sim = ForceSimulation()
    sim.set_graph(["a", "b"], [])
    drag = DragController(sim)
    drag.begin("a", 0, 0)
    sim.set_graph(["b"], [])
    drag.cancel_if_missing()
    assert not drag.active
    assert sim.alpha_target == 0.0


def test_evolution_control_bounds():
    evo = EvolutionControl(2018, 2023)
    assert evo.cutoff is None
    assert evo.year == 2023
    assert evo.toggle() == 2023
    assert evo.set_year(1990) == 2018
    assert evo.set_year(2100) == 2023
    evo.set_year(2020)
    assert evo.reset() == 2023
    assert evo.set_enabled(False) is None
