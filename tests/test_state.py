from core.models import GraphData
from force_graph import ForceSimulation
from gui.interaction import SelectionKind
from gui.query_client import GraphResponse
from gui.state import GraphState


def _state():
    return GraphState(simulation=ForceSimulation(seed=7))


def test_load_resets_filters_and_starts_layout(graph):
    state = _state()
    state.load(graph)
    assert state.filters.node_types == frozenset(graph.node_types)
    assert state.filters.evolution_year is None
    assert set(state.simulation.node_ids) == {"brca1", "cancer", "olaparib", "dna-repair"}
    assert state.simulation.running
    assert state.evolution.min_year == 2022
    assert state.error is None


def test_stale_response_is_ignored(graph, payload):
    state = _state()
    first = state.begin_request("q1")
    second = state.begin_request("q2")
    assert state.loading
    assert state.complete_request(first, GraphResponse.ok(graph)) is False
    assert state.data is None
    assert state.loading

    newer = GraphData.from_payload(payload)
    assert state.complete_request(second, GraphResponse.ok(newer)) is True
    assert state.data is newer
    assert not state.loading


def test_failed_response_tears_down_graph(graph):
    state = _state()
    state.load(graph)
    state.click_node("brca1", (1, 1))
    token = state.begin_request("broken")
    state.complete_request(token, GraphResponse.failed("Backend query failed: Bad Gateway"))
    assert state.error == "Backend query failed: Bad Gateway"
    assert state.data is None
    assert state.snapshot.nodes == ()
    assert len(state.simulation) == 0
    assert state.current_selection.is_empty
    assert state.stats()["total_nodes"] == 0


def test_type_filter_restarts_layout_on_identity_change(graph):
    state = _state()
    state.load(graph)
    state.simulation.run()
    kept = state.simulation.position("brca1")

    state.toggle_node_type("drug")
    assert "olaparib" not in state.snapshot.node_ids
    assert state.simulation.running
    assert state.simulation.position("brca1") == kept
    assert "olaparib" not in state.simulation

    state.toggle_node_type("drug")
    assert state.snapshot.node_ids == {"brca1", "cancer", "olaparib", "dna-repair"}


def test_year_change_does_not_restart_layout(graph):
    state = _state()
    state.load(graph)
    state.simulation.run()
    assert not state.simulation.running

    state.set_evolution(True, 2021)
    assert state.filters.evolution_year == 2022  # clamped to the data range
    state.evolution.min_year = 2015
    state.set_evolution(True, 2021)
    assert state.filters.evolution_year == 2021
    r1 = state.link("r1")
    assert r1 is not None and r1.is_active is False
    assert not state.simulation.running
    assert state.stats()["active_relationships"] == 2


def test_reset_and_toggle_evolution(graph):
    state = _state()
    state.load(graph)
    assert state.toggle_evolution() == 2022
    assert state.reset_evolution_year() == 2022
    assert state.toggle_evolution() is None
    assert state.stats()["evolution_year"] is None


def test_hidden_selection_is_pruned(graph):
    state = _state()
    state.load(graph)
    assert state.click_edge("r2", (3, 4))
    assert state.current_selection.kind is SelectionKind.EDGE
    state.set_node_types({"gene", "disease"})
    assert state.current_selection.is_empty


def test_clicks_on_hidden_elements_are_ignored(graph):
    state = _state()
    state.load(graph)
    state.set_node_types({"gene"})
    assert state.click_node("cancer", (0, 0)) is False
    assert state.click_edge("r1", (0, 0)) is False
    assert state.click_node("brca1", (0, 0)) is True


def test_revision_moves_on_changes(graph):
    state = _state()
    start = state.revision
    state.load(graph)
    after_load = state.revision
    assert after_load > start
    state.click_node("brca1", (0, 0))
    assert state.revision > after_load
    rev = state.revision
    state.set_node_types(graph.node_types)
    assert state.revision == rev


def test_drag_through_state(graph):
    state = _state()
    state.load(graph)
    assert state.drag_start("cancer", 100, 100)
    assert state.drag_move(120, 130)
    state.tick(2)
    assert state.simulation.position("cancer") == (120.0, 130.0)
    assert state.drag_end()
    assert state.simulation.pinned_position("cancer") is None


def test_drag_cancelled_when_type_hidden(graph):
    state = _state()
    state.load(graph)
    state.drag_start("olaparib", 0, 0)
    state.set_node_types({"gene", "disease"})
    assert not state.drag.active


def test_pan_and_zoom_leave_selection_alone(graph):
    state = _state()
    state.load(graph)
    state.click_node("brca1", (5, 5))
    selected = state.current_selection
    state.pan(40, -20)
    state.zoom(2.0, 0, 0)
    assert state.current_selection == selected
    assert state.viewport.zoom == 2.0
    assert state.viewport.to_screen(0, 0) == (80.0, -40.0)


def test_injected_simulation_is_kept():
    sim = ForceSimulation(seed=7, max_iterations=40)
    state = GraphState(simulation=sim)
    assert state.simulation is sim
    assert state.drag.simulation is sim
    assert state.simulation.max_iterations == 40
