"""
Renderer

Derives everything the page draws from ``(FilteredGraph, positions,
selection, colors)``. Nothing here owns state; callers pass a GraphState or
its parts and get back Cytoscape elements, a stylesheet and Dash components.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from dash import html

from force_graph.force_color import color_for_type, mix_hex
from gui.interaction import Selection, SelectionKind
from gui.state import FilteredGraph, GraphState

NODE_RADIUS = 20
ACTIVE_EDGE = "#ffffff"
INACTIVE_EDGE = "#444444"
ACTIVE_ARROW = "#999999"
INACTIVE_ARROW = "#444444"
LABEL_BG = "#1a1a1a"
HIGHLIGHT = "#facc15"
TEXT_MAIN = "#ffffff"
TEXT_MUTED = "#9ca3af"
PANEL_BG = "#111827"
PANEL_BORDER = "#374151"
INSPECTOR_OFFSET = 20
INSPECTOR_WIDTH = 300


def build_elements(
    snapshot: FilteredGraph,
    positions: Mapping[str, Tuple[float, float]],
    selection: Selection,
    colors: Mapping[str, str],
) -> List[Dict[str, Any]]:
    """Cytoscape elements for the visible graph; nodes without a position are skipped."""
    elements: List[Dict[str, Any]] = []
    for node in snapshot.nodes:
        pos = positions.get(node.id)
        if pos is None:
            continue
        classes: List[str] = []
        if selection.kind is SelectionKind.NODE and selection.element_id == node.id:
            classes.append("selected")
        elements.append(
            {
                "group": "nodes",
                "data": {
                    "id": node.id,
                    "label": node.name,
                    "type": node.type,
                    "color": color_for_type(node.type, colors),
                },
                "position": {"x": round(pos[0], 2), "y": round(pos[1], 2)},
                "classes": " ".join(classes),
            }
        )
    for link in snapshot.links:
        if link.source not in positions or link.target not in positions:
            continue
        rel = link.relationship
        classes = ["active" if link.is_active else "inactive"]
        if selection.kind is SelectionKind.EDGE and selection.element_id == link.id:
            classes.append("selected")
        elements.append(
            {
                "group": "edges",
                "data": {
                    "id": rel.id,
                    "source": rel.source,
                    "target": rel.target,
                    "label": rel.relation,
                    "weightage": rel.weightage,
                    "active": link.is_active,
                },
                "classes": " ".join(classes),
            }
        )
    return elements


def build_stylesheet() -> List[Dict[str, Any]]:
    size = NODE_RADIUS * 2
    return [
        {
            "selector": "node",
            "style": {
                "width": size,
                "height": size,
                "background-color": "data(color)",
                "border-color": "#ffffff",
                "border-width": 2,
                "label": "data(label)",
                "color": TEXT_MAIN,
                "font-size": 12,
                "text-valign": "bottom",
                "text-margin-y": 10,
            },
        },
        {
            "selector": "edge",
            "style": {
                "width": 2,
                "curve-style": "straight",
                "target-arrow-shape": "triangle",
                "arrow-scale": 1.2,
                "label": "data(label)",
                "font-size": 10,
                "color": TEXT_MAIN,
                "text-background-color": LABEL_BG,
                "text-background-opacity": 0.8,
                "text-background-shape": "roundrectangle",
                "text-background-padding": 4,
            },
        },
        {
            "selector": "edge.active",
            "style": {
                "line-color": ACTIVE_EDGE,
                "line-opacity": 0.6,
                "target-arrow-color": ACTIVE_ARROW,
                "text-opacity": 1,
            },
        },
        {
            "selector": "edge.inactive",
            "style": {
                "line-color": INACTIVE_EDGE,
                "line-opacity": 0.3,
                "target-arrow-color": INACTIVE_ARROW,
                "text-opacity": 0.5,
                "text-background-opacity": 0.4,
            },
        },
        {
            "selector": "node.selected",
            "style": {"border-color": HIGHLIGHT, "border-width": 4},
        },
        {
            "selector": "edge.selected",
            "style": {
                "line-color": mix_hex(ACTIVE_EDGE, HIGHLIGHT, 0.7),
                "line-opacity": 1,
                "width": 3,
            },
        },
    ]


@dataclass(frozen=True)
class InspectorView:
    title: str
    rows: Tuple[Tuple[str, str], ...]
    anchor: Tuple[float, float]


def _display(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def inspector_view(state: GraphState, selection: Optional[Selection] = None) -> Optional[InspectorView]:
    selection = selection or state.current_selection
    if selection.is_empty or selection.element_id is None or selection.anchor is None:
        return None
    if selection.kind is SelectionKind.NODE:
        node = state.node(selection.element_id)
        if node is None:
            return None
        rows = [("Type", node.type)]
        rows.extend((str(k), _display(v)) for k, v in node.properties.items())
        return InspectorView(node.name, tuple(rows), selection.anchor)

    link = state.link(selection.element_id)
    if link is None:
        return None
    rel = link.relationship
    source = state.node(rel.source)
    target = state.node(rel.target)
    rows = [
        ("Type", rel.relation),
        ("From", source.name if source else rel.source),
        ("To", target.name if target else rel.target),
        ("Weight", _display(rel.weightage)),
    ]
    rows.extend((str(k), _display(v)) for k, v in rel.properties.items())
    return InspectorView("Relationship", tuple(rows), selection.anchor)


def inspector_style(view: Optional[InspectorView]) -> Dict[str, Any]:
    style: Dict[str, Any] = {
        "position": "absolute",
        "background": PANEL_BG,
        "border": f"1px solid {PANEL_BORDER}",
        "borderRadius": "8px",
        "padding": "16px",
        "maxWidth": f"{INSPECTOR_WIDTH}px",
        "zIndex": 1000,
        "color": TEXT_MAIN,
    }
    if view is None:
        style["display"] = "none"
        return style
    style["display"] = "block"
    style["left"] = f"{view.anchor[0] + INSPECTOR_OFFSET:.0f}px"
    style["top"] = f"{view.anchor[1]:.0f}px"
    return style


def render_inspector(view: Optional[InspectorView]) -> List[Any]:
    if view is None:
        return []
    children: List[Any] = [html.H3(view.title, style={"marginTop": 0, "fontSize": "18px"})]
    for label, value in view.rows:
        children.append(
            html.P(
                [f"{label}: ", html.Span(value, style={"color": TEXT_MAIN})],
                style={"color": TEXT_MUTED, "fontSize": "13px", "margin": "4px 0"},
            )
        )
    return children


def render_stats(stats: Mapping[str, Any]) -> List[Any]:
    def line(label: str, value: Any) -> html.P:
        return html.P(
            [f"{label}: ", html.Span(str(value), style={"color": TEXT_MAIN})],
            style={"color": TEXT_MUTED, "fontSize": "12px", "margin": "2px 0"},
        )

    children: List[Any] = [
        html.H4("Stats", style={"margin": "0 0 6px 0", "fontSize": "13px"}),
        line("Total Nodes", stats.get("total_nodes", 0)),
        line("Total Relationships", stats.get("total_relationships", 0)),
        line("Filtered Nodes", stats.get("visible_nodes", 0)),
        line("Active Relationships", stats.get("active_relationships", 0)),
    ]
    year = stats.get("evolution_year")
    if year is not None:
        children.append(line("Evolution Year", year))
        children.append(
            html.Div(
                [
                    html.Span(style={"display": "inline-block", "width": "12px", "height": "3px", "background": ACTIVE_EDGE, "marginRight": "4px"}),
                    html.Span("Active", style={"marginRight": "12px"}),
                    html.Span(style={"display": "inline-block", "width": "12px", "height": "3px", "background": INACTIVE_EDGE, "marginRight": "4px"}),
                    html.Span("Inactive", style={"color": TEXT_MUTED}),
                ],
                className="edge-legend",
                style={"fontSize": "12px", "marginTop": "4px"},
            )
        )
    return children


@dataclass
class Frame:
    """Everything one render pass produces."""

    elements: List[Dict[str, Any]] = field(default_factory=list)
    inspector: Optional[InspectorView] = None
    stats: Dict[str, Any] = field(default_factory=dict)


def render_frame(state: GraphState, colors: Mapping[str, str]) -> Frame:
    selection = state.current_selection
    return Frame(
        elements=build_elements(state.snapshot, state.simulation.positions(), selection, colors),
        inspector=inspector_view(state, selection),
        stats=state.stats(),
    )
