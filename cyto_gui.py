from __future__ import annotations

import argparse
import logging
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

import dash_cytoscape as cyto
from dash import Dash, Input, Output, State, callback_context, dcc, html, no_update
from flask import Response, jsonify, request

from core.config import Settings, load_settings
from core.logs import setup_logging
from force_graph.force_color import node_color_map
from gui.query_client import GraphQueryClient
from gui.render import build_stylesheet, inspector_style, render_frame, render_inspector, render_stats
from gui.state import DEFAULT_YEAR_WINDOW, GraphState

LOG = logging.getLogger("cyto_gui")

BASE_DIR = Path(__file__).resolve().parent
ASSETS_DIR = BASE_DIR / "assets"

BG_MAIN = "#000000"
BG_PANEL = "#000000"
BG_STATS = "#111827"
BORDER = "#1f2937"
TEXT_MAIN = "#ffffff"
TEXT_MUTED = "#9ca3af"
ACCENT = "#2563eb"

CORS_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
CORS_HEADERS = "Content-Type, Authorization"
CORS_MAX_AGE = "86400"

BOX_STYLE = {
    "background": BG_PANEL,
    "padding": "12px",
    "borderRadius": "8px",
    "border": f"1px solid {BORDER}",
    "boxShadow": "0 4px 14px rgba(0,0,0,0.5)",
    "width": "256px",
    "color": TEXT_MAIN,
}
BOX_TITLE_STYLE = {"fontSize": "13px", "fontWeight": 600, "margin": "0 0 8px 0"}
CANVAS_STYLE = {"position": "relative", "flex": 1, "minHeight": "0", "background": BG_MAIN}
STATUS_HIDDEN = {"display": "none"}
STATUS_FULLSCREEN = {
    "display": "flex",
    "flexDirection": "column",
    "alignItems": "center",
    "justifyContent": "center",
    "position": "absolute",
    "inset": "64px 0 0 0",
    "background": BG_MAIN,
    "color": TEXT_MAIN,
    "zIndex": 1500,
}

# -------------------------
# GUI IDS
# -------------------------
ID_URL = "url"
ID_QUERY = "query-input"
ID_SUBMIT = "query-submit"
ID_STATUS = "status"
ID_CANVAS = "canvas"
ID_CY = "cytoscape"
ID_INSPECTOR = "inspector"
ID_STATS = "stats"
ID_TYPES = "node-types"
ID_EVO_TOGGLE = "evolution-toggle"
ID_EVO_RESET = "evolution-reset"
ID_EVO_SLIDER = "evolution-slider"
ID_EVO_YEAR = "evolution-year"
ID_EVO_PANEL = "evolution-panel"
ID_TICK = "tick-interval"
ID_TAP_CANVAS = "canvas-tap"
ID_DRAG = "drag-event"
ID_REV_DATA = "data-revision"
ID_REV_FILTER = "filter-revision"
ID_REV_EVO = "evolution-revision"
ID_REV_SELECT = "selection-revision"
ID_REV_DRAG = "drag-revision"
ID_VIEWPORT = "viewport"

STATE = GraphState()
# callbacks run on server threads; every GraphState access holds this lock
STATE_LOCK = Lock()


def _box(title: str, children: List[Any], **style: Any) -> html.Div:
    merged = dict(BOX_STYLE)
    merged.update(style)
    return html.Div([html.H3(title, style=BOX_TITLE_STYLE), *children], style=merged)


def _toggle_label(enabled: bool) -> List[Any]:
    return [
        html.Span("Evolution View"),
        html.Span(
            "Enabled" if enabled else "Disabled",
            style={"padding": "2px 8px", "borderRadius": "4px", "fontSize": "12px", "background": "#1d4ed8" if enabled else "#4b5563"},
        ),
    ]


def _toggle_style(enabled: bool) -> Dict[str, Any]:
    return {
        "width": "100%",
        "display": "flex",
        "justifyContent": "space-between",
        "alignItems": "center",
        "padding": "8px 12px",
        "border": "none",
        "borderRadius": "6px",
        "color": TEXT_MAIN,
        "cursor": "pointer",
        "background": ACCENT if enabled else "#374151",
    }


def _slider_marks(min_year: int, max_year: int) -> Dict[int, str]:
    return {min_year: str(min_year), max_year: str(max_year)}


def _query_from_search(search: Optional[str]) -> str:
    if not search:
        return ""
    values = parse_qs(search.lstrip("?")).get("query") or [""]
    return values[0].strip()


def build_layout(settings: Settings, initial_query: str = "") -> html.Div:
    min_year, max_year = DEFAULT_YEAR_WINDOW
    return html.Div(
        id="root",
        style={"display": "flex", "flexDirection": "column", "height": "100vh", "background": BG_MAIN, "color": TEXT_MAIN},
        children=[
            dcc.Location(id=ID_URL, refresh=False),
            html.Nav(
                [
                    html.Span("PhoenixLS - KG", style={"fontWeight": 700, "fontSize": "20px"}),
                    html.Div(
                        [
                            dcc.Input(
                                id=ID_QUERY,
                                type="text",
                                value=initial_query,
                                placeholder="Search query...",
                                debounce=True,
                                style={"flex": 1, "padding": "8px 14px", "background": BG_MAIN, "color": TEXT_MAIN, "border": "1px solid #e5e7eb", "borderRadius": "6px"},
                            ),
                            html.Button("Search", id=ID_SUBMIT, n_clicks=0, style={"padding": "8px 14px", "background": ACCENT, "color": TEXT_MAIN, "border": "none", "borderRadius": "6px"}),
                        ],
                        style={"display": "flex", "gap": "10px", "flex": 1, "maxWidth": "640px", "margin": "0 24px"},
                    ),
                ],
                style={"height": "64px", "display": "flex", "alignItems": "center", "padding": "0 28px", "borderBottom": f"1px solid {BORDER}"},
            ),
            dcc.Loading(html.Div(id=ID_STATUS, style=STATUS_HIDDEN), type="circle", color=ACCENT),
            html.Div(
                id=ID_CANVAS,
                style=CANVAS_STYLE,
                children=[
                    cyto.Cytoscape(
                        id=ID_CY,
                        elements=[],
                        layout={"name": "preset", "fit": False, "animate": False},
                        stylesheet=build_stylesheet(),
                        style={"width": "100%", "height": "100%", "position": "absolute", "inset": 0},
                        minZoom=0.1,
                        maxZoom=4.0,
                        zoom=1,
                        pan={"x": 0, "y": 0},
                        userZoomingEnabled=True,
                        userPanningEnabled=True,
                        boxSelectionEnabled=False,
                        autoRefreshLayout=False,
                    ),
                    html.Div(id=ID_INSPECTOR, style=inspector_style(None)),
                    html.Div(
                        [
                            _box(
                                "Evolution",
                                [
                                    html.Button(_toggle_label(False), id=ID_EVO_TOGGLE, n_clicks=0, style=_toggle_style(False)),
                                    html.Div(
                                        id=ID_EVO_PANEL,
                                        style={"display": "none", "marginTop": "10px"},
                                        children=[
                                            html.Div(
                                                [
                                                    html.Span(id=ID_EVO_YEAR, children=f"Year: {max_year}"),
                                                    html.Button("Reset", id=ID_EVO_RESET, n_clicks=0, style={"background": "transparent", "border": "none", "color": "#60a5fa", "cursor": "pointer"}),
                                                ],
                                                style={"display": "flex", "justifyContent": "space-between", "fontSize": "13px", "color": TEXT_MUTED},
                                            ),
                                            dcc.Slider(
                                                id=ID_EVO_SLIDER,
                                                min=min_year,
                                                max=max_year,
                                                step=1,
                                                value=max_year,
                                                marks=_slider_marks(min_year, max_year),
                                                updatemode="drag",
                                            ),
                                        ],
                                    ),
                                ],
                            ),
                            _box(
                                "Node Types",
                                [
                                    dcc.Checklist(
                                        id=ID_TYPES,
                                        options=[],
                                        value=[],
                                        inline=True,
                                        inputStyle={"marginRight": "4px"},
                                        labelStyle={"marginRight": "10px", "fontSize": "12px"},
                                    )
                                ],
                            ),
                            html.Div(id=ID_STATS, style=dict(BOX_STYLE, background=BG_STATS), children=render_stats({})),
                        ],
                        style={"position": "absolute", "left": "16px", "bottom": "16px", "zIndex": 20, "display": "flex", "flexDirection": "column", "gap": "16px"},
                    ),
                ],
            ),
            dcc.Interval(id=ID_TICK, interval=max(settings.tick_interval_ms, 16), n_intervals=0),
            dcc.Store(id=ID_TAP_CANVAS),
            dcc.Store(id=ID_DRAG),
            dcc.Store(id=ID_REV_DATA, data=0),
            dcc.Store(id=ID_REV_FILTER, data=0),
            dcc.Store(id=ID_REV_EVO, data=0),
            dcc.Store(id=ID_REV_SELECT, data=0),
            dcc.Store(id=ID_REV_DRAG, data=0),
            dcc.Store(id=ID_VIEWPORT, data={"zoom": 1.0, "pan": {"x": 0, "y": 0}}),
        ],
    )


def _cors_headers(resp: Response, allowed_origins: List[str]) -> Response:
    origin = request.headers.get("Origin")
    if origin and ("*" in allowed_origins or origin in allowed_origins):
        resp.headers["Access-Control-Allow-Origin"] = origin
    resp.headers["Access-Control-Allow-Methods"] = CORS_METHODS
    resp.headers["Access-Control-Allow-Headers"] = CORS_HEADERS
    resp.headers["Access-Control-Max-Age"] = CORS_MAX_AGE
    return resp


def _event_point(event: Dict[str, Any], key: str) -> Optional[Tuple[float, float]]:
    point = event.get(key)
    if isinstance(point, dict) and "x" in point and "y" in point:
        return float(point["x"]), float(point["y"])
    return None


def _node_anchor(state: GraphState, event: Dict[str, Any]) -> Tuple[float, float]:
    """Screen anchor for a tapped node: the rendered position, else the model position through the viewport."""
    rendered = _event_point(event, "renderedPosition")
    if rendered is not None:
        return rendered
    pos = _event_point(event, "position") or (0.0, 0.0)
    return state.viewport.to_screen(*pos)


def _edge_anchor(state: GraphState, event: Dict[str, Any]) -> Tuple[float, float]:
    rendered = _event_point(event, "renderedMidpoint")
    if rendered is not None:
        return rendered
    mid = _event_point(event, "midpoint")
    if mid is not None:
        return state.viewport.to_screen(*mid)
    data = event.get("data") or {}
    a = state.simulation.position(str(data.get("source")))
    b = state.simulation.position(str(data.get("target")))
    if a and b:
        return state.viewport.to_screen((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)
    return 0.0, 0.0


def create_app(
    settings: Optional[Settings] = None,
    client: Optional[GraphQueryClient] = None,
    state: Optional[GraphState] = None,
    initial_query: str = "",
) -> Dash:
    settings = settings or load_settings()
    state = state if state is not None else STATE
    state.simulation.resize(settings.width, settings.height)
    client = client or GraphQueryClient(settings.backend_url, timeout=settings.request_timeout)
    colors = node_color_map(settings.node_colors)
    allowed_origins = list(settings.cors_allowed_origins or ["*"])

    app = Dash(
        __name__,
        suppress_callback_exceptions=True,
        title="PhoenixLS - KG",
        assets_folder=str(ASSETS_DIR),
        external_stylesheets=[],
    )
    server = app.server
    app.layout = build_layout(settings, initial_query)

    # -------------------------
    # HTTP routes
    # -------------------------
    @server.before_request
    def _preflight():
        if request.method == "OPTIONS" and request.path.startswith("/api/"):
            return _cors_headers(Response(status=204), allowed_origins)
        return None

    @server.after_request
    def _apply_cors(resp: Response) -> Response:
        if request.path.startswith("/api/"):
            return _cors_headers(resp, allowed_origins)
        return resp

    @server.route("/api/graph", methods=["POST"])
    def _api_graph():
        body = request.get_json(silent=True) or {}
        query = str(body.get("query") or "").strip()
        if not query:
            return jsonify({"success": False, "error": "Query is required"}), 400
        result = client.fetch_graph(query)
        if not result.success:
            server.logger.error("Error processing graph query: %s", result.error)
            return jsonify(result.to_dict()), 500
        return jsonify(result.to_dict())

    @server.route("/health")
    def _health():
        return jsonify({"status": "ok"})

    # -------------------------
    # Dash callbacks
    # -------------------------
    @app.callback(
        Output(ID_REV_DATA, "data"),
        Output(ID_QUERY, "value"),
        Output(ID_STATUS, "children"),
        Output(ID_STATUS, "style"),
        Output(ID_CANVAS, "style"),
        Output(ID_TYPES, "options"),
        Output(ID_TYPES, "value"),
        Output(ID_EVO_SLIDER, "min"),
        Output(ID_EVO_SLIDER, "max"),
        Output(ID_EVO_SLIDER, "value"),
        Output(ID_EVO_SLIDER, "marks"),
        Output(ID_EVO_TOGGLE, "children"),
        Output(ID_EVO_TOGGLE, "style"),
        Output(ID_EVO_PANEL, "style"),
        Output(ID_EVO_YEAR, "children"),
        Input(ID_SUBMIT, "n_clicks"),
        Input(ID_QUERY, "n_submit"),
        Input(ID_URL, "search"),
        State(ID_QUERY, "value"),
        prevent_initial_call=False,
    )
    def _submit_query(_clicks, _submits, search, typed):
        triggered = {t.get("prop_id") for t in (callback_context.triggered or [])}
        if f"{ID_URL}.search" in triggered or not triggered:
            query = _query_from_search(search) or (typed or "").strip()
        else:
            query = (typed or "").strip()
        if not query:
            return (no_update,) * 15

        with STATE_LOCK:
            token = state.begin_request(query)
        result = client.fetch_graph(query)
        with STATE_LOCK:
            if not state.complete_request(token, result):
                return (no_update,) * 15
            revision = state.revision
            error = state.error
            types = list(state.node_types)
            min_year, max_year = state.evolution.min_year, state.evolution.max_year
            year = state.evolution.year

        if error:
            status = [html.H2("Error", style={"color": "#f87171"}), html.P(error, style={"color": TEXT_MUTED})]
            return (
                revision, query, status, STATUS_FULLSCREEN, dict(CANVAS_STYLE, display="none"),
                [], [], min_year, max_year, year, _slider_marks(min_year, max_year),
                _toggle_label(False), _toggle_style(False), {"display": "none"}, f"Year: {year}",
            )
        options = [{"label": t, "value": t} for t in types]
        return (
            revision, query, [], STATUS_HIDDEN, CANVAS_STYLE,
            options, types, min_year, max_year, year, _slider_marks(min_year, max_year),
            _toggle_label(False), _toggle_style(False), {"display": "none", "marginTop": "10px"}, f"Year: {year}",
        )

    @app.callback(
        Output(ID_REV_FILTER, "data"),
        Input(ID_TYPES, "value"),
        prevent_initial_call=True,
    )
    def _filter_types(values):
        with STATE_LOCK:
            if state.data is None:
                return no_update
            state.set_node_types(values or [])
            return state.revision

    @app.callback(
        Output(ID_REV_EVO, "data"),
        Output(ID_EVO_TOGGLE, "children", allow_duplicate=True),
        Output(ID_EVO_TOGGLE, "style", allow_duplicate=True),
        Output(ID_EVO_PANEL, "style", allow_duplicate=True),
        Output(ID_EVO_SLIDER, "value", allow_duplicate=True),
        Output(ID_EVO_YEAR, "children", allow_duplicate=True),
        Input(ID_EVO_TOGGLE, "n_clicks"),
        Input(ID_EVO_RESET, "n_clicks"),
        Input(ID_EVO_SLIDER, "value"),
        prevent_initial_call=True,
    )
    def _evolution(_toggle, _reset, slider_value):
        triggered = {t.get("prop_id") for t in (callback_context.triggered or [])}
        with STATE_LOCK:
            if f"{ID_EVO_TOGGLE}.n_clicks" in triggered:
                state.toggle_evolution()
            elif f"{ID_EVO_RESET}.n_clicks" in triggered:
                state.reset_evolution_year()
            elif slider_value is not None:
                state.set_evolution(state.evolution.enabled, int(slider_value))
            enabled = state.evolution.enabled
            year = state.evolution.year
            revision = state.revision
        panel = {"display": "block" if enabled else "none", "marginTop": "10px"}
        return revision, _toggle_label(enabled), _toggle_style(enabled), panel, year, f"Year: {year}"

    @app.callback(
        Output(ID_VIEWPORT, "data"),
        Input(ID_CY, "zoom"),
        Input(ID_CY, "pan"),
        prevent_initial_call=True,
    )
    def _viewport(zoom, pan):
        pan = pan or {"x": 0.0, "y": 0.0}
        with STATE_LOCK:
            state.viewport.set(zoom=zoom, pan=(pan.get("x", 0.0), pan.get("y", 0.0)))
            return {"zoom": state.viewport.zoom, "pan": {"x": state.viewport.pan_x, "y": state.viewport.pan_y}}

    @app.callback(
        Output(ID_REV_SELECT, "data"),
        Input(ID_CY, "tapNode"),
        Input(ID_CY, "tapEdge"),
        Input(ID_TAP_CANVAS, "data"),
        prevent_initial_call=True,
    )
    def _on_tap(tap_node, tap_edge, canvas_tap):
        triggered = {t.get("prop_id") for t in (callback_context.triggered or [])}
        with STATE_LOCK:
            if f"{ID_CY}.tapNode" in triggered and tap_node:
                node_id = str((tap_node.get("data") or {}).get("id") or "")
                state.click_node(node_id, _node_anchor(state, tap_node))
            elif f"{ID_CY}.tapEdge" in triggered and tap_edge:
                edge_id = str((tap_edge.get("data") or {}).get("id") or "")
                state.click_edge(edge_id, _edge_anchor(state, tap_edge))
            elif f"{ID_TAP_CANVAS}.data" in triggered and canvas_tap:
                state.click_background()
            return state.revision

    @app.callback(
        Output(ID_REV_DRAG, "data"),
        Input(ID_DRAG, "data"),
        prevent_initial_call=True,
    )
    def _on_drag(event):
        if not event:
            return no_update
        phase = event.get("phase")
        x = float(event.get("x", 0.0))
        y = float(event.get("y", 0.0))
        with STATE_LOCK:
            if phase == "start":
                state.drag_start(str(event.get("id") or ""), x, y)
            elif phase == "move":
                state.drag_move(x, y)
            elif phase == "end":
                state.drag_end()
            return state.revision

    rendered = {"revision": -1}

    @app.callback(
        Output(ID_CY, "elements"),
        Output(ID_INSPECTOR, "style"),
        Output(ID_INSPECTOR, "children"),
        Output(ID_STATS, "children"),
        Input(ID_TICK, "n_intervals"),
        Input(ID_REV_DATA, "data"),
        Input(ID_REV_FILTER, "data"),
        Input(ID_REV_EVO, "data"),
        Input(ID_REV_SELECT, "data"),
        Input(ID_REV_DRAG, "data"),
    )
    def _render(_n, *_revisions):
        with STATE_LOCK:
            state.tick(max(settings.steps_per_tick, 1))
            if state.revision == rendered["revision"]:
                return no_update, no_update, no_update, no_update
            rendered["revision"] = state.revision
            frame = render_frame(state, colors)
        return frame.elements, inspector_style(frame.inspector), render_inspector(frame.inspector), render_stats(frame.stats)

    server.logger.info("app-ready backend=%s colors=%s", settings.backend_url or "<unset>", sorted(colors))
    return app


def main() -> None:
    ap = argparse.ArgumentParser(description="PhoenixLS knowledge graph explorer.")
    ap.add_argument("--config", type=str, default="", help="Path to a YAML config file.")
    ap.add_argument("--host", type=str, default="", help="Host bind.")
    ap.add_argument("--port", type=int, default=0, help="Port.")
    ap.add_argument("--query", type=str, default="", help="Query to run on first load.")
    ap.add_argument("--debug", action="store_true", help="Run the Dash dev server in debug mode.")
    args = ap.parse_args()

    config_path = Path(args.config).expanduser() if args.config else None
    settings = load_settings(config_path)
    if args.host:
        settings.host = args.host
    if args.port:
        settings.port = args.port
    if args.debug:
        settings.debug = True

    setup_logging(Path(settings.log_dir) if settings.log_dir else None, settings.log_level)
    if not settings.backend_url:
        LOG.warning("backend-url-unset", extra={"hint": "set PHOENIX_BACKEND_URL or backend_url in the config"})

    app = create_app(settings, initial_query=args.query)
    app.run(host=settings.host, port=settings.port, debug=settings.debug)


if __name__ == "__main__":
    main()
