"""Dash web application for the animation state graph visualizer."""
from __future__ import annotations
import logging
import time

import dash
from dash import html, dcc, Input, Output, State, no_update, ctx
import dash_cytoscape as cyto

from stategraph.classifier import StateCategory
from stategraph.config import Settings, load_settings
from stategraph.controller import StateGraphController
from stategraph.graph_builder import CYTO_STYLESHEET, CATEGORY_COLORS, get_state_detail
from stategraph.scan_loader import FileScanSource

log = logging.getLogger("stategraph")

# Callback log for debugging GUI interactions server-side
_callback_log: list[dict] = []
_CALLBACK_LOG_MAX = 200


def _log_callback(name: str, inputs: dict, error: str | None = None):
    entry = {"time": time.time(), "callback": name, "inputs": inputs}
    if error:
        entry["error"] = error
    _callback_log.append(entry)
    if len(_callback_log) > _CALLBACK_LOG_MAX:
        _callback_log.pop(0)


def create_app(controller: StateGraphController | None = None,
               settings: Settings | None = None) -> dash.Dash:
    settings = settings or load_settings()
    if controller is None:
        controller = StateGraphController(
            scan_source=FileScanSource(settings.scan_path),
            diff_window=settings.diff_window,
        )

    app = dash.Dash(__name__, suppress_callback_exceptions=True)
    app.server.config["STATEGRAPH_CONTROLLER"] = controller

    app.layout = html.Div([
        # ---- Header ----
        html.Div([
            html.H2("stategraph", style={"margin": "0", "flex": "1"}),
            html.Button("Debug Log", id="btn-debug", n_clicks=0, style={
                "marginLeft": "16px", "fontSize": "11px", "padding": "4px 10px",
                "backgroundColor": "#7f8c8d", "color": "#fff", "border": "none",
                "borderRadius": "3px", "cursor": "pointer",
            }),
        ], style={
            "display": "flex", "justifyContent": "space-between",
            "alignItems": "center", "padding": "10px 20px",
            "backgroundColor": "#2c3e50", "color": "#ecf0f1",
        }),

        # ---- Debug Log Panel (hidden by default) ----
        html.Div(id="debug-panel", style={
            "display": "none", "padding": "8px 20px",
            "backgroundColor": "#1e1e1e", "color": "#d4d4d4",
            "maxHeight": "200px", "overflowY": "auto",
            "fontSize": "11px", "fontFamily": "Consolas, monospace",
        }),

        # ---- Controls ----
        html.Div([
            dcc.Input(
                id="scan-path", type="text", value=settings.scan_path,
                placeholder="Scan file (.json or .sm)",
                style={"width": "320px", "fontSize": "12px"},
            ),
            html.Button("Scan Project", id="btn-scan", n_clicks=0,
                        style=_btn_style("#a78bfa")),
            html.Button("Simulate", id="btn-sim", n_clicks=0,
                        style=_btn_style("#f97316")),
            html.Button("Reset", id="btn-reset", n_clicks=0,
                        style=_btn_style("#95a5a6")),
        ], style={"display": "flex", "gap": "8px", "padding": "10px 20px",
                  "alignItems": "center"}),

        html.Div(id="status", style=_status_style(True)),

        # ---- Graph ----
        html.Div([
            cyto.Cytoscape(
                id="state-graph",
                elements=controller.elements(settings.canvas_width,
                                             settings.canvas_height),
                layout={"name": "preset", "animate": False},
                stylesheet=CYTO_STYLESHEET,
                style={"width": "100%", "height": f"{settings.canvas_height + 40}px",
                       "backgroundColor": "#12121c"},
            ),
            _legend(),
        ], style={"padding": "0 20px"}),

        # ---- Simulation summary + detail ----
        html.Div(id="sim-summary", style={"padding": "6px 20px", "fontSize": "12px"}),
        html.Div(id="scan-metadata", children=_scan_metadata(controller),
                 style={"padding": "6px 20px", "fontSize": "12px"}),
        html.Div(id="state-detail", style={"padding": "6px 20px", "fontSize": "12px"}),

        dcc.Interval(id="diff-interval", interval=1000, disabled=True),
    ], style={"fontFamily": "sans-serif"})

    # ================================================================
    # CALLBACKS
    # ================================================================

    @app.callback(
        Output("state-graph", "elements"),
        Output("status", "children"),
        Output("status", "style"),
        Output("sim-summary", "children"),
        Output("scan-metadata", "children"),
        Output("btn-sim", "children"),
        Output("diff-interval", "disabled"),
        Input("btn-scan", "n_clicks"),
        Input("btn-sim", "n_clicks"),
        Input("btn-reset", "n_clicks"),
        Input("state-graph", "tapNode"),
        Input("diff-interval", "n_intervals"),
        State("scan-path", "value"),
        prevent_initial_call=True,
    )
    def update_view(n_scan, n_sim, n_reset, tap_node, n_intervals, scan_path):
        trigger = ctx.triggered_id
        node_id = (tap_node or {}).get("data", {}).get("id")
        _log_callback("update_view", {"trigger": trigger, "node_id": node_id})
        try:
            if trigger == "btn-scan":
                if scan_path:
                    controller.scan_source = FileScanSource(scan_path)
                controller.scan_now()
            elif trigger == "btn-sim":
                controller.toggle_simulation()
            elif trigger == "btn-reset":
                controller.reset_simulation()
            elif trigger == "state-graph" and node_id:
                controller.click(node_id)

            elements = controller.elements(settings.canvas_width,
                                           settings.canvas_height)
            return (
                elements,
                _status_text(controller),
                _status_style(controller.error is None),
                _sim_summary(controller),
                _scan_metadata(controller),
                "Exit Sim" if controller.simulation_mode else "Simulate",
                not controller.diff_active,
            )
        except Exception as e:
            _log_callback("update_view", {"trigger": trigger}, error=str(e))
            log.exception("Error in update_view callback")
            return (no_update, f"Error: {e}", _status_style(False),
                    no_update, no_update, no_update, True)

    @app.callback(
        Output("state-detail", "children"),
        Input("state-graph", "tapNodeData"),
    )
    def show_state_detail(node_data):
        _log_callback("show_state_detail",
                      {"node_id": node_data.get("id") if node_data else None})
        if not node_data:
            return ""
        detail = get_state_detail(controller.snapshot, node_data.get("id", ""))
        if not detail:
            return f"Node: {node_data.get('label', '?')}"
        rules = ", ".join(f"{to} [{rule or '?'}]" for to, rule in detail["rules"])
        return html.Span([
            html.B("State: "),
            detail["label"],
            f" | {detail['category']}",
            " | annotated" if detail["has_annotation"] else "",
            f" | Successors: {detail['successor_count']}",
            f" | Predecessors: {detail['predecessor_count']}",
            f" | {rules}" if rules else "",
        ])

    # ---- Debug log panel toggle ----
    @app.callback(
        Output("debug-panel", "children"),
        Output("debug-panel", "style"),
        Input("btn-debug", "n_clicks"),
        State("debug-panel", "style"),
        prevent_initial_call=True,
    )
    def toggle_debug_panel(n_clicks, current_style):
        if not n_clicks:
            return no_update, no_update
        visible = current_style.get("display", "none") != "none"
        new_style = {**current_style, "display": "none" if visible else "block"}
        if visible:
            return no_update, new_style
        from datetime import datetime
        rows = []
        for entry in reversed(_callback_log[-50:]):
            ts = datetime.fromtimestamp(entry["time"]).strftime("%H:%M:%S")
            line = f"[{ts}] {entry['callback']} {entry['inputs']}"
            if "error" in entry:
                line += f"  ERROR: {entry['error']}"
            rows.append(html.Div(line, style={
                "color": "#e74c3c" if "error" in entry else "#d4d4d4",
            }))
        if not rows:
            rows = [html.Div("No callbacks logged yet.")]
        return rows, new_style

    return app


# ================================================================
# HELPERS
# ================================================================

def _btn_style(color: str) -> dict:
    return {
        "backgroundColor": color, "color": "#fff", "border": "none",
        "padding": "6px 16px", "borderRadius": "4px", "cursor": "pointer",
        "fontSize": "13px",
    }


def _status_style(ok: bool) -> dict:
    return {
        "margin": "0 20px 8px", "padding": "6px", "fontSize": "12px",
        "backgroundColor": "#d4edda" if ok else "#f8d7da",
        "color": "#155724" if ok else "#721c24",
        "borderRadius": "4px",
    }


def _status_text(controller: StateGraphController) -> str:
    if controller.error:
        return controller.error
    snapshot = controller.snapshot
    sim = controller.simulation
    if controller.simulation_mode and sim is not None:
        if not sim.is_tracing:
            return "Simulation mode: click a state to begin tracing"
        return (f"{len(sim.path)} states in path, "
                "click valid transitions to continue")
    done = sum(1 for s in snapshot.states if controller.progress.get(s.id))
    if snapshot.is_scanned:
        text = f"{done}/{len(snapshot.states)} states (scanned from project)"
        scan = controller.previous_scan
        if scan is not None and scan.anim_instance_class:
            text += f" | {scan.anim_instance_class}"
        if scan is not None and scan.montage_refs:
            text += f" | {len(scan.montage_refs)} montages"
        return text
    return f"{done}/{len(snapshot.states)} states, locomotion fallback graph"


def _sim_summary(controller: StateGraphController):
    sim = controller.simulation
    if not controller.simulation_mode or sim is None or not sim.is_tracing:
        return ""
    summary = sim.summary()
    return html.Div([
        html.Div("Path: " + " → ".join(sim.path_labels())),
        html.Div(f"Unreachable: {summary.unreachable_count} | "
                 f"Dead ends: {summary.dead_end_count}"),
    ])


def _chip_list(title: str, items, color: str) -> html.Div:
    chips = [html.Span(item, style={
        "fontFamily": "Consolas, monospace", "fontSize": "11px",
        "padding": "1px 8px", "marginRight": "6px", "borderRadius": "10px",
        "color": color, "border": f"1px solid {color}",
    }) for item in items]
    return html.Div([
        html.Div(title, style={"fontWeight": "bold", "marginBottom": "4px"}),
        html.Div(chips, style={"display": "flex", "flexWrap": "wrap", "gap": "4px"}),
    ], style={"marginBottom": "8px"})


def _scan_metadata(controller: StateGraphController):
    """Scanner-reported details, hidden while simulating."""
    scan = controller.previous_scan
    if scan is None or controller.simulation_mode or not controller.snapshot.is_scanned:
        return ""
    parts = []
    source = [s for s in (scan.header_path, scan.scanned_at) if s]
    if source:
        parts.append(html.Div(" | ".join(source), style={"color": "#7f8c8d"}))
    if scan.montage_refs:
        parts.append(_chip_list("Montage References", scan.montage_refs, "#f59e0b"))
    if scan.anim_variables:
        parts.append(_chip_list("Animation Variables", scan.anim_variables, "#a78bfa"))
    return parts


def _legend() -> html.Div:
    items = []
    for cat in StateCategory:
        color = CATEGORY_COLORS[cat]
        items.append(html.Span([
            html.Span(style={
                "display": "inline-block", "width": "10px", "height": "10px",
                "backgroundColor": color, "marginRight": "4px",
            }),
            cat.value,
        ], style={"marginRight": "12px"}))
    return html.Div(items, style={"fontSize": "11px", "padding": "4px 0"})
