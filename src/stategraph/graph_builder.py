"""Build Cytoscape.js elements from a graph snapshot."""
from __future__ import annotations

from stategraph.classifier import StateCategory
from stategraph.config import CANVAS_WIDTH, CANVAS_HEIGHT
from stategraph.diff_engine import DiffResult, EMPTY_DIFF
from stategraph.graph_model import GraphSnapshot
from stategraph.layout import to_pixels
from stategraph.simulation import SimulationSession


def build_elements(snapshot: GraphSnapshot,
                   progress: dict[str, bool] | None = None,
                   active_id: str | None = None,
                   diff: DiffResult | None = None,
                   simulation: SimulationSession | None = None,
                   width: int = CANVAS_WIDTH,
                   height: int = CANVAS_HEIGHT) -> list[dict]:
    """Build Cytoscape elements (nodes + edges) for the current display.

    Args:
        snapshot: Graph to render.
        progress: Read-only map of state id -> completed flag.
        active_id: State currently being worked on, if any.
        diff: Active diff highlight; new states and changed edges get classes.
        simulation: Running simulation session, if simulation mode is on.
        width: Canvas width used to scale normalized positions.
        height: Canvas height used to scale normalized positions.

    Returns:
        List of Cytoscape element dicts. Edges with an endpoint missing from
        the snapshot are dropped.
    """
    progress = progress or {}
    diff = diff or EMPTY_DIFF
    tracing = simulation is not None and simulation.is_tracing

    path_ids: set[str] = set()
    next_ids: frozenset[str] = frozenset()
    sim_edges: frozenset[str] = frozenset()
    if tracing:
        path_ids = set(simulation.path)
        next_ids = simulation.valid_next_states
        sim_edges = simulation.traversed_edges

    elements = []
    node_ids = set()
    for i, state in enumerate(snapshot.states):
        node_ids.add(state.id)
        completed = bool(progress.get(state.id, False))
        is_active = state.id == active_id
        is_new = state.id in diff.new_state_ids
        px = to_pixels(state.position, width, height)

        classes = [state.category.value]
        if i == 0:
            classes.append("entry")
        if completed:
            classes.append("completed")
        if is_active:
            classes.append("active")
        if is_new:
            classes.append("new")
        if state.has_annotation:
            classes.append("annotated")
        if tracing:
            if state.id in path_ids:
                classes.append("sim-path")
            elif state.id in next_ids:
                classes.append("sim-next")
            elif state.id in simulation.unreachable:
                classes.append("sim-unreachable")
            else:
                classes.append("sim-idle")
            if state.id in simulation.dead_ends:
                classes.append("dead-end")

        elements.append({
            "data": {
                "id": state.id,
                "label": state.label,
                "x": state.position.x,
                "y": state.position.y,
                "category": state.category.value,
                "completed": completed,
                "isActive": is_active,
                "isNew": is_new,
                "hasAnnotation": state.has_annotation,
            },
            "position": px,
            "classes": " ".join(classes),
        })

    pairs = {(t.source, t.target) for t in snapshot.transitions}
    seen_edges = set()
    for t in snapshot.transitions:
        if t.source not in node_ids or t.target not in node_ids:
            continue
        key = t.key
        if key in seen_edges:
            continue
        seen_edges.add(key)

        is_sim = key in sim_edges
        is_modified = key in diff.changed_transition_keys
        classes = []
        if t.source == t.target:
            classes.append("self-loop")
        elif (t.target, t.source) in pairs:
            classes.append("bidirectional")
        if is_sim:
            classes.append("sim-edge")
        elif is_modified:
            classes.append("modified")

        elements.append({
            "data": {
                "id": f"e_{t.source}_{t.target}",
                "source": t.source,
                "target": t.target,
                "from": t.source,
                "to": t.target,
                "rule": t.rule,
                "label": t.rule or "",
                "isSimulated": is_sim,
                "isModified": is_modified,
            },
            "classes": " ".join(classes),
        })

    return elements


def get_state_detail(snapshot: GraphSnapshot, node_id: str) -> dict | None:
    """Get detailed info about a state from its Cytoscape node ID."""
    state = snapshot.get(node_id)
    if state is None:
        return None
    valid = snapshot.valid_transitions()
    outgoing = [t for t in valid if t.source == node_id]
    preds = {t.source for t in valid if t.target == node_id}
    return {
        "label": state.label,
        "category": state.category.value,
        "has_annotation": state.has_annotation,
        "successor_count": len({t.target for t in outgoing}),
        "predecessor_count": len(preds),
        "rules": [
            (snapshot.get(t.target).label, t.rule) for t in outgoing
        ],
    }


CATEGORY_COLORS = {
    StateCategory.PRIMARY_MOTION: "#3b82f6",
    StateCategory.CONFLICT: "#ef4444",
    StateCategory.RESPONSE: "#f97316",
    StateCategory.HIGHLIGHTED: "#f59e0b",
    StateCategory.OTHER: "#a78bfa",
}

ACCENT = "#a78bfa"
SIM_COLOR = "#f97316"
DONE_COLOR = "#22c55e"
MODIFIED_COLOR = "#eab308"


CYTO_STYLESHEET = [
    {
        "selector": "node",
        "style": {
            "label": "data(label)",
            "font-size": "10px",
            "shape": "round-rectangle",
            "width": 90,
            "height": 44,
            "background-color": "#1a1a2e",
            "border-width": 2,
            "border-color": ACCENT,
            "text-valign": "center",
            "text-halign": "center",
            "color": "#eee",
        },
    },
    *[
        {"selector": f"node.{cat.value}", "style": {
            "border-color": color, "color": color,
        }}
        for cat, color in CATEGORY_COLORS.items()
    ],
    {"selector": "node.entry", "style": {"border-style": "double", "border-width": 4}},
    {"selector": "node.annotated", "style": {"font-style": "italic"}},
    {"selector": "node.completed", "style": {
        "border-color": DONE_COLOR, "color": DONE_COLOR,
    }},
    {"selector": "node.active", "style": {
        "border-color": ACCENT, "background-color": "#2a2040",
    }},
    {"selector": "node.new", "style": {
        "underlay-color": DONE_COLOR, "underlay-opacity": 0.4, "underlay-padding": 6,
    }},
    # Simulation overlay
    {"selector": "node.sim-path", "style": {
        "border-color": SIM_COLOR, "color": SIM_COLOR, "border-width": 3,
    }},
    {"selector": "node.sim-next", "style": {"border-width": 3, "opacity": 1}},
    {"selector": "node.sim-unreachable", "style": {
        "border-color": "#ef4444", "opacity": 0.5,
    }},
    {"selector": "node.sim-idle", "style": {"opacity": 0.6}},
    {"selector": "node.dead-end", "style": {"border-style": "dashed"}},
    {
        "selector": "edge",
        "style": {
            "curve-style": "bezier",
            "target-arrow-shape": "triangle",
            "width": 1,
            "line-color": "#6b5b95",
            "target-arrow-color": "#6b5b95",
            "arrow-scale": 0.8,
        },
    },
    {"selector": "edge.bidirectional", "style": {"control-point-step-size": 24}},
    {
        "selector": "edge.self-loop",
        "style": {
            "curve-style": "loop",
            "loop-direction": "-45deg",
            "loop-sweep": "90deg",
        },
    },
    {"selector": "edge:selected", "style": {
        "label": "data(label)", "font-size": "8px", "color": ACCENT,
        "text-background-color": "#1a1a2e", "text-background-opacity": 0.95,
    }},
    {"selector": "edge.modified", "style": {
        "line-color": MODIFIED_COLOR, "target-arrow-color": MODIFIED_COLOR,
        "width": 1.5,
    }},
    {"selector": "edge.sim-edge", "style": {
        "line-color": SIM_COLOR, "target-arrow-color": SIM_COLOR,
        "width": 2, "z-index": 998,
    }},
]
