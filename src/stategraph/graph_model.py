"""Dataclasses for scan payloads and immutable graph snapshots."""
from __future__ import annotations
from dataclasses import dataclass, field

from stategraph.classifier import StateCategory, KeywordRule, DEFAULT_RULES, classify
from stategraph.layout import Position, layout

SCANNED_PREFIX = "scanned-"


class ScanError(ValueError):
    """A scan could not be fetched or its payload is malformed."""


# --- Scan payload (input contract) ---

@dataclass(frozen=True)
class ScannedState:
    name: str
    has_annotation: bool = False

@dataclass(frozen=True)
class ScannedTransition:
    source: str
    target: str
    rule: str | None = None

    @property
    def pair(self) -> tuple[str, str]:
        return (self.source, self.target)


@dataclass(frozen=True)
class ScanPayload:
    states: tuple[ScannedState, ...] = ()
    transitions: tuple[ScannedTransition, ...] = ()
    # Metadata reported by the scanner, shown but never interpreted
    scanned_at: str | None = None
    anim_instance_class: str | None = None
    header_path: str | None = None
    montage_refs: tuple[str, ...] = ()
    anim_variables: tuple[str, ...] = ()

    @property
    def state_names(self) -> list[str]:
        return [s.name for s in self.states]


# --- Graph snapshot ---

@dataclass(frozen=True)
class StateNode:
    id: str
    label: str
    position: Position
    category: StateCategory
    has_annotation: bool = False


@dataclass(frozen=True)
class TransitionEdge:
    source: str
    target: str
    rule: str | None = None

    @property
    def key(self) -> str:
        return edge_key(self.source, self.target)


@dataclass(frozen=True)
class GraphSnapshot:
    states: tuple[StateNode, ...] = ()
    transitions: tuple[TransitionEdge, ...] = ()
    source: str = "fallback"  # "fallback" or "scan"
    _index: dict = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_index", {s.id: s for s in self.states})

    @property
    def is_empty(self) -> bool:
        return not self.states

    @property
    def is_scanned(self) -> bool:
        return self.source == "scan"

    def state_ids(self) -> list[str]:
        return [s.id for s in self.states]

    def get(self, node_id: str) -> StateNode | None:
        return self._index.get(node_id)

    def valid_transitions(self) -> list[TransitionEdge]:
        """Transitions whose endpoints both resolve to states in this snapshot."""
        return [t for t in self.transitions
                if t.source in self._index and t.target in self._index]

    def has_transition(self, source: str, target: str) -> bool:
        return any(t.source == source and t.target == target
                   for t in self.valid_transitions())


def state_id(name: str) -> str:
    return SCANNED_PREFIX + name


def edge_key(source: str, target: str) -> str:
    return f"{source}->{target}"


# --- Fallback locomotion graph ---

# (id, label)
FALLBACK_STATES: tuple[tuple[str, str], ...] = (
    ("anim-idle", "Idle"),
    ("anim-walk", "Walk"),
    ("anim-run", "Run"),
    ("anim-jump", "Jump"),
    ("anim-fall", "Fall"),
    ("anim-land", "Land"),
)

FALLBACK_TRANSITIONS: tuple[TransitionEdge, ...] = (
    TransitionEdge("anim-idle", "anim-walk", "Speed > 0"),
    TransitionEdge("anim-walk", "anim-idle", "Speed ~ 0"),
    TransitionEdge("anim-walk", "anim-run", "Speed > Threshold"),
    TransitionEdge("anim-run", "anim-walk", "Speed < Threshold"),
    TransitionEdge("anim-walk", "anim-jump", "IsInAir"),
    TransitionEdge("anim-run", "anim-jump", "IsInAir"),
    TransitionEdge("anim-jump", "anim-fall", "VelZ < 0"),
    TransitionEdge("anim-fall", "anim-land", "!IsInAir"),
    TransitionEdge("anim-land", "anim-idle", "AnimTime < 0.2"),
)


def fallback_snapshot(rules=DEFAULT_RULES) -> GraphSnapshot:
    positions = layout(len(FALLBACK_STATES))
    states = tuple(
        StateNode(
            id=sid,
            label=label,
            position=pos,
            category=classify(label, False, rules),
        )
        for (sid, label), pos in zip(FALLBACK_STATES, positions)
    )
    return GraphSnapshot(states=states, transitions=FALLBACK_TRANSITIONS,
                         source="fallback")


def build_snapshot(scan: ScanPayload | None = None,
                   rules: tuple[KeywordRule, ...] = DEFAULT_RULES) -> GraphSnapshot:
    """Build the authoritative snapshot for display.

    A scan with at least one state fully replaces the fallback graph;
    anything else yields the fallback graph. Scanned and fallback data are
    never merged.
    """
    if scan is None or not scan.states:
        return fallback_snapshot(rules)

    # Keep the first occurrence of each name so ids stay unique
    seen: set[str] = set()
    unique: list[ScannedState] = []
    for s in scan.states:
        if s.name not in seen:
            seen.add(s.name)
            unique.append(s)

    positions = layout(len(unique))
    states = tuple(
        StateNode(
            id=state_id(s.name),
            label=s.name,
            position=pos,
            category=classify(s.name, s.has_annotation, rules),
            has_annotation=s.has_annotation,
        )
        for s, pos in zip(unique, positions)
    )
    transitions = tuple(
        TransitionEdge(state_id(t.source), state_id(t.target), t.rule)
        for t in scan.transitions
    )
    return GraphSnapshot(states=states, transitions=transitions, source="scan")
