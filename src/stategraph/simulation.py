"""Simulation engine: reachability, dead ends and interactive path tracing."""
from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass, field

from stategraph.classifier import StateCategory, category_counts
from stategraph.graph_model import GraphSnapshot, TransitionEdge, edge_key


def _adjacency(transitions, all_ids=None) -> dict[str, list[str]]:
    adj: dict[str, list[str]] = defaultdict(list)
    for t in transitions:
        if all_ids is not None and (t.source not in all_ids or t.target not in all_ids):
            continue
        adj[t.source].append(t.target)
    return adj


def compute_reachable(transitions: list[TransitionEdge] | tuple[TransitionEdge, ...],
                      start_id: str,
                      all_ids=None) -> frozenset[str]:
    """States reachable from ``start_id`` via zero or more transitions.

    When ``all_ids`` is given, edges with an endpoint outside it are ignored.
    """
    if all_ids is not None:
        all_ids = set(all_ids)
    adj = _adjacency(transitions, all_ids)
    reachable: set[str] = set()
    stack = [start_id]
    while stack:
        current = stack.pop()
        if current in reachable:
            continue
        reachable.add(current)
        for nxt in adj.get(current, []):
            if nxt not in reachable:
                stack.append(nxt)
    return frozenset(reachable)


def compute_dead_ends(transitions, all_ids) -> frozenset[str]:
    """States with no outgoing transition, reachable or not."""
    ids = list(all_ids)
    adj = _adjacency(transitions, set(ids))
    return frozenset(i for i in ids if not adj.get(i))


@dataclass(frozen=True)
class SimulationState:
    path: tuple[str, ...] = ()
    unreachable: frozenset[str] = frozenset()
    dead_ends: frozenset[str] = frozenset()

    @property
    def is_idle(self) -> bool:
        return not self.path


@dataclass
class SimulationSummary:
    path_length: int
    unreachable_count: int
    dead_end_count: int
    path_categories: dict[StateCategory, int] = field(default_factory=dict)


class SimulationSession:
    """One user-driven trace through a single snapshot.

    Idle until the first click seeds the path; afterwards a click extends the
    path only along an existing transition from the last state. Anything
    else is ignored.
    """

    def __init__(self, snapshot: GraphSnapshot):
        self.snapshot = snapshot
        self._transitions = snapshot.valid_transitions()
        self._path: list[str] = []
        self._unreachable: frozenset[str] = frozenset()
        self._dead_ends: frozenset[str] = frozenset()

    # ---- protocol ----

    def click(self, node_id: str) -> bool:
        """Apply a click. Returns True if the path changed."""
        if self.snapshot.get(node_id) is None:
            return False

        if not self._path:
            all_ids = self.snapshot.state_ids()
            reachable = compute_reachable(self._transitions, node_id, all_ids)
            self._unreachable = frozenset(i for i in all_ids if i not in reachable)
            self._dead_ends = compute_dead_ends(self._transitions, all_ids)
            self._path = [node_id]
            return True

        if node_id in self.valid_next_states:
            self._path.append(node_id)
            return True
        return False

    def reset(self):
        self._path = []
        self._unreachable = frozenset()
        self._dead_ends = frozenset()

    # ---- derived values ----

    @property
    def is_tracing(self) -> bool:
        return bool(self._path)

    @property
    def path(self) -> list[str]:
        return list(self._path)

    @property
    def last(self) -> str | None:
        return self._path[-1] if self._path else None

    @property
    def unreachable(self) -> frozenset[str]:
        return self._unreachable

    @property
    def dead_ends(self) -> frozenset[str]:
        return self._dead_ends

    @property
    def state(self) -> SimulationState:
        return SimulationState(tuple(self._path), self._unreachable, self._dead_ends)

    @property
    def traversed_edges(self) -> frozenset[str]:
        return frozenset(
            edge_key(a, b) for a, b in zip(self._path, self._path[1:])
        )

    @property
    def valid_next_states(self) -> frozenset[str]:
        last = self.last
        if last is None:
            return frozenset()
        return frozenset(t.target for t in self._transitions if t.source == last)

    def path_labels(self) -> list[str]:
        labels = []
        for node_id in self._path:
            node = self.snapshot.get(node_id)
            labels.append(node.label if node else node_id)
        return labels

    def summary(self) -> SimulationSummary:
        nodes = [self.snapshot.get(i) for i in self._path]
        return SimulationSummary(
            path_length=len(self._path),
            unreachable_count=len(self._unreachable),
            dead_end_count=len(self._dead_ends),
            path_categories=category_counts(n for n in nodes if n is not None),
        )
