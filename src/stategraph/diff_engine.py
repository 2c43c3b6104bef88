"""Scan-to-scan diff with a time-bounded highlight window.

The diff itself is a pure function over two scan payloads. Expiry of the
highlight is owned by :class:`DiffWindow`, which schedules its clear through
an injectable scheduler so tests can drive virtual time.
"""
from __future__ import annotations
import heapq
import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

from stategraph.config import DIFF_WINDOW_SECONDS
from stategraph.graph_model import ScanPayload, state_id, edge_key

log = logging.getLogger("stategraph.diff")


@dataclass(frozen=True)
class DiffResult:
    new_state_ids: frozenset[str] = frozenset()
    changed_transition_keys: frozenset[str] = frozenset()  # "from->to" in id space

    @property
    def is_empty(self) -> bool:
        return not self.new_state_ids and not self.changed_transition_keys


EMPTY_DIFF = DiffResult()


def should_diff(previous: ScanPayload | None) -> bool:
    """A diff needs a previous scan that found at least one state."""
    return previous is not None and len(previous.states) > 0


def compute_diff(previous: ScanPayload, current: ScanPayload,
                 compare_rules: bool = False) -> DiffResult:
    """Compare two scans by state name and raw (from, to) name pair.

    Args:
        previous: The scan displayed before ``current``.
        current: The freshly completed scan.
        compare_rules: Also flag transitions whose endpoints are unchanged
            but whose rule text differs. Off by default, so a rule-only
            change is not reported.

    Returns:
        DiffResult with ids of new states and keys of new transitions.
    """
    old_names = set(previous.state_names)
    new_ids = frozenset(
        state_id(s.name) for s in current.states if s.name not in old_names
    )

    old_rules: dict[tuple[str, str], set] = {}
    for t in previous.transitions:
        old_rules.setdefault(t.pair, set()).add(t.rule)

    changed = set()
    for t in current.transitions:
        rules = old_rules.get(t.pair)
        if rules is None or (compare_rules and t.rule not in rules):
            changed.add(edge_key(state_id(t.source), state_id(t.target)))

    return DiffResult(new_state_ids=new_ids,
                      changed_transition_keys=frozenset(changed))


# ---------------------------------------------------------------------------
# Schedulers
# ---------------------------------------------------------------------------

class ScheduledTask:
    """Handle returned by a scheduler; ``cancel`` is idempotent."""

    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self.cancelled = False

    def cancel(self):
        if not self.cancelled:
            self.cancelled = True
            self._cancel()


class ThreadScheduler:
    """Wall-clock scheduler backed by ``threading.Timer``."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return ScheduledTask(timer.cancel)


@dataclass(order=True)
class _Pending:
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    task: ScheduledTask | None = field(default=None, compare=False)


class ManualScheduler:
    """Virtual-time scheduler: callbacks run only when ``advance`` passes them."""

    def __init__(self):
        self.now = 0.0
        self._queue: list[_Pending] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        entry = _Pending(self.now + max(delay, 0.0), next(self._seq), callback)
        task = ScheduledTask(lambda: None)
        entry.task = task
        heapq.heappush(self._queue, entry)
        return task

    @property
    def pending(self) -> int:
        return sum(1 for e in self._queue if not e.task.cancelled)

    def advance(self, seconds: float):
        """Move the clock forward, firing every due, uncancelled callback."""
        target = self.now + seconds
        while self._queue and self._queue[0].due <= target:
            entry = heapq.heappop(self._queue)
            self.now = entry.due
            if not entry.task.cancelled:
                entry.task.cancelled = True
                entry.callback()
        self.now = target


# ---------------------------------------------------------------------------
# Highlight window
# ---------------------------------------------------------------------------

class DiffWindow:
    """Holds the latest diff and clears it after a fixed window.

    Showing a new diff cancels the pending expiry and starts a fresh one;
    diffs never accumulate.
    """

    def __init__(self, scheduler=None, seconds: float = DIFF_WINDOW_SECONDS):
        self.scheduler = scheduler or ThreadScheduler()
        self.seconds = seconds
        self._current = EMPTY_DIFF
        self._task: ScheduledTask | None = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def current(self) -> DiffResult:
        with self._lock:
            return self._current

    @property
    def active(self) -> bool:
        return not self.current.is_empty

    def show(self, diff: DiffResult):
        with self._lock:
            if self._task is not None:
                self._task.cancel()
            self._current = diff
            self._generation += 1
            generation = self._generation
            self._task = self.scheduler.call_later(
                self.seconds, lambda: self._expire(generation))
        log.debug("Diff shown: %d new states, %d changed transitions",
                  len(diff.new_state_ids), len(diff.changed_transition_keys))

    def clear(self):
        """Cancel any pending expiry and drop the diff now."""
        with self._lock:
            if self._task is not None:
                self._task.cancel()
                self._task = None
            self._generation += 1
            self._current = EMPTY_DIFF

    def _expire(self, generation: int):
        with self._lock:
            # A timer that lost the race with show() must not clear the new diff
            if generation != self._generation:
                return
            self._current = EMPTY_DIFF
            self._task = None
        log.debug("Diff window expired")
