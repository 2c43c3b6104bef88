"""Host-side state for one visualizer: snapshot, scan, diff window, simulation."""
from __future__ import annotations
import logging
import threading
from typing import Callable

from stategraph.classifier import DEFAULT_RULES, KeywordRule
from stategraph.config import DIFF_WINDOW_SECONDS, CANVAS_WIDTH, CANVAS_HEIGHT
from stategraph.diff_engine import DiffWindow, DiffResult, compute_diff, should_diff
from stategraph.graph_builder import build_elements
from stategraph.graph_model import GraphSnapshot, ScanError, ScanPayload, build_snapshot
from stategraph.simulation import SimulationSession

log = logging.getLogger("stategraph")

ScanSource = Callable[[], ScanPayload]

# Expected scan failures; anything else is logged with a traceback
_SCAN_FAILURES = (ScanError, OSError, ValueError)


class StateGraphController:
    """Owns everything the graph engine treats as caller context.

    The snapshot is replaced wholesale on every successful scan. A failed
    scan only sets ``error``; the displayed graph and any running simulation
    are kept.
    """

    def __init__(self, scan_source: ScanSource | None = None,
                 scheduler=None,
                 rules: tuple[KeywordRule, ...] = DEFAULT_RULES,
                 diff_window: float = DIFF_WINDOW_SECONDS,
                 progress: dict[str, bool] | None = None,
                 compare_rules: bool = False):
        self.scan_source = scan_source
        self.rules = rules
        self.compare_rules = compare_rules
        self.progress = progress if progress is not None else {}
        self.active_id: str | None = None
        self.error: str | None = None

        self._snapshot = build_snapshot(None, rules)
        self._previous: ScanPayload | None = None
        self._diff = DiffWindow(scheduler, diff_window)
        self._sim_mode = False
        self._simulation: SimulationSession | None = None

        self._lock = threading.RLock()
        self._scanning = False
        self._generation = 0
        self._worker: threading.Thread | None = None

    # ---- read side ----

    @property
    def snapshot(self) -> GraphSnapshot:
        return self._snapshot

    @property
    def previous_scan(self) -> ScanPayload | None:
        """The scan the next diff is computed against."""
        return self._previous

    @property
    def diff(self) -> DiffResult:
        return self._diff.current

    @property
    def diff_active(self) -> bool:
        return self._diff.active

    @property
    def is_scanning(self) -> bool:
        return self._scanning

    @property
    def simulation_mode(self) -> bool:
        return self._sim_mode

    @property
    def simulation(self) -> SimulationSession | None:
        return self._simulation

    def elements(self, width: int = CANVAS_WIDTH, height: int = CANVAS_HEIGHT) -> list[dict]:
        with self._lock:
            return build_elements(
                self._snapshot,
                progress=self.progress,
                active_id=self.active_id,
                diff=self._diff.current,
                simulation=self._simulation,
                width=width,
                height=height,
            )

    # ---- scans ----

    def apply_scan(self, payload: ScanPayload):
        """Install a completed scan as the new snapshot."""
        with self._lock:
            if should_diff(self._previous):
                diff = compute_diff(self._previous, payload, self.compare_rules)
                self._diff.show(diff)
            self._previous = payload
            self._snapshot = build_snapshot(payload, self.rules)
            self.error = None
            if self._sim_mode:
                # Node ids are not stable across snapshots; start over
                self._simulation = SimulationSession(self._snapshot)
        log.info("Applied scan: %d states, %d transitions",
                 len(payload.states), len(payload.transitions))

    def _begin_scan(self) -> int | None:
        with self._lock:
            if self._scanning:
                log.debug("Scan refused: one already in flight")
                return None
            if self.scan_source is None:
                self.error = "No scan source configured"
                return None
            self._scanning = True
            self.error = None
            return self._generation

    def _finish_scan(self, generation: int, payload: ScanPayload | None,
                     error: str | None):
        with self._lock:
            if generation != self._generation:
                # The in-flight flag now belongs to a newer scan
                log.debug("Discarding result of cancelled scan")
                return
            self._scanning = False
            if error is not None:
                self.error = error
                return
            self.apply_scan(payload)

    def _run_scan(self, generation: int):
        payload = None
        error = "Scan interrupted"
        try:
            payload = self.scan_source()
            error = None
        except _SCAN_FAILURES as e:
            log.warning("Scan failed: %s", e)
            error = str(e) or "Failed to scan"
        except Exception as e:
            log.exception("Unexpected error from scan source")
            error = f"Scan failed: {type(e).__name__}: {e}"
        finally:
            self._finish_scan(generation, payload, error)

    def scan_now(self) -> bool:
        """Run the scan source synchronously. Returns False if refused or failed."""
        generation = self._begin_scan()
        if generation is None:
            return False
        self._run_scan(generation)
        return self.error is None

    def request_scan(self) -> bool:
        """Start a scan on a worker thread. Returns False if one is in flight."""
        generation = self._begin_scan()
        if generation is None:
            return False
        self._worker = threading.Thread(
            target=self._run_scan, args=(generation,), daemon=True,
        )
        self._worker.start()
        return True

    def wait_for_scan(self, timeout: float | None = None):
        if self._worker is not None:
            self._worker.join(timeout)

    def cancel_scan(self):
        """Make any outstanding scan result a no-op when it arrives."""
        with self._lock:
            self._generation += 1
            self._scanning = False

    def close(self):
        """Tear down: drop pending scan results and the diff timer."""
        self.cancel_scan()
        self._diff.clear()

    # ---- simulation ----

    def enter_simulation(self):
        with self._lock:
            self._sim_mode = True
            self._simulation = SimulationSession(self._snapshot)

    def exit_simulation(self):
        with self._lock:
            self._sim_mode = False
            self._simulation = None

    def toggle_simulation(self) -> bool:
        if self._sim_mode:
            self.exit_simulation()
        else:
            self.enter_simulation()
        return self._sim_mode

    def reset_simulation(self):
        with self._lock:
            if self._simulation is not None:
                self._simulation.reset()

    def click(self, node_id: str) -> bool:
        """Route a node click: extend the simulation or select the state."""
        with self._lock:
            if self._sim_mode and self._simulation is not None:
                return self._simulation.click(node_id)
            if self._snapshot.get(node_id) is None:
                return False
            self.active_id = node_id
            return True
