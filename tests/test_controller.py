"""Tests for the host controller: scans, diff window and simulation lifecycle."""
import threading
from stategraph.controller import StateGraphController
from stategraph.diff_engine import EMPTY_DIFF
from stategraph.graph_model import ScanError
from conftest import make_scan

SCAN_1 = make_scan(["Idle", "Walk"], [("Idle", "Walk", "Speed > 0")])
SCAN_2 = make_scan(["Idle", "Walk", "Run"],
                   [("Idle", "Walk", "Speed > 5"), ("Walk", "Run")])


class TestInitialState:
    def test_starts_with_fallback(self, make_controller):
        ctl = make_controller()
        assert ctl.snapshot.source == "fallback"
        assert ctl.diff == EMPTY_DIFF
        assert not ctl.simulation_mode
        assert ctl.simulation is None


class TestScans:
    def test_first_scan_no_diff(self, make_controller):
        ctl = make_controller(SCAN_1)
        assert ctl.scan_now()
        assert ctl.snapshot.is_scanned
        assert ctl.diff == EMPTY_DIFF
        assert ctl.previous_scan is SCAN_1

    def test_second_scan_diffs(self, make_controller, scheduler):
        ctl = make_controller(SCAN_1, SCAN_2)
        ctl.scan_now()
        ctl.scan_now()
        assert ctl.diff.new_state_ids == {"scanned-Run"}
        # Rule change on Idle->Walk is not a modification
        assert ctl.diff.changed_transition_keys == {"scanned-Walk->scanned-Run"}
        scheduler.advance(5)
        assert ctl.diff == EMPTY_DIFF

    def test_compare_rules_option(self, make_controller):
        ctl = make_controller(SCAN_1, SCAN_2, compare_rules=True)
        ctl.scan_now()
        ctl.scan_now()
        assert "scanned-Idle->scanned-Walk" in ctl.diff.changed_transition_keys

    def test_empty_previous_scan_skips_diff(self, make_controller):
        ctl = make_controller(make_scan([]), SCAN_1)
        ctl.scan_now()
        assert ctl.snapshot.source == "fallback"
        ctl.scan_now()
        assert ctl.diff == EMPTY_DIFF

    def test_rescan_restarts_window(self, make_controller, scheduler):
        scan_3 = make_scan(["Idle", "Walk", "Run", "Jump"])
        ctl = make_controller(SCAN_1, SCAN_2, scan_3)
        ctl.scan_now()
        ctl.scan_now()
        scheduler.advance(4)
        ctl.scan_now()
        assert ctl.diff.new_state_ids == {"scanned-Jump"}
        scheduler.advance(4)
        assert ctl.diff.new_state_ids == {"scanned-Jump"}
        scheduler.advance(1)
        assert ctl.diff == EMPTY_DIFF

    def test_failed_scan_is_non_destructive(self, make_controller):
        ctl = make_controller(SCAN_1, ScanError("Scan failed (500)"))
        ctl.scan_now()
        before = ctl.snapshot
        assert not ctl.scan_now()
        assert ctl.error == "Scan failed (500)"
        assert ctl.snapshot is before
        assert not ctl.is_scanning

    def test_os_error_reported(self, make_controller):
        ctl = make_controller(OSError("connection refused"))
        assert not ctl.scan_now()
        assert "connection refused" in ctl.error
        assert ctl.snapshot.source == "fallback"

    def test_success_clears_error(self, make_controller):
        ctl = make_controller(ScanError("boom"), SCAN_1)
        ctl.scan_now()
        assert ctl.error
        ctl.scan_now()
        assert ctl.error is None

    def test_no_source(self, scheduler):
        ctl = StateGraphController(scheduler=scheduler)
        assert not ctl.scan_now()
        assert ctl.error


class BlockingSource:
    def __init__(self, payload):
        self.payload = payload
        self.started = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def __call__(self):
        self.calls += 1
        self.started.set()
        self.release.wait(5)
        return self.payload


class TestInFlight:
    def test_second_request_refused(self, scheduler):
        source = BlockingSource(SCAN_1)
        ctl = StateGraphController(scan_source=source, scheduler=scheduler)
        assert ctl.request_scan()
        assert source.started.wait(5)
        assert ctl.is_scanning
        assert not ctl.request_scan()
        assert not ctl.scan_now()
        source.release.set()
        ctl.wait_for_scan(5)
        assert source.calls == 1
        assert ctl.snapshot.is_scanned
        assert not ctl.is_scanning

    def test_cancelled_scan_not_applied(self, scheduler):
        source = BlockingSource(SCAN_1)
        ctl = StateGraphController(scan_source=source, scheduler=scheduler)
        ctl.request_scan()
        assert source.started.wait(5)
        ctl.close()
        source.release.set()
        ctl.wait_for_scan(5)
        assert ctl.snapshot.source == "fallback"

    def test_stale_worker_keeps_newer_scan_in_flight(self, scheduler):
        first = BlockingSource(SCAN_1)
        second = BlockingSource(SCAN_2)
        ctl = StateGraphController(scan_source=first, scheduler=scheduler)
        assert ctl.request_scan()
        assert first.started.wait(5)
        stale_worker = ctl._worker
        ctl.cancel_scan()

        ctl.scan_source = second
        assert ctl.request_scan()
        assert second.started.wait(5)
        first.release.set()
        stale_worker.join(5)

        assert ctl.is_scanning
        assert not ctl.request_scan()
        assert ctl.snapshot.source == "fallback"

        second.release.set()
        ctl.wait_for_scan(5)
        assert not ctl.is_scanning
        assert ctl.previous_scan is SCAN_2
        ctl.close()


class TestUnexpectedFailures:
    def test_unlisted_exception_reported(self, make_controller):
        ctl = make_controller(RuntimeError("scanner crashed"), SCAN_1)
        assert not ctl.scan_now()
        assert "RuntimeError" in ctl.error
        assert "scanner crashed" in ctl.error
        assert not ctl.is_scanning
        assert ctl.scan_now()
        assert ctl.snapshot.is_scanned

    def test_deeply_nested_json_does_not_wedge(self, scheduler, tmp_path):
        from stategraph.scan_loader import FileScanSource
        path = tmp_path / "deep.json"
        path.write_text("[" * 200000 + "]" * 200000)
        ctl = StateGraphController(FileScanSource(str(path)), scheduler=scheduler)
        assert not ctl.scan_now()
        assert ctl.error
        assert not ctl.is_scanning
        path.write_text('{"states": [{"name": "Idle"}]}')
        assert ctl.scan_now()
        assert ctl.snapshot.state_ids() == ["scanned-Idle"]


class TestSimulationLifecycle:
    def test_enter_computes_nothing(self, make_controller):
        ctl = make_controller()
        ctl.enter_simulation()
        assert ctl.simulation_mode
        assert not ctl.simulation.is_tracing
        assert ctl.simulation.unreachable == frozenset()

    def test_clicks_route_to_simulation(self, make_controller):
        ctl = make_controller()
        ctl.enter_simulation()
        assert ctl.click("anim-idle")
        assert ctl.click("anim-walk")
        assert not ctl.click("anim-fall")
        assert ctl.simulation.path == ["anim-idle", "anim-walk"]
        assert ctl.active_id is None

    def test_click_outside_simulation_selects(self, make_controller):
        ctl = make_controller()
        assert ctl.click("anim-run")
        assert ctl.active_id == "anim-run"
        assert not ctl.click("missing")

    def test_exit_clears(self, make_controller):
        ctl = make_controller()
        ctl.enter_simulation()
        ctl.click("anim-idle")
        ctl.exit_simulation()
        assert ctl.simulation is None
        ctl.enter_simulation()
        assert not ctl.simulation.is_tracing

    def test_toggle(self, make_controller):
        ctl = make_controller()
        assert ctl.toggle_simulation() is True
        assert ctl.toggle_simulation() is False

    def test_reset(self, make_controller):
        ctl = make_controller()
        ctl.enter_simulation()
        ctl.click("anim-idle")
        ctl.reset_simulation()
        assert ctl.simulation_mode
        assert ctl.simulation.path == []

    def test_graph_change_discards_session(self, make_controller):
        ctl = make_controller(SCAN_1)
        ctl.enter_simulation()
        ctl.click("anim-idle")
        old = ctl.simulation
        ctl.scan_now()
        assert ctl.simulation is not old
        assert ctl.simulation.path == []
        assert ctl.simulation.snapshot is ctl.snapshot

    def test_failed_scan_keeps_session(self, make_controller):
        ctl = make_controller(ScanError("nope"))
        ctl.enter_simulation()
        ctl.click("anim-idle")
        ctl.scan_now()
        assert ctl.simulation.path == ["anim-idle"]


class TestElements:
    def test_progress_read_only(self, make_controller):
        progress = {"anim-idle": True}
        ctl = make_controller(progress=progress)
        nodes = [e for e in ctl.elements() if "source" not in e["data"]]
        done = {n["data"]["id"] for n in nodes if n["data"]["completed"]}
        assert done == {"anim-idle"}
        assert progress == {"anim-idle": True}

    def test_new_flags_follow_window(self, make_controller, scheduler):
        ctl = make_controller(SCAN_1, SCAN_2)
        ctl.scan_now()
        ctl.scan_now()
        new = {e["data"]["id"] for e in ctl.elements()
               if "source" not in e["data"] and e["data"]["isNew"]}
        assert new == {"scanned-Run"}
        scheduler.advance(5)
        assert not any(e["data"].get("isNew") for e in ctl.elements())
