"""Shared fixtures for stategraph tests."""
from __future__ import annotations
import os
import sys
import pytest

# Ensure src/ is on the path so stategraph is importable without install
_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_SRC = os.path.join(_ROOT, "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from stategraph.graph_model import (
    ScanPayload, ScannedState, ScannedTransition, build_snapshot,
)
from stategraph.diff_engine import ManualScheduler
from stategraph.controller import StateGraphController

EXAMPLES_DIR = os.path.join(_ROOT, "examples")


def example_path(name: str) -> str:
    return os.path.join(EXAMPLES_DIR, name)


def make_scan(names, edges=(), annotated=()) -> ScanPayload:
    """Build a ScanPayload from state names and (from, to[, rule]) tuples."""
    return ScanPayload(
        states=tuple(ScannedState(n, n in annotated) for n in names),
        transitions=tuple(ScannedTransition(*e) for e in edges),
    )


# --------------- Snapshots ---------------

@pytest.fixture(scope="session")
def fallback():
    return build_snapshot(None)


@pytest.fixture
def cycle_scan():
    """A->B->C->A plus isolated D."""
    return make_scan(
        ["A", "B", "C", "D"],
        [("A", "B"), ("B", "C"), ("C", "A")],
    )


@pytest.fixture
def cycle_snapshot(cycle_scan):
    return build_snapshot(cycle_scan)


@pytest.fixture
def combat_scan():
    return make_scan(
        ["Locomotion", "Attacking", "Dodging", "HitReact", "Death"],
        [
            ("Locomotion", "Attacking", "Input.Attack"),
            ("Locomotion", "Dodging", "Input.Dodge"),
            ("Attacking", "Locomotion", "Montage ends"),
            ("Attacking", "HitReact", "State.Hit"),
            ("Dodging", "Locomotion", "Montage ends"),
            ("HitReact", "Locomotion", "Recover"),
            ("HitReact", "Death", "HP <= 0"),
        ],
        annotated={"Attacking", "Dodging", "HitReact", "Death"},
    )


# --------------- Controller ---------------

@pytest.fixture
def scheduler():
    return ManualScheduler()


class QueueSource:
    """Scan source returning queued payloads or raising queued exceptions."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def make_controller(scheduler):
    created = []

    def _make(*results, **kwargs):
        ctl = StateGraphController(scan_source=QueueSource(*results),
                                   scheduler=scheduler, **kwargs)
        created.append(ctl)
        return ctl

    yield _make
    for ctl in created:
        ctl.close()
