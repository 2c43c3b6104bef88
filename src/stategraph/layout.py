"""Deterministic layout: ellipse for small graphs, grid for large ones.

Positions live in a normalized 0-100 space (percent of the container). They
are recomputed from scratch for every snapshot and never carried over.
"""
from __future__ import annotations
import math
from dataclasses import dataclass

from stategraph.config import (
    CIRCLE_MAX_NODES, CIRCLE_CENTER, CIRCLE_RADII, GRID_PAD, GRID_SPAN,
)


@dataclass(frozen=True)
class Position:
    x: float
    y: float


def layout(count: int) -> list[Position]:
    """Positions for ``count`` nodes, index 0 first."""
    if count <= 0:
        return []
    if count <= CIRCLE_MAX_NODES:
        return _circular(count)
    return _grid(count)


def layout_states(states: list) -> list[Position]:
    """Positions for an ordered list of states (only its length matters)."""
    return layout(len(states))


def _circular(count: int) -> list[Position]:
    cx, cy = CIRCLE_CENTER
    rx, ry = CIRCLE_RADII
    positions = []
    for i in range(count):
        # Index 0 at the top, proceeding clockwise
        angle = (i / count) * 2 * math.pi - math.pi / 2
        positions.append(Position(cx + rx * math.cos(angle),
                                  cy + ry * math.sin(angle)))
    return positions


def _grid(count: int) -> list[Position]:
    cols = math.ceil(math.sqrt(count))
    rows = math.ceil(count / cols)
    positions = []
    for i in range(count):
        col = i % cols
        row = i // cols
        positions.append(Position(_grid_axis(col, cols), _grid_axis(row, rows)))
    return positions


def _grid_axis(index: int, cells: int) -> float:
    if cells > 1:
        return GRID_PAD + (index / (cells - 1)) * GRID_SPAN
    return GRID_PAD + GRID_SPAN / 2


def to_pixels(position: Position, width: int, height: int) -> dict:
    """Scale a normalized position to a Cytoscape preset position dict."""
    return {
        "x": round(position.x / 100 * width, 2),
        "y": round(position.y / 100 * height, 2),
    }
