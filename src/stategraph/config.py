"""Runtime settings for the state graph visualizer."""
from __future__ import annotations
import os
from dataclasses import dataclass

DEFAULT_PORT = 8050
DIFF_WINDOW_SECONDS = 5.0

# Layout constants, in the normalized 0-100 coordinate space
CIRCLE_MAX_NODES = 8
CIRCLE_CENTER = (50.0, 50.0)
CIRCLE_RADII = (34.0, 32.0)
GRID_PAD = 14.0
GRID_SPAN = 72.0

# Canvas size used to turn normalized positions into preset pixels
CANVAS_WIDTH = 800
CANVAS_HEIGHT = 400


@dataclass
class Settings:
    port: int = DEFAULT_PORT
    scan_path: str = ""
    diff_window: float = DIFF_WINDOW_SECONDS
    canvas_width: int = CANVAS_WIDTH
    canvas_height: int = CANVAS_HEIGHT


def load_settings(argv: list[str] | None = None,
                  environ: dict[str, str] | None = None) -> Settings:
    """Build settings from environment variables, then ``argv[1]`` as port.

    Unparseable values fall back to the defaults.
    """
    env = os.environ if environ is None else environ
    settings = Settings()

    port = env.get("STATEGRAPH_PORT", "")
    if argv and len(argv) > 1:
        port = argv[1]
    if port:
        try:
            settings.port = int(port)
        except ValueError:
            pass

    settings.scan_path = env.get("STATEGRAPH_SCAN_PATH", "")

    window = env.get("STATEGRAPH_DIFF_WINDOW", "")
    if window:
        try:
            settings.diff_window = max(float(window), 0.0)
        except ValueError:
            pass

    return settings
