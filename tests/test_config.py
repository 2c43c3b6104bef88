"""Tests for runtime settings."""
from stategraph.config import DEFAULT_PORT, DIFF_WINDOW_SECONDS, load_settings


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings([], {})
        assert settings.port == DEFAULT_PORT
        assert settings.scan_path == ""
        assert settings.diff_window == DIFF_WINDOW_SECONDS

    def test_environment(self):
        settings = load_settings(None, {
            "STATEGRAPH_PORT": "9000",
            "STATEGRAPH_SCAN_PATH": "scan.json",
            "STATEGRAPH_DIFF_WINDOW": "2.5",
        })
        assert settings.port == 9000
        assert settings.scan_path == "scan.json"
        assert settings.diff_window == 2.5

    def test_argv_port_wins(self):
        settings = load_settings(["prog", "8123"], {"STATEGRAPH_PORT": "9000"})
        assert settings.port == 8123

    def test_bad_values_fall_back(self):
        settings = load_settings(["prog", "abc"], {"STATEGRAPH_DIFF_WINDOW": "soon"})
        assert settings.port == DEFAULT_PORT
        assert settings.diff_window == DIFF_WINDOW_SECONDS

    def test_negative_window_clamped(self):
        assert load_settings([], {"STATEGRAPH_DIFF_WINDOW": "-1"}).diff_window == 0.0
