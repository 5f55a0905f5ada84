"""Shared pytest helpers and fixtures for the jsonsift test suite.

FIXTURE_DIR                 — tests/fixtures/ (sample JSON, JSONL, log input)
fixture_path(name)          — absolute path of a fixture file
write_lines(tmp_path, ...)  — write lines to a temp file and return its path
_isolate_state              — autouse: clear settings cache and structlog state
"""

from pathlib import Path

import pytest
import structlog

FIXTURE_DIR = Path(__file__).parent / "fixtures"


def fixture_path(name: str) -> Path:
    """Return ``tests/fixtures/<name>``."""
    return FIXTURE_DIR / name


def write_lines(tmp_path: Path, lines: list[str], name: str = "input.log") -> Path:
    """Write *lines* (newline-terminated) to a temp file and return its path."""
    p = tmp_path / name
    p.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return p


@pytest.fixture(autouse=True)
def _isolate_state(monkeypatch):
    """Isolate each test from the environment, the settings cache and structlog."""
    from jsonsift.config import get_settings

    for var in ("JSONSIFT_CONFIG_FILE", "JSONSIFT_DEBUG"):
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    yield
    get_settings.cache_clear()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
