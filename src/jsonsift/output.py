"""Serialise evaluated results for stdout.

Modes (``OutputSettings.mode``):

  raw          strings verbatim, everything else compact JSON
  json         compact JSON on one line
  json_pretty  indented JSON, colourised when writing to a terminal
  jsonl        one compact JSON line per element of a list

Strings, numbers and booleans are always printed raw, whatever the mode, so
``jsonsift eval .name`` prints ``alice`` rather than ``"alice"``.
"""

from __future__ import annotations

import io
import json
from typing import Any

from rich.console import Console

from jsonsift.config import OutputSettings


class OutputError(ValueError):
    """A result cannot be rendered in the requested mode."""


def stringify(data: Any, stringifier: str = "stable", *, indent: int | None = None) -> str:
    """Serialise *data* as JSON.

    ``stable`` sorts object keys so output is deterministic; ``default``
    keeps insertion order.
    """
    if stringifier not in ("stable", "default"):
        raise OutputError(f"Invalid stringifier: {stringifier}")
    separators = (",", ": ") if indent is not None else (",", ":")
    return json.dumps(
        data,
        sort_keys=stringifier == "stable",
        ensure_ascii=False,
        indent=indent,
        separators=separators,
        allow_nan=False,
    )


def _colorize(text: str) -> str:
    buf = io.StringIO()
    console = Console(
        file=buf, force_terminal=True, color_system="standard", no_color=False, soft_wrap=True
    )
    # print_json re-indents; object order is already settled by stringify().
    console.print_json(text, indent=2)
    return buf.getvalue().rstrip("\n")


def _render(value: Any, settings: OutputSettings, color: bool) -> str:
    if settings.mode == "raw" or isinstance(value, str | int | float):
        return value if isinstance(value, str) else stringify(value, "default")
    if settings.mode == "jsonl":
        if not isinstance(value, list):
            raise OutputError(f"jsonl output needs a list, got {type(value).__name__}")
        return "\n".join(stringify(item, settings.stringifier) for item in value)
    if settings.mode == "json":
        return stringify(value, settings.stringifier)
    text = stringify(value, settings.stringifier, indent=2)
    return _colorize(text) if color else text


def render(value: Any, settings: OutputSettings, *, color: bool = False) -> str:
    """Return the text to print for *value* (without the trailing newline).

    Raises:
        OutputError: for ``jsonl`` with a non-list value, or values that are
                     not JSON-serialisable.
    """
    try:
        return _render(value, settings, color)
    except OutputError:
        raise
    except (TypeError, ValueError) as exc:
        raise OutputError(f"result is not JSON-serialisable: {exc}") from exc
