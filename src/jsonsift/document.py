"""Whole-document JSON parsing.

``parse_document(text)`` is the first ingestion attempt: the entire input is
handed to the JSON decoder as one value (object, array or scalar).  Any
syntax error surfaces as :class:`DocumentParseFailure`, which callers treat
as the signal to fall back to line mode.

``loads`` is the shared decode primitive.  It rejects ``NaN``, ``Infinity``
and ``-Infinity``, which Python's :mod:`json` would otherwise accept but
which are not JSON.
"""

from __future__ import annotations

import json
from typing import Any


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name!r}")


def loads(text: str) -> Any:
    """Decode *text* as strict JSON.

    Raises:
        json.JSONDecodeError: on malformed input.
        ValueError:           on ``NaN`` / ``Infinity`` tokens, or nesting too
                              deep for the decoder.
    """
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except RecursionError:
        raise ValueError("JSON nested too deeply") from None


class DocumentParseFailure(ValueError):
    """The input is not a single JSON document."""

    def __init__(self, msg: str, lineno: int | None = None, colno: int | None = None) -> None:
        self.msg = msg
        self.lineno = lineno
        self.colno = colno
        where = f" (line {lineno}, col {colno})" if lineno is not None else ""
        super().__init__(f"{msg}{where}")


def parse_document(text: str) -> Any:
    """Parse *text* as one JSON value and return it verbatim.

    Raises:
        DocumentParseFailure: if *text* is not exactly one valid JSON value.
    """
    try:
        return loads(text)
    except json.JSONDecodeError as exc:
        raise DocumentParseFailure(exc.msg, exc.lineno, exc.colno) from exc
    except ValueError as exc:
        raise DocumentParseFailure(str(exc)) from exc
