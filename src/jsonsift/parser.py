"""Line-mode classification of JSONL and JSON-bearing log output.

Used when the input is not a single JSON document.  Each non-blank line is
classified in this order:

1. A complete container on its own — contains ``{`` and ends with ``}``, or
   starts with ``[`` and ends with ``]``.  Text before the first ``{`` is a
   log prefix and is kept on the record as ``_line`` unless the object
   already has that key::

       2022-10-18T14:07:53Z [INFO] config: {"port":3000}
       → {"_line": "2022-10-18T14:07:53Z [INFO] config: ", "port": 3000}

2. A line that is exactly ``{`` opens a block.
3. While a block is open every line is appended to it; a line that is
   exactly ``}`` closes it and the joined text is parsed as one record.
4. Anything else is kept as ``{"_line": <text>}``.

A line or block whose parse fails is *degraded*: it is kept as a raw
``_line`` record, tallied as a :class:`BadLine`, and processing carries on.

The block grammar is intentionally narrow: one open block at a time, no
brace-depth tracking.  Pretty-printed top-level objects with the braces on
their own lines reassemble; anything more elaborate degrades line by line.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from jsonsift.document import loads
from jsonsift.logging import get_logger

LINE_FIELD = "_line"
ERROR_FIELD = "_lineError"

_log = get_logger(__name__)


@dataclass(frozen=True)
class BadLine:
    """A line (or closed block) whose JSON parse failed."""

    line_number: int
    raw_text: str
    reason: str


@dataclass
class OpenBlock:
    """A pretty-printed object being reassembled, from its ``{`` line on."""

    start_line: int
    lines: list[str] = field(default_factory=list)

    def text(self) -> str:
        return "\n".join(self.lines)


@dataclass(frozen=True)
class IngestionResult:
    """Outcome of classifying a line stream.

    Attributes:
        records:        Parsed values in input order.
        degraded:       One :class:`BadLine` per failed parse attempt.
        lines_read:     Non-blank lines classified.
        dangling_lines: Lines held in a block still open at end of input.
    """

    records: list[Any]
    degraded: tuple[BadLine, ...] = ()
    lines_read: int = 0
    dangling_lines: int = 0

    @property
    def error_count(self) -> int:
        return len(self.degraded)


def _describe(exc: ValueError) -> str:
    if isinstance(exc, json.JSONDecodeError):
        return f"invalid JSON: {exc.msg} (line {exc.lineno}, col {exc.colno})"
    return f"invalid JSON: {exc}"


def _container_start(line: str) -> int | None:
    """Return the column where a single-line container starts, or None."""
    if line.startswith("[") and line.endswith("]"):
        return 0
    if line.endswith("}"):
        index = line.find("{")
        if index >= 0:
            return index
    return None


class LineClassifier:
    """Stateful classifier fed one line at a time.

    Owned by a single ingestion run.  Call :meth:`feed` for each line in
    order, then :meth:`finish` once to collect the result.
    """

    def __init__(self, *, annotate_errors: bool = False, emit_dangling_block: bool = False) -> None:
        self.annotate_errors = annotate_errors
        self.emit_dangling_block = emit_dangling_block
        self._records: list[Any] = []
        self._degraded: list[BadLine] = []
        self._block: OpenBlock | None = None
        self._lines_read = 0

    @property
    def in_block(self) -> bool:
        return self._block is not None

    def feed(self, line_number: int, line: str) -> None:
        """Classify *line* (already stripped) and update state."""
        if not line:
            return
        self._lines_read += 1

        if self._block is None:
            start = _container_start(line)
            if start is not None:
                self._single_line(line_number, line, start)
            elif line == "{":
                self._block = OpenBlock(start_line=line_number, lines=[line])
            else:
                self._records.append({LINE_FIELD: line})
            return

        self._block.lines.append(line)
        if line == "}":
            block, self._block = self._block, None
            text = block.text()
            try:
                self._records.append(loads(text))
            except ValueError as exc:
                self._degrade(block.start_line, text, exc)

    def finish(self) -> IngestionResult:
        """Close the stream and return the accumulated :class:`IngestionResult`."""
        dangling = 0
        if self._block is not None:
            block, self._block = self._block, None
            dangling = len(block.lines)
            if self.emit_dangling_block:
                self._degrade_text(block.start_line, block.text(), "unterminated multi-line object")
            else:
                _log.debug(
                    "unterminated multi-line object dropped",
                    line_number=block.start_line,
                    lines=dangling,
                )
        return IngestionResult(
            records=self._records,
            degraded=tuple(self._degraded),
            lines_read=self._lines_read,
            dangling_lines=dangling,
        )

    # ------------------------------------------------------------------

    def _single_line(self, line_number: int, line: str, start: int) -> None:
        try:
            doc = loads(line[start:])
        except ValueError as exc:
            self._degrade(line_number, line, exc)
            return
        if start > 0 and isinstance(doc, dict) and LINE_FIELD not in doc:
            doc[LINE_FIELD] = line[:start]
        self._records.append(doc)

    def _degrade(self, line_number: int, text: str, exc: ValueError) -> None:
        self._degrade_text(line_number, text, _describe(exc))

    def _degrade_text(self, line_number: int, text: str, reason: str) -> None:
        bad = BadLine(line_number=line_number, raw_text=text, reason=reason)
        self._degraded.append(bad)
        _log.debug("line degraded", line_number=line_number, reason=reason)
        record = {LINE_FIELD: text}
        if self.annotate_errors:
            record[ERROR_FIELD] = reason
        self._records.append(record)


def classify_lines(
    lines: Iterable[str],
    *,
    annotate_errors: bool = False,
    emit_dangling_block: bool = False,
) -> IngestionResult:
    """Classify *lines* in order and return an :class:`IngestionResult`.

    Args:
        lines:               Raw lines (newlines and surrounding whitespace
                             are stripped here; blank lines are skipped but
                             still count toward line numbering).
        annotate_errors:     Add ``_lineError`` to degraded records.
        emit_dangling_block: Keep a block left open at end of input as a
                             degraded record instead of dropping it.
    """
    classifier = LineClassifier(
        annotate_errors=annotate_errors,
        emit_dangling_block=emit_dangling_block,
    )
    for line_number, raw in enumerate(lines, start=1):
        classifier.feed(line_number, raw.strip())
    return classifier.finish()
