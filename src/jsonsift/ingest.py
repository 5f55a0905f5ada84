"""Input ingestion: whole document first, line mode as the fallback.

``ingest_text(text, settings=...)`` and ``ingest_file(path, settings=...)``
are the entry points.  Both follow the same two steps:

1. Parse the entire input with :func:`~jsonsift.document.parse_document`.
   On success that value is the result and line mode never runs.
2. Otherwise classify the input line by line with
   :func:`~jsonsift.parser.classify_lines`.  Files are re-read through the
   open handle so line mode never holds a second full copy of the input.

Read failures (missing file, permissions, undecodable bytes) and input with
no content at all raise :class:`IngestError`; everything else degrades
per line and is reported through :class:`Ingestion`.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from jsonsift.config import IngestSettings
from jsonsift.document import DocumentParseFailure, parse_document
from jsonsift.logging import get_logger
from jsonsift.parser import IngestionResult, classify_lines

_log = get_logger(__name__)


class IngestError(Exception):
    """Input could not be read as a document or as lines."""


class EmptyInputError(IngestError):
    """Input contained nothing but whitespace."""


@dataclass(frozen=True)
class Ingestion:
    """What was read and how.

    Attributes:
        data:   The parsed document, or the list of line-mode records.
        mode:   ``"document"`` or ``"lines"``.
        result: Line-mode details; ``None`` in document mode.
    """

    data: Any
    mode: Literal["document", "lines"]
    result: IngestionResult | None = None

    @property
    def error_count(self) -> int:
        return self.result.error_count if self.result is not None else 0


def _try_document(text: str) -> tuple[bool, Any]:
    try:
        return True, parse_document(text)
    except DocumentParseFailure as exc:
        _log.debug("not a single JSON document, using line mode", reason=str(exc))
        return False, None


def _finish(result: IngestionResult) -> Ingestion:
    if result.degraded:
        _log.debug(
            "line mode finished with degraded lines",
            records=len(result.records),
            degraded=result.error_count,
        )
    return Ingestion(data=result.records, mode="lines", result=result)


def ingest_text(text: str, *, settings: IngestSettings | None = None) -> Ingestion:
    """Ingest buffered *text* (typically all of stdin).

    Raises:
        EmptyInputError: if *text* is empty or whitespace only.
    """
    settings = settings or IngestSettings()
    if not text.strip():
        raise EmptyInputError("input is empty")

    ok, value = _try_document(text)
    if ok:
        return Ingestion(data=value, mode="document")

    result = classify_lines(
        text.split("\n"),
        annotate_errors=settings.annotate_errors,
        emit_dangling_block=settings.emit_dangling_block,
    )
    return _finish(result)


def ingest_file(path: Path, *, settings: IngestSettings | None = None) -> Ingestion:
    """Ingest the UTF-8 file at *path*.

    Raises:
        IngestError:     if the file cannot be opened or decoded.
        EmptyInputError: if the file holds no non-blank content.
    """
    settings = settings or IngestSettings()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise IngestError(f"cannot read {path}: {exc}") from exc
    if not text.strip():
        raise EmptyInputError(f"{path} is empty")

    ok, value = _try_document(text)
    if ok:
        return Ingestion(data=value, mode="document")
    del text

    try:
        with path.open(encoding="utf-8") as fh:
            result = classify_lines(
                fh,
                annotate_errors=settings.annotate_errors,
                emit_dangling_block=settings.emit_dangling_block,
            )
    except (OSError, UnicodeDecodeError) as exc:
        raise IngestError(f"cannot read {path} as lines: {exc}") from exc
    return _finish(result)
