"""CLI root — entry point for all jsonsift subcommands.

Entry points:
  jsonsift              (installed console script)
  python -m jsonsift

Command surface:
  jsonsift eval [EXPRESSION] [FILE]   query JSON / JSONL / log input
  jsonsift ingest [FILE]              show how input was read, with diagnostics
  jsonsift config show                print resolved configuration

Input is read from FILE when given, otherwise from stdin.
"""

import sys
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from pydantic import ValidationError

from jsonsift import __version__
from jsonsift.config import OutputSettings, Settings, get_settings
from jsonsift.logging import get_logger

if TYPE_CHECKING:
    from jsonsift.ingest import Ingestion

app = typer.Typer(
    name="jsonsift",
    help="Query JSON, JSON lines and log output containing JSON.",
    no_args_is_help=True,
)

_log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Global callback — runs before every subcommand
# ---------------------------------------------------------------------------


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"jsonsift {__version__}")
        raise typer.Exit()


@app.callback()
def _main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Print version and exit.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Log diagnostics (degraded lines, fallbacks) to stderr.",
    ),
) -> None:
    """Query JSON, JSON lines and log output containing JSON."""
    from jsonsift.logging import configure_logging

    settings = get_settings()
    if debug:
        settings = settings.model_copy(update={"debug": True})
    ctx.obj = settings
    configure_logging(settings)


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj if isinstance(ctx.obj, Settings) else get_settings()


def _fail(message: str, exc: Exception) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    _log.debug("command failed", error=str(exc), error_type=type(exc).__name__)
    return typer.Exit(1)


def _output_settings(settings: Settings, mode: str | None, stringifier: str | None) -> OutputSettings:
    overrides = {"mode": mode, "stringifier": stringifier}
    merged = {**settings.output.model_dump(), **{k: v for k, v in overrides.items() if v}}
    try:
        return OutputSettings.model_validate(merged)
    except ValidationError as exc:
        bad = ", ".join(str(err["loc"][0]) for err in exc.errors())
        raise _fail(f"invalid output option: {bad}", exc) from exc


def _use_color(output: OutputSettings) -> bool:
    if output.color == "always":
        return True
    if output.color == "never":
        return False
    return sys.stdout.isatty()


def _ingest(file: Path | None, settings: Settings) -> "Ingestion":
    from jsonsift.ingest import IngestError, ingest_file, ingest_text

    try:
        if file is not None:
            return ingest_file(file, settings=settings.ingest)
        try:
            text = sys.stdin.read()
        except UnicodeDecodeError as exc:
            raise IngestError(f"cannot read stdin: {exc}") from exc
        return ingest_text(text, settings=settings.ingest)
    except IngestError as exc:
        raise _fail(f"could not parse input as JSON or as JSON lines: {exc}", exc) from exc


_OUTPUT_OPTION = typer.Option(
    None,
    "--output",
    "-o",
    help="Output mode: raw, json, json_pretty or jsonl.  Overrides JSONSIFT_OUTPUT__MODE.",
)
_STRINGIFIER_OPTION = typer.Option(
    None,
    "--stringifier",
    help="stable (sorted keys) or default (input order).",
)


# ---------------------------------------------------------------------------
# eval
# ---------------------------------------------------------------------------


@app.command("eval")
def eval_(
    ctx: typer.Context,
    expression: str = typer.Argument(".", help="Query expression, e.g. '.items[].id'."),
    file: Path | None = typer.Argument(None, help="Input file (default: stdin)."),
    output: str | None = _OUTPUT_OPTION,
    stringifier: str | None = _STRINGIFIER_OPTION,
) -> None:
    """Evaluate EXPRESSION against the input and print the result.

    The input may be one JSON document, JSON lines, or log output where some
    lines end in JSON.  In the last two cases the expression sees a list of
    records, one per line (or per pretty-printed object).
    """
    from jsonsift.evaluate import ExpressionError, compile_expression
    from jsonsift.helpers import HelperLoadError, build_registry
    from jsonsift.output import OutputError, render

    settings = _settings(ctx)
    out = _output_settings(settings, output, stringifier)

    try:
        evaluator = compile_expression(expression)
    except ExpressionError as exc:
        raise _fail(f"invalid expression: {exc}", exc) from exc

    try:
        helpers = build_registry(settings.helpers.path)
    except HelperLoadError as exc:
        raise _fail(str(exc), exc) from exc

    ingestion = _ingest(file, settings)
    _log.debug("input ingested", mode=ingestion.mode, degraded=ingestion.error_count)

    try:
        result = evaluator(ingestion.data, helpers)
    except ExpressionError as exc:
        raise _fail(str(exc), exc) from exc

    try:
        color = _use_color(out)
        typer.echo(render(result, out, color=color), color=color)
    except OutputError as exc:
        raise _fail(str(exc), exc) from exc


# ---------------------------------------------------------------------------
# ingest
# ---------------------------------------------------------------------------


@app.command("ingest")
def ingest(
    ctx: typer.Context,
    file: Path | None = typer.Argument(None, help="Input file (default: stdin)."),
    output: str | None = _OUTPUT_OPTION,
    stringifier: str | None = _STRINGIFIER_OPTION,
    show_degraded: bool = typer.Option(
        False,
        "--show-degraded",
        help="List every line that failed to parse.",
    ),
) -> None:
    """Print the ingested input and a summary of how it was read.

    The summary (on stderr) reports whether the input was a single document
    or was read line by line, how many records were produced, and how many
    lines were degraded to raw text after a failed parse.
    """
    from jsonsift.output import OutputError, render

    settings = _settings(ctx)
    out = _output_settings(settings, output, stringifier)
    ingestion = _ingest(file, settings)

    try:
        color = _use_color(out)
        typer.echo(render(ingestion.data, out, color=color), color=color)
    except OutputError as exc:
        raise _fail(str(exc), exc) from exc

    result = ingestion.result
    if result is None:
        typer.echo("\nIngest complete — single JSON document", err=True)
        return
    typer.echo("\nIngest complete — line mode", err=True)
    typer.echo(f"  lines read:       {result.lines_read}", err=True)
    typer.echo(f"  records:          {len(result.records)}", err=True)
    typer.echo(f"  degraded lines:   {result.error_count}", err=True)
    if result.dangling_lines:
        typer.echo(f"  unclosed object:  {result.dangling_lines} line(s)", err=True)
    if show_degraded:
        for bad in result.degraded:
            typer.echo(f"  line {bad.line_number}: {bad.reason}", err=True)


# ---------------------------------------------------------------------------
# config subcommands
# ---------------------------------------------------------------------------

_config_app = typer.Typer(help="Inspect resolved configuration.")
app.add_typer(_config_app, name="config")


@_config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Print the fully-resolved configuration and exit.

    Shows which config file was loaded and the final value of every setting
    after environment-variable overrides are applied.  Useful for confirming
    that JSONSIFT_* overrides are being picked up correctly.
    """
    from jsonsift.config import _config_file

    settings = _settings(ctx)

    typer.echo(f"\n  config : {_config_file()}\n")

    dumped = settings.model_dump()
    typer.echo(f"  debug = {dumped.pop('debug')}\n")
    for section_name, section in dumped.items():
        typer.echo(f"  [{section_name}]")
        width = max(len(k) for k in section)
        for key, val in section.items():
            typer.echo(f"  {key.ljust(width)} = {val}")
        typer.echo()
