"""Command-line interface for the ERP document extractor."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import typer

from .config import load_config
from .logging import configure_logging, get_logger
from .models import InputFormat
from .pipeline import parse_document
from .sources import EXTENSION_FORMATS, load_source

logger = get_logger(__name__)

app = typer.Typer(add_completion=False, help="ERP quotation / sales-order extractor")


@app.command("parse")
def parse_command(
    paths: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Documents to parse"),
    format_value: Optional[str] = typer.Option(
        None,
        "--format",
        help="Force the input form (markup, delimited, plain_text) instead of guessing from the extension",
    ),
    pretty: bool = typer.Option(False, "--pretty", help="Indent the JSON output"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override ERP2JSON_LOG_LEVEL"),
) -> None:
    try:
        config = load_config()
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    configure_logging(log_level or config.log_level)

    input_format = _parse_format(format_value)
    failures = 0
    for path in paths:
        try:
            raw = load_source(path, input_format)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="PATHS") from exc
        result = parse_document(raw, config)
        if not result.success:
            failures += 1
        typer.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2 if pretty else None))

    if failures:
        logger.warning("parse_failures", count=failures, total=len(paths))
        raise typer.Exit(code=1)


@app.command("formats")
def formats_command() -> None:
    for fmt in InputFormat:
        extensions = sorted(ext for ext, target in EXTENSION_FORMATS.items() if target is fmt)
        typer.echo(f"{fmt.value}: {', '.join(extensions)}")


def _parse_format(value: Optional[str]) -> Optional[InputFormat]:
    if value is None:
        return None
    try:
        return InputFormat(value.strip().lower())
    except ValueError as exc:
        choices = ", ".join(fmt.value for fmt in InputFormat)
        raise typer.BadParameter(f"Format must be one of: {choices}", param_hint="--format") from exc


def main():
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
