from __future__ import annotations

import importlib
import json
import logging
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

import pandas as _pd
import typer

from csvdesc.codec import object_to_dict, read_objects
from csvdesc.descriptor import CsvDescriptor, descriptor_to_dict, load_descriptor_file
from csvdesc.errors import CsvDescriptorError, CsvRecordError

app = typer.Typer(help="csv-descriptor CLI")

log = logging.getLogger("csvdesc")
_handler: Optional[logging.Handler] = None


def _configure_logging(verbose: bool) -> None:
    global _handler
    # rebind to the current stderr on every invocation
    if _handler is not None:
        log.removeHandler(_handler)
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("[csvdesc] %(message)s"))
    log.addHandler(_handler)
    log.setLevel(logging.DEBUG if verbose else logging.INFO)


def _import_modules(modules: Optional[List[str]]) -> None:
    for name in modules or []:
        try:
            importlib.import_module(name)
        except ImportError as e:
            raise typer.BadParameter(f"cannot import {name}: {e}") from e


def _load(config: Path, modules: Optional[List[str]], verbose: bool) -> CsvDescriptor:
    _configure_logging(verbose)
    _import_modules(modules)
    try:
        descriptor = load_descriptor_file(config)
    except CsvDescriptorError as e:
        typer.secho(f"{e} [{e.reason.value}]", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    if descriptor.debug:
        log.setLevel(logging.DEBUG)
    return descriptor


def _jsonable(v: Any) -> Any:
    if isinstance(v, Enum):
        return v.value
    if isinstance(v, (date, datetime, time)):
        return v.isoformat()
    if isinstance(v, Decimal):
        return str(v)
    return v


@app.command()
def describe(
    config: Path = typer.Argument(..., exists=True, dir_okay=False, help="Descriptor YAML"),
    modules: List[str] = typer.Option(None, "--import", "-i", help="Module registering target types (repeatable)"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Validate a descriptor and print its compiled form as JSON."""
    descriptor = _load(config, modules, verbose)
    typer.echo(json.dumps(descriptor_to_dict(descriptor), indent=2))


@app.command()
def read(
    config: Path = typer.Argument(..., exists=True, dir_okay=False, help="Descriptor YAML"),
    data: Path = typer.Argument(..., help="CSV file to read"),
    modules: List[str] = typer.Option(None, "--import", "-i", help="Module registering target types (repeatable)"),
    header: bool = typer.Option(False, "--header/--no-header", help="Skip the first row"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write .jsonl, .csv or .parquet instead of stdout"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Map CSV rows to target instances and emit them as records."""
    descriptor = _load(config, modules, verbose)
    data = data.expanduser().resolve()
    if not data.is_file():
        raise typer.BadParameter(f"CSV file not found: {data}")

    records = []
    with data.open("rb") as f:
        try:
            for obj in read_objects(descriptor, f, header=header):
                rec = {k: _jsonable(v) for k, v in object_to_dict(descriptor, obj).items()}
                records.append(rec)
        except CsvRecordError as e:
            typer.secho(str(e), fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)
    log.info("Read %d record(s) from %s", len(records), data)

    if out is None:
        for rec in records:
            typer.echo(json.dumps(rec, ensure_ascii=False))
        return

    out = out.expanduser().resolve()
    out.parent.mkdir(parents=True, exist_ok=True)
    suffix = out.suffix.lower()
    if suffix == ".jsonl":
        with out.open("w", encoding="utf-8") as f:
            for rec in records:
                f.write(json.dumps(rec, ensure_ascii=False) + "\n")
    elif suffix in (".csv", ".parquet"):
        df = _pd.DataFrame(records, columns=list(descriptor.field_names))
        if suffix == ".csv":
            df.to_csv(out, index=False)
        else:
            df.to_parquet(out, index=False)
    else:
        raise typer.BadParameter(f"unsupported output format: {out.suffix}")
    typer.secho(f"Wrote {out} ({len(records)} rows)", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
