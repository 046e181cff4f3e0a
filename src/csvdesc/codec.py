from __future__ import annotations

import csv as _csv
import io
import logging
from typing import Any, BinaryIO, Iterable, Iterator, List

from .descriptor import CsvDescriptor
from .errors import CsvRecordError

log = logging.getLogger(__name__)


def _assign(obj: Any, name: str, value: Any) -> None:
    params = getattr(type(obj), "__dataclass_params__", None)
    if params is not None and params.frozen:
        # same bypass dataclasses use in a frozen __init__
        object.__setattr__(obj, name, value)
    else:
        setattr(obj, name, value)


def row_to_object(descriptor: CsvDescriptor, row: List[str], rownum: int) -> Any:
    """Build one target instance from a tokenized CSV row."""
    if len(row) != len(descriptor.columns):
        raise CsvRecordError(
            f"expected {len(descriptor.columns)} column(s), got {len(row)}",
            row=rownum,
        )
    obj = descriptor.target_type()
    for col, cell in zip(descriptor.columns, row):
        if cell == descriptor.null_value:
            value = None
        else:
            try:
                value = col.parse(cell)
            except ValueError as e:
                raise CsvRecordError(str(e), row=rownum, column=col.field_name) from e
        _assign(obj, col.field_name, value)
    return obj


def object_to_row(descriptor: CsvDescriptor, obj: Any, rownum: int) -> List[str]:
    """Render one target instance as a list of CSV cells."""
    cells: List[str] = []
    for col in descriptor.columns:
        value = getattr(obj, col.field_name, None)
        if value is None:
            cells.append(descriptor.null_value)
            continue
        try:
            cells.append(col.format(value))
        except (TypeError, ValueError) as e:
            raise CsvRecordError(str(e), row=rownum, column=col.field_name) from e
    return cells


def read_objects(descriptor: CsvDescriptor, stream: BinaryIO, *, header: bool = False) -> Iterator[Any]:
    """
    Yield one ``descriptor.target_type`` instance per CSV row of ``stream``.

    Blank lines are skipped. With ``header=True`` the first row is skipped.
    The stream is not closed.
    """
    text = io.TextIOWrapper(stream, encoding=descriptor.charset, newline="")
    try:
        reader = _csv.reader(text, delimiter=descriptor.separator)
        for rownum, row in enumerate(reader, start=1):
            if header and rownum == 1:
                continue
            if not row:
                continue
            if descriptor.debug:
                log.debug("row %d: %r", rownum, row)
            yield row_to_object(descriptor, row, rownum)
    finally:
        text.detach()


def write_objects(
    descriptor: CsvDescriptor,
    objects: Iterable[Any],
    stream: BinaryIO,
    *,
    header: bool = False,
) -> int:
    """Write ``objects`` as CSV rows to ``stream``; returns the number of data rows."""
    text = io.TextIOWrapper(stream, encoding=descriptor.charset, newline="")
    n = 0
    try:
        writer = _csv.writer(text, delimiter=descriptor.separator, lineterminator="\n")
        if header:
            writer.writerow(descriptor.field_names)
        for n, obj in enumerate(objects, start=1):
            row = object_to_row(descriptor, obj, n)
            if descriptor.debug:
                log.debug("row %d: %r", n, row)
            writer.writerow(row)
        text.flush()
    finally:
        text.detach()
    return n


def object_to_dict(descriptor: CsvDescriptor, obj: Any) -> dict:
    return {c.field_name: getattr(obj, c.field_name, None) for c in descriptor.columns}

