"""CSV row sources and sinks used by the aggregation engine.

The engine itself only sees ``(header, rows)`` pairs and hands back
sequences of strings to write; quoting and escaping stay in ``csv``.
"""

from __future__ import annotations

import csv
import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Sequence, Tuple

from .domain_types import COMPACT_COLUMNS, INPUT_COLUMNS
from .errors import FlowIOError, MalformedRowError

logger = logging.getLogger(__name__)

Row = Sequence[str]


@dataclass
class RowSource:
    """Header plus a lazily consumed iterator over data rows."""

    header: Tuple[str, ...]
    rows: Iterator[Row]
    name: str = "<rows>"


def _check_width(
    row: Sequence[str], width: int, *, path: Path, row_number: int
) -> None:
    if len(row) != width:
        raise MalformedRowError(
            f"{path}: expected {width} fields, saw {len(row)}", row_number=row_number
        )


@contextmanager
def open_input_rows(
    path: str | os.PathLike[str],
    *,
    chunksize: int = 100_000,
    usecols: Optional[Sequence[str]] = INPUT_COLUMNS,
    on_rows: Optional[Callable[[int], None]] = None,
) -> Iterator[RowSource]:
    """Stream an upstream flow export in chunks of ``chunksize`` rows.

    Every value stays a string so counters such as ``3e+05`` reach the
    decoder untouched, and only ``usecols`` are handed on. Header names are
    stripped of surrounding whitespace before they are matched. Each data
    row must have exactly as many fields as the header; shorter or longer
    rows raise :class:`MalformedRowError` with their row number.
    ``on_rows`` is invoked with the size of each chunk as it is consumed.
    """
    csv_path = Path(path)
    try:
        handle = csv_path.open("r", newline="", encoding="utf-8-sig")
    except OSError as exc:
        raise FlowIOError(f"Unable to open input CSV {csv_path}: {exc}") from exc

    with handle:
        reader = csv.reader(handle)
        try:
            header = tuple(name.strip() for name in next(reader, ()))
        except (csv.Error, OSError) as exc:
            raise FlowIOError(f"Unable to read input CSV {csv_path}: {exc}") from exc
        keep = set(header if usecols is None else usecols)
        wanted = tuple(column for column in header if column in keep)
        positions = [header.index(column) for column in wanted]

        def _emit(chunk_idx: int, size: int) -> None:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "open_input_rows file=%s chunk=%s rows=%s", csv_path.name, chunk_idx, size
                )
            if on_rows is not None:
                on_rows(size)

        def _rows() -> Iterator[Row]:
            row_number = 0
            chunk_idx = 0
            pending = 0
            try:
                for row in reader:
                    if not row:
                        continue
                    row_number += 1
                    _check_width(row, len(header), path=csv_path, row_number=row_number)
                    yield tuple(row[idx] for idx in positions)
                    pending += 1
                    if pending == chunksize:
                        chunk_idx += 1
                        _emit(chunk_idx, pending)
                        pending = 0
            except csv.Error as exc:
                raise MalformedRowError(f"{csv_path}: {exc}", row_number=row_number + 1) from exc
            except OSError as exc:
                raise FlowIOError(f"Unable to read input CSV {csv_path}: {exc}") from exc
            if pending:
                _emit(chunk_idx + 1, pending)

        if not wanted:
            yield RowSource(header=header, rows=iter(()), name=str(csv_path))
            return
        yield RowSource(header=wanted, rows=_rows(), name=str(csv_path))


@contextmanager
def open_compact_rows(path: str | os.PathLike[str]) -> Iterator[RowSource]:
    """Read a compact (partition/output) file with the ``csv`` module.

    A zero-byte file yields an empty header and no rows. Rows whose width
    differs from the header raise :class:`MalformedRowError`.
    """
    csv_path = Path(path)
    try:
        handle = csv_path.open("r", newline="", encoding="utf-8")
    except OSError as exc:
        raise FlowIOError(f"Unable to open partition file {csv_path}: {exc}") from exc

    with handle:
        reader = csv.reader(handle)
        try:
            header = tuple(next(reader, ()))
        except (csv.Error, OSError) as exc:
            raise FlowIOError(f"Unable to read partition file {csv_path}: {exc}") from exc

        def _rows() -> Iterator[Row]:
            row_number = 0
            try:
                for row in reader:
                    if not row:
                        continue
                    row_number += 1
                    _check_width(row, len(header), path=csv_path, row_number=row_number)
                    yield row
            except csv.Error as exc:
                raise MalformedRowError(f"{csv_path}: {exc}", row_number=row_number + 1) from exc
            except OSError as exc:
                raise FlowIOError(f"Unable to read partition file {csv_path}: {exc}") from exc

        yield RowSource(header=header, rows=_rows(), name=str(csv_path))


def write_compact_rows(
    path: str | os.PathLike[str],
    rows: Iterable[Row],
    *,
    overwrite: bool,
) -> int:
    """Write compact rows, truncating with a header or appending without one.

    Returns the number of data rows written.
    """
    csv_path = Path(path)
    mode = "w" if overwrite else "a"
    written = 0
    try:
        with csv_path.open(mode, newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle, lineterminator="\n")
            if overwrite:
                writer.writerow(COMPACT_COLUMNS)
            for row in rows:
                writer.writerow(row)
                written += 1
    except OSError as exc:
        raise FlowIOError(f"Unable to write partition file {csv_path}: {exc}") from exc
    return written


__all__ = ["Row", "RowSource", "open_compact_rows", "open_input_rows", "write_compact_rows"]
