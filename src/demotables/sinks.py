"""
Table Sinks for DemoTables

One append-only sink per output table. Available formats:
- CSV (``;``-delimited text with a header row, one file per table)
- Parquet (columnar, written with Polars on close)
- Memory (records kept in a list; used by tests and embedding callers)

Sinks preserve append order, never retry, and surface every failure as
``SinkWriteError``. ``close()`` is idempotent.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import fields
from pathlib import Path
from typing import IO, Any, get_args, get_type_hints

import polars as pl

from demotables.core.config import EXPORT_FORMATS
from demotables.core.constants import DEFAULT_DELIMITER, EVENTS_DUMP_FILE
from demotables.core.exceptions import ConfigError, SinkWriteError
from demotables.core.schemas import RECORD_TYPES, Position, TableRecord

logger = logging.getLogger(__name__)


# ============================================================================
# Sink Implementations
# ============================================================================


class TableSink:
    """Base class: ordered, append-only destination for one table."""

    def __init__(self, table: str):
        self.table = table
        self.rows_written = 0
        self.closed = False

    def append_row(self, record: TableRecord) -> None:
        if self.closed:
            raise SinkWriteError(self.table, "append after close")
        self._write(record)
        self.rows_written += 1

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._close()
        logger.debug(f"Closed {self.table} sink ({self.rows_written} rows)")

    def _write(self, record: TableRecord) -> None:
        raise NotImplementedError

    def _close(self) -> None:
        pass


class MemoryTableSink(TableSink):
    """Keeps records in memory."""

    def __init__(self, table: str):
        super().__init__(table)
        self.records: list[TableRecord] = []

    def _write(self, record: TableRecord) -> None:
        self.records.append(record)


class CsvTableSink(TableSink):
    """Delimited text table; the header row is written when the sink opens."""

    def __init__(
        self,
        path: Path,
        record_type: type[TableRecord],
        delimiter: str = DEFAULT_DELIMITER,
    ):
        super().__init__(record_type.table)
        self.path = Path(path)
        try:
            self._file: IO[str] = open(self.path, "w", newline="", encoding="utf-8")
            self._writer = csv.writer(self._file, delimiter=delimiter)
            self._writer.writerow(record_type.describe_fields())
        except OSError as e:
            raise SinkWriteError(self.table, f"cannot open {self.path}: {e}") from e

    def _write(self, record: TableRecord) -> None:
        try:
            self._writer.writerow(_format_row(record.to_row()))
        except (OSError, ValueError) as e:
            raise SinkWriteError(self.table, str(e)) from e

    def _close(self) -> None:
        try:
            self._file.close()
        except OSError as e:
            raise SinkWriteError(self.table, f"cannot close {self.path}: {e}") from e


class ParquetTableSink(TableSink):
    """
    Columnar table written with Polars.

    Rows are held until ``close()``; Parquet files can't be appended to.
    """

    def __init__(
        self,
        path: Path,
        record_type: type[TableRecord],
        compression: str = "zstd",
    ):
        super().__init__(record_type.table)
        self.path = Path(path)
        self.compression = compression
        self._schema = polars_schema(record_type)
        self._rows: list[list[Any]] = []

    def _write(self, record: TableRecord) -> None:
        self._rows.append(record.to_row())

    def _close(self) -> None:
        df = pl.DataFrame(self._rows, schema=self._schema, orient="row")
        try:
            df.write_parquet(self.path, compression=self.compression)
        except (OSError, pl.exceptions.PolarsError) as e:
            raise SinkWriteError(self.table, f"cannot write {self.path}: {e}") from e
        finally:
            self._rows = []


def _format_row(row: list[Any]) -> list[Any]:
    # Empty cell for missing values, lowercase booleans
    formatted = []
    for value in row:
        if value is None:
            formatted.append("")
        elif isinstance(value, bool):
            formatted.append("true" if value else "false")
        else:
            formatted.append(value)
    return formatted


_POLARS_TYPES = {int: pl.Int64, float: pl.Float64, str: pl.Utf8, bool: pl.Boolean}


def polars_schema(record_type: type[TableRecord]) -> dict[str, Any]:
    """Polars column types for a record type, positions expanded to x/y/z."""
    hints = get_type_hints(record_type)
    schema: dict[str, Any] = {}
    for f in fields(record_type):  # type: ignore[arg-type]
        hint = hints[f.name]
        if hint is Position:
            schema.update({"x": pl.Float64, "y": pl.Float64, "z": pl.Float64})
            continue
        args = [a for a in get_args(hint) if a is not type(None)]
        base = args[0] if args else hint
        schema[f.name] = _POLARS_TYPES[base]
    return schema


# ============================================================================
# Sink Set
# ============================================================================


class TableSinks:
    """The five table sinks of one conversion, routed by record table."""

    def __init__(self, sinks: dict[str, TableSink]):
        missing = {t.table for t in RECORD_TYPES} - set(sinks)
        if missing:
            raise ValueError(f"Missing sinks for tables: {sorted(missing)}")
        self._sinks = sinks

    def __getitem__(self, table: str) -> TableSink:
        return self._sinks[table]

    def __iter__(self):
        return iter(self._sinks.values())

    def append(self, record: TableRecord) -> None:
        self._sinks[record.table].append_row(record)

    def row_counts(self) -> dict[str, int]:
        return {table: sink.rows_written for table, sink in self._sinks.items()}

    @property
    def closed(self) -> bool:
        return all(sink.closed for sink in self._sinks.values())

    def close_all(self, suppress_errors: bool = False) -> None:
        """
        Close every sink exactly once.

        Every sink is attempted even if an earlier one fails; the first
        failure is re-raised afterwards unless ``suppress_errors`` is set
        (used while another exception is already propagating).
        """
        first_error: SinkWriteError | None = None
        for sink in self._sinks.values():
            try:
                sink.close()
            except SinkWriteError as e:
                logger.error(f"Failed to close {sink.table} sink: {e}")
                if first_error is None:
                    first_error = e
        if first_error is not None and not suppress_errors:
            raise first_error


def memory_sinks() -> TableSinks:
    return TableSinks({t.table: MemoryTableSink(t.table) for t in RECORD_TYPES})


def open_table_sinks(
    staging_area: Path,
    fmt: str = "csv",
    delimiter: str = DEFAULT_DELIMITER,
    compression: str = "zstd",
) -> TableSinks:
    """
    Create the staging area and open one sink per table in it.

    Args:
        staging_area: Output directory (created if missing)
        fmt: "csv" or "parquet"
        delimiter: CSV delimiter
        compression: Parquet compression codec

    Returns:
        TableSinks with every table open and ready for appends
    """
    if fmt not in EXPORT_FORMATS:
        raise ConfigError(f"Unknown output format: {fmt} (expected one of {EXPORT_FORMATS})")

    staging_area = Path(staging_area)
    staging_area.mkdir(parents=True, exist_ok=True)

    sinks: dict[str, TableSink] = {}
    try:
        for record_type in RECORD_TYPES:
            path = staging_area / f"{record_type.table}.{fmt}"
            if fmt == "csv":
                sinks[record_type.table] = CsvTableSink(path, record_type, delimiter)
            else:
                sinks[record_type.table] = ParquetTableSink(path, record_type, compression)
    except SinkWriteError:
        for sink in sinks.values():
            sink.close()
        raise

    logger.info(f"Opened {len(sinks)} {fmt} tables in {staging_area}")
    return TableSinks(sinks)


def write_events_dump(staging_area: Path, event_names: list[str]) -> Path:
    """Write the demo's declared game event names, one per line."""
    path = Path(staging_area) / EVENTS_DUMP_FILE
    try:
        path.write_text("".join(f"{name}\n" for name in event_names), encoding="utf-8")
    except OSError as e:
        raise SinkWriteError("events_dump", str(e)) from e
    logger.info(f"Dumped {len(event_names)} game event names to: {path}")
    return path
