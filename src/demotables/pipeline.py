"""
Conversion pipeline: demo file -> staging area tables.

Two-phase lifecycle:
1. Open every table sink (staging area created, headers written).
2. Consume the event source through the correlation engine.

Every sink is closed exactly once at the end, whether the stream ended
naturally or with an error. Records already written are never rolled back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from demotables.core.config import DemoTablesConfig
from demotables.core.stream import EventSource
from demotables.core.utils import PerformanceMonitor
from demotables.engine import CorrelationEngine
from demotables.parser import DemoEventSource
from demotables.sinks import TableSinks, open_table_sinks, write_events_dump

logger = logging.getLogger(__name__)


@dataclass
class ConversionResult:
    """Outcome of one demo conversion."""

    demo_path: Path
    staging_area: Path
    row_counts: dict[str, int]
    elapsed_seconds: float
    table_paths: dict[str, Path] = field(default_factory=dict)
    events_dump: Path | None = None


def run_stream(source: EventSource, sinks: TableSinks) -> dict[str, int]:
    """
    Feed every event of ``source`` through a fresh engine into ``sinks``.

    Sinks must already be open. They are closed when this returns or raises.

    Returns:
        Rows written per table
    """
    engine = CorrelationEngine(source.directory, sinks)
    try:
        for event in source:
            engine.handle(event)
    except BaseException:
        sinks.close_all(suppress_errors=True)
        raise

    if not engine.ended:
        logger.warning("Event stream ended without an end marker")
    sinks.close_all()
    return sinks.row_counts()


def resolve_staging_area(
    demo_path: Path, config: DemoTablesConfig, output_dir: Path | None = None
) -> Path:
    """Output directory: explicit option, then config, then the demo's directory."""
    if output_dir is not None:
        return Path(output_dir)
    if config.parser.staging_directory:
        return Path(config.parser.staging_directory)
    return Path(demo_path).resolve().parent


def convert_demo(
    demo_path: str | Path,
    config: DemoTablesConfig | None = None,
    output_dir: Path | None = None,
) -> ConversionResult:
    """
    Convert a .dem file into the five staging tables.

    Args:
        demo_path: Path to the .dem file
        config: Configuration (defaults apply when omitted)
        output_dir: Overrides the configured staging directory

    Returns:
        ConversionResult with row counts and table paths

    Raises:
        StreamDecodeError: If the demo can't be decoded
        SinkWriteError: If a table can't be written
        ValueError: If the path is not a .dem file
        ImportError: If demoparser2 is not installed
    """
    config = config or DemoTablesConfig()
    demo_path = Path(demo_path)
    source = DemoEventSource(demo_path)
    staging_area = resolve_staging_area(demo_path, config, output_dir)

    sinks = open_table_sinks(
        staging_area,
        fmt=config.export.format,
        delimiter=config.export.csv_delimiter,
        compression=config.export.compression,
    )

    events_dump = None
    with PerformanceMonitor(f"Converting {demo_path.name}") as monitor:
        if config.parser.dump_events:
            try:
                events_dump = write_events_dump(staging_area, source.list_game_events())
            except BaseException:
                sinks.close_all(suppress_errors=True)
                raise
        row_counts = run_stream(source, sinks)

    table_paths = {
        sink.table: sink.path for sink in sinks if getattr(sink, "path", None) is not None
    }
    return ConversionResult(
        demo_path=demo_path,
        staging_area=staging_area,
        row_counts=row_counts,
        elapsed_seconds=monitor.elapsed,
        table_paths=table_paths,
        events_dump=events_dump,
    )
