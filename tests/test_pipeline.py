"""Tests for the demo -> staging area conversion pipeline."""

from unittest.mock import patch

import polars as pl
import pytest

from demotables.core.config import DemoTablesConfig
from demotables.core.directory import InMemoryEntityDirectory
from demotables.core.events import TickEnd
from demotables.core.exceptions import SinkWriteError, StreamDecodeError
from demotables.pipeline import convert_demo, resolve_staging_area, run_stream
from demotables.sinks import MemoryTableSink, TableSinks


@pytest.fixture
def patched_parser(fake_demoparser):
    with patch("demotables.parser.DEMOPARSER2_AVAILABLE", True), patch(
        "demotables.parser.Demoparser2", return_value=fake_demoparser
    ):
        yield fake_demoparser


EXPECTED_COUNTS = {
    # ticks 100 and 101: both players; tick 102: Alice only; plus Bob on death
    "tick": 6,
    "player_death": 1,
    "weapon_fire": 1,
    "utility_lifecycle": 2,
    "bomb_lifecycle": 0,
}


class TestRunStream:
    def test_closes_sinks(self, source, sinks):
        source.start()
        source.end()

        counts = run_stream(source, sinks)

        assert sinks.closed
        assert sum(counts.values()) == 0

    def test_missing_end_marker(self, source, sinks, make_player, caplog):
        source.start()
        source.game_event("round_announce_match_start")
        source.tick(1, players=[make_player(1)])

        counts = run_stream(source, sinks)

        assert sinks.closed
        assert counts["tick"] == 1
        assert "without an end marker" in caplog.text

    def test_source_exception_closes_sinks(self, sinks):
        class ExplodingSource:
            def __init__(self):
                self.directory = InMemoryEntityDirectory()

            def __iter__(self):
                yield TickEnd(tick=1)
                raise OSError("read error")

        source = ExplodingSource()

        with pytest.raises(OSError):
            run_stream(source, sinks)
        assert sinks.closed


class _FullDiskSink(MemoryTableSink):
    def _write(self, record):
        raise SinkWriteError(self.table, "disk full")


class TestSinkFailure:
    """A sink failing mid-stream stops the conversion."""

    def _sinks_with_failing(self, table):
        sinks = {name: MemoryTableSink(name) for name in EXPECTED_COUNTS}
        sinks[table] = _FullDiskSink(table)
        return TableSinks(sinks)

    def test_write_error_propagates(self, source, make_player):
        sinks = self._sinks_with_failing("weapon_fire")
        alice = make_player(1)
        source.start()
        source.game_event("round_announce_match_start")
        source.tick(1, players=[alice], weapons={1: "weapon_ak47"})
        source.game_event("weapon_fire", {"userid": 1, "weapon": "weapon_ak47"})
        source.tick(2, players=[alice], weapons={1: "weapon_ak47"})
        source.end()

        with pytest.raises(SinkWriteError, match="disk full") as exc_info:
            run_stream(source, sinks)

        assert exc_info.value.table == "weapon_fire"
        # Tick 2 is never reached
        assert [r.tick for r in sinks["tick"].records] == [1]
        assert sinks["weapon_fire"].rows_written == 0
        assert sinks.closed
        assert all(sinks[table].closed for table in EXPECTED_COUNTS)


class TestResolveStagingArea:
    def test_defaults_to_demo_directory(self, demo_file):
        assert resolve_staging_area(demo_file, DemoTablesConfig()) == demo_file.parent

    def test_config_directory(self, demo_file, tmp_path):
        config = DemoTablesConfig()
        config.parser.staging_directory = str(tmp_path / "staging")
        assert resolve_staging_area(demo_file, config) == tmp_path / "staging"

    def test_explicit_output_wins(self, demo_file, tmp_path):
        config = DemoTablesConfig()
        config.parser.staging_directory = str(tmp_path / "staging")
        assert resolve_staging_area(demo_file, config, tmp_path / "cli") == tmp_path / "cli"


class TestConvertDemo:
    """End-to-end conversion with a mocked decoder."""

    def test_csv_tables(self, demo_file, patched_parser):
        result = convert_demo(demo_file)

        assert result.row_counts == EXPECTED_COUNTS
        assert result.staging_area == demo_file.parent
        assert result.events_dump is None
        assert set(result.table_paths) == set(EXPECTED_COUNTS)

        tick_table = pl.read_csv(demo_file.parent / "tick.csv", separator=";")
        assert tick_table.height == 6
        assert tick_table["tick"].to_list() == [100, 100, 101, 101, 102, 102]

        utility = pl.read_csv(demo_file.parent / "utility_lifecycle.csv", separator=";")
        assert utility["event_kind"].to_list() == ["hegrenade_thrown", "hegrenade_detonate"]
        assert utility["x"].to_list() == [201.0, 10.0]

        deaths = (demo_file.parent / "player_death.csv").read_text().splitlines()
        assert deaths[1] == "102;1;3;2;;false;hegrenade;false;0"

    def test_parquet_tables(self, demo_file, patched_parser, tmp_path):
        config = DemoTablesConfig()
        config.export.format = "parquet"
        out = tmp_path / "parquet_out"

        result = convert_demo(demo_file, config, output_dir=out)

        assert result.row_counts == EXPECTED_COUNTS
        weapon_fire = pl.read_parquet(out / "weapon_fire.parquet")
        assert weapon_fire.to_dicts() == [
            {"tick": 101, "round": 1, "shooter_id": 2, "weapon_id": "weapon_hegrenade"}
        ]
        snapshots = pl.read_parquet(out / "tick.parquet")
        dead = snapshots.filter(pl.col("health") == 0)
        assert dead["player_id"].to_list() == [3]

    def test_events_dump(self, demo_file, patched_parser):
        config = DemoTablesConfig()
        config.parser.dump_events = True

        result = convert_demo(demo_file, config)

        assert result.events_dump == demo_file.parent / "events_dump.csv"
        names = result.events_dump.read_text().splitlines()
        assert "player_footstep" in names
        assert names == sorted(names)

    def test_decode_error_keeps_tables(self, demo_file, patched_parser, fake_demoparser):
        fake_demoparser.parse_ticks.side_effect = RuntimeError("truncated")

        with pytest.raises(StreamDecodeError):
            convert_demo(demo_file)

        # Tables were opened before decoding; headers remain
        assert (demo_file.parent / "tick.csv").read_text().startswith("tick;round;")
