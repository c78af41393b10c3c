"""Tests for the command line interface."""

from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from demotables import __version__
from demotables.cli import app
from demotables.core.exceptions import SinkWriteError, StreamDecodeError
from demotables.pipeline import ConversionResult

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Keep config discovery away from the developer's files."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / ".config"))
    for name in ("DEMOTABLES_FORMAT", "DEMOTABLES_LOG_LEVEL", "DEMOTABLES_STAGING_DIRECTORY"):
        monkeypatch.delenv(name, raising=False)


def fake_result(demo_file: Path) -> ConversionResult:
    return ConversionResult(
        demo_path=demo_file,
        staging_area=demo_file.parent,
        row_counts={
            "tick": 1200,
            "player_death": 14,
            "weapon_fire": 300,
            "utility_lifecycle": 42,
            "bomb_lifecycle": 3,
        },
        elapsed_seconds=1.25,
    )


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestParseCommand:
    """demotables parse"""

    def test_success(self, demo_file):
        with patch("demotables.cli.convert_demo", return_value=fake_result(demo_file)) as convert:
            result = runner.invoke(app, ["parse", str(demo_file)])

        assert result.exit_code == 0, result.output
        assert "player_death" in result.output
        assert "1200" in result.output
        config = convert.call_args.args[1]
        assert config.export.format == "csv"
        assert convert.call_args.kwargs["output_dir"] is None

    def test_options_applied(self, demo_file, tmp_path):
        out = tmp_path / "tables"
        with patch("demotables.cli.convert_demo", return_value=fake_result(demo_file)) as convert:
            result = runner.invoke(
                app,
                ["parse", str(demo_file), "-o", str(out), "-f", "parquet", "-v", "1", "--dump-events"],
            )

        assert result.exit_code == 0, result.output
        config = convert.call_args.args[1]
        assert config.export.format == "parquet"
        assert config.parser.dump_events is True
        assert convert.call_args.kwargs["output_dir"] == out

    def test_config_file(self, demo_file, tmp_path):
        config_path = tmp_path / "custom.yaml"
        config_path.write_text("export:\n  format: parquet\n  compression: lz4\n")
        with patch("demotables.cli.convert_demo", return_value=fake_result(demo_file)) as convert:
            result = runner.invoke(app, ["parse", str(demo_file), "--config", str(config_path)])

        assert result.exit_code == 0, result.output
        config = convert.call_args.args[1]
        assert config.export.compression == "lz4"

    def test_bad_format(self, demo_file):
        with patch("demotables.cli.convert_demo") as convert:
            result = runner.invoke(app, ["parse", str(demo_file), "--format", "xml"])

        assert result.exit_code == 2
        assert "Configuration error" in result.output
        convert.assert_not_called()

    def test_verboseness_out_of_range(self, demo_file):
        result = runner.invoke(app, ["parse", str(demo_file), "--verboseness", "3"])
        assert result.exit_code != 0

    def test_missing_demo(self, tmp_path):
        result = runner.invoke(app, ["parse", str(tmp_path / "nothing.dem")])
        assert result.exit_code != 0

    def test_decode_error(self, demo_file):
        with patch("demotables.cli.convert_demo", side_effect=StreamDecodeError("truncated demo")):
            result = runner.invoke(app, ["parse", str(demo_file)])

        assert result.exit_code == 1
        assert "truncated demo" in result.output

    def test_sink_error(self, demo_file):
        with patch("demotables.cli.convert_demo", side_effect=SinkWriteError("tick", "disk full")):
            result = runner.invoke(app, ["parse", str(demo_file)])

        assert result.exit_code == 1
        assert "disk full" in result.output

    def test_not_a_demo(self, tmp_path):
        path = tmp_path / "match.txt"
        path.write_text("not a demo")

        result = runner.invoke(app, ["parse", str(path)])

        assert result.exit_code == 1
        assert "Invalid demo" in result.output
        assert not isinstance(result.exception, ValueError)

    def test_demoparser2_missing(self, demo_file):
        with patch("demotables.parser.DEMOPARSER2_AVAILABLE", False):
            result = runner.invoke(app, ["parse", str(demo_file)])

        assert result.exit_code == 1
        assert "Missing dependency" in result.output
        assert not isinstance(result.exception, ImportError)


class TestEventsCommand:
    def test_lists_events(self, demo_file, fake_demoparser):
        with patch("demotables.parser.DEMOPARSER2_AVAILABLE", True), patch(
            "demotables.parser.Demoparser2", return_value=fake_demoparser
        ):
            result = runner.invoke(app, ["events", str(demo_file)])

        assert result.exit_code == 0, result.output
        assert "player_footstep" in result.output
        assert "weapon_fire" in result.output

    def test_not_a_demo(self, tmp_path):
        path = tmp_path / "match.txt"
        path.write_text("not a demo")

        result = runner.invoke(app, ["events", str(path)])

        assert result.exit_code == 1
        assert "Invalid demo" in result.output

    def test_demoparser2_missing(self, demo_file):
        with patch("demotables.parser.DEMOPARSER2_AVAILABLE", False):
            result = runner.invoke(app, ["events", str(demo_file)])

        assert result.exit_code == 1
        assert "Missing dependency" in result.output


class TestInitConfigCommand:
    def test_writes_yaml(self, tmp_path):
        path = tmp_path / "demotables.yaml"
        result = runner.invoke(app, ["init-config", str(path)])

        assert result.exit_code == 0, result.output
        assert "csv_delimiter" in path.read_text()

    def test_refuses_overwrite(self, tmp_path):
        path = tmp_path / "demotables.yaml"
        path.write_text("# mine\n")

        result = runner.invoke(app, ["init-config", str(path)])

        assert result.exit_code == 1
        assert path.read_text() == "# mine\n"

    def test_force_overwrite(self, tmp_path):
        path = tmp_path / "demotables.json"
        path.write_text("{}")

        result = runner.invoke(app, ["init-config", str(path), "--force"])

        assert result.exit_code == 0
        assert '"format": "csv"' in path.read_text()

    def test_unsupported_suffix(self, tmp_path):
        result = runner.invoke(app, ["init-config", str(tmp_path / "demotables.ini")])
        assert result.exit_code == 2
