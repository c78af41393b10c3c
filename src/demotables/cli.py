"""
DemoTables CLI - Command Line Interface

Provides commands for:
- Converting a demo into staging tables
- Listing the game events a demo declares
- Generating a default configuration file
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from demotables import __version__
from demotables.core.config import generate_default_config, load_config, validate_config
from demotables.core.exceptions import ConfigError, SinkWriteError, StreamDecodeError
from demotables.core.utils import configure_logging
from demotables.parser import DemoEventSource
from demotables.pipeline import convert_demo

app = typer.Typer(
    name="demotables",
    help="Convert CS2 demo event streams into relational staging tables",
    add_completion=False,
)
console = Console()
logger = logging.getLogger(__name__)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]DemoTables[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """DemoTables - CS2 demo to table converter"""


@app.command()
def parse(
    demo_path: Path = typer.Argument(
        ...,
        help="Path to the .dem file to convert",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Staging directory for the tables (default: the demo's directory)",
    ),
    fmt: Optional[str] = typer.Option(
        None,
        "--format",
        "-f",
        help="Table format: csv or parquet",
    ),
    verboseness: Optional[int] = typer.Option(
        None,
        "--verboseness",
        "-v",
        min=0,
        max=2,
        help="0 = silent, 1 = lifecycle logging, 2 = per-record debug logging (default: config log level)",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file (YAML, TOML or JSON)",
        exists=True,
        dir_okay=False,
    ),
    dump_events: bool = typer.Option(
        False,
        "--dump-events",
        help="Also write the demo's game event list to events_dump.csv",
    ),
) -> None:
    """
    Convert a CS2 demo file into staging tables.

    Writes tick, player_death, weapon_fire, utility_lifecycle and
    bomb_lifecycle tables, one file each.
    """
    try:
        config = load_config(config_file)
        if fmt is not None:
            config.export.format = fmt
        if dump_events:
            config.parser.dump_events = True
        validate_config(config)
        configure_logging(verboseness, config.logging)
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(2)

    console.print(f"\n[bold blue]DemoTables[/bold blue] - Converting {demo_path.name}...\n")

    try:
        result = convert_demo(demo_path, config, output_dir=output)
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(2)
    except StreamDecodeError as e:
        console.print(f"[red]Error decoding demo:[/red] {e}")
        raise typer.Exit(1)
    except SinkWriteError as e:
        console.print(f"[red]Error writing tables:[/red] {e}")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Invalid demo:[/red] {e}")
        raise typer.Exit(1)
    except ImportError as e:
        console.print(f"[red]Missing dependency:[/red] {e}")
        raise typer.Exit(1)

    summary = Table(title=f"Tables in {result.staging_area}")
    summary.add_column("Table", style="cyan")
    summary.add_column("Rows", style="green", justify="right")
    for table, count in result.row_counts.items():
        summary.add_row(table, str(count))
    console.print(summary)
    if result.events_dump is not None:
        console.print(f"Event list: {result.events_dump}")
    console.print(f"[dim]Completed in {result.elapsed_seconds:.1f}s[/dim]")


@app.command()
def events(
    demo_path: Path = typer.Argument(
        ...,
        help="Path to the .dem file",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
) -> None:
    """List the game events present in a demo."""
    try:
        names = DemoEventSource(demo_path).list_game_events()
    except StreamDecodeError as e:
        console.print(f"[red]Error decoding demo:[/red] {e}")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Invalid demo:[/red] {e}")
        raise typer.Exit(1)
    except ImportError as e:
        console.print(f"[red]Missing dependency:[/red] {e}")
        raise typer.Exit(1)

    for name in names:
        console.print(name)


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(
        Path("demotables.yaml"),
        help="Where to write the configuration file (.yaml, .yml or .json)",
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Write a default configuration file."""
    if path.exists() and not force:
        console.print(f"[yellow]{path} already exists (use --force to overwrite)[/yellow]")
        raise typer.Exit(1)
    try:
        generate_default_config(path)
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(2)
    console.print(f"[green]Wrote default configuration to {path}[/green]")


if __name__ == "__main__":
    app()
