"""CLI entrypoint for tab-groups-plus."""

from __future__ import annotations

from pathlib import Path

import typer

from ui.cli import commands

app = typer.Typer(help="Tab group compaction engine")
config_app = typer.Typer(help="Configuration commands")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log routine event flow"),
) -> None:
    """Configure logging before any command runs."""
    commands.configure_logging(verbose=verbose)


@app.command("simulate")
def simulate_cmd(
    scenario: Path = typer.Argument(..., exists=True, dir_okay=False, help="Scenario YAML file"),
) -> None:
    """Replay a scenario against an in-memory tab strip."""
    commands.simulate(scenario_path=scenario)


@config_app.command("show")
def config_show_cmd() -> None:
    """Show effective options."""
    commands.config_show()


app.add_typer(config_app, name="config")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
