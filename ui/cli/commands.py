"""Typer command handlers."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import typer

from core.orchestrator import Orchestrator, RuntimeBundle
from core.policy_runtime import load_effective_config
from core.simulation import load_scenario, run_scenario


def _runtime(root: Path | None = None, overrides: dict[str, Any] | None = None) -> RuntimeBundle:
    bundle = Orchestrator(root=root).build(overrides=overrides)
    return bundle


def configure_logging(verbose: bool = False) -> None:
    """Attach a stderr handler at the configured level (DEBUG when verbose)."""
    config = load_effective_config(Orchestrator().root)
    level_name = str((config.get("logging") or {}).get("level", "INFO")).upper()
    level = logging.DEBUG if verbose else getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("tgp").setLevel(level)


def config_show() -> None:
    """Show effective options."""
    bundle = _runtime()
    typer.echo(json.dumps(bundle.options.model_dump(mode="json"), indent=2))


def simulate(scenario_path: Path) -> None:
    """Replay a scenario and print the strip after every step."""
    try:
        scenario = load_scenario(scenario_path)
    except ValueError as exc:
        typer.echo(f"Invalid scenario: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    bundle = _runtime(overrides=scenario.get("options"))
    outcomes = asyncio.run(run_scenario(bundle, scenario))
    width = max(len(outcome.step) for outcome in outcomes)
    for outcome in outcomes:
        typer.echo(f"{outcome.step.ljust(width)}  {outcome.strip}")
