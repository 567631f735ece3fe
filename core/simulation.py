"""Scenario replay against the in-memory tab strip."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.orchestrator import RuntimeBundle
from core.policy_runtime import load_yaml
from host.memory_host import InMemoryTabHost

logger = logging.getLogger("tgp.simulation")

STEP_ACTIONS = ("activate", "hover", "leave", "create", "ungroup", "wait", "settle")


@dataclass
class StepOutcome:
    """Strip rendering after a replayed step."""

    step: str
    strip: str


def load_scenario(path: Path) -> dict[str, Any]:
    scenario = load_yaml(path)
    if not scenario:
        raise ValueError(f"Scenario file is empty or missing: {path}")
    return scenario


def build_window(host: InMemoryTabHost, scenario: dict[str, Any]) -> int:
    """Lay out the scenario's ``window`` entries in a fresh window."""
    window_id = host.create_window(emit=False)
    for entry in scenario.get("window") or []:
        tabs = [str(title) for title in entry.get("tabs") or []]
        injected = bool(entry.get("injected", True))
        if "group" in entry:
            host.add_group(
                window_id,
                str(entry["group"]),
                tabs,
                collapsed=bool(entry.get("collapsed", False)),
                injected=injected,
            )
        else:
            host.add_tabs(window_id, tabs, injected=injected)
    active = scenario.get("active")
    if active is not None:
        host.set_active(host.find_tab(str(active)).id)
    return window_id


async def run_scenario(bundle: RuntimeBundle, scenario: dict[str, Any]) -> list[StepOutcome]:
    """Replay every step and return the strip after each one.

    Steps are single-key mappings. ``settle`` waits for pending compactions;
    the other steps only wait for the event handlers they trigger.
    """
    host = bundle.host
    if not isinstance(host, InMemoryTabHost):
        raise TypeError("Scenarios can only be replayed against the in-memory host.")

    window_id = build_window(host, scenario)
    await bundle.router.start()
    outcomes = [StepOutcome(step="start", strip=host.describe_window(window_id))]

    for step in scenario.get("steps") or []:
        if not isinstance(step, dict) or len(step) != 1:
            raise ValueError(f"Scenario steps must be single-key mappings, got {step!r}")
        ((action, arg),) = step.items()
        logger.debug("Replaying %s %s", action, arg)
        await _apply_step(bundle, host, window_id, action, arg)
        outcomes.append(StepOutcome(step=f"{action} {arg}", strip=host.describe_window(window_id)))

    bundle.router.suspend()
    return outcomes


async def _apply_step(
    bundle: RuntimeBundle,
    host: InMemoryTabHost,
    window_id: int,
    action: str,
    arg: Any,
) -> None:
    if action == "activate":
        host.activate(host.find_tab(str(arg)).id)
    elif action == "hover":
        host.hover_content(host.find_tab(str(arg)).id, entered=True)
    elif action == "leave":
        host.hover_content(host.find_tab(str(arg)).id, entered=False)
    elif action == "create":
        host.open_tab(window_id, str(arg))
    elif action == "ungroup":
        host.ungroup(host.find_group(str(arg)).id)
    elif action == "wait":
        await asyncio.sleep(int(arg) / 1000.0)
    elif action == "settle":
        await bundle.router.drain()
        return
    else:
        raise ValueError(f"Unknown scenario step {action!r}; expected one of {', '.join(STEP_ACTIONS)}")
    await bundle.router.flush()
