"""Shared fixtures: an in-memory strip with three groups and a loose tab."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pytest

from core.orchestrator import Orchestrator, RuntimeBundle
from host.memory_host import InMemoryTabHost

FAST_OPTIONS = {
    "delay_on_enter_content_area_ms": 20,
    "delay_on_activate_uninjected_tab_ms": 30,
    "check_grouping_delay_on_create_tab_ms": 0,
    "listen_delay_on_browser_startup_ms": 0,
}


@dataclass
class Strip:
    """Ids of the standard test layout ``[A: a1 a2] [B +1] [C +2] x``."""

    window_id: int
    a: int
    b: int
    c: int


def build_three_groups(host: InMemoryTabHost) -> Strip:
    window_id = host.create_window(emit=False)
    a = host.add_group(window_id, "A", ["a1", "a2"])
    b = host.add_group(window_id, "B", ["b1"], collapsed=True)
    c = host.add_group(window_id, "C", ["c1", "c2"], collapsed=True)
    host.add_tabs(window_id, ["x"])
    host.set_active(host.find_tab("a1").id)
    return Strip(window_id=window_id, a=a, b=b, c=c)


@pytest.fixture
def host() -> InMemoryTabHost:
    return InMemoryTabHost()


@pytest.fixture
def strip(host: InMemoryTabHost) -> Strip:
    return build_three_groups(host)


@pytest.fixture
def runtime(tmp_path: Path) -> RuntimeBundle:
    """Runtime wired to an in-memory host, with no config files and short delays."""
    return Orchestrator(root=tmp_path).build(overrides=dict(FAST_OPTIONS))


@pytest.fixture
def runtime_strip(runtime: RuntimeBundle) -> Strip:
    """The standard layout built on the runtime's own host."""
    return build_three_groups(runtime.host)
