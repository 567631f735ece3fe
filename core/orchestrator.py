"""Top-level application orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from compaction.auto_group import NewTabGrouper
from compaction.engine import CompactionEngine
from compaction.scheduler import CompactionScheduler
from core.event_bus import EventBus
from core.event_router import EventRouter
from core.options import CompactionOptions
from core.policy_runtime import load_effective_config, merge_dicts
from core.state_manager import WindowStateStore
from host.base_host import BaseTabHost
from host.memory_host import InMemoryTabHost


@dataclass
class RuntimeBundle:
    """Holds initialized runtime components."""

    config: dict[str, Any]
    options: CompactionOptions
    bus: EventBus
    host: BaseTabHost
    store: WindowStateStore
    engine: CompactionEngine
    scheduler: CompactionScheduler
    grouper: NewTabGrouper
    router: EventRouter


class Orchestrator:
    """Creates and wires runtime components for CLI use."""

    def __init__(self, root: Path | None = None) -> None:
        default_root = Path(__file__).resolve().parents[1]
        self.root = (root or default_root).resolve()

    def build(
        self,
        host: BaseTabHost | None = None,
        bus: EventBus | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> RuntimeBundle:
        """Wire a runtime around ``host``, defaulting to an in-memory strip.

        A supplied host must emit its events on ``bus``.
        """
        config = load_effective_config(self.root)
        if overrides:
            config = merge_dicts(config, {"options": overrides})
        options = CompactionOptions.from_config(config)

        bus = bus or EventBus()
        if host is None:
            host = InMemoryTabHost(bus=bus)

        store = WindowStateStore()
        engine = CompactionEngine(host=host, store=store, options=options)
        scheduler = CompactionScheduler(store=store, options=options, run=engine.compact)
        grouper = NewTabGrouper(host=host, options=options)
        router = EventRouter(
            host=host,
            bus=bus,
            store=store,
            scheduler=scheduler,
            grouper=grouper,
            options=options,
        )

        return RuntimeBundle(
            config=config,
            options=options,
            bus=bus,
            host=host,
            store=store,
            engine=engine,
            scheduler=scheduler,
            grouper=grouper,
            router=router,
        )
