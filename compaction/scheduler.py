"""Debounced per-window scheduling of compaction runs."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Awaitable, Callable
from typing import Any

from compaction.errors import CompactionError
from core.options import CompactionOptions
from core.state_manager import WindowStateStore
from host.errors import HostError
from host.types import Tab

logger = logging.getLogger("tgp.scheduler")

RunCallback = Callable[[Tab], Awaitable[Any]]


class CompactionScheduler:
    """Coalesces bursts of compaction requests into one delayed run per window.

    A window is Idle, Scheduled (timer armed) or Running. A new request always
    replaces an armed timer for the same window; it never interrupts a run
    already in progress.
    """

    def __init__(
        self,
        store: WindowStateStore,
        options: CompactionOptions,
        run: RunCallback,
    ) -> None:
        self.store = store
        self.options = options
        self._run_callback = run
        self._tasks: set[asyncio.Task[None]] = set()
        self._running: Counter[int] = Counter()

    def schedule(self, tab: Tab, delay_ms: int) -> bool:
        """Arm a compaction for ``tab``'s window after ``delay_ms``.

        Returns False when the request is filtered out by the options.
        """
        if not tab.grouped and not self.options.compact_on_activate_ungrouped_tab:
            logger.debug(
                "Tab %s in window %s is ungrouped and ungrouped compaction is off",
                tab.id,
                tab.window_id,
            )
            return False

        state = self.store.get(tab.window_id)
        if (
            tab.grouped
            and tab.group_id == state.active_group_id
            and not self.options.recollapse_when_group_unchanged
        ):
            logger.debug("Tab %s is in the already active group %s", tab.id, tab.group_id)
            return False

        self.cancel(tab.window_id)
        loop = asyncio.get_running_loop()
        state.pending_timer = loop.call_later(delay_ms / 1000.0, self._fire, tab)
        logger.debug(
            "Scheduled compaction of window %s in %sms (tab %s, group %s)",
            tab.window_id,
            delay_ms,
            tab.id,
            tab.group_id,
        )
        return True

    def cancel(self, window_id: int) -> bool:
        """Disarm a pending timer without running it."""
        if not self.store.has(window_id):
            return False
        state = self.store.get(window_id)
        if state.pending_timer is None:
            return False
        state.pending_timer.cancel()
        state.pending_timer = None
        logger.debug("Cleared compaction timer for window %s", window_id)
        return True

    def cancel_all(self) -> int:
        return sum(1 for window_id in self.store.window_ids() if self.cancel(window_id))

    def is_pending(self, window_id: int) -> bool:
        return self.store.has(window_id) and self.store.get(window_id).pending_timer is not None

    def is_running(self, window_id: int) -> bool:
        return self._running[window_id] > 0

    async def wait_idle(self, timeout_s: float = 10.0) -> None:
        """Wait until no timer is armed and no run is in flight."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_s
        while self._tasks or any(self.is_pending(w) for w in self.store.window_ids()):
            if loop.time() > deadline:
                raise TimeoutError("Compaction scheduler did not settle in time.")
            await asyncio.sleep(0.005)

    def _fire(self, tab: Tab) -> None:
        state = self.store.get(tab.window_id)
        # Cleared before the run so a schedule() made mid-run arms a fresh timer.
        state.pending_timer = None
        task = asyncio.get_running_loop().create_task(self._run(tab))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, tab: Tab) -> None:
        self._running[tab.window_id] += 1
        try:
            await self._run_callback(tab)
        except (HostError, CompactionError) as exc:
            logger.error("Compaction of window %s failed: %s", tab.window_id, exc)
        except Exception:
            logger.exception("Unexpected error compacting window %s", tab.window_id)
        finally:
            self._running[tab.window_id] -= 1
