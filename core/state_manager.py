"""Per-window compaction state."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from host.types import TAB_GROUP_ID_NONE

logger = logging.getLogger("tgp.state")


@dataclass
class WindowState:
    """Minimal memory needed to reverse a compaction in one window."""

    active_group_id: int = TAB_GROUP_ID_NONE
    # Group-only slot the active group held before it was pulled to an edge.
    active_group_prev_slot: int | None = None
    last_active_tab_id: int | None = None
    new_tab_id: int | None = None
    pending_timer: asyncio.TimerHandle | None = None

    def clear_compaction_record(self) -> None:
        self.active_group_id = TAB_GROUP_ID_NONE
        self.active_group_prev_slot = None

    def record_compaction(self, group_id: int, prev_slot: int | None) -> None:
        self.active_group_id = group_id
        self.active_group_prev_slot = prev_slot

    def consume_new_tab_marker(self, tab_id: int) -> bool:
        """Clear the new-tab marker if it names ``tab_id``."""
        if self.new_tab_id is not None and self.new_tab_id == tab_id:
            self.new_tab_id = None
            return True
        return False


class WindowStateStore:
    """Owns one ``WindowState`` per open window."""

    def __init__(self) -> None:
        self._states: dict[int, WindowState] = {}

    def get(self, window_id: int) -> WindowState:
        state = self._states.get(window_id)
        if state is None:
            state = WindowState()
            self._states[window_id] = state
            logger.debug("Initialised state for window %s", window_id)
        return state

    def has(self, window_id: int) -> bool:
        return window_id in self._states

    def window_ids(self) -> list[int]:
        return list(self._states)

    def remove(self, window_id: int) -> bool:
        state = self._states.pop(window_id, None)
        if state is None:
            logger.warning("Closed window %s had no tracked state", window_id)
            return False
        if state.pending_timer is not None:
            state.pending_timer.cancel()
            state.pending_timer = None
        logger.info("Dropped state for closed window %s", window_id)
        return True

    def prune(self, live_window_ids: Iterable[int]) -> list[int]:
        """Drop entries for windows not in ``live_window_ids``."""
        live = set(live_window_ids)
        vanished = [window_id for window_id in self._states if window_id not in live]
        for window_id in vanished:
            logger.warning("Window %s vanished, pruning its state", window_id)
            self.remove(window_id)
        return vanished

    def __len__(self) -> int:
        return len(self._states)
