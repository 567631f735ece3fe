"""Window compaction: collapse, restore, record, align and re-home.

A run receives the tab that was active when it was scheduled and walks five
phases:

1. collapse every expanded group except the one being kept open
2. stop early when there is nothing to move
3. return the group displaced by the previous run to its old slot
4. record the active group's current slot for the next run
5. pull the active group to the configured edge and trail ungrouped tabs

Phases 1 and 3 are best effort: host failures are logged and the run carries
on. Phase 5 failures propagate, since they mean the user is fighting over the
strip (usually mid-drag) and the next qualifying event should retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from compaction.errors import StaleInvocation
from compaction.group_order import resolve_group_order, slot_of
from compaction.restore import compute_restore_index, restore_target_slot
from core.options import AlignMode, CompactionOptions
from core.state_manager import WindowState, WindowStateStore
from host.base_host import BaseTabHost
from host.errors import MutationFailed, QueryFailed
from host.types import INDEX_END, TAB_GROUP_ID_NONE, Tab

logger = logging.getLogger("tgp.engine")


@dataclass
class CompactionResult:
    """What a single compaction run did."""

    window_id: int
    active_group_id: int
    collapsed_group_ids: list[int] = field(default_factory=list)
    restored_group_id: int | None = None
    restored_to_index: int | None = None
    recorded_slot: int | None = None
    aligned: bool = False
    moved_tab_ids: list[int] = field(default_factory=list)
    stopped_after: str = ""


class CompactionEngine:
    """Runs the compaction phases against a host for one window at a time."""

    def __init__(
        self,
        host: BaseTabHost,
        store: WindowStateStore,
        options: CompactionOptions,
    ) -> None:
        self.host = host
        self.store = store
        self.options = options

    async def compact(self, active_tab: Tab) -> CompactionResult:
        if not active_tab.active:
            raise StaleInvocation(f"Compaction invoked with inactive tab {active_tab.id}.")
        try:
            active_tab = await self.host.get_tab(active_tab.id)
        except QueryFailed as exc:
            raise StaleInvocation(f"Tab {active_tab.id} no longer exists: {exc}") from exc
        if not active_tab.active:
            raise StaleInvocation(f"Tab {active_tab.id} was deactivated before compaction ran.")

        window_id = active_tab.window_id
        state = self.store.get(window_id)
        align = self.options.align_active_tab_group
        keep_previous = (
            not active_tab.grouped and not self.options.collapse_previous_group_on_ungrouped_tab
        )
        result = CompactionResult(window_id=window_id, active_group_id=active_tab.group_id)
        logger.info(
            "Compacting window %s, active tab %s in group %s",
            window_id,
            active_tab.id,
            active_tab.group_id,
        )

        keep_group_id = state.active_group_id if keep_previous else active_tab.group_id
        result.collapsed_group_ids = await self.collapse_inactive_groups(window_id, keep_group_id)

        if align is AlignMode.DISABLED:
            state.record_compaction(active_tab.group_id, None)
            result.stopped_after = "collapse"
            logger.info("Alignment disabled, window %s done", window_id)
            return result
        if active_tab.group_id == state.active_group_id:
            result.stopped_after = "collapse"
            logger.info("Group %s was already active, window %s done", active_tab.group_id, window_id)
            return result
        if keep_previous:
            result.stopped_after = "collapse"
            logger.info("Ungrouped tab active and previous group kept open, window %s done", window_id)
            return result

        try:
            restored = await self._restore_previous_group(state, window_id)
            if restored is not None:
                result.restored_group_id, result.restored_to_index = restored
        finally:
            state.clear_compaction_record()

        if not active_tab.grouped:
            result.stopped_after = "restore"
            logger.info("Active tab %s is ungrouped, window %s done", active_tab.id, window_id)
            return result

        result.recorded_slot = await self._record_active_group(state, active_tab)

        result.moved_tab_ids = await self._align(active_tab, align)
        result.aligned = True
        result.stopped_after = "align"
        return result

    async def collapse_inactive_groups(self, window_id: int, keep_group_id: int) -> list[int]:
        """Collapse every expanded group except ``keep_group_id``; return those collapsed."""
        try:
            expanded = await self.host.query_groups(window_id=window_id, collapsed=False)
        except QueryFailed as exc:
            logger.error("Failed to list expanded groups of window %s: %s", window_id, exc)
            return []

        collapsed: list[int] = []
        for group in expanded:
            if group.id == keep_group_id:
                continue
            try:
                await self.host.update_group(group.id, collapsed=True)
            except MutationFailed as exc:
                logger.error("Failed to collapse group %s (%s): %s", group.id, group.title, exc)
                continue
            collapsed.append(group.id)
        logger.debug("Collapsed groups %s in window %s", collapsed, window_id)
        return collapsed

    async def _restore_previous_group(
        self, state: WindowState, window_id: int
    ) -> tuple[int, int] | None:
        prev_slot = state.active_group_prev_slot
        group_id = state.active_group_id
        if prev_slot is None or group_id == TAB_GROUP_ID_NONE:
            return None

        try:
            group = await self.host.get_group(group_id)
        except QueryFailed as exc:
            logger.warning("Previously active group %s is gone: %s", group_id, exc)
            return None
        if group.window_id != window_id:
            logger.warning("Previously active group %s left window %s", group_id, window_id)
            return None

        try:
            order, _ = await resolve_group_order(self.host, window_id)
        except QueryFailed as exc:
            logger.error("Failed to resolve group order of window %s: %s", window_id, exc)
            return None

        current_slot = slot_of(order, group_id)
        if current_slot is None:
            logger.warning("Group %s has no tabs left in window %s", group_id, window_id)
            return None

        target_slot = restore_target_slot(prev_slot, current_slot)
        index = compute_restore_index(order[current_slot], target_slot, order)
        if index is None:
            logger.info("Nothing occupies slot %s any more, sending group %s to the end", prev_slot, group_id)
            index = INDEX_END

        logger.info(
            "Restoring group %s (%s) from slot %s to slot %s, tab index %s",
            group_id,
            group.title,
            current_slot,
            prev_slot,
            index,
        )
        try:
            await self.host.move_group(group_id, index)
        except MutationFailed as exc:
            logger.error("Failed to restore group %s to index %s: %s", group_id, index, exc)
            return None
        return group_id, index

    async def _record_active_group(self, state: WindowState, active_tab: Tab) -> int | None:
        try:
            _, slot = await resolve_group_order(
                self.host, active_tab.window_id, exclude_group_id=active_tab.group_id
            )
        except QueryFailed as exc:
            logger.error(
                "Failed to resolve group order of window %s, not recording: %s",
                active_tab.window_id,
                exc,
            )
            return None
        if slot is None:
            logger.warning("Active group %s not found in window %s", active_tab.group_id, active_tab.window_id)
            return None
        state.record_compaction(active_tab.group_id, slot)
        logger.debug("Recorded group %s at slot %s", active_tab.group_id, slot)
        return slot

    async def _align(self, active_tab: Tab, align: AlignMode) -> list[int]:
        edge = align.tab_index
        logger.info("Moving group %s to tab index %s", active_tab.group_id, edge)
        await self.host.move_group(active_tab.group_id, edge)

        ungrouped = await self.host.query_tabs(
            window_id=active_tab.window_id, group_id=TAB_GROUP_ID_NONE
        )
        for tab in ungrouped:
            await self.host.move_tab(tab.id, INDEX_END)
        return [tab.id for tab in ungrouped]
