"""Routes host browser events to the scheduler, the engine and auto-grouping."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from pydantic import ValidationError

from compaction.auto_group import NewTabGrouper
from compaction.group_order import resolve_group_order
from compaction.liveness import is_content_script_active
from compaction.scheduler import CompactionScheduler
from core.event_bus import (
    OPTIONS_CHANGED,
    RUNTIME_MESSAGE,
    TAB_ACTIVATED,
    TAB_CREATED,
    TAB_GROUP_REMOVED,
    TAB_UPDATED,
    WINDOW_CREATED,
    WINDOW_REMOVED,
    EventBus,
    EventHandler,
)
from core.options import AlignMode, CompactionOptions
from core.state_manager import WindowStateStore
from host.base_host import BaseTabHost
from host.errors import QueryFailed
from host.types import TAB_GROUP_ID_NONE, Tab, TabGroup

logger = logging.getLogger("tgp.router")

MOUSE_IN_CONTENT_AREA = "mouseInContentArea"


class EventRouter:
    """Subscribes to host events and dispatches them.

    Handlers run synchronously inside the emitting call; anything that needs
    the host is spawned as a task so event delivery never blocks.
    """

    def __init__(
        self,
        host: BaseTabHost,
        bus: EventBus,
        store: WindowStateStore,
        scheduler: CompactionScheduler,
        grouper: NewTabGrouper,
        options: CompactionOptions,
    ) -> None:
        self.host = host
        self.bus = bus
        self.store = store
        self.scheduler = scheduler
        self.grouper = grouper
        self.options = options
        self.listening = False
        self._tasks: set[asyncio.Task[Any]] = set()
        self._subscriptions: list[tuple[str, EventHandler]] = [
            (RUNTIME_MESSAGE, self.on_runtime_message),
            (TAB_ACTIVATED, self.on_tab_activated),
            (TAB_UPDATED, self.on_tab_updated),
            (TAB_CREATED, self.on_tab_created),
            (TAB_GROUP_REMOVED, self.on_tab_group_removed),
            (WINDOW_CREATED, self.on_window_created),
            (WINDOW_REMOVED, self.on_window_removed),
            (OPTIONS_CHANGED, self.on_options_changed),
        ]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def register(self) -> None:
        if self.listening:
            return
        for event_name, handler in self._subscriptions:
            self.bus.subscribe(event_name, handler)
        self.listening = True
        logger.info("Listeners registered")

    def deregister(self) -> None:
        for event_name, handler in self._subscriptions:
            self.bus.unsubscribe(event_name, handler)
        self.listening = False
        logger.info("Listeners deregistered")

    async def start(self, browser_starting_up: bool = False) -> list[int]:
        """Start listening and reconcile state against the live windows.

        While the browser restores a previous session, listening is delayed so
        the restored windows, tabs and groups are not compacted mid-restore.
        Returns the ids of windows whose stale state was pruned.
        """
        if browser_starting_up:
            delay_ms = self.options.listen_delay_on_browser_startup_ms
            logger.info("Browser is starting up, waiting %sms before listening", delay_ms)
            await asyncio.sleep(delay_ms / 1000.0)
        self.register()

        try:
            window_ids = await self.host.list_window_ids()
        except QueryFailed as exc:
            logger.error("Failed to list windows during startup: %s", exc)
            return []

        pruned = self.store.prune(window_ids)
        for window_id in window_ids:
            if not self.store.has(window_id):
                self.store.get(window_id)
                await self.seed_window(window_id)
        logger.info("Tracking %s windows, pruned %s", len(self.store), pruned)
        return pruned

    def suspend(self) -> int:
        """Stop listening and drop every armed timer."""
        self.deregister()
        cancelled = self.scheduler.cancel_all()
        logger.info("Suspended, cancelled %s pending compactions", cancelled)
        return cancelled

    async def flush(self) -> None:
        """Wait for spawned handlers, leaving armed timers alone."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def drain(self, timeout_s: float = 10.0) -> None:
        """Wait for spawned handlers and scheduled compactions to finish."""
        while True:
            await self.flush()
            await self.scheduler.wait_idle(timeout_s)
            if not self._tasks:
                return

    async def seed_window(self, window_id: int) -> int | None:
        """Assume a newly seen window is already in order.

        The group at the alignment edge is recorded as the active group with no
        previous slot, so activating it is not treated as a change.
        """
        align = self.options.align_active_tab_group
        if align is AlignMode.DISABLED:
            return None
        state = self.store.get(window_id)
        if state.active_group_id != TAB_GROUP_ID_NONE:
            return state.active_group_id
        try:
            order, _ = await resolve_group_order(self.host, window_id)
        except QueryFailed as exc:
            logger.error("Failed to seed window %s: %s", window_id, exc)
            return None
        if not order:
            return None
        edge_group = order[0] if align is AlignMode.LEFT else order[-1]
        state.record_compaction(edge_group.id, None)
        logger.info("Seeded window %s with group %s (%s)", window_id, edge_group.id, edge_group.title)
        return edge_group.id

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_runtime_message(self, payload: dict[str, Any]) -> dict[str, str]:
        message = payload.get("message") or {}
        sender: Tab | None = payload.get("sender_tab")

        if message.get("action") != MOUSE_IN_CONTENT_AREA:
            logger.error("Unexpected message from content script: %r", message)
            return {"status": "invalidAction"}

        entered = bool(message.get("value"))
        if sender is None:
            logger.error("No sender tab for %s message", MOUSE_IN_CONTENT_AREA)
            return {"status": "failed"}
        if not sender.active:
            logger.error(
                "Mouse %s the content area of inactive tab %s",
                "entered" if entered else "left",
                sender.id,
            )
            return {"status": "failed"}

        if entered:
            logger.debug("Mouse entered tab %s", sender.id)
            self.scheduler.schedule(sender, self.options.delay_on_enter_content_area_ms)
        else:
            # Back up to the tab strip: the user is still choosing.
            logger.debug("Mouse left tab %s", sender.id)
            self.scheduler.cancel(sender.window_id)
        return {"status": "ok"}

    def on_tab_activated(self, payload: dict[str, Any]) -> None:
        tab_id = payload.get("tab_id")
        window_id = payload.get("window_id")
        if tab_id is None or window_id is None:
            logger.error("Activation event without tab or window id: %r", payload)
            return
        self.store.get(window_id).last_active_tab_id = tab_id
        logger.debug("Tab %s activated in window %s", tab_id, window_id)
        self._spawn(self._handle_activation(tab_id, window_id))

    def on_tab_updated(self, payload: dict[str, Any]) -> None:
        change = payload.get("change") or {}
        if "group_id" not in change:
            return
        self._spawn(self._handle_regroup(payload["tab_id"], change["group_id"]))

    def on_tab_created(self, payload: dict[str, Any]) -> None:
        if not self.options.auto_group_new_tabs:
            return
        tab: Tab = payload["tab"]
        state = self.store.get(tab.window_id)
        # Read now: the new tab's own activation overwrites it right after.
        last_active_tab_id = state.last_active_tab_id
        if tab.active:
            state.new_tab_id = tab.id
        logger.info("Tab %s created in window %s", tab.id, tab.window_id)
        self._spawn(self.grouper.group_new_tab(tab, last_active_tab_id))

    def on_tab_group_removed(self, payload: dict[str, Any]) -> None:
        group: TabGroup = payload["group"]
        if not self.store.has(group.window_id):
            return
        state = self.store.get(group.window_id)
        if state.active_group_id == group.id:
            logger.info("Recorded group %s was removed, clearing window %s record", group.id, group.window_id)
            state.clear_compaction_record()

    def on_window_created(self, payload: dict[str, Any]) -> None:
        window_id = payload["window_id"]
        self.store.get(window_id)
        logger.info("Window %s created", window_id)
        self._spawn(self.seed_window(window_id))

    def on_window_removed(self, payload: dict[str, Any]) -> None:
        window_id = payload["window_id"]
        self.scheduler.cancel(window_id)
        self.store.remove(window_id)

    def on_options_changed(self, payload: dict[str, Any]) -> None:
        try:
            self.options.apply_changes(payload.get("changes") or {})
        except ValidationError as exc:
            logger.error("Rejected option change, keeping current options: %s", exc)

    # ------------------------------------------------------------------
    # Async halves
    # ------------------------------------------------------------------

    async def _handle_activation(self, tab_id: int, window_id: int) -> None:
        state = self.store.get(window_id)
        if await is_content_script_active(self.host, tab_id):
            # The content script triggers compaction on mouse enter instead.
            state.consume_new_tab_marker(tab_id)
            self.scheduler.cancel(window_id)
            return

        try:
            tab = await self.host.get_tab(tab_id)
        except QueryFailed as exc:
            logger.error("Failed to get activated tab %s: %s", tab_id, exc)
            return
        if state.consume_new_tab_marker(tab.id):
            logger.info("Ignoring first activation of new tab %s", tab.id)
            return
        self.scheduler.schedule(tab, self.options.delay_on_activate_uninjected_tab_ms)

    async def _handle_regroup(self, tab_id: int, group_id: int) -> None:
        if await is_content_script_active(self.host, tab_id):
            logger.debug("Live tab %s moved to group %s, ignoring", tab_id, group_id)
            return
        if group_id == TAB_GROUP_ID_NONE:
            return
        try:
            tab = await self.host.get_tab(tab_id)
        except QueryFailed as exc:
            logger.error("Failed to get regrouped tab %s: %s", tab_id, exc)
            return
        # A regrouped background tab leaves its new group collapsed.
        if not tab.active:
            logger.debug("Regrouped tab %s is not active, ignoring", tab_id)
            return
        self.scheduler.schedule(tab, self.options.delay_on_activate_uninjected_tab_ms)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
