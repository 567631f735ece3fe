"""In-memory tab strip implementing the host surface for simulations and tests.

Models the parts of a Chromium tab strip the compaction engine depends on:
left-to-right tab order per window, contiguous tab groups, collapsed state,
``move`` index semantics that exclude the moved tabs, and content scripts that
answer pings. User actions (activating, opening and closing) are plain
methods that emit events on an optional ``EventBus`` the same way the browser
fires listeners.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Any

from core.event_bus import (
    RUNTIME_MESSAGE,
    TAB_ACTIVATED,
    TAB_CREATED,
    TAB_GROUP_REMOVED,
    TAB_UPDATED,
    WINDOW_CREATED,
    WINDOW_REMOVED,
    EventBus,
)
from host.base_host import BaseTabHost
from host.errors import MessagingFailed, MutationFailed, QueryFailed
from host.types import INDEX_END, TAB_GROUP_ID_NONE, Tab, TabGroup

logger = logging.getLogger("tgp.memory_host")

DRAGGING_ERROR = "Tabs cannot be edited right now (user may be dragging a tab)."


@dataclass
class _TabRecord:
    id: int
    window_id: int
    group_id: int = TAB_GROUP_ID_NONE
    active: bool = False
    title: str = ""


class InMemoryTabHost(BaseTabHost):
    """Deterministic host browser backed by plain dictionaries."""

    def __init__(self, bus: EventBus | None = None, latency_s: float = 0.0) -> None:
        self.bus = bus
        self.latency_s = latency_s
        # Set to simulate the user holding a tab mid-drag.
        self.locked = False
        self._windows: dict[int, list[int]] = {}
        self._tabs: dict[int, _TabRecord] = {}
        self._groups: dict[int, TabGroup] = {}
        self._injected: set[int] = set()
        self._window_ids = itertools.count(1)
        self._tab_ids = itertools.count(1)
        self._group_ids = itertools.count(101)

    # ------------------------------------------------------------------
    # Layout helpers (no events)
    # ------------------------------------------------------------------

    def create_window(self, emit: bool = True) -> int:
        window_id = next(self._window_ids)
        self._windows[window_id] = []
        if emit:
            self._emit(WINDOW_CREATED, {"window_id": window_id})
        return window_id

    def add_tabs(self, window_id: int, titles: list[str], injected: bool = True) -> list[Tab]:
        """Append ungrouped tabs to the end of a window."""
        self._require_window(window_id)
        created = []
        for title in titles:
            record = _TabRecord(id=next(self._tab_ids), window_id=window_id, title=title)
            self._tabs[record.id] = record
            self._windows[window_id].append(record.id)
            if injected:
                self._injected.add(record.id)
            created.append(self._snapshot(record))
        return created

    def add_group(
        self,
        window_id: int,
        title: str,
        tab_titles: list[str],
        collapsed: bool = False,
        injected: bool = True,
    ) -> int:
        """Append a new group holding freshly created tabs."""
        if not tab_titles:
            raise ValueError("A tab group needs at least one tab.")
        group_id = next(self._group_ids)
        self._groups[group_id] = TabGroup(
            id=group_id, window_id=window_id, collapsed=collapsed, title=title
        )
        for tab in self.add_tabs(window_id, tab_titles, injected=injected):
            self._tabs[tab.id].group_id = group_id
        return group_id

    def set_active(self, tab_id: int) -> None:
        """Mark a tab active without emitting events."""
        record = self._require_tab(tab_id)
        for other_id in self._windows[record.window_id]:
            self._tabs[other_id].active = other_id == tab_id

    def set_injected(self, tab_id: int, injected: bool = True) -> None:
        self._require_tab(tab_id)
        if injected:
            self._injected.add(tab_id)
        else:
            self._injected.discard(tab_id)

    def find_tab(self, title: str) -> Tab:
        for record in self._tabs.values():
            if record.title == title:
                return self._snapshot(record)
        raise KeyError(f"No tab titled {title!r}.")

    def find_group(self, title: str) -> TabGroup:
        for group in self._groups.values():
            if group.title == title:
                return group
        raise KeyError(f"No group titled {title!r}.")

    def active_tab(self, window_id: int) -> Tab | None:
        for tab_id in self._windows.get(window_id, []):
            if self._tabs[tab_id].active:
                return self._snapshot(self._tabs[tab_id])
        return None

    def describe_window(self, window_id: int) -> str:
        """Render a window's strip, e.g. ``[A: a1* a2] [B +2] x``."""
        parts: list[str] = []
        current_group = TAB_GROUP_ID_NONE
        members: list[str] = []

        def flush() -> None:
            if current_group == TAB_GROUP_ID_NONE:
                return
            group = self._groups[current_group]
            if group.collapsed:
                parts.append(f"[{group.title} +{len(members)}]")
            else:
                parts.append(f"[{group.title}: {' '.join(members)}]")

        for tab_id in self._windows[window_id]:
            record = self._tabs[tab_id]
            label = record.title + ("*" if record.active else "")
            if record.group_id != current_group:
                flush()
                current_group = record.group_id
                members = []
            if record.group_id == TAB_GROUP_ID_NONE:
                parts.append(label)
            else:
                members.append(label)
        flush()
        return " ".join(parts)

    # ------------------------------------------------------------------
    # User actions (emit events)
    # ------------------------------------------------------------------

    def activate(self, tab_id: int) -> None:
        """Activate a tab the way a click on the strip does."""
        record = self._require_tab(tab_id)
        self.set_active(tab_id)
        group = self._groups.get(record.group_id)
        if group is not None and group.collapsed:
            self._groups[group.id] = group.model_copy(update={"collapsed": False})
        self._emit(TAB_ACTIVATED, {"tab_id": tab_id, "window_id": record.window_id})

    def open_tab(
        self,
        window_id: int,
        title: str,
        active: bool = True,
        injected: bool = False,
    ) -> Tab:
        """Open a new ungrouped tab at the end of the strip."""
        (tab,) = self.add_tabs(window_id, [title], injected=injected)
        if active:
            self.set_active(tab.id)
        self._emit(TAB_CREATED, {"tab": self._snapshot(self._tabs[tab.id])})
        if active:
            self._emit(TAB_ACTIVATED, {"tab_id": tab.id, "window_id": window_id})
        return self._snapshot(self._tabs[tab.id])

    def hover_content(self, tab_id: int, entered: bool = True) -> list[Any]:
        """Deliver the content script's mouse enter/leave signal for a tab."""
        if tab_id not in self._injected:
            return []
        sender = self._snapshot(self._require_tab(tab_id))
        message = {"action": "mouseInContentArea", "value": entered}
        return self._emit(RUNTIME_MESSAGE, {"message": message, "sender_tab": sender})

    def ungroup(self, group_id: int) -> None:
        group = self._groups.pop(group_id, None)
        if group is None:
            raise KeyError(f"No group with id {group_id}.")
        for record in self._tabs.values():
            if record.group_id == group_id:
                record.group_id = TAB_GROUP_ID_NONE
        self._emit(TAB_GROUP_REMOVED, {"group": group})

    def close_window(self, window_id: int) -> None:
        for tab_id in self._windows.pop(window_id, []):
            self._tabs.pop(tab_id, None)
            self._injected.discard(tab_id)
        for group_id in [g.id for g in self._groups.values() if g.window_id == window_id]:
            del self._groups[group_id]
        self._emit(WINDOW_REMOVED, {"window_id": window_id})

    # ------------------------------------------------------------------
    # Host surface
    # ------------------------------------------------------------------

    async def list_window_ids(self) -> list[int]:
        await self._tick()
        return list(self._windows)

    async def query_tabs(
        self,
        *,
        window_id: int | None = None,
        group_id: int | None = None,
    ) -> list[Tab]:
        await self._tick()
        if window_id is not None and window_id not in self._windows:
            raise QueryFailed(f"No window with id: {window_id}.")
        window_ids = [window_id] if window_id is not None else sorted(self._windows)
        tabs = []
        for wid in window_ids:
            for tab_id in self._windows[wid]:
                record = self._tabs[tab_id]
                if group_id is not None and record.group_id != group_id:
                    continue
                tabs.append(self._snapshot(record))
        return tabs

    async def get_tab(self, tab_id: int) -> Tab:
        await self._tick()
        record = self._tabs.get(tab_id)
        if record is None:
            raise QueryFailed(f"No tab with id: {tab_id}.")
        return self._snapshot(record)

    async def query_groups(
        self,
        *,
        window_id: int,
        collapsed: bool | None = None,
    ) -> list[TabGroup]:
        await self._tick()
        return [
            group
            for group in self._groups.values()
            if group.window_id == window_id and (collapsed is None or group.collapsed == collapsed)
        ]

    async def get_group(self, group_id: int) -> TabGroup:
        await self._tick()
        group = self._groups.get(group_id)
        if group is None:
            raise QueryFailed(f"No group with id: {group_id}.")
        return group

    async def update_group(self, group_id: int, *, collapsed: bool) -> TabGroup:
        await self._tick()
        self._check_unlocked()
        group = self._groups.get(group_id)
        if group is None:
            raise MutationFailed(f"No group with id: {group_id}.")
        group = group.model_copy(update={"collapsed": collapsed})
        self._groups[group_id] = group
        if collapsed:
            self._reactivate_after_collapse(group)
        return group

    async def move_group(self, group_id: int, index: int) -> TabGroup:
        await self._tick()
        self._check_unlocked()
        group = self._groups.get(group_id)
        if group is None:
            raise MutationFailed(f"No group with id: {group_id}.")
        strip = self._windows[group.window_id]
        moving = [tab_id for tab_id in strip if self._tabs[tab_id].group_id == group_id]
        rest = [tab_id for tab_id in strip if tab_id not in moving]
        position = self._insert_position(rest, index)
        self._windows[group.window_id] = rest[:position] + moving + rest[position:]
        return group

    async def move_tab(self, tab_id: int, index: int) -> Tab:
        await self._tick()
        self._check_unlocked()
        record = self._tabs.get(tab_id)
        if record is None:
            raise MutationFailed(f"No tab with id: {tab_id}.")
        rest = [other for other in self._windows[record.window_id] if other != tab_id]
        position = self._insert_position(rest, index)
        rest.insert(position, tab_id)
        self._windows[record.window_id] = rest
        return self._snapshot(record)

    async def group_tabs(self, tab_ids: list[int], group_id: int) -> int:
        await self._tick()
        self._check_unlocked()
        group = self._groups.get(group_id)
        if group is None:
            raise MutationFailed(f"No group with id: {group_id}.")
        for tab_id in tab_ids:
            record = self._tabs.get(tab_id)
            if record is None or record.window_id != group.window_id:
                raise MutationFailed(f"Tab {tab_id} is not in window {group.window_id}.")
            strip = self._windows[group.window_id]
            strip.remove(tab_id)
            last = max(
                (i for i, other in enumerate(strip) if self._tabs[other].group_id == group_id),
                default=len(strip) - 1,
            )
            strip.insert(last + 1, tab_id)
            record.group_id = group_id
            if record.active and group.collapsed:
                group = group.model_copy(update={"collapsed": False})
                self._groups[group_id] = group
        for tab_id in tab_ids:
            self._emit(TAB_UPDATED, {"tab_id": tab_id, "change": {"group_id": group_id}})
        return group_id

    async def send_message(self, tab_id: int, message: dict[str, Any]) -> dict[str, Any]:
        await self._tick()
        if tab_id not in self._tabs or tab_id not in self._injected:
            raise MessagingFailed("Could not establish connection. Receiving end does not exist.")
        if message.get("action") == "ping":
            return {"status": "pong"}
        return {"status": "invalidAction"}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _tick(self) -> None:
        await asyncio.sleep(self.latency_s)

    def _emit(self, event_name: str, payload: dict[str, Any]) -> list[Any]:
        if self.bus is None:
            return []
        return self.bus.emit(event_name, payload)

    def _check_unlocked(self) -> None:
        if self.locked:
            raise MutationFailed(DRAGGING_ERROR)

    def _require_window(self, window_id: int) -> None:
        if window_id not in self._windows:
            raise KeyError(f"No window with id {window_id}.")

    def _require_tab(self, tab_id: int) -> _TabRecord:
        record = self._tabs.get(tab_id)
        if record is None:
            raise KeyError(f"No tab with id {tab_id}.")
        return record

    def _snapshot(self, record: _TabRecord) -> Tab:
        return Tab(
            id=record.id,
            window_id=record.window_id,
            index=self._windows[record.window_id].index(record.id),
            group_id=record.group_id,
            active=record.active,
            title=record.title,
        )

    def _insert_position(self, rest: list[int], index: int) -> int:
        if index == INDEX_END or index >= len(rest):
            return len(rest)
        if index < 0:
            raise MutationFailed(f"Invalid tab index: {index}.")
        if 0 < index < len(rest):
            left = self._tabs[rest[index - 1]].group_id
            right = self._tabs[rest[index]].group_id
            if left != TAB_GROUP_ID_NONE and left == right:
                raise MutationFailed("Cannot move tabs into the middle of another group.")
        return index

    def _reactivate_after_collapse(self, group: TabGroup) -> None:
        strip = self._windows[group.window_id]
        active_id = next((tab_id for tab_id in strip if self._tabs[tab_id].active), None)
        if active_id is None or self._tabs[active_id].group_id != group.id:
            return

        def visible(tab_id: int) -> bool:
            owner = self._groups.get(self._tabs[tab_id].group_id)
            return owner is None or not owner.collapsed

        position = strip.index(active_id)
        candidates = [t for t in strip[position + 1:] if visible(t)]
        candidates += [t for t in reversed(strip[:position]) if visible(t)]
        if candidates:
            self.activate(candidates[0])
            return
        logger.debug("All groups collapsed in window %s, creating fallback tab", group.window_id)
        self.open_tab(group.window_id, "New Tab", active=True, injected=False)
