"""Left-to-right tab group order reconstructed from the tab strip."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from host.base_host import BaseTabHost
from host.errors import QueryFailed
from host.types import TAB_GROUP_ID_NONE

logger = logging.getLogger("tgp.group_order")


@dataclass(frozen=True)
class OrderedGroup:
    """A tab group at a known position in the strip."""

    id: int
    window_id: int
    collapsed: bool
    title: str
    first_index: int
    tab_count: int


async def resolve_group_order(
    host: BaseTabHost,
    window_id: int,
    exclude_group_id: int = TAB_GROUP_ID_NONE,
) -> tuple[list[OrderedGroup], int | None]:
    """Return a window's groups in display order and the excluded group's slot.

    Slots count groups only; ungrouped tabs never consume one. The excluded
    group still takes up its slot but is left out of the returned list.
    Raises ``QueryFailed`` if the host cannot list the window.
    """
    tabs = await host.query_tabs(window_id=window_id)

    slots: list[int] = []
    first_index: dict[int, int] = {}
    tab_count: dict[int, int] = {}
    excluded_slot: int | None = None
    last_seen = TAB_GROUP_ID_NONE

    for tab in tabs:
        if not tab.grouped:
            continue
        # Interior tab of a group already counted.
        if tab.group_id == last_seen or tab.group_id in first_index:
            tab_count[tab.group_id] += 1
            last_seen = tab.group_id
            continue
        last_seen = tab.group_id
        first_index[tab.group_id] = tab.index
        tab_count[tab.group_id] = 1
        if tab.group_id == exclude_group_id:
            excluded_slot = len(slots)
        slots.append(tab.group_id)

    groups = {group.id: group for group in await host.query_groups(window_id=window_id)}

    ordered: list[OrderedGroup] = []
    for group_id in slots:
        if group_id == exclude_group_id:
            continue
        group = groups.get(group_id)
        if group is None:
            raise QueryFailed(f"Group {group_id} vanished while resolving window {window_id}.")
        ordered.append(
            OrderedGroup(
                id=group_id,
                window_id=window_id,
                collapsed=group.collapsed,
                title=group.title,
                first_index=first_index[group_id],
                tab_count=tab_count[group_id],
            )
        )
    logger.debug(
        "Window %s group order: %s (excluded slot %s)",
        window_id,
        [g.title or g.id for g in ordered],
        excluded_slot,
    )
    return ordered, excluded_slot


def slot_of(order: list[OrderedGroup], group_id: int) -> int | None:
    for slot, group in enumerate(order):
        if group.id == group_id:
            return slot
    return None
