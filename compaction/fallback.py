"""Detection of browser-synthesized fallback tabs."""

from __future__ import annotations

import logging

from compaction.errors import ClassificationUncertain
from host.base_host import BaseTabHost
from host.errors import QueryFailed
from host.types import Tab, TabGroup

logger = logging.getLogger("tgp.fallback")


def _all_collapsed(group_ids: set[int], groups: dict[int, TabGroup]) -> bool:
    for group_id in sorted(group_ids):
        group = groups.get(group_id)
        if group is None:
            raise ClassificationUncertain(f"Group {group_id} not found.")
        if not group.collapsed:
            return False
    return True


async def is_fallback_tab(host: BaseTabHost, new_tab: Tab) -> bool:
    """Return True if ``new_tab`` looks like the tab the browser creates when
    every group in a window was collapsed and no loose tab remained.

    A brand-new window holding only this tab also counts. Uncertain data
    classifies as not-fallback.
    """
    try:
        tabs = await host.query_tabs(window_id=new_tab.window_id)
    except QueryFailed as exc:
        logger.error("Failed to list tabs of window %s: %s", new_tab.window_id, exc)
        return False

    others = [tab for tab in tabs if tab.id != new_tab.id]
    if not others:
        return True
    if any(not tab.grouped for tab in others):
        return False

    try:
        groups = {g.id: g for g in await host.query_groups(window_id=new_tab.window_id)}
        return _all_collapsed({tab.group_id for tab in others}, groups)
    except QueryFailed as exc:
        logger.error("Failed to list groups of window %s: %s", new_tab.window_id, exc)
        return False
    except ClassificationUncertain as exc:
        logger.error("%s Treating tab %s as a regular tab.", exc, new_tab.id)
        return False
