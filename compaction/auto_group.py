"""Folding newly created tabs into the previously active tab's group."""

from __future__ import annotations

import asyncio
import logging

from compaction.fallback import is_fallback_tab
from core.options import CompactionOptions
from host.base_host import BaseTabHost
from host.errors import MutationFailed, QueryFailed
from host.types import Tab

logger = logging.getLogger("tgp.auto_group")


class NewTabGrouper:
    """Adds a new ungrouped tab to the group the user was just working in."""

    def __init__(self, host: BaseTabHost, options: CompactionOptions) -> None:
        self.host = host
        self.options = options

    async def group_new_tab(self, new_tab: Tab, last_active_tab_id: int | None) -> int | None:
        """Return the id of the group the tab joined, or None.

        ``last_active_tab_id`` must be captured when the creation event arrives,
        before the new tab's own activation overwrites it.
        """
        if new_tab.grouped:
            logger.debug("New tab %s is already in group %s", new_tab.id, new_tab.group_id)
            return None

        # The browser may still move the tab into a group on its own.
        await asyncio.sleep(self.options.check_grouping_delay_on_create_tab_ms / 1000.0)

        try:
            tab = await self.host.get_tab(new_tab.id)
        except QueryFailed as exc:
            logger.error("Failed to re-fetch new tab %s: %s", new_tab.id, exc)
            return None
        if tab.grouped:
            logger.info("Tab %s was placed into group %s since its creation", tab.id, tab.group_id)
            return None

        if await is_fallback_tab(self.host, tab):
            logger.info("Leaving fallback tab %s ungrouped", tab.id)
            return None

        if last_active_tab_id is None:
            logger.info("No previously active tab known for window %s", tab.window_id)
            return None
        if last_active_tab_id == tab.id:
            logger.warning("New tab %s is also the last active tab of its window", tab.id)
            return None

        try:
            previous = await self.host.get_tab(last_active_tab_id)
        except QueryFailed as exc:
            logger.error("Failed to fetch last active tab %s: %s", last_active_tab_id, exc)
            return None
        if not previous.grouped:
            logger.info("Last active tab %s is ungrouped, leaving tab %s alone", previous.id, tab.id)
            return None
        if previous.window_id != tab.window_id:
            logger.debug("Last active tab %s is in another window", previous.id)
            return None

        try:
            await self.host.group_tabs([tab.id], previous.group_id)
        except MutationFailed as exc:
            logger.error("Failed to add tab %s to group %s: %s", tab.id, previous.group_id, exc)
            return None
        logger.info("Added new tab %s to group %s", tab.id, previous.group_id)
        return previous.group_id
