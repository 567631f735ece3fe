"""Content-script liveness probe."""

from __future__ import annotations

import logging

from host.base_host import BaseTabHost
from host.errors import MessagingFailed

logger = logging.getLogger("tgp.liveness")

PING_MESSAGE = {"action": "ping"}
# Older content scripts answer "ok" instead of "pong".
LIVE_STATUSES = frozenset({"pong", "ok"})


async def is_content_script_active(host: BaseTabHost, tab_id: int) -> bool:
    """Return True when a content script in ``tab_id`` answers a ping.

    Tabs the script cannot be injected into (browser pages, the web store,
    blank pages) never answer, so the engine owns triggering compaction there.
    """
    try:
        response = await host.send_message(tab_id, dict(PING_MESSAGE))
    except MessagingFailed as exc:
        logger.debug("No content script in tab %s: %s", tab_id, exc)
        return False
    status = response.get("status") if isinstance(response, dict) else None
    if status in LIVE_STATUSES:
        return True
    logger.warning("Tab %s answered ping with unexpected response: %r", tab_id, response)
    return False
