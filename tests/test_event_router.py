"""Event routing tests: host events through to compaction."""

from __future__ import annotations

import pytest

from core.event_bus import OPTIONS_CHANGED, TAB_ACTIVATED
from core.options import AlignMode
from core.orchestrator import RuntimeBundle
from host.types import TAB_GROUP_ID_NONE


@pytest.mark.asyncio
async def test_start_seeds_leftmost_group(runtime: RuntimeBundle, runtime_strip) -> None:
    strip = runtime_strip

    await runtime.router.start()

    state = runtime.store.get(strip.window_id)
    assert runtime.router.listening
    assert (state.active_group_id, state.active_group_prev_slot) == (strip.a, None)


@pytest.mark.asyncio
async def test_start_seeds_rightmost_group_for_right_alignment(runtime: RuntimeBundle, runtime_strip) -> None:
    runtime.options.align_active_tab_group = AlignMode.RIGHT
    strip = runtime_strip

    await runtime.router.start()

    assert runtime.store.get(strip.window_id).active_group_id == strip.c


@pytest.mark.asyncio
async def test_start_prunes_closed_windows(runtime: RuntimeBundle, runtime_strip) -> None:
    runtime.store.get(99)

    assert await runtime.router.start(browser_starting_up=True) == [99]
    assert not runtime.store.has(99)


@pytest.mark.asyncio
async def test_hover_compacts_after_delay(runtime: RuntimeBundle, runtime_strip) -> None:
    host = runtime.host
    strip = runtime_strip
    await runtime.router.start()

    host.activate(host.find_tab("c1").id)
    await runtime.router.flush()
    assert not runtime.scheduler.is_pending(strip.window_id)

    assert host.hover_content(host.find_tab("c1").id) == [{"status": "ok"}]
    assert runtime.scheduler.is_pending(strip.window_id)
    await runtime.router.drain()

    assert host.describe_window(strip.window_id) == "[C: c1* c2] [A +2] [B +1] x"


@pytest.mark.asyncio
async def test_leaving_content_area_cancels(runtime: RuntimeBundle, runtime_strip) -> None:
    host = runtime.host
    strip = runtime_strip
    await runtime.router.start()
    host.activate(host.find_tab("b1").id)
    await runtime.router.flush()

    host.hover_content(host.find_tab("b1").id, entered=True)
    host.hover_content(host.find_tab("b1").id, entered=False)
    await runtime.router.drain()

    assert host.describe_window(strip.window_id) == "[A: a1 a2] [B: b1*] [C +2] x"


@pytest.mark.asyncio
async def test_uninjected_tab_activation_schedules(runtime: RuntimeBundle, runtime_strip) -> None:
    host = runtime.host
    strip = runtime_strip
    host.set_injected(host.find_tab("c1").id, False)
    await runtime.router.start()

    host.activate(host.find_tab("c1").id)
    await runtime.router.flush()
    assert runtime.scheduler.is_pending(strip.window_id)

    await runtime.router.drain()
    assert host.describe_window(strip.window_id) == "[C: c1* c2] [A +2] [B +1] x"


@pytest.mark.asyncio
async def test_live_tab_activation_cancels_pending_run(runtime: RuntimeBundle, runtime_strip) -> None:
    host = runtime.host
    strip = runtime_strip
    host.set_injected(host.find_tab("c1").id, False)
    await runtime.router.start()
    host.activate(host.find_tab("c1").id)
    await runtime.router.flush()

    host.activate(host.find_tab("b1").id)
    await runtime.router.flush()

    assert not runtime.scheduler.is_pending(strip.window_id)
    assert runtime.store.get(strip.window_id).last_active_tab_id == host.find_tab("b1").id


def test_messages_from_inactive_or_unknown_senders(runtime: RuntimeBundle, runtime_strip) -> None:
    host = runtime.host
    router = runtime.router
    inactive = host.find_tab("b1")

    assert router.on_runtime_message(
        {"message": {"action": "mouseInContentArea", "value": True}, "sender_tab": inactive}
    ) == {"status": "failed"}
    assert router.on_runtime_message(
        {"message": {"action": "mouseInContentArea", "value": True}}
    ) == {"status": "failed"}
    assert router.on_runtime_message(
        {"message": {"action": "reload"}, "sender_tab": host.find_tab("a1")}
    ) == {"status": "invalidAction"}


@pytest.mark.asyncio
async def test_new_tab_joins_active_group(runtime: RuntimeBundle, runtime_strip) -> None:
    host = runtime.host
    strip = runtime_strip
    await runtime.router.start()
    host.activate(host.find_tab("a2").id)
    await runtime.router.flush()

    new_tab = host.open_tab(strip.window_id, "n")
    assert runtime.store.get(strip.window_id).new_tab_id == new_tab.id
    await runtime.router.drain()

    assert host.find_tab("n").group_id == strip.a
    assert runtime.store.get(strip.window_id).new_tab_id is None
    assert host.describe_window(strip.window_id) == "[A: a1 a2 n*] [B +1] [C +2] x"


@pytest.mark.asyncio
async def test_first_activation_of_new_tab_is_ignored(runtime: RuntimeBundle, runtime_strip) -> None:
    host = runtime.host
    strip = runtime_strip
    await runtime.router.start()
    host.activate(host.find_tab("x").id)
    await runtime.router.flush()

    host.open_tab(strip.window_id, "n")
    await runtime.router.flush()

    assert not host.find_tab("n").grouped
    assert not runtime.scheduler.is_pending(strip.window_id)


@pytest.mark.asyncio
async def test_auto_grouping_disabled(runtime: RuntimeBundle, runtime_strip) -> None:
    host = runtime.host
    strip = runtime_strip
    runtime.options.auto_group_new_tabs = False
    await runtime.router.start()
    host.activate(host.find_tab("a1").id)
    await runtime.router.flush()

    host.open_tab(strip.window_id, "n")
    await runtime.router.flush()

    assert not host.find_tab("n").grouped
    # Without the marker the activation itself schedules a run.
    assert runtime.scheduler.is_pending(strip.window_id)
    runtime.router.suspend()


@pytest.mark.asyncio
async def test_removed_group_clears_record(runtime: RuntimeBundle, runtime_strip) -> None:
    host = runtime.host
    strip = runtime_strip
    await runtime.router.start()

    host.ungroup(strip.b)
    assert runtime.store.get(strip.window_id).active_group_id == strip.a

    host.ungroup(strip.a)
    assert runtime.store.get(strip.window_id).active_group_id == TAB_GROUP_ID_NONE


@pytest.mark.asyncio
async def test_window_lifecycle(runtime: RuntimeBundle) -> None:
    host = runtime.host
    await runtime.router.start()

    window_id = host.create_window()
    assert runtime.store.has(window_id)
    await runtime.router.flush()

    host.close_window(window_id)
    assert not runtime.store.has(window_id)


@pytest.mark.asyncio
async def test_options_change_applies_live(runtime: RuntimeBundle) -> None:
    await runtime.router.start()

    runtime.bus.emit(OPTIONS_CHANGED, {"changes": {"align_active_tab_group": -1, "bogus": 1}})

    assert runtime.options.align_active_tab_group is AlignMode.RIGHT


@pytest.mark.asyncio
async def test_invalid_options_change_keeps_current_options(runtime: RuntimeBundle) -> None:
    await runtime.router.start()

    runtime.bus.emit(
        OPTIONS_CHANGED,
        {"changes": {"auto_group_new_tabs": False, "align_active_tab_group": "middle"}},
    )

    assert runtime.options.auto_group_new_tabs is True
    assert runtime.options.align_active_tab_group is AlignMode.LEFT


@pytest.mark.asyncio
async def test_suspend_stops_listening(runtime: RuntimeBundle, runtime_strip) -> None:
    host = runtime.host
    strip = runtime_strip
    host.set_injected(host.find_tab("c1").id, False)
    await runtime.router.start()
    host.activate(host.find_tab("c1").id)
    await runtime.router.flush()

    assert runtime.router.suspend() == 1
    assert not runtime.bus.has_subscribers(TAB_ACTIVATED)

    host.activate(host.find_tab("b1").id)
    await runtime.router.drain()
    assert host.describe_window(strip.window_id) == "[A: a1 a2] [B: b1*] [C: c1 c2] x"
