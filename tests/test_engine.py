"""Compaction engine tests against the in-memory host."""

from __future__ import annotations

import pytest

from compaction.engine import CompactionEngine
from compaction.errors import StaleInvocation
from core.options import AlignMode, CompactionOptions
from core.state_manager import WindowStateStore
from host.errors import MutationFailed
from host.memory_host import InMemoryTabHost
from host.types import INDEX_END, TAB_GROUP_ID_NONE


def _engine(host: InMemoryTabHost, **options: object) -> CompactionEngine:
    return CompactionEngine(host=host, store=WindowStateStore(), options=CompactionOptions(**options))


async def _activate_and_compact(engine: CompactionEngine, host: InMemoryTabHost, title: str):
    host.activate(host.find_tab(title).id)
    return await engine.compact(host.find_tab(title))


@pytest.mark.asyncio
async def test_left_alignment_round_trip(host: InMemoryTabHost, strip) -> None:
    engine = _engine(host)
    state = engine.store.get(strip.window_id)
    state.record_compaction(strip.a, None)

    result = await _activate_and_compact(engine, host, "c1")

    assert host.describe_window(strip.window_id) == "[C: c1* c2] [A +2] [B +1] x"
    assert result.collapsed_group_ids == [strip.a]
    assert result.recorded_slot == 2
    assert result.aligned is True
    assert (state.active_group_id, state.active_group_prev_slot) == (strip.c, 2)

    result = await _activate_and_compact(engine, host, "a1")

    assert host.describe_window(strip.window_id) == "[A: a1* a2] [B +1] [C +2] x"
    assert result.restored_group_id == strip.c
    assert result.restored_to_index == INDEX_END
    assert (state.active_group_id, state.active_group_prev_slot) == (strip.a, 0)


@pytest.mark.asyncio
async def test_restore_into_the_middle_of_the_strip(host: InMemoryTabHost) -> None:
    window_id = host.create_window(emit=False)
    for title in ("A", "B", "C", "D"):
        host.add_group(window_id, title, [title.lower()], collapsed=True)
    engine = _engine(host)

    await _activate_and_compact(engine, host, "c")
    assert host.describe_window(window_id) == "[C: c*] [A +1] [B +1] [D +1]"

    result = await _activate_and_compact(engine, host, "b")
    assert result.restored_to_index == 2
    assert host.describe_window(window_id) == "[B: b*] [A +1] [C +1] [D +1]"

    await _activate_and_compact(engine, host, "a")
    assert host.describe_window(window_id) == "[A: a*] [B +1] [C +1] [D +1]"


@pytest.mark.asyncio
async def test_right_alignment_round_trip(host: InMemoryTabHost) -> None:
    window_id = host.create_window(emit=False)
    a = host.add_group(window_id, "A", ["a"], collapsed=True)
    host.add_group(window_id, "B", ["b"], collapsed=True)
    c = host.add_group(window_id, "C", ["c"], collapsed=True)
    engine = _engine(host, align_active_tab_group=AlignMode.RIGHT)
    engine.store.get(window_id).record_compaction(c, None)

    result = await _activate_and_compact(engine, host, "a")
    assert host.describe_window(window_id) == "[B +1] [C +1] [A: a*]"
    assert result.recorded_slot == 0

    result = await _activate_and_compact(engine, host, "b")
    assert result.restored_group_id == a
    assert host.describe_window(window_id) == "[A +1] [C +1] [B: b*]"


@pytest.mark.asyncio
async def test_same_group_only_collapses(host: InMemoryTabHost, strip) -> None:
    engine = _engine(host)
    await _activate_and_compact(engine, host, "c1")
    # The user expands B from the strip without activating it.
    await host.update_group(strip.b, collapsed=False)

    result = await _activate_and_compact(engine, host, "c2")

    assert result.stopped_after == "collapse"
    assert result.collapsed_group_ids == [strip.b]
    assert host.describe_window(strip.window_id) == "[C: c1 c2*] [A +2] [B +1] x"


@pytest.mark.asyncio
async def test_collapse_is_idempotent(host: InMemoryTabHost, strip) -> None:
    engine = _engine(host)

    first = await engine.collapse_inactive_groups(strip.window_id, keep_group_id=strip.a)
    second = await engine.collapse_inactive_groups(strip.window_id, keep_group_id=strip.a)

    assert first == []
    assert second == []
    assert host.describe_window(strip.window_id) == "[A: a1* a2] [B +1] [C +2] x"


@pytest.mark.asyncio
async def test_disabled_alignment_records_without_moving(host: InMemoryTabHost, strip) -> None:
    engine = _engine(host, align_active_tab_group="disabled")

    result = await _activate_and_compact(engine, host, "c1")

    assert host.describe_window(strip.window_id) == "[A +2] [B +1] [C: c1* c2] x"
    assert result.stopped_after == "collapse"
    state = engine.store.get(strip.window_id)
    assert (state.active_group_id, state.active_group_prev_slot) == (strip.c, None)


@pytest.mark.asyncio
async def test_ungrouped_tab_restores_and_clears_record(host: InMemoryTabHost, strip) -> None:
    engine = _engine(host)
    await _activate_and_compact(engine, host, "c1")

    result = await _activate_and_compact(engine, host, "x")

    assert result.stopped_after == "restore"
    assert result.restored_group_id == strip.c
    assert host.describe_window(strip.window_id) == "[A +2] [B +1] x* [C +2]"
    assert engine.store.get(strip.window_id).active_group_id == TAB_GROUP_ID_NONE


@pytest.mark.asyncio
async def test_previous_group_kept_open_for_ungrouped_tab(host: InMemoryTabHost, strip) -> None:
    engine = _engine(host, collapse_previous_group_on_ungrouped_tab=False)
    engine.store.get(strip.window_id).record_compaction(strip.a, None)

    result = await _activate_and_compact(engine, host, "x")

    assert result.stopped_after == "collapse"
    assert host.describe_window(strip.window_id) == "[A: a1 a2] [B +1] [C +2] x*"
    assert engine.store.get(strip.window_id).active_group_id == strip.a


@pytest.mark.asyncio
async def test_vanished_previous_group_is_skipped(host: InMemoryTabHost, strip) -> None:
    engine = _engine(host)
    await _activate_and_compact(engine, host, "c1")
    host.ungroup(strip.c)

    result = await _activate_and_compact(engine, host, "b1")

    assert result.restored_group_id is None
    assert result.aligned is True
    assert host.describe_window(strip.window_id) == "[B: b1*] [A +2] c1 c2 x"


@pytest.mark.asyncio
async def test_inactive_tab_is_stale(host: InMemoryTabHost, strip) -> None:
    engine = _engine(host)

    with pytest.raises(StaleInvocation):
        await engine.compact(host.find_tab("b1"))


@pytest.mark.asyncio
async def test_tab_deactivated_before_run_is_stale(host: InMemoryTabHost, strip) -> None:
    engine = _engine(host)
    state = engine.store.get(strip.window_id)
    state.record_compaction(strip.a, None)
    host.activate(host.find_tab("c1").id)
    snapshot = host.find_tab("c1")
    host.activate(host.find_tab("b1").id)

    with pytest.raises(StaleInvocation):
        await engine.compact(snapshot)

    assert (state.active_group_id, state.active_group_prev_slot) == (strip.a, None)
    assert host.describe_window(strip.window_id) == "[A: a1 a2] [B: b1*] [C: c1 c2] x"


@pytest.mark.asyncio
async def test_alignment_failure_propagates(host: InMemoryTabHost, strip) -> None:
    engine = _engine(host)
    host.activate(host.find_tab("c1").id)
    host.locked = True

    with pytest.raises(MutationFailed):
        await engine.compact(host.find_tab("c1"))

    # Collapsing failed as well, but only alignment is fatal.
    assert host.describe_window(strip.window_id) == "[A: a1 a2] [B +1] [C: c1* c2] x"


@pytest.mark.asyncio
async def test_ungrouped_tabs_trail_in_order(host: InMemoryTabHost) -> None:
    window_id = host.create_window(emit=False)
    host.add_tabs(window_id, ["x"])
    host.add_group(window_id, "A", ["a1"], collapsed=True)
    host.add_tabs(window_id, ["y"])
    host.add_group(window_id, "B", ["b1"], collapsed=True)
    host.add_tabs(window_id, ["z"])
    engine = _engine(host)

    await _activate_and_compact(engine, host, "b1")

    assert host.describe_window(window_id) == "[B: b1*] [A +1] x y z"
