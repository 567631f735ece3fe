import asyncio

from core.orchestrator import Orchestrator

FAST_OPTIONS = {
    "delay_on_enter_content_area_ms": 50,
    "delay_on_activate_uninjected_tab_ms": 100,
    "check_grouping_delay_on_create_tab_ms": 10,
}


async def run_demo() -> None:
    print("Building in-memory tab strip...")
    bundle = Orchestrator().build(overrides=FAST_OPTIONS)
    host = bundle.host

    window_id = host.create_window(emit=False)
    host.add_group(window_id, "A", ["a1", "a2"])
    host.add_group(window_id, "B", ["b1"], collapsed=True)
    host.add_group(window_id, "C", ["c1", "c2"], collapsed=True)
    host.add_tabs(window_id, ["x"])
    host.set_active(host.find_tab("a1").id)

    await bundle.router.start()
    print(f"Start:             {host.describe_window(window_id)}")

    print("Activating c1 and moving the mouse into the page...")
    host.activate(host.find_tab("c1").id)
    await bundle.router.flush()
    host.hover_content(host.find_tab("c1").id)
    await bundle.router.drain()
    print(f"After compaction:  {host.describe_window(window_id)}")

    print("Switching back to a2...")
    host.activate(host.find_tab("a2").id)
    await bundle.router.flush()
    host.hover_content(host.find_tab("a2").id)
    await bundle.router.drain()
    print(f"C restored:        {host.describe_window(window_id)}")

    print("Opening a new tab from a2...")
    host.open_tab(window_id, "notes")
    await bundle.router.drain()
    print(f"New tab grouped:   {host.describe_window(window_id)}")

    bundle.router.suspend()
    print("Demo complete.")


if __name__ == "__main__":
    asyncio.run(run_demo())
