import asyncio
import logging

from tunnel_panel.core.bg_tasks import drain_background_tasks, pending_background_tasks, spawn_background_task


def test_crashed_task_is_logged_and_released(caplog):
    async def boom():
        raise RuntimeError("kaput")

    async def scenario():
        spawn_background_task(boom(), label="persist tunnel-order")
        assert pending_background_tasks() == 1
        await drain_background_tasks(timeout=1.0)
        await asyncio.sleep(0)

    with caplog.at_level(logging.ERROR, logger="tunnel_panel.core.bg_tasks"):
        asyncio.run(scenario())
    assert pending_background_tasks() == 0
    assert "persist tunnel-order task crashed" in caplog.text
