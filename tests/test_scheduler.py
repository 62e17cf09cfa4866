from __future__ import annotations

import asyncio
import threading

from scheduler import LoopScheduler


def test_call_later_and_spawn_run_on_loop() -> None:
    scheduler = LoopScheduler()
    seen: list[str] = []

    async def job(done: asyncio.Event) -> None:
        seen.append("task")
        done.set()

    async def scenario() -> None:
        done = asyncio.Event()
        scheduler.call_later(0.01, lambda: seen.append("timer"))
        scheduler.spawn(job(done))
        await done.wait()
        await asyncio.sleep(0.05)

    scheduler.loop.run_until_complete(scenario())
    scheduler.loop.close()

    assert seen == ["task", "timer"]


def test_failed_task_is_logged_not_raised(caplog) -> None:
    scheduler = LoopScheduler()

    async def boom() -> None:
        raise RuntimeError("kaboom")

    async def scenario() -> None:
        scheduler.spawn(boom())
        await asyncio.sleep(0.01)

    scheduler.loop.run_until_complete(scenario())
    scheduler.loop.close()

    assert "background task failed" in caplog.text


def test_foreign_thread_callbacks_reach_loop_thread() -> None:
    scheduler = LoopScheduler()
    scheduler.start_thread()
    landed = threading.Event()
    threads: list[str] = []

    def callback(tag: str) -> None:
        threads.append(threading.current_thread().name)
        landed.set()

    worker = threading.Thread(target=scheduler.call_soon_threadsafe, args=(callback, "x"))
    worker.start()
    worker.join()

    assert landed.wait(1.0)
    scheduler.stop_thread()
    assert threads == ["core-loop"]


def test_callbacks_after_close_are_dropped() -> None:
    scheduler = LoopScheduler()
    scheduler.loop.close()

    scheduler.call_soon_threadsafe(lambda: None)
