# src/task_countdown/countdown/engine.py

"""
Countdown engine loop.

A small fixed-cadence loop that, every tick:
- reads the task snapshot once,
- selects the nearest started deadline,
- lets the alert driver classify it and fire side effects,
- publishes the display snapshot to the view.

Each tick is synchronous and run-to-completion. If the host mutates tasks from
another thread, pass the same lock to the engine and to the mutating code.

To stop the loop, cancel the coroutine/task; the alarm is stopped on the way out.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..config import MAX_TICK_INTERVAL_SECONDS, clamp_tick_interval
from ..core.ports import Clock, CountdownView, TaskRepo
from .alerts import AlertDriver, CountdownSnapshot
from .selector import select_target

logger = logging.getLogger(__name__)


class CountdownEngine:
    def __init__(
        self,
        repo: TaskRepo,
        driver: AlertDriver,
        view: CountdownView,
        *,
        clock: Clock = datetime.now,
        lock: Any = None,
    ) -> None:
        self.repo = repo
        self.driver = driver
        self.view = view
        self.clock = clock
        self.lock = lock if lock is not None else threading.RLock()
        self.last_snapshot: CountdownSnapshot | None = None

    def tick(self) -> CountdownSnapshot | None:
        with self.lock:
            now = self.clock()
            tasks = self.repo.get_task_snapshot()
            selection = select_target(tasks, now)
            snapshot = self.driver.process(selection, now)
            self.last_snapshot = snapshot

        logger.debug("tick now=%s status=%s snapshot=%s", now.isoformat(), selection.status.value, snapshot)
        self.view.on_tick(snapshot)
        return snapshot

    def unlock_audio(self) -> bool:
        with self.lock:
            return self.driver.unlock_audio()

    def shutdown(self) -> None:
        with self.lock:
            self.driver.shutdown()


async def run_countdown_engine(
        engine: CountdownEngine,
        *,
        interval_seconds: float = MAX_TICK_INTERVAL_SECONDS,
) -> None:
    """
    Tick `engine` forever at a fixed cadence (clamped to at most 1s).

    A failing tick is logged and the loop continues with the next one.
    Cancelling the coroutine guarantees no further ticks and stops the alarm.
    """
    sleep_s = clamp_tick_interval(interval_seconds)
    logger.info("Countdown engine started (interval=%.2fs).", sleep_s)

    try:
        while True:
            try:
                engine.tick()
            except Exception:
                logger.exception("Countdown tick failed")
            await asyncio.sleep(sleep_s)
    finally:
        try:
            engine.shutdown()
        except Exception:
            logger.exception("Countdown engine shutdown failed")
        logger.info("Countdown engine stopped.")


@dataclass
class CountdownBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Failed to signal countdown stop (loop already closed).", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


async def _run_until_stopped(
        engine: CountdownEngine,
        stop_event: asyncio.Event,
        *,
        interval_seconds: float,
        companions: list[Callable[[asyncio.Event], Awaitable[None]]],
) -> None:
    engine_task = asyncio.create_task(run_countdown_engine(engine, interval_seconds=interval_seconds))
    companion_tasks = [asyncio.create_task(factory(stop_event)) for factory in companions]

    try:
        await stop_event.wait()
    finally:
        for t in [engine_task, *companion_tasks]:
            t.cancel()
        for t in [engine_task, *companion_tasks]:
            try:
                await t
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Countdown companion task failed: %s", t.get_name())


def start_countdown_in_background(
        engine: CountdownEngine,
        *,
        interval_seconds: float = MAX_TICK_INTERVAL_SECONDS,
        companions: list[Callable[[asyncio.Event], Awaitable[None]]] | None = None,
) -> CountdownBackgroundRunner | None:
    """
    Start the countdown loop in a background thread with its own event loop,
    so the console REPL (blocking input()) can run in the main thread.

    companions are extra coroutines (e.g. the Matrix notifier) that share the
    engine's event loop; they receive the stop event.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(
                _run_until_stopped(
                    engine,
                    stop_event,
                    interval_seconds=interval_seconds,
                    companions=list(companions or []),
                )
            )
        finally:
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="countdown-engine", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Countdown thread did not initialize properly.")
        return None

    logger.info("Countdown background thread started.")
    return CountdownBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
