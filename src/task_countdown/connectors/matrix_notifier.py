# src/task_countdown/connectors/matrix_notifier.py

"""
Matrix notification delivery.

The engine fires notifications synchronously from its tick; this notifier hands
each one to the event loop that owns the nio client and returns immediately.
Room selection and transport errors stay here, not in the engine.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..core.ports import NotificationUnavailable
from .matrix_client import create_matrix_client

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Any], Awaitable[Any]]


async def _send_text(client, *, room_id: str, text: str) -> None:
    await client.room_send(
        room_id=room_id,
        message_type="m.room.message",
        content={"msgtype": "m.text", "body": text},
    )


class MatrixNotifier:
    def __init__(self, settings, *, client_factory: ClientFactory = create_matrix_client) -> None:
        self.settings = settings
        self._client_factory = client_factory
        self._client: Any = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._room_id: str | None = getattr(settings, "matrix_notify_room", None)

    @property
    def ready(self) -> bool:
        return self._client is not None and self._loop is not None and bool(self._room_id)

    def fire_notification(self, title: str, body: str, dedupe_key: str) -> None:
        if not self.ready:
            raise NotificationUnavailable("Matrix client is not connected")
        loop, room_id = self._loop, self._room_id
        if loop is None or room_id is None:
            raise NotificationUnavailable("Matrix client is not connected")

        text = f"{title}: {body}"
        asyncio.run_coroutine_threadsafe(self._deliver(room_id, text, dedupe_key), loop)

    async def _deliver(self, room_id: str, text: str, dedupe_key: str) -> None:
        client = self._client
        if client is None:
            return
        try:
            await _send_text(client, room_id=room_id, text=text)
            logger.info("Notification %s sent to room %s.", dedupe_key, room_id)
        except Exception:
            logger.exception("Failed to send notification %s to room %s.", dedupe_key, room_id)

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Connect, pick the notification room and stay connected until stop_event is set.

        If no room is configured, the first joined room is used.
        """
        try:
            client = await self._client_factory(self.settings)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Matrix connection failed; Matrix notifications are off.")
            return
        if client is None:
            logger.error("Matrix client creation failed; Matrix notifications are off.")
            return

        try:
            if not self._room_id:
                await client.sync(timeout=30000, full_state=True)
                if client.rooms:
                    self._room_id = next(iter(client.rooms.keys()))
                    logger.info("Matrix notify room not set; using %s", self._room_id)
                else:
                    logger.warning("Matrix account has no joined rooms; Matrix notifications are off.")
                    return

            self._client = client
            self._loop = asyncio.get_running_loop()
            logger.info("Matrix notifications ready (room=%s).", self._room_id)

            await stop_event.wait()
        except asyncio.CancelledError:
            logger.info("Matrix notifier cancelled.")
            raise
        except Exception:
            logger.exception("Matrix notifier crashed.")
        finally:
            self._client = None
            self._loop = None
            with contextlib.suppress(Exception):
                await client.close()
            logger.info("Matrix notifier stopped.")
