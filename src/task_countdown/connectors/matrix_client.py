# src/task_countdown/connectors/matrix_client.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path

from nio import AsyncClient, AsyncClientConfig, LoginResponse

logger = logging.getLogger(__name__)

SESSION_FILE_NAME = "session.json"


@dataclass(frozen=True, slots=True)
class MatrixSession:
    """Credentials persisted after the first password login."""

    user_id: str
    device_id: str
    access_token: str


def load_session(path: Path) -> MatrixSession | None:
    """Read a saved session; None if absent or unusable (the caller falls back to a password login)."""
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text("utf-8"))
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")
        session = MatrixSession(
            user_id=str(data.get("user_id") or ""),
            device_id=str(data.get("device_id") or ""),
            access_token=str(data.get("access_token") or ""),
        )
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable Matrix session %s: %r", path, e)
        return None

    if not (session.user_id and session.device_id and session.access_token):
        logger.warning("Ignoring incomplete Matrix session %s", path)
        return None
    return session


def save_session(path: Path, session: MatrixSession) -> None:
    """Atomic write, readable by the owner only where the filesystem allows it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(asdict(session)), "utf-8")
    os.replace(tmp, path)
    with contextlib.suppress(OSError):
        os.chmod(path, 0o600)


async def create_matrix_client(settings) -> AsyncClient | None:
    """
    Return a logged-in AsyncClient for sending deadline notifications, or None.

    The saved session under matrix_store_path is reused when present; otherwise the
    password is used once and the resulting session is saved. Messages are plain
    text (no end-to-end encryption).
    """
    homeserver = (getattr(settings, "matrix_homeserver", "") or "").strip()
    user_id = (getattr(settings, "matrix_user_id", "") or "").strip()
    if not homeserver or not user_id:
        logger.error("Matrix is not configured: set TASKCD_MATRIX_HOMESERVER and TASKCD_MATRIX_USER_ID")
        return None

    session_file = Path(settings.matrix_store_path) / SESSION_FILE_NAME
    client = AsyncClient(
        homeserver,
        user_id,
        config=AsyncClientConfig(encryption_enabled=False, store_sync_tokens=False),
    )

    session = load_session(session_file)
    if session is not None:
        client.user_id = session.user_id
        client.device_id = session.device_id
        client.access_token = session.access_token
        logger.info("Matrix session restored for %s (device %s)", session.user_id, session.device_id)
        return client

    password = (getattr(settings, "matrix_password", "") or "").strip()
    if not password:
        logger.error("No saved Matrix session and TASKCD_MATRIX_PASSWORD is empty; cannot log in.")
        await client.close()
        return None

    resp = await client.login(password=password, device_name=f"{settings.app_name} notifier")
    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        await client.close()
        return None

    try:
        save_session(session_file, MatrixSession(user_id=resp.user_id, device_id=resp.device_id, access_token=resp.access_token))
        logger.info("Matrix session saved to %s", session_file)
    except OSError as e:
        # Logged in anyway; the next start just needs the password again.
        logger.error("Could not save Matrix session to %s: %r", session_file, e)

    return client
