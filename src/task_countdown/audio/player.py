# src/task_countdown/audio/player.py

from __future__ import annotations

import logging
import threading
from typing import Any

from ..core.ports import AudioLocked

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100


class SoundDeviceAudio:
    """
    Best-effort alarm/chime playback through sounddevice.

    Design goals:
    - Optional dependencies (does not crash if sounddevice/numpy are not installed).
    - Non-blocking: sounddevice.play() returns immediately; the alarm loops until stop_alarm().
    - Failures surface as AudioLocked so the engine can ask the user to re-enable sound.

    Notes:
    - With enabled=False every call is a silent no-op.
    - Dependencies are imported on first use or on unlock(); a failed import keeps
      the player locked until unlock() succeeds.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = bool(enabled)

        self._sd: Any = None
        self._alarm: Any = None
        self._chime: Any = None
        self._lock = threading.Lock()

        if not self.enabled:
            logger.info("Sound disabled.")

    # ---- setup ----

    def _load(self) -> None:
        if self._sd is not None:
            return

        try:
            import numpy as np  # type: ignore
            import sounddevice as sd  # type: ignore
        except Exception as e:
            raise AudioLocked(f"sound dependencies missing: {e!r}") from e

        try:
            sd.query_devices(kind="output")
        except Exception as e:
            raise AudioLocked(f"no output device: {e!r}") from e

        def tone(freq: float, seconds: float, volume: float) -> Any:
            t = np.linspace(0.0, seconds, int(SAMPLE_RATE * seconds), endpoint=False)
            wave = np.sin(2 * np.pi * freq * t) * volume
            # Short fade in/out avoids clicks at loop boundaries.
            fade = min(len(wave) // 10, int(SAMPLE_RATE * 0.01))
            if fade:
                ramp = np.linspace(0.0, 1.0, fade)
                wave[:fade] *= ramp
                wave[-fade:] *= ramp[::-1]
            return wave.astype(np.float32)

        # Alarm: beep-beep-pause, looped. Chime: two short rising notes.
        beep = tone(880.0, 0.18, 0.5)
        gap = np.zeros(int(SAMPLE_RATE * 0.12), dtype=np.float32)
        pause = np.zeros(int(SAMPLE_RATE * 0.5), dtype=np.float32)
        self._alarm = np.concatenate([beep, gap, beep, pause])
        self._chime = np.concatenate([tone(660.0, 0.12, 0.35), tone(990.0, 0.18, 0.35)])
        self._sd = sd
        logger.info("Sound ready (sample_rate=%s).", SAMPLE_RATE)

    def _play(self, data_attr: str, *, loop: bool) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._load()
            try:
                self._sd.play(getattr(self, data_attr), SAMPLE_RATE, loop=loop)
            except Exception as e:
                raise AudioLocked(f"playback failed: {e!r}") from e

    # ---- AudioPort ----

    def play_alarm_loop(self) -> None:
        self._play("_alarm", loop=True)

    def play_chime_once(self) -> None:
        self._play("_chime", loop=False)

    def stop_alarm(self) -> None:
        if not self.enabled or self._sd is None:
            return
        with self._lock:
            try:
                self._sd.stop()
            except Exception:
                logger.debug("sounddevice.stop failed.", exc_info=True)

    def unlock(self) -> bool:
        """Try to (re)initialize playback. Returns True if sound is usable."""
        if not self.enabled:
            return True
        with self._lock:
            previous = self._sd
            self._sd = None
            try:
                self._load()
            except AudioLocked as e:
                # Keep the old handle so stop_alarm() can still silence a playing loop.
                self._sd = previous
                logger.warning("Sound unavailable: %s", e)
                return False
        return True
