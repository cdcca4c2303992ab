"""Engine event loop.

Watches mpv's event stream on a background thread. When mpv shuts down
(its window was closed or the process died) the loop hands over to the
process-exit callback, exactly once.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from mpvremote.server.mpv_client import MPVClient

logger = logging.getLogger(__name__)


class EngineEventLoop:
    """Blocks on MPVClient.wait_event() and reacts to shutdown."""

    def __init__(
        self,
        mpv: MPVClient,
        on_shutdown: Callable[[], None],
        timeout: float = 1.0,
    ):
        self.mpv = mpv
        self.timeout = timeout
        self._on_shutdown = on_shutdown
        self._fired = False
        self._fire_lock = threading.Lock()
        self._running = False
        self._thread: threading.Thread | None = None

    @property
    def shutdown_seen(self) -> bool:
        return self._fired

    def start(self):
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._loop, daemon=True, name="mpv-events")
        self._thread.start()

    def stop(self):
        self._running = False
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.timeout + 1)
        self._thread = None

    def _loop(self):
        while self._running:
            try:
                if self.step():
                    break
            except Exception as e:
                logger.warning("Event wait failed: %s", e)
        self._running = False

    def step(self) -> bool:
        """Wait for one event. Returns True once shutdown has been handled."""
        event = self.mpv.wait_event(self.timeout)
        if event is None:
            return False
        logger.debug("mpv event: %s", event.name)
        if not event.is_shutdown:
            return False
        self.fire()
        return True

    def fire(self):
        """Run the shutdown callback if it has not run yet."""
        with self._fire_lock:
            if self._fired:
                return
            self._fired = True
        logger.info("mpv shut down, exiting")
        self._on_shutdown()
