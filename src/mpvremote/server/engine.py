"""mpv process management.

Launches mpv in idle mode with a JSON IPC socket, connects the shared
MPVClient to it and queues the initial media.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from typing import TYPE_CHECKING

from mpvremote.server.mpv_client import MPVClient, MPVError

if TYPE_CHECKING:
    from mpvremote.config import PlayerConfig

logger = logging.getLogger(__name__)

CONNECT_ATTEMPTS = 20
CONNECT_INTERVAL = 0.5


def build_command(config: PlayerConfig) -> list[str]:
    """Build the mpv command line for the given player config.

    Pass-through options go last so they override the defaults.
    """
    cmd = [
        config.mpv_binary,
        f"--input-ipc-server={config.mpv_socket}",
        "--idle=yes",
        "--osc=yes",
        "--input-default-bindings=yes",
        "--input-vo-keyboard=yes",
        "--input-media-keys=yes",
        "--no-terminal",
    ]
    if config.audio_only:
        cmd.append("--vid=no")
    else:
        # A window the user can close is what ends the session
        cmd.append("--force-window=yes")
        cmd.append(f"--geometry={config.geometry}")
        if config.fullscreen:
            cmd.append("--fullscreen=yes")
    if config.loop:
        cmd.append("--loop-playlist=inf")
    for name, value in config.options.items():
        cmd.append(f"--{name}={value}")
    return cmd


class MPVProcess:
    """Owns the mpv subprocess backing the shared engine handle."""

    def __init__(self, config: PlayerConfig, client: MPVClient | None = None):
        self.config = config
        self.client = client or MPVClient(config.mpv_socket)
        self._process: subprocess.Popen | None = None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def start(self) -> MPVClient:
        """Spawn mpv, wait for its IPC socket and enqueue initial media.

        Raises MPVError if mpv cannot be started or never opens its socket.
        """
        self._remove_stale_socket()
        cmd = build_command(self.config)
        logger.debug("Starting mpv: %s", " ".join(cmd))
        try:
            self._process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise MPVError(f"Failed to start {self.config.mpv_binary}: {e}") from e

        # mpv needs a moment to create the socket
        for _ in range(CONNECT_ATTEMPTS):
            if self.client.connect():
                break
            if self._process.poll() is not None:
                raise MPVError(f"mpv exited early with code {self._process.returncode}")
            time.sleep(CONNECT_INTERVAL)
        else:
            self.stop()
            raise MPVError(f"Failed to connect to mpv IPC at {self.config.mpv_socket}")

        for url in self.config.media:
            if not self.client.load(url, "append-play"):
                logger.warning("mpv rejected initial media: %s", url)
        logger.info("mpv started (pid %d)", self._process.pid)
        return self.client

    def stop(self):
        """Disconnect and terminate mpv if it is still running."""
        self.client.disconnect()
        if self._process and self._process.poll() is None:
            self._process.terminate()
            try:
                self._process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._process.kill()
        self._process = None

    def _remove_stale_socket(self):
        socket_path = self.config.mpv_socket
        if os.path.exists(socket_path):
            try:
                os.remove(socket_path)
                logger.info("Removed stale mpv socket: %s", socket_path)
            except OSError:
                pass
