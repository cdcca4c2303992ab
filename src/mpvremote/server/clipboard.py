"""Clipboard watcher - mirrors copied URLs into the mpv playlist.

Clipboard text is read through whichever host tool is available
(wl-paste, xclip, xsel, pbpaste or PowerShell). Read failures are treated
as an empty clipboard.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import threading
import time
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from mpvremote.server.mpv_client import MPVClient

logger = logging.getLogger(__name__)

READ_TIMEOUT = 2

_TOOLS = [
    ["wl-paste", "--no-newline"],
    ["xclip", "-selection", "clipboard", "-out"],
    ["xsel", "--clipboard", "--output"],
    ["pbpaste"],
    ["powershell", "-NoProfile", "-Command", "Get-Clipboard"],
]

_reader_cmd: list[str] | None = None
_reader_detected = False


def detect_clipboard_tool() -> list[str] | None:
    """Find a command that prints the clipboard text.

    wl-paste is only picked on a Wayland session. Returns None if no
    tool is installed.
    """
    for cmd in _TOOLS:
        if cmd[0] == "wl-paste" and not os.environ.get("WAYLAND_DISPLAY"):
            continue
        if shutil.which(cmd[0]):
            logger.info("Reading clipboard with %s", cmd[0])
            return cmd
    logger.warning("No clipboard tool found (install wl-clipboard, xclip or xsel)")
    return None


def read_clipboard() -> str:
    """Return the current clipboard text, or "" on any failure."""
    global _reader_cmd, _reader_detected
    if not _reader_detected:
        _reader_cmd = detect_clipboard_tool()
        _reader_detected = True
    if _reader_cmd is None:
        return ""
    try:
        result = subprocess.run(
            _reader_cmd, capture_output=True, timeout=READ_TIMEOUT,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError):
        return ""
    if result.returncode != 0:
        return ""
    return result.stdout.decode("utf-8", errors="replace").strip()


class ClipboardWatcher:
    """Polls the clipboard and loads new text into mpv.

    The last seen clipboard text lives only on the watcher thread.
    """

    def __init__(
        self,
        mpv: MPVClient,
        append: bool = False,
        interval: float = 0.1,
        reader: Callable[[], str] = read_clipboard,
    ):
        self.mpv = mpv
        self.append = append
        self.interval = interval
        self._read = reader
        self._last_seen = ""
        self._thread: threading.Thread | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self):
        """Take the current clipboard as baseline and start polling."""
        if self._running:
            return
        self.prime()
        self._running = True
        self._thread = threading.Thread(target=self._loop, daemon=True, name="clipboard")
        self._thread.start()
        logger.info("Clipboard watcher started (%s mode)", "append" if self.append else "replace")

    def stop(self):
        self._running = False
        if self._thread:
            self._thread.join(timeout=2)
            self._thread = None

    def prime(self):
        """Adopt the current clipboard text without loading it."""
        self._last_seen = self._read()

    def _loop(self):
        while self._running:
            try:
                self.poll_once()
            except Exception as e:
                logger.warning("Clipboard poll failed: %s", e)
            time.sleep(self.interval)

    def poll_once(self) -> bool:
        """Check the clipboard once. Returns True if something was loaded."""
        text = self._read()
        if not text or text == self._last_seen:
            return False

        logger.info("Clipboard changed: %s", text)
        mode = "append-play" if self.append else "replace"
        if not self.mpv.load(text, mode):
            logger.warning("mpv rejected clipboard text: %s", text)
        self.mpv.resume()
        self._last_seen = text
        return True
