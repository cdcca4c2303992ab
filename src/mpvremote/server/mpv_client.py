"""mpv JSON IPC client.

Communicates with mpv via its Unix domain socket using the JSON IPC protocol.
Ref: https://mpv.io/manual/master/#json-ipc

This is the single engine handle shared by every connection handler, the
clipboard watcher and the event loop. Each request/response round trip runs
under one lock, so callers never need their own locking.
"""

import json
import logging
import queue
import socket
import threading
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

SHUTDOWN = "shutdown"

# Longest a single wait_event() pass holds the lock while reading
EVENT_POLL_INTERVAL = 0.1


class MPVError(Exception):
    """Error communicating with mpv."""


@dataclass
class MPVEvent:
    """An asynchronous event pushed by mpv (start-file, end-file, shutdown...)."""

    name: str
    data: dict = field(default_factory=dict)

    @property
    def is_shutdown(self) -> bool:
        return self.name == SHUTDOWN


class MPVClient:
    """Client for mpv's JSON IPC protocol over Unix socket.

    Usage:
        client = MPVClient("/tmp/mpvremote-socket")
        client.connect()
        client.set_property("pause", True)
        pos = client.get_property("time-pos")
        client.load("https://example.com/video.mp4", "append-play")
    """

    def __init__(self, socket_path: str = "/tmp/mpvremote-socket"):
        self.socket_path = socket_path
        self._sock: socket.socket | None = None
        self._lock = threading.Lock()
        self._request_id = 0
        self._recv_buffer = b""
        self._events: queue.Queue[MPVEvent] = queue.Queue()

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def connect(self, timeout: float = 5.0) -> bool:
        """Connect to the mpv IPC socket.

        Returns True if connected, False if socket doesn't exist yet.
        """
        with self._lock:
            return self._connect_locked(timeout)

    def _connect_locked(self, timeout: float = 5.0) -> bool:
        if self._sock is not None:
            return True
        try:
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            sock.settimeout(timeout)
            sock.connect(self.socket_path)
            self._sock = sock
            self._recv_buffer = b""
            logger.info("Connected to mpv at %s", self.socket_path)
            return True
        except (FileNotFoundError, ConnectionRefusedError):
            logger.debug("mpv socket not available at %s", self.socket_path)
            return False
        except OSError as e:
            logger.warning("Failed to connect to mpv: %s", e)
            return False

    def disconnect(self):
        """Close the connection."""
        with self._lock:
            self._close_locked()

    def _close_locked(self):
        if self._sock:
            try:
                self._sock.close()
            except OSError:
                pass
            self._sock = None
            self._recv_buffer = b""

    def _peer_gone_locked(self):
        """mpv closed the socket: it has quit, so report a shutdown."""
        if self._sock is None:
            return
        logger.info("mpv closed the IPC connection")
        self._close_locked()
        self._events.put(MPVEvent(SHUTDOWN))

    def _send(self, data: dict) -> dict | None:
        """Send a JSON command and wait for the response."""
        with self._lock:
            if not self._sock and not self._connect_locked():
                return None

            self._request_id += 1
            data["request_id"] = self._request_id

            msg = json.dumps(data) + "\n"
            try:
                self._sock.sendall(msg.encode("utf-8"))
            except OSError:
                self._peer_gone_locked()
                return None

            return self._recv_response(self._request_id)

    def _recv_response(self, request_id: int, timeout: float = 5.0) -> dict | None:
        """Read lines from the socket until we find our response."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            response = self._drain_buffer(request_id)
            if response is not None:
                return response

            try:
                remaining = max(0.1, deadline - time.monotonic())
                self._sock.settimeout(remaining)
                chunk = self._sock.recv(4096)
                if not chunk:
                    self._peer_gone_locked()
                    return None
                self._recv_buffer += chunk
            except socket.timeout:
                break
            except OSError:
                self._peer_gone_locked()
                return None
        return None

    def _drain_buffer(self, request_id: int | None = None) -> dict | None:
        """Consume complete lines, queueing events.

        Returns the response matching request_id if one was found. Responses
        to other (timed out) requests are dropped.
        """
        while b"\n" in self._recv_buffer:
            line, self._recv_buffer = self._recv_buffer.split(b"\n", 1)
            if not line.strip():
                continue
            try:
                msg = json.loads(line)
            except json.JSONDecodeError:
                continue
            if "event" in msg:
                name = msg.pop("event")
                self._events.put(MPVEvent(name, msg))
                continue
            if request_id is not None and msg.get("request_id") == request_id:
                return msg
        return None

    def wait_event(self, timeout: float) -> MPVEvent | None:
        """Block until mpv pushes an event, or return None after timeout.

        A closed IPC socket is reported as a shutdown event.
        """
        deadline = time.monotonic() + timeout
        while True:
            try:
                return self._events.get_nowait()
            except queue.Empty:
                pass
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            wait = min(remaining, EVENT_POLL_INTERVAL)
            if not self._pump_events(wait):
                time.sleep(wait)

    def _pump_events(self, wait: float) -> bool:
        """Read whatever mpv has sent within `wait` seconds.

        Returns False when there is no connection to read from.
        """
        with self._lock:
            if self._sock is None:
                return False
            try:
                self._sock.settimeout(wait)
                chunk = self._sock.recv(4096)
            except socket.timeout:
                return True
            except OSError:
                self._peer_gone_locked()
                return True
            if not chunk:
                self._peer_gone_locked()
                return True
            self._recv_buffer += chunk
            self._drain_buffer()
            return True

    def command(self, *args) -> dict | None:
        """Send a command to mpv.

        Examples:
            client.command("playlist-next")
            client.command("seek", 10, "relative")
            client.command("loadfile", "/path/to/file.mp4", "append")
        """
        return self._send({"command": list(args)})

    def _ok(self, *args) -> bool:
        resp = self.command(*args)
        return resp is not None and resp.get("error") == "success"

    def get_property(self, name: str, default=None):
        """Get an mpv property value.

        Common properties:
            time-pos     - Current position in seconds
            duration     - Total duration in seconds
            percent-pos  - Position as a percentage of duration
            volume       - Volume (0-100)
            mute         - Whether muted (bool)
            pause        - Whether paused (bool)
            media-title  - Current media title
            playlist     - List of playlist entries
        """
        resp = self._send({"command": ["get_property", name]})
        if resp and resp.get("error") == "success":
            return resp.get("data")
        return default

    def set_property(self, name: str, value) -> bool:
        """Set an mpv property value."""
        return self._ok("set_property", name, value)

    def toggle_property(self, name: str) -> bool:
        """Flip a boolean property (pause, mute, fullscreen)."""
        return self._ok("cycle", name)

    def load(self, url: str, mode: str = "replace") -> bool:
        """Load a URL or file path.

        mode: "replace" (default), "append", "append-play"
        """
        return self._ok("loadfile", url, mode)

    def pause(self) -> bool:
        return self.set_property("pause", True)

    def resume(self) -> bool:
        return self.set_property("pause", False)

    def toggle_pause(self) -> bool:
        paused = self.get_property("pause", False)
        return self.set_property("pause", not paused)

    def playlist_next(self) -> bool:
        return self._ok("playlist-next")

    def playlist_prev(self) -> bool:
        return self._ok("playlist-prev")

    def playlist_clear(self) -> bool:
        return self._ok("playlist-clear")

    def playlist_remove(self, index) -> bool:
        """Remove an entry by index, or the playing entry with "current"."""
        return self._ok("playlist-remove", index)

    def playlist_shuffle(self) -> bool:
        return self._ok("playlist-shuffle")

    def seek_relative(self, seconds: float) -> bool:
        return self._ok("seek", seconds, "relative")

    def seek_absolute(self, seconds: float) -> bool:
        return self._ok("seek", seconds, "absolute")

    def show_text(self, text: str, duration_ms: int = 3000) -> bool:
        """Show text on the mpv OSD."""
        return self._ok("show-text", text, duration_ms)

    def quit(self) -> bool:
        """Tell mpv to exit."""
        resp = self.command("quit")
        self.disconnect()
        return resp is not None
