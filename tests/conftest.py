"""Shared test fixtures for mpvremote test suite."""

import json
import os
import shutil
import socket
import tempfile
import threading
from unittest.mock import MagicMock

import pytest

from mpvremote.server.control_server import ControlServer
from mpvremote.server.dispatcher import Dispatcher
from mpvremote.server.mpv_client import MPVClient


@pytest.fixture
def mpv():
    """A stand-in engine handle where every action succeeds."""
    engine = MagicMock(spec=MPVClient)
    props = {
        "media-title": "Big Buck Bunny",
        "mute": False,
        "volume": 80.0,
        "time-pos": 30.0,
        "duration": 120.0,
        "percent-pos": 25.0,
        "pause": False,
        "playlist": [{"filename": "a.mp4", "current": True}, {"filename": "b.mp4"}],
    }
    engine.props = props
    engine.get_property.side_effect = lambda name, default=None: props.get(name, default)
    for name in (
        "set_property", "toggle_property", "load", "pause", "resume", "toggle_pause",
        "playlist_next", "playlist_prev", "playlist_clear", "playlist_remove",
        "playlist_shuffle", "seek_relative", "seek_absolute", "show_text",
    ):
        getattr(engine, name).return_value = True
    return engine


@pytest.fixture
def doc_root(tmp_path):
    """Document root with an index page and one asset."""
    (tmp_path / "index.html").write_bytes(b"<html>remote</html>")
    (tmp_path / "app.js").write_bytes(b"console.log(1);")
    return tmp_path


@pytest.fixture
def dispatcher(mpv, doc_root):
    return Dispatcher(mpv, str(doc_root))


@pytest.fixture
def server(dispatcher):
    """A control server on an ephemeral loopback port."""
    srv = ControlServer(dispatcher, [("127.0.0.1", 0)])
    srv.start()
    yield srv
    srv.stop()


@pytest.fixture
def server_port(server):
    return server.bound[0][1]


def raw_request(port: int, data: bytes) -> bytes:
    """Send raw bytes to the server and return everything it writes back."""
    with socket.create_connection(("127.0.0.1", port), timeout=5) as sock:
        if data:
            sock.sendall(data)
        else:
            sock.shutdown(socket.SHUT_WR)
        chunks = []
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


class FakeMPV:
    """Minimal mpv JSON IPC peer on a Unix socket.

    Answers get_property from `props`, records every command, and can push
    events or hang up on demand.
    """

    def __init__(self, path: str):
        self.path = path
        self.props = {"volume": 50.0, "pause": False}
        self.commands = []
        self.fail = set()
        self._listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        self._listener.bind(path)
        self._listener.listen(1)
        self._conn = None
        self._connected = threading.Event()
        threading.Thread(target=self._serve, daemon=True).start()

    def _serve(self):
        try:
            self._conn, _ = self._listener.accept()
        except OSError:
            return
        self._connected.set()
        buf = b""
        while True:
            try:
                chunk = self._conn.recv(4096)
            except OSError:
                return
            if not chunk:
                return
            buf += chunk
            while b"\n" in buf:
                line, buf = buf.split(b"\n", 1)
                self._answer(json.loads(line))

    def _answer(self, msg):
        cmd = msg["command"]
        self.commands.append(cmd)
        reply = {"request_id": msg["request_id"], "error": "success"}
        if cmd[0] in self.fail:
            reply["error"] = "error running command"
        elif cmd[0] == "get_property":
            if cmd[1] in self.props:
                reply["data"] = self.props[cmd[1]]
            else:
                reply["error"] = "property unavailable"
        elif cmd[0] == "set_property":
            self.props[cmd[1]] = cmd[2]
        self.send({"event": "property-change", "name": "noise"})
        self.send(reply)

    def send(self, msg: dict):
        self._conn.sendall((json.dumps(msg) + "\n").encode())

    def wait_connected(self, timeout: float = 5.0) -> bool:
        return self._connected.wait(timeout)

    def hang_up(self):
        if self._conn:
            self._conn.shutdown(socket.SHUT_RDWR)
            self._conn.close()

    def close(self):
        self._listener.close()
        if self._conn:
            try:
                self._conn.close()
            except OSError:
                pass


@pytest.fixture
def fake_mpv():
    # AF_UNIX paths are length-limited; keep it short
    tmpdir = tempfile.mkdtemp(prefix="mpvr")
    fake = FakeMPV(os.path.join(tmpdir, "ipc"))
    yield fake
    fake.close()
    shutil.rmtree(tmpdir, ignore_errors=True)
