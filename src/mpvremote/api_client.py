"""HTTP client for a running mpvremote control server.

Used by the mpvremote-ctl command. Several endpoints reply with nothing at
all (playpause, seek, ...); the server just closes the connection, which
this client reports as None.
"""

import logging
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


class RemoteAPIError(Exception):
    """Error communicating with the mpvremote server."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteClient:
    """Client for the mpvremote control API.

    Usage:
        client = RemoteClient("192.168.1.20", 6780)
        status = client.peek()
        client.replace("https://example.com/stream.m3u8")
        client.seek_percent(50)
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 6780, timeout: float = DEFAULT_TIMEOUT):
        self.host = host
        self.port = port
        self.base_url = f"http://{host}:{port}"
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout)

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _request(self, method: str, path: str, params: dict | None = None) -> str | None:
        try:
            resp = self._client.request(method, path, params=params)
            resp.raise_for_status()
            return resp.text
        except httpx.RemoteProtocolError:
            # Server closed the connection without replying
            return None
        except httpx.ConnectError:
            raise RemoteAPIError(f"Cannot connect to {self.base_url}")
        except httpx.TimeoutException:
            raise RemoteAPIError("Request timed out")
        except httpx.HTTPStatusError as e:
            raise RemoteAPIError(e.response.text or str(e), e.response.status_code)

    def _post(self, command: str, params: dict | None = None) -> str | None:
        return self._request("POST", f"/{command}", params)

    def get_file(self, path: str = "/") -> str | None:
        return self._request("GET", path)

    # --- State ---

    def peek(self) -> dict:
        """Current title, mute, volume, time, duration and percent."""
        text = self._post("peek") or ""
        status = {}
        for line in text.splitlines():
            key, sep, value = line.partition(": ")
            if not sep:
                continue
            if key == "title":
                status[key] = value
            elif key == "mute":
                status[key] = value == "yes"
            else:
                try:
                    status[key] = float(value)
                except ValueError:
                    status[key] = 0.0
        return status

    def playlist(self) -> str | None:
        return self._post("playlist")

    # --- Transport ---

    def playpause(self) -> str | None:
        return self._post("playpause")

    def pause(self) -> str | None:
        return self._post("pause")

    def play(self) -> str | None:
        return self._post("play")

    def next(self) -> str | None:
        return self._post("next")

    def prev(self) -> str | None:
        return self._post("prev")

    def stop(self) -> str | None:
        return self._post("stop")

    def seek_forward(self, seconds: float) -> str | None:
        return self._post("seek", {"forward": seconds})

    def seek_backward(self, seconds: float) -> str | None:
        return self._post("seek", {"backward": seconds})

    def seek_percent(self, percent: float) -> str | None:
        return self._post("seek", {"percent": percent})

    def fullscreen(self) -> str | None:
        return self._post("fullscreen")

    def mute(self) -> str | None:
        return self._post("mute")

    def volume(self, value: float) -> str | None:
        return self._post("volume", {"value": value})

    # --- Playlist ---

    def select(self, item: int) -> str | None:
        return self._post("select", {"item": item})

    def append(self, url: str) -> str | None:
        return self._post("append", {"url": url})

    def replace(self, url: str) -> str | None:
        return self._post("replace", {"url": url})

    def remove(self, index: int) -> str | None:
        return self._post("remove", {"i": index})

    def shuffle(self) -> str | None:
        return self._post("shuffle")

    def message(self, text: str) -> str | None:
        # The whole query string is the message, percent-encoded
        return self._request("POST", f"/message?{quote(text, safe='')}")
