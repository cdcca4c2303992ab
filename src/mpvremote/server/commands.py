"""Control commands and request routing.

route() maps a parsed Request to exactly one Command. Every POST command
knows how to run itself against the engine handle and returns the Response
to send, or None when nothing should be written back (engine rejected the
action, or the command is fire-and-forget).
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import unquote

from mpvremote.server.protocol import STATUS_BAD_REQUEST, Request, Response

if TYPE_CHECKING:
    from mpvremote.server.mpv_client import MPVClient

logger = logging.getLogger(__name__)

SUCCESS = "SUCCESS"
NO_SUCH_ENDPOINT = "No Such End Point in API"
MESSAGE_DURATION_MS = 3000


class InvalidParameter(Exception):
    """A required query parameter is missing or has the wrong type."""


def _success(ok: bool) -> Response | None:
    return Response.ok(SUCCESS) if ok else None


class Command:
    """Base class for control commands."""

    def execute(self, mpv: MPVClient) -> Response | None:
        raise NotImplementedError


@dataclass
class Peek(Command):
    def execute(self, mpv):
        title = mpv.get_property("media-title", "") or ""
        muted = bool(mpv.get_property("mute", False))
        lines = [
            f"title: {title}",
            f"mute: {'yes' if muted else 'no'}",
            f"volume: {_number(mpv.get_property('volume'))}",
            f"time: {_number(mpv.get_property('time-pos'))}",
            f"duration: {_number(mpv.get_property('duration'))}",
            f"percent: {_number(mpv.get_property('percent-pos'))}",
        ]
        return Response.ok("\n".join(lines) + "\n")


def _number(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


@dataclass
class PlayPause(Command):
    def execute(self, mpv):
        mpv.toggle_pause()
        return None


@dataclass
class Pause(Command):
    def execute(self, mpv):
        mpv.pause()
        return None


@dataclass
class Play(Command):
    def execute(self, mpv):
        mpv.resume()
        return None


@dataclass
class Next(Command):
    def execute(self, mpv):
        # mpv refuses to move past the last entry; that is not an error here
        if not mpv.playlist_next():
            logger.debug("playlist-next at end of playlist")
        return Response.ok(SUCCESS)


@dataclass
class Prev(Command):
    def execute(self, mpv):
        if not mpv.playlist_prev():
            logger.debug("playlist-prev at start of playlist")
        return Response.ok(SUCCESS)


@dataclass
class Select(Command):
    index: int

    def execute(self, mpv):
        return _success(mpv.set_property("playlist-pos", self.index))


@dataclass
class Append(Command):
    url: str

    def execute(self, mpv):
        return _success(mpv.load(self.url, "append"))


@dataclass
class Replace(Command):
    url: str

    def execute(self, mpv):
        if not mpv.load(self.url, "replace"):
            return None
        mpv.resume()
        return Response.ok(SUCCESS)


class SeekMode(enum.Enum):
    FORWARD = "forward"
    BACKWARD = "backward"
    PERCENT = "percent"


@dataclass
class Seek(Command):
    mode: SeekMode
    value: float

    def target(self, duration: float) -> float:
        """Absolute position for a PERCENT seek."""
        return self.value / 100 * duration

    def execute(self, mpv):
        if self.mode is SeekMode.FORWARD:
            mpv.seek_relative(self.value)
        elif self.mode is SeekMode.BACKWARD:
            mpv.seek_relative(-self.value)
        else:
            duration = mpv.get_property("duration")
            if duration is None:
                logger.debug("percent seek with no known duration, ignored")
                return None
            mpv.seek_absolute(self.target(_number(duration)))
        return None


@dataclass
class Remove(Command):
    index: int

    def execute(self, mpv):
        return _success(mpv.playlist_remove(self.index))


@dataclass
class ListPlaylist(Command):
    def execute(self, mpv):
        playlist = mpv.get_property("playlist")
        if playlist is None:
            return Response.ok("[]")
        return Response.ok(json.dumps(playlist))


@dataclass
class Shuffle(Command):
    def execute(self, mpv):
        return _success(mpv.playlist_shuffle())


@dataclass
class ToggleFullscreen(Command):
    def execute(self, mpv):
        mpv.toggle_property("fullscreen")
        return None


@dataclass
class ToggleMute(Command):
    def execute(self, mpv):
        mpv.toggle_property("mute")
        return None


@dataclass
class SetVolume(Command):
    value: float

    def execute(self, mpv):
        return _success(mpv.set_property("volume", self.value))


@dataclass
class Stop(Command):
    def execute(self, mpv):
        if not mpv.playlist_clear():
            return None
        # playlist-clear keeps the playing entry; drop it too
        mpv.playlist_remove("current")
        return Response.ok(SUCCESS)


@dataclass
class Message(Command):
    text: str

    def execute(self, mpv):
        return _success(mpv.show_text(self.text, MESSAGE_DURATION_MS))


@dataclass
class Unknown(Command):
    segment: str = ""

    def execute(self, mpv):
        return Response(STATUS_BAD_REQUEST, NO_SUCH_ENDPOINT.encode("utf-8"))


@dataclass
class FileRequest(Command):
    """GET of a static file; served by the dispatcher, not the engine."""

    path: str

    def execute(self, mpv):
        raise TypeError("FileRequest is served by the Dispatcher")


def _required(request: Request, key: str) -> str:
    value = request.param(key)
    if value is None:
        raise InvalidParameter(f"missing {key!r}")
    return value


def _int_param(request: Request, key: str) -> int:
    raw = _required(request, key)
    try:
        return int(raw)
    except ValueError:
        raise InvalidParameter(f"{key}={raw!r} is not an integer")


def _float_param(request: Request, key: str) -> float:
    raw = _required(request, key)
    try:
        return float(raw)
    except ValueError:
        raise InvalidParameter(f"{key}={raw!r} is not a number")


def _seek(request: Request) -> Seek:
    for mode in SeekMode:
        if request.param(mode.value) is not None:
            return Seek(mode, _float_param(request, mode.value))
    raise InvalidParameter("seek needs forward, backward or percent")


def _message(request: Request) -> Message:
    try:
        text = unquote(request.raw_query, errors="strict")
    except UnicodeDecodeError:
        raise InvalidParameter("message is not valid UTF-8")
    return Message(text)


_SIMPLE = {
    "peek": Peek,
    "playpause": PlayPause,
    "pause": Pause,
    "play": Play,
    "next": Next,
    "prev": Prev,
    "playlist": ListPlaylist,
    "shuffle": Shuffle,
    "fullscreen": ToggleFullscreen,
    "mute": ToggleMute,
    "stop": Stop,
}

_WITH_PARAMS = {
    "select": lambda r: Select(_int_param(r, "item")),
    "append": lambda r: Append(_required(r, "url")),
    "replace": lambda r: Replace(_required(r, "url")),
    "seek": _seek,
    "remove": lambda r: Remove(_int_param(r, "i")),
    "volume": lambda r: SetVolume(_float_param(r, "value")),
    "message": _message,
}


def route(request: Request, index_document: str = "index.html") -> Command:
    """Map a Request to its Command.

    Raises InvalidParameter when a POST command's query is unusable.
    """
    if request.method == "GET":
        name = request.path[1:] or index_document
        return FileRequest(name)

    segment = request.path[1:].split("/", 1)[0]
    if segment in _SIMPLE:
        return _SIMPLE[segment]()
    if segment in _WITH_PARAMS:
        return _WITH_PARAMS[segment](request)
    return Unknown(segment)
