"""Tests for the command dispatcher.

Uses a mocked engine handle - no mpv needed.
"""

import json

import pytest

from mpvremote.server.dispatcher import Dispatcher
from mpvremote.server.protocol import parse_request


def post(dispatcher, target):
    return dispatcher.dispatch(parse_request(f"POST {target} HTTP/1.1".encode()))


def get(dispatcher, target):
    return dispatcher.dispatch(parse_request(f"GET {target} HTTP/1.1".encode()))


class TestGet:
    def test_root_serves_index(self, dispatcher):
        resp = get(dispatcher, "/")
        assert resp.status == "200 OK"
        assert resp.body == b"<html>remote</html>"

    def test_root_and_index_are_equivalent(self, dispatcher):
        assert get(dispatcher, "/") == get(dispatcher, "/index.html")

    def test_other_file(self, dispatcher):
        assert get(dispatcher, "/app.js").body == b"console.log(1);"

    def test_missing_file(self, dispatcher):
        resp = get(dispatcher, "/missing-file")
        assert resp.status == "404 NOT FOUND"
        assert resp.body == b"404 Not Found."

    def test_directory_is_not_found(self, dispatcher, doc_root):
        (doc_root / "sub").mkdir()
        assert get(dispatcher, "/sub").status == "404 NOT FOUND"

    def test_absolute_path_does_not_escape_doc_root(self, dispatcher, tmp_path_factory):
        secret = tmp_path_factory.mktemp("outside") / "secret.txt"
        secret.write_bytes(b"secret")
        resp = get(dispatcher, f"http://x/{secret}")
        assert resp.status == "404 NOT FOUND"
        assert dispatcher.serve_file(str(secret)).body == b"404 Not Found."

    def test_get_does_not_touch_engine(self, dispatcher, mpv):
        get(dispatcher, "/pause")
        mpv.pause.assert_not_called()

    def test_packaged_index_page(self, mpv):
        from mpvremote.config import DEFAULT_DOC_ROOT

        resp = get(Dispatcher(mpv, DEFAULT_DOC_ROOT), "/")
        assert resp.status == "200 OK"
        assert b"mpvremote" in resp.body


class TestPeek:
    def test_fields_in_order(self, dispatcher):
        resp = post(dispatcher, "/peek")
        assert resp.status == "200 OK"
        assert resp.body.decode().splitlines() == [
            "title: Big Buck Bunny",
            "mute: no",
            "volume: 80.0",
            "time: 30.0",
            "duration: 120.0",
            "percent: 25.0",
        ]

    def test_idle_engine_gives_defaults(self, dispatcher, mpv):
        mpv.props.clear()
        lines = post(dispatcher, "/peek").body.decode().splitlines()
        assert lines == [
            "title: ",
            "mute: no",
            "volume: 0.0",
            "time: 0.0",
            "duration: 0.0",
            "percent: 0.0",
        ]

    def test_muted(self, dispatcher, mpv):
        mpv.props["mute"] = True
        assert "mute: yes" in post(dispatcher, "/peek").body.decode()


class TestFireAndForget:
    def test_playpause(self, dispatcher, mpv):
        assert post(dispatcher, "/playpause") is None
        mpv.toggle_pause.assert_called_once_with()

    def test_pause(self, dispatcher, mpv):
        assert post(dispatcher, "/pause") is None
        mpv.pause.assert_called_once_with()

    def test_play(self, dispatcher, mpv):
        assert post(dispatcher, "/play") is None
        mpv.resume.assert_called_once_with()

    def test_fullscreen(self, dispatcher, mpv):
        assert post(dispatcher, "/fullscreen") is None
        mpv.toggle_property.assert_called_once_with("fullscreen")

    def test_mute(self, dispatcher, mpv):
        assert post(dispatcher, "/mute") is None
        mpv.toggle_property.assert_called_once_with("mute")

    def test_seek_forward(self, dispatcher, mpv):
        assert post(dispatcher, "/seek?forward=10") is None
        mpv.seek_relative.assert_called_once_with(10.0)

    def test_seek_backward(self, dispatcher, mpv):
        assert post(dispatcher, "/seek?backward=15") is None
        mpv.seek_relative.assert_called_once_with(-15.0)

    def test_seek_percent_uses_duration(self, dispatcher, mpv):
        assert post(dispatcher, "/seek?percent=50") is None
        mpv.seek_absolute.assert_called_once_with(60.0)

    def test_seek_percent_without_duration(self, dispatcher, mpv):
        del mpv.props["duration"]
        assert post(dispatcher, "/seek?percent=50") is None
        mpv.seek_absolute.assert_not_called()
        mpv.seek_relative.assert_not_called()


class TestSuccessCommands:
    @pytest.mark.parametrize("target, method, args", [
        ("/select?item=2", "set_property", ("playlist-pos", 2)),
        ("/append?url=a.mp4", "load", ("a.mp4", "append")),
        ("/remove?i=1", "playlist_remove", (1,)),
        ("/shuffle", "playlist_shuffle", ()),
        ("/volume?value=55", "set_property", ("volume", 55.0)),
        ("/message?Now%20playing", "show_text", ("Now playing", 3000)),
    ])
    def test_success(self, dispatcher, mpv, target, method, args):
        resp = post(dispatcher, target)
        assert resp.status == "200 OK"
        assert resp.body == b"SUCCESS"
        getattr(mpv, method).assert_called_once_with(*args)

    @pytest.mark.parametrize("target, method", [
        ("/select?item=99", "set_property"),
        ("/append?url=a.mp4", "load"),
        ("/remove?i=7", "playlist_remove"),
        ("/shuffle", "playlist_shuffle"),
        ("/volume?value=55", "set_property"),
        ("/message?hi", "show_text"),
        ("/replace?url=a.mp4", "load"),
        ("/stop", "playlist_clear"),
    ])
    def test_engine_failure_gives_no_response(self, dispatcher, mpv, target, method):
        getattr(mpv, method).return_value = False
        assert post(dispatcher, target) is None

    def test_replace_starts_playback(self, dispatcher, mpv):
        resp = post(dispatcher, "/replace?url=https%3A%2F%2Fexample.com%2Fv.mp4")
        assert resp.body == b"SUCCESS"
        mpv.load.assert_called_once_with("https://example.com/v.mp4", "replace")
        mpv.resume.assert_called_once_with()

    def test_replace_failure_does_not_unpause(self, dispatcher, mpv):
        mpv.load.return_value = False
        post(dispatcher, "/replace?url=x")
        mpv.resume.assert_not_called()

    def test_stop_clears_and_drops_current(self, dispatcher, mpv):
        assert post(dispatcher, "/stop").body == b"SUCCESS"
        mpv.playlist_clear.assert_called_once_with()
        mpv.playlist_remove.assert_called_once_with("current")

    @pytest.mark.parametrize("segment, method", [("next", "playlist_next"), ("prev", "playlist_prev")])
    def test_next_prev(self, dispatcher, mpv, segment, method):
        assert post(dispatcher, f"/{segment}").body == b"SUCCESS"
        getattr(mpv, method).assert_called_once_with()

    @pytest.mark.parametrize("segment, method", [("next", "playlist_next"), ("prev", "playlist_prev")])
    def test_next_prev_at_boundary_still_succeeds(self, dispatcher, mpv, segment, method):
        getattr(mpv, method).return_value = False
        assert post(dispatcher, f"/{segment}").body == b"SUCCESS"


class TestPlaylist:
    def test_serialized(self, dispatcher, mpv):
        resp = post(dispatcher, "/playlist")
        assert resp.status == "200 OK"
        assert json.loads(resp.body) == mpv.props["playlist"]

    def test_fallback_when_unavailable(self, dispatcher, mpv):
        del mpv.props["playlist"]
        resp = post(dispatcher, "/playlist")
        assert resp.status == "200 OK"
        assert resp.body == b"[]"


class TestErrors:
    @pytest.mark.parametrize("segment", ["explode", "", "Peek", "index.html", "quit"])
    def test_unknown_endpoint(self, dispatcher, segment):
        resp = post(dispatcher, f"/{segment}")
        assert resp.status == "400 BAD REQUEST"
        assert resp.body == b"No Such End Point in API"

    @pytest.mark.parametrize("target", [
        "/select?item=x", "/remove", "/volume?value=", "/seek?percent=half", "/append",
    ])
    def test_invalid_params_dropped_silently(self, dispatcher, mpv, target):
        assert post(dispatcher, target) is None
        mpv.set_property.assert_not_called()
        mpv.load.assert_not_called()
        mpv.seek_absolute.assert_not_called()

    def test_undecodable_message_dropped(self, dispatcher, mpv):
        assert post(dispatcher, "/message?%C3%28") is None
        mpv.show_text.assert_not_called()
