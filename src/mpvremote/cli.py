"""CLI entry points for mpvremote.

mpvremote: Runs mpv with the clipboard watcher and the control server
mpvremote-ctl: Sends a single command to a running control server
"""

import argparse
import logging
import sys
import threading

logger = logging.getLogger("mpvremote")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mpvremote",
        description="mpv with clipboard mirroring and a LAN remote-control server",
        epilog="Arguments after -- are passed to mpv as options, e.g. -- vo=gpu hwdec=auto",
    )
    parser.add_argument(
        "media", nargs="*", help="Files or URLs to put in the playlist at startup"
    )
    parser.add_argument(
        "-l", "--loop", action="store_true", help="Loop the playlist forever"
    )
    parser.add_argument(
        "-a", "--append", action="store_true",
        help="Append copied URLs to the playlist instead of playing them instantly"
    )
    video = parser.add_mutually_exclusive_group()
    video.add_argument(
        "-n", "--no-video", action="store_true", help="Play audio only, no window"
    )
    video.add_argument(
        "-f", "--fullscreen", action="store_true", help="Start fullscreen"
    )
    parser.add_argument(
        "-c", "--clipboard", action=argparse.BooleanOptionalAction, default=None,
        help="Watch the clipboard for URLs (default: on)"
    )
    parser.add_argument(
        "-s", "--server", action="store_true", help="Run the remote-control server"
    )
    parser.add_argument(
        "-p", "--port", type=int, default=None, help="Control server port (default: 6780)"
    )
    parser.add_argument(
        "-q", "--qr", action="store_true", help="Print a QR code of the control URL"
    )
    parser.add_argument(
        "--config", default=None, help="Path to mpvremote.toml config file"
    )
    parser.add_argument(
        "--log-level", default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)"
    )
    return parser


def parse_args(argv: list[str]) -> tuple[argparse.Namespace, list[str]]:
    """Parse argv, splitting off the mpv pass-through options after --."""
    passthrough: list[str] = []
    if "--" in argv:
        idx = argv.index("--")
        argv, passthrough = argv[:idx], argv[idx + 1:]
    return build_parser().parse_args(argv), passthrough


def apply_args(config, args: argparse.Namespace, passthrough: list[str]):
    """Let command-line switches override the config file."""
    from mpvremote.config import parse_option

    if args.loop:
        config.player.loop = True
    if args.no_video:
        config.player.audio_only = True
    if args.fullscreen:
        config.player.fullscreen = True
    if args.append:
        config.clipboard.append = True
    if args.clipboard is not None:
        config.clipboard.enabled = args.clipboard
    if args.server:
        config.control.enabled = True
    if args.port is not None:
        config.control.port = args.port
    if args.qr:
        config.control.show_qr = True
    config.player.media.extend(args.media)
    for raw in passthrough:
        name, value = parse_option(raw)
        config.player.options[name] = value
    return config


def run_server(argv: list[str] | None = None):
    """Entry point for mpvremote command."""
    args, passthrough = parse_args(sys.argv[1:] if argv is None else argv)

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    from mpvremote.config import load_config
    from mpvremote.server.clipboard import ClipboardWatcher
    from mpvremote.server.engine import MPVProcess
    from mpvremote.server.events import EngineEventLoop
    from mpvremote.server.mpv_client import MPVError

    config = apply_args(load_config(args.config), args, passthrough)

    engine = MPVProcess(config.player)
    try:
        mpv = engine.start()
    except MPVError as e:
        logger.error("%s", e)
        sys.exit(1)

    shutdown = threading.Event()
    event_loop = EngineEventLoop(mpv, shutdown.set, timeout=config.player.event_timeout)
    event_loop.start()

    watcher = None
    if config.clipboard.enabled:
        watcher = ClipboardWatcher(
            mpv, append=config.clipboard.append, interval=config.clipboard.interval,
        )
        watcher.start()

    server, announcer = None, None
    if config.control.enabled:
        server, announcer = _start_control(config.control, mpv)

    try:
        while not shutdown.wait(1.0):
            pass
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        if announcer:
            announcer.stop()
        if server:
            server.stop()
        if watcher:
            watcher.stop()
        event_loop.stop()
        engine.stop()
    sys.exit(0)


def _start_control(control, mpv):
    from mpvremote.server.control_server import ControlServer
    from mpvremote.server.discovery import (
        ServiceAnnouncer, connect_url, listen_addresses, print_connect_code,
    )
    from mpvremote.server.dispatcher import Dispatcher

    dispatcher = Dispatcher(mpv, control.doc_root, control.index_document)
    server = ControlServer(dispatcher, listen_addresses(control), control.buffer_size)
    bound = server.start()
    if not bound:
        logger.error(
            "No control surface: port %d could not be bound on any address", control.port
        )
        return server, None

    url = connect_url(bound)
    if control.show_qr:
        print_connect_code(url)
    else:
        print(url)

    announcer = None
    if control.announce:
        host = next((h for h, _ in bound if not h.startswith("127.")), bound[0][0])
        announcer = ServiceAnnouncer(port=control.port)
        announcer.start(host)
    return server, announcer


_CTL_NO_ARG = [
    "peek", "playpause", "pause", "play", "next", "prev", "playlist",
    "shuffle", "fullscreen", "mute", "stop",
]


def run_ctl(argv: list[str] | None = None):
    """Entry point for mpvremote-ctl command."""
    parser = argparse.ArgumentParser(
        prog="mpvremote-ctl",
        description="Send one command to a running mpvremote server",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Server host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=6780, help="Server port (default: 6780)")
    sub = parser.add_subparsers(dest="command")

    for name in _CTL_NO_ARG:
        sub.add_parser(name)
    sub.add_parser("select", help="Jump to playlist entry").add_argument("item", type=int)
    sub.add_parser("remove", help="Remove playlist entry").add_argument("index", type=int)
    sub.add_parser("append", help="Append URL to playlist").add_argument("url")
    sub.add_parser("replace", help="Play URL now").add_argument("url")
    sub.add_parser("volume", help="Set volume").add_argument("value", type=float)
    sub.add_parser("message", help="Show text on screen").add_argument("text")
    p_seek = sub.add_parser("seek", help="Seek by seconds or to a percentage")
    p_seek.add_argument("mode", choices=["forward", "backward", "percent"])
    p_seek.add_argument("value", type=float)

    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    if not args.command:
        parser.print_help()
        return

    from mpvremote.api_client import RemoteAPIError, RemoteClient

    with RemoteClient(args.host, args.port) as client:
        try:
            if args.command == "peek":
                for key, value in client.peek().items():
                    print(f"{key}: {value}")
                return
            result = _ctl_call(client, args)
        except RemoteAPIError as e:
            print(f"Error: {e}")
            sys.exit(1)

    print(result if result is not None else "(no response)")


def _ctl_call(client, args):
    if args.command in _CTL_NO_ARG:
        return getattr(client, args.command)()
    if args.command == "select":
        return client.select(args.item)
    if args.command == "remove":
        return client.remove(args.index)
    if args.command == "volume":
        return client.volume(args.value)
    if args.command == "seek":
        return getattr(client, f"seek_{args.mode}")(args.value)
    if args.command == "message":
        return client.message(args.text)
    return getattr(client, args.command)(args.url)


if __name__ == "__main__":
    run_server()
