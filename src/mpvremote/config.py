"""Configuration loader for mpvremote."""

from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback

DEFAULT_DOC_ROOT = str(Path(__file__).resolve().parent / "static")


@dataclass
class ControlConfig:
    """Configuration for the remote-control server."""

    enabled: bool = False
    port: int = 6780
    hosts: list[str] = field(default_factory=list)  # empty = discover
    bind_loopback: bool = True
    doc_root: str = ""
    index_document: str = "index.html"
    buffer_size: int = 1024
    show_qr: bool = False
    announce: bool = False               # mDNS, needs zeroconf

    def __post_init__(self):
        if not self.doc_root:
            self.doc_root = DEFAULT_DOC_ROOT


@dataclass
class PlayerConfig:
    """Configuration for the mpv process."""

    mpv_binary: str = "mpv"
    mpv_socket: str = "/tmp/mpvremote-socket"
    loop: bool = False
    audio_only: bool = False
    fullscreen: bool = False
    geometry: str = "400-0-20"
    event_timeout: float = 1.0
    options: dict[str, str] = field(default_factory=dict)
    media: list[str] = field(default_factory=list)


@dataclass
class ClipboardConfig:
    """Configuration for the clipboard watcher."""

    enabled: bool = True
    append: bool = False
    interval: float = 0.1


@dataclass
class Config:
    """Top-level mpvremote configuration."""

    control: ControlConfig = field(default_factory=ControlConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    clipboard: ClipboardConfig = field(default_factory=ClipboardConfig)


def load_config(path: str | None = None) -> Config:
    """Load configuration from mpvremote.toml.

    Search order:
    1. Explicit path argument
    2. ./mpvremote.toml
    3. ~/.config/mpvremote/mpvremote.toml
    4. Defaults
    """
    search_paths = []
    if path:
        search_paths.append(Path(path))
    search_paths.extend([
        Path("mpvremote.toml"),
        Path.home() / ".config" / "mpvremote" / "mpvremote.toml",
    ])

    for p in search_paths:
        if p.exists():
            with open(p, "rb") as f:
                data = tomllib.load(f)
            return _parse_config(data)

    return Config()


def _parse_config(data: dict) -> Config:
    """Parse a TOML dict into Config."""
    config = Config()

    if "control" in data:
        c = data["control"]
        config.control = ControlConfig(
            enabled=c.get("enabled", config.control.enabled),
            port=c.get("port", config.control.port),
            hosts=list(c.get("hosts", [])),
            bind_loopback=c.get("bind_loopback", config.control.bind_loopback),
            doc_root=c.get("doc_root", ""),
            index_document=c.get("index_document", config.control.index_document),
            buffer_size=c.get("buffer_size", config.control.buffer_size),
            show_qr=c.get("show_qr", config.control.show_qr),
            announce=c.get("announce", config.control.announce),
        )

    if "player" in data:
        p = data["player"]
        config.player = PlayerConfig(
            mpv_binary=p.get("mpv_binary", config.player.mpv_binary),
            mpv_socket=p.get("mpv_socket", config.player.mpv_socket),
            loop=p.get("loop", config.player.loop),
            audio_only=p.get("audio_only", config.player.audio_only),
            fullscreen=p.get("fullscreen", config.player.fullscreen),
            geometry=p.get("geometry", config.player.geometry),
            event_timeout=float(p.get("event_timeout", config.player.event_timeout)),
            options={str(k): str(v) for k, v in p.get("options", {}).items()},
            media=list(p.get("media", [])),
        )

    if "clipboard" in data:
        cb = data["clipboard"]
        config.clipboard = ClipboardConfig(
            enabled=cb.get("enabled", config.clipboard.enabled),
            append=cb.get("append", config.clipboard.append),
            interval=float(cb.get("interval", config.clipboard.interval)),
        )

    return config


def parse_option(raw: str) -> tuple[str, str]:
    """Split a pass-through mpv option into (name, value).

    Accepts ``name=value``, ``--name=value`` and bare ``name`` (value "yes").
    """
    raw = raw.lstrip("-")
    name, sep, value = raw.partition("=")
    if not sep:
        value = "yes"
    return name, value
