"""Finding and advertising the control server on the local network.

- Local IPv4 addresses come from psutil, one per interface.
- The connect URL can be printed as a terminal QR code (qrcode).
- The service can be announced over mDNS (requires: pip install zeroconf).
"""

from __future__ import annotations

import logging
import socket
import sys
from typing import TYPE_CHECKING

import psutil

if TYPE_CHECKING:
    from mpvremote.config import ControlConfig

logger = logging.getLogger(__name__)

SERVICE_TYPE = "_mpvremote._tcp.local."
LOOPBACK = "127.0.0.1"


def local_addresses() -> list[str]:
    """Non-loopback IPv4 addresses of this host, one per interface."""
    addresses = []
    try:
        interfaces = psutil.net_if_addrs()
    except OSError as e:
        logger.warning("Cannot list network interfaces: %s", e)
        return addresses
    for name, addrs in interfaces.items():
        for addr in addrs:
            if addr.family != socket.AF_INET or addr.address.startswith("127."):
                continue
            if addr.address not in addresses:
                addresses.append(addr.address)
                logger.debug("Interface %s: %s", name, addr.address)
            break
    return addresses


def listen_addresses(config: ControlConfig) -> list[tuple[str, int]]:
    """(host, port) pairs the control server should bind."""
    hosts = list(config.hosts) or local_addresses()
    # 0.0.0.0 already covers loopback
    if config.bind_loopback and LOOPBACK not in hosts and "0.0.0.0" not in hosts:
        hosts.append(LOOPBACK)
    return [(host, config.port) for host in hosts]


def connect_url(bound: list[tuple[str, int]]) -> str | None:
    """URL a phone on the LAN should open. Prefers a non-loopback address."""
    if not bound:
        return None
    for host, port in bound:
        if not host.startswith("127."):
            return f"http://{host}:{port}"
    host, port = bound[0]
    return f"http://{host}:{port}"


def print_connect_code(url: str, out=None):
    """Print the URL and a scannable QR code to the terminal."""
    import qrcode

    out = out or sys.stdout
    print(url, file=out)
    qr = qrcode.QRCode(border=1)
    qr.add_data(url)
    qr.make(fit=True)
    qr.print_ascii(out=out, invert=True)


class ServiceAnnouncer:
    """Registers the control server as an mDNS service.

    Works without zeroconf installed - announcing is then skipped.
    """

    def __init__(self, name: str = "", port: int = 6780):
        self.name = name or socket.gethostname()
        self.port = port
        self._zeroconf = None
        self._service_info = None

    @property
    def active(self) -> bool:
        return self._zeroconf is not None

    def start(self, address: str):
        try:
            from zeroconf import ServiceInfo, Zeroconf
        except ImportError:
            logger.info("zeroconf not installed, skipping mDNS announcement")
            return

        try:
            self._zeroconf = Zeroconf()
            self._service_info = ServiceInfo(
                SERVICE_TYPE,
                f"{self.name}.{SERVICE_TYPE}",
                addresses=[socket.inet_aton(address)],
                port=self.port,
                properties={"version": _get_version()},
            )
            self._zeroconf.register_service(self._service_info)
            logger.info("Registered mDNS service: %s on %s:%d", self.name, address, self.port)
        except Exception as e:
            logger.warning("Failed to start mDNS: %s", e)
            self.stop()

    def stop(self):
        if self._zeroconf:
            if self._service_info:
                try:
                    self._zeroconf.unregister_service(self._service_info)
                except Exception as e:
                    logger.debug("mDNS unregister failed: %s", e)
            self._zeroconf.close()
            self._zeroconf = None
            self._service_info = None
            logger.info("Stopped mDNS announcement")


def _get_version() -> str:
    from mpvremote.__about__ import __version__
    return __version__
