"""Wire format of the control protocol.

One request per TCP connection. Only the first two whitespace-separated
tokens of the request (method and target) are significant; headers and body
are ignored. Responses carry a status line, a Content-Length header and the
body, nothing else.
"""

from dataclasses import dataclass, field
from urllib.parse import parse_qsl, urljoin, urlsplit

PROTOCOL = "HTTP/1.1"
METHODS = ("GET", "POST")

# Request targets are resolved against this so that "/x", "x" and
# "http://host/x" all yield a path beginning with "/"
_SYNTHETIC_BASE = "http://localhost/"

STATUS_OK = "200 OK"
STATUS_BAD_REQUEST = "400 BAD REQUEST"
STATUS_NOT_FOUND = "404 NOT FOUND"


class MalformedRequest(Exception):
    """Request bytes did not start with a known method and a target."""


@dataclass
class Request:
    method: str
    path: str
    query: list[tuple[str, str]] = field(default_factory=list)
    raw_query: str = ""

    def param(self, key: str) -> str | None:
        """First value for key, or None if absent."""
        for k, v in self.query:
            if k == key:
                return v
        return None


@dataclass
class Response:
    status: str
    body: bytes = b""

    @classmethod
    def ok(cls, body: bytes | str = b"") -> "Response":
        if isinstance(body, str):
            body = body.encode("utf-8")
        return cls(STATUS_OK, body)


def parse_request(data: bytes) -> Request:
    """Parse the first chunk read from a connection into a Request.

    Raises MalformedRequest for an empty buffer, an unsupported method or a
    missing target.
    """
    text = data.decode("utf-8", errors="replace")
    tokens = text.split()
    if not tokens:
        raise MalformedRequest("empty request")
    method = tokens[0]
    if method not in METHODS:
        raise MalformedRequest(f"unsupported method {method[:16]!r}")
    if len(tokens) < 2:
        raise MalformedRequest("missing request target")

    try:
        parts = urlsplit(urljoin(_SYNTHETIC_BASE, tokens[1]))
    except ValueError as e:
        raise MalformedRequest(f"bad request target: {e}") from e
    return Request(
        method=method,
        path=parts.path or "/",
        query=parse_qsl(parts.query, keep_blank_values=True),
        raw_query=parts.query,
    )


def encode_response(response: Response) -> bytes:
    """Serialize a Response to its wire form."""
    head = (
        f"{PROTOCOL} {response.status}\r\n"
        f"Content-Length: {len(response.body)}\r\n"
        "\r\n"
    )
    return head.encode("ascii") + response.body
