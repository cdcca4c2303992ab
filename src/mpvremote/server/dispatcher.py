"""Request dispatcher: Request -> Command -> Response."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from mpvremote.server.commands import FileRequest, InvalidParameter, route
from mpvremote.server.protocol import STATUS_NOT_FOUND, Request, Response

if TYPE_CHECKING:
    from mpvremote.server.mpv_client import MPVClient

logger = logging.getLogger(__name__)

NOT_FOUND_BODY = b"404 Not Found."


class Dispatcher:
    """Runs requests against the shared engine handle.

    Stateless apart from its collaborators, so one instance is shared by
    every connection handler thread.
    """

    def __init__(self, mpv: MPVClient, doc_root: str = ".", index_document: str = "index.html"):
        self.mpv = mpv
        self.doc_root = Path(doc_root)
        self.index_document = index_document

    def dispatch(self, request: Request) -> Response | None:
        """Return the Response to write, or None to close without replying."""
        try:
            command = route(request, self.index_document)
        except InvalidParameter as e:
            logger.debug("Dropping %s: %s", request.path, e)
            return None

        if isinstance(command, FileRequest):
            return self.serve_file(command.path)

        logger.debug("Command: %r", command)
        return command.execute(self.mpv)

    def serve_file(self, name: str) -> Response:
        """Read a file under the document root."""
        # an absolute name would replace doc_root in the join
        if Path(name).is_absolute():
            logger.debug("GET %s: absolute path refused", name)
            return Response(STATUS_NOT_FOUND, NOT_FOUND_BODY)
        path = self.doc_root / name
        try:
            return Response.ok(path.read_bytes())
        except OSError as e:
            logger.debug("GET %s: %s", name, e)
            return Response(STATUS_NOT_FOUND, NOT_FOUND_BODY)
