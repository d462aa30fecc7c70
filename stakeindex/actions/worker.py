"""HTTP worker that serves action calls."""

from __future__ import annotations

import json
import logging
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable
from urllib.parse import urlsplit

from stakeindex.actions import metrics
from stakeindex.actions.types import ActionContext, GraphQLError, Payload, to_json_value

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

ActionHandler = Callable[[ActionContext, Payload], Any]


class ActionsWorker:
    """Routes action calls to the registered handlers."""

    def __init__(self, context: ActionContext) -> None:
        self.context = context
        self._handlers: dict[str, ActionHandler] = {}

    def register_handler(self, path: str, handler: ActionHandler) -> None:
        """Use ``handler`` for every call to ``path``."""
        if not path:
            raise ValueError("invalid action path")
        if path in self._handlers:
            raise ValueError(f"multiple registrations for {path}")
        logger.debug("registering actions handler %s", path)
        self._handlers[path] = handler

    def dispatch(self, path: str, body: bytes) -> tuple[int, str, bytes]:
        """Handle one call; return the status, content type and body of the reply."""
        handler = self._handlers.get(path)
        if handler is None:
            return 404, TEXT_CONTENT_TYPE, b"404 page not found\n"

        start = time.monotonic()
        try:
            payload = Payload.from_dict(json.loads(body))
        except ValueError:
            return 500, TEXT_CONTENT_TYPE, b"invalid payload: failed to unmarshal json\n"

        try:
            result = handler(self.context, payload)
        except Exception as err:
            metrics.error_counter(path)
            return self._handle_error(path, err)

        try:
            data = json.dumps(to_json_value(result), allow_nan=False, separators=(",", ":")).encode()
        except (TypeError, ValueError) as err:
            metrics.error_counter(path)
            return self._handle_error(path, err)

        metrics.success_counter(path)
        metrics.response_time_buckets(path, start)
        return 200, JSON_CONTENT_TYPE, data

    def _handle_error(self, path: str, err: Exception) -> tuple[int, str, bytes]:
        logger.error("error while executing action %s: %s", path, err)
        body = json.dumps(to_json_value(GraphQLError(message=str(err))), separators=(",", ":"))
        return 400, JSON_CONTENT_TYPE, body.encode()

    def make_server(self, port: int) -> ThreadingHTTPServer:
        """Build an HTTP server that serves this worker on the given port."""
        worker = self

        class _RequestHandler(BaseHTTPRequestHandler):
            def _reply(self, status: int, content_type: str, body: bytes) -> None:
                self.send_response(status)
                self.send_header("Content-Type", content_type)
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def _serve(self) -> None:
                try:
                    length = int(self.headers.get("Content-Length") or 0)
                    if length < 0:
                        raise ValueError(length)
                    body = self.rfile.read(length) if length else b""
                except (ValueError, OSError):
                    self._reply(400, TEXT_CONTENT_TYPE, b"invalid payload\n")
                    return
                self._reply(*worker.dispatch(urlsplit(self.path).path, body))

            do_GET = _serve
            do_POST = _serve
            do_PUT = _serve
            do_DELETE = _serve
            do_PATCH = _serve

            def log_message(self, format: str, *args: Any) -> None:
                logger.debug(format, *args)

        return ThreadingHTTPServer(("", port), _RequestHandler)

    def start(self, port: int) -> None:
        """Serve until the process is stopped."""
        with self.make_server(port) as server:
            server.serve_forever()