"""HTTP server adapter for the logistics API.

Provides a threaded HTTP server using Python's built-in http.server module.
Each request is parsed on the server thread and handed to the ApiReceiver
on the application event loop via run_coroutine_threadsafe.
"""

import asyncio
import json
import logging
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from parcelcarrier.adapters.api.receiver import ApiReceiver, ApiRequest, ApiResponse

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 30


def make_api_handler(
    receiver: ApiReceiver,
    event_loop: asyncio.AbstractEventLoop,
    max_body_bytes: int,
) -> type[BaseHTTPRequestHandler]:
    """Factory to create an ApiHTTPHandler class bound to its dependencies.

    Args:
        receiver: Receiver that dispatches parsed requests
        event_loop: Event loop the receiver's coroutines run on
        max_body_bytes: Largest accepted request body

    Returns:
        An ApiHTTPHandler class configured with the provided dependencies
    """

    class ApiHTTPHandler(BaseHTTPRequestHandler):
        """HTTP request handler for API endpoints."""

        def do_GET(self) -> None:
            self._dispatch("GET")

        def do_POST(self) -> None:
            self._dispatch("POST")

        def do_PUT(self) -> None:
            self._dispatch("PUT")

        def do_PATCH(self) -> None:
            self._dispatch("PATCH")

        def do_DELETE(self) -> None:
            self._dispatch("DELETE")

        def _dispatch(self, method: str) -> None:
            url = urlsplit(self.path)

            try:
                content_length = int(self.headers.get("Content-Length", 0))
            except ValueError:
                self._send_json(ApiResponse(HTTPStatus.BAD_REQUEST, _plain_error("Invalid Content-Length")))
                return

            if content_length > max_body_bytes:
                self._send_json(
                    ApiResponse(HTTPStatus.REQUEST_ENTITY_TOO_LARGE, _plain_error("Request body too large"))
                )
                return

            raw = self.rfile.read(content_length) if content_length > 0 else b""
            try:
                body = json.loads(raw) if raw else None
            except (json.JSONDecodeError, UnicodeDecodeError):
                self._send_json(ApiResponse(HTTPStatus.BAD_REQUEST, _plain_error("Invalid JSON body")))
                return

            request = ApiRequest(
                method=method,
                path=url.path.rstrip("/") or "/",
                query=dict(parse_qsl(url.query)),
                body=body,
                authorization=self.headers.get("Authorization"),
            )

            future = asyncio.run_coroutine_threadsafe(receiver.handle(request), event_loop)
            try:
                response = future.result(timeout=REQUEST_TIMEOUT_SECONDS)
            except TimeoutError:
                # Cancelling the task rolls back any open store transaction.
                future.cancel()
                logger.error(
                    f"API request timed out: {method} {request.path}",
                    extra={"method": method, "path": request.path},
                )
                response = ApiResponse(
                    HTTPStatus.SERVICE_UNAVAILABLE, _plain_error("Request timed out")
                )
            except Exception as e:
                logger.error(f"Error handling API request: {e}", exc_info=True)
                response = ApiResponse(
                    HTTPStatus.INTERNAL_SERVER_ERROR, _plain_error("Internal server error")
                )

            self._send_json(response)

        def _send_json(self, response: ApiResponse) -> None:
            """Send JSON response."""
            self.send_response(response.status)
            if response.body is None:
                self.send_header("Content-Length", "0")
                self.end_headers()
                return
            payload = json.dumps(response.body).encode()
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

        def log_message(self, format: str, *args: Any) -> None:
            """Log HTTP request."""
            logger.debug(f"HTTP {self.client_address[0]}: {format % args}")

    return ApiHTTPHandler


def _plain_error(message: str) -> dict[str, Any]:
    return {"message": message}


class ApiHTTPServer:
    """Logistics API HTTP server adapter."""

    def __init__(
        self,
        receiver: ApiReceiver,
        host: str = "0.0.0.0",
        port: int = 8080,
        max_body_bytes: int = 1024 * 1024,
    ):
        """Initialize the HTTP server.

        Args:
            receiver: ApiReceiver instance to handle requests.
            host: Host to listen on (default 0.0.0.0).
            port: Port to listen on (default 8080).
            max_body_bytes: Largest accepted request body.
        """
        self.receiver = receiver
        self.host = host
        self.port = port
        self.max_body_bytes = max_body_bytes
        self.server: ThreadingHTTPServer | None = None
        self._server_task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Start the HTTP server."""
        logger.info(f"Starting API HTTP server on {self.host}:{self.port}")

        handler_class = make_api_handler(
            receiver=self.receiver,
            event_loop=asyncio.get_running_loop(),
            max_body_bytes=self.max_body_bytes,
        )
        self.server = ThreadingHTTPServer((self.host, self.port), handler_class)
        self.server.daemon_threads = True

        self._server_task = asyncio.create_task(self._run_server())
        logger.info("API HTTP server started")

    async def _run_server(self) -> None:
        """Run the blocking server loop in a worker thread."""
        if not self.server:
            return

        try:
            await asyncio.to_thread(self.server.serve_forever)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"API HTTP server error: {e}", exc_info=True)

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self.server:
            await asyncio.to_thread(self.server.shutdown)
            self.server.server_close()
        if self._server_task:
            self._server_task.cancel()
            try:
                await self._server_task
            except asyncio.CancelledError:
                pass
        logger.info("API HTTP server stopped")
