"""One-shot local HTTP listener used as the OAuth redirect target.

The listener accepts exactly one callback on the redirect path and moves
through ``listening -> completed | failed | timed_out``. The blocking
``http.server`` loop runs on a worker thread; the callback itself is handed
to the event loop that owns the listener, and the browser only gets its
answer once that coroutine has finished (so the page can report whether the
token exchange worked).
"""

import asyncio
import concurrent.futures
import enum
import html
import logging
import threading
import urllib.parse
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from .errors import AuthTimeout, ListenerUnavailable

logger = logging.getLogger(__name__)

# Upper bound for how long the handler thread waits on the event loop.
HANDLER_WAIT_SECONDS = 120.0


class ListenerState(enum.Enum):
    LISTENING = "listening"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


def render_page(title: str, message: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{html.escape(title)}</title></head>"
        f"<body><h1>{html.escape(title)}</h1><p>{html.escape(message)}</p></body></html>"
    )


class _CallbackHandler(BaseHTTPRequestHandler):
    server: "_CallbackHTTPServer"

    def do_GET(self):  # noqa: N802
        parsed = urllib.parse.urlparse(self.path)
        listener = self.server.listener

        if parsed.path != listener.path:
            self._respond(404, render_page("Not found", "This address only serves the Spotify login callback."))
            return

        qs = urllib.parse.parse_qs(parsed.query)
        params = {k: v[0] for k, v in qs.items() if v}
        status, body = listener.dispatch(params)
        self._respond(status, body)

    def _respond(self, status: int, body: str) -> None:
        payload = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        logger.debug("callback listener: " + format, *args)


class _CallbackHTTPServer(HTTPServer):
    def __init__(self, address: Tuple[str, int], listener: "CallbackListener"):
        self.listener = listener
        super().__init__(address, _CallbackHandler)


class CallbackListener:
    """Single-use redirect listener bound to the host/port/path of ``redirect_uri``.

    ``handle_callback`` receives the callback query parameters and runs on the
    event loop; its return value (or exception) becomes the outcome of
    :meth:`wait`. Use as an async context manager so the socket is released on
    every exit path.
    """

    def __init__(
        self,
        redirect_uri: str,
        handle_callback: Callable[[Dict[str, str]], Awaitable[Any]],
        *,
        timeout: float = 300.0,
    ):
        parsed = urllib.parse.urlparse(redirect_uri)
        self.host = parsed.hostname or "localhost"
        self.port = parsed.port or 80
        self.path = parsed.path or "/"
        self.timeout = float(timeout)
        self.state = ListenerState.LISTENING
        self.closed = False

        self._handle_callback = handle_callback
        self._lock = threading.Lock()
        self._claimed = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._arrived: Optional[asyncio.Event] = None
        self._outcome: Optional[asyncio.Future] = None
        self._server: Optional[_CallbackHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    async def __aenter__(self) -> "CallbackListener":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._arrived = asyncio.Event()
        self._outcome = self._loop.create_future()
        try:
            self._server = _CallbackHTTPServer((self.host, self.port), self)
        except OSError as e:
            # Usually the redirect port is taken by another process.
            self.state = ListenerState.FAILED
            self.closed = True
            raise ListenerUnavailable(f"{self.host}:{self.port}", e.strerror or str(e)) from e
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            kwargs={"poll_interval": 0.1},
            name="spotify-callback-listener",
            daemon=True,
        )
        self._thread.start()
        logger.info("Callback listener started on http://%s:%s%s", self.host, self.port, self.path)

    async def wait(self) -> Any:
        """Wait for the callback outcome; raise AuthTimeout when none arrives in time."""
        assert self._arrived is not None and self._outcome is not None, "listener not started"

        try:
            await asyncio.wait_for(self._arrived.wait(), timeout=self.timeout)
        except asyncio.TimeoutError:
            with self._lock:
                timed_out = not self._claimed
                if timed_out:
                    self._claimed = True
                    self.state = ListenerState.TIMED_OUT
            if timed_out:
                await self.close()
                raise AuthTimeout(self.timeout) from None

        return await self._outcome

    def dispatch(self, params: Dict[str, str]) -> Tuple[int, str]:
        """Called on the server thread for a request to the redirect path."""
        with self._lock:
            if self._claimed:
                return 409, render_page(
                    "Login session closed",
                    "This login attempt has already been handled. Return to the terminal.",
                )
            self._claimed = True

        assert self._loop is not None
        self._loop.call_soon_threadsafe(self._arrived.set)
        future = asyncio.run_coroutine_threadsafe(self._run_callback(params), self._loop)
        try:
            return future.result(timeout=HANDLER_WAIT_SECONDS)
        except concurrent.futures.TimeoutError:
            future.cancel()
            return 500, render_page("Authentication failed", "Timed out while completing the login.")

    async def _run_callback(self, params: Dict[str, str]) -> Tuple[int, str]:
        try:
            result = await self._handle_callback(params)
        except Exception as e:
            self.state = ListenerState.FAILED
            if not self._outcome.done():
                self._outcome.set_exception(e)
            return 400, render_page("Authentication failed", str(e))

        self.state = ListenerState.COMPLETED
        if not self._outcome.done():
            self._outcome.set_result(result)
        return 200, render_page("Authentication successful", "You can close this window and return to the terminal.")

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True

        if self.state is ListenerState.LISTENING:
            self.state = ListenerState.FAILED

        if self._server is not None:
            # shutdown() blocks until serve_forever() returns, which includes
            # finishing a response that is still being written.
            await asyncio.get_running_loop().run_in_executor(None, self._server.shutdown)
            self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)

        if self._outcome is not None and not self._outcome.done():
            self._outcome.cancel()

        logger.info("Callback listener on port %s closed (%s)", self.port, self.state.value)
