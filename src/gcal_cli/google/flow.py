"""Interactive OAuth authorization-code flow with a local callback listener.

One flow invocation binds its own HTTP listener, sends the user to Google's
consent page and waits for exactly one redirect back to
``http://localhost:<port>/callback``:

    IDLE -> LISTENER_STARTED -> AWAITING_CODE -> EXCHANGING -> AUTHORIZED

with terminal failures PORT_UNAVAILABLE, TIMED_OUT, CALLBACK_ERROR and
EXCHANGE_ERROR. The listener is shut down before ``run()`` returns on
every path.
"""

from __future__ import annotations

import contextlib
import logging
import queue
import sys
import threading
import webbrowser
from collections.abc import Callable
from enum import Enum
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import TYPE_CHECKING
from urllib.parse import parse_qs, urlparse

import requests
from authlib.common.errors import AuthlibBaseError

from gcal_cli.google.exceptions import (
    AuthFlowError,
    AuthTimeoutError,
    CallbackError,
    ExchangeError,
    PortUnavailableError,
)
from gcal_cli.google.token_store import TokenRecord

if TYPE_CHECKING:
    from authlib.integrations.requests_client import OAuth2Session

    from gcal_cli.google.oauth import GoogleOAuth

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/callback"
DEFAULT_TIMEOUT = 300.0
SHUTDOWN_GRACE = 5.0

SUCCESS_PAGE = (
    "<html><body><h1>Authorization successful!</h1>"
    "<p>You can close this tab and return to the terminal.</p></body></html>"
)


class FlowState(Enum):
    """States of one authorization attempt."""

    IDLE = "idle"
    LISTENER_STARTED = "listener_started"
    AWAITING_CODE = "awaiting_code"
    EXCHANGING = "exchanging"
    AUTHORIZED = "authorized"
    PORT_UNAVAILABLE = "port_unavailable"
    TIMED_OUT = "timed_out"
    CALLBACK_ERROR = "callback_error"
    EXCHANGE_ERROR = "exchange_error"


def print_authorization_url(url: str) -> None:
    """Default way of surfacing the consent URL to the user."""
    print("Opening browser for authorization...", file=sys.stderr)
    print(f"If browser doesn't open, visit:\n{url}\n", file=sys.stderr)


def _make_handler(flow: AuthorizationFlow) -> type[BaseHTTPRequestHandler]:
    """Build a request handler bound to a single flow."""

    class CallbackHandler(BaseHTTPRequestHandler):
        # Socket timeout, bounds how long a stalled client can hold the listener
        timeout = SHUTDOWN_GRACE

        def do_GET(self) -> None:
            parsed = urlparse(self.path)
            if parsed.path != CALLBACK_PATH:
                self.send_error(404, "Not Found")
                return

            status, body = flow.handle_callback(parse_qs(parsed.query))
            if status != 200:
                self.send_error(status, explain=body)
                return

            payload = body.encode("utf-8")
            self.send_response(200)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

        def log_message(self, format: str, *args) -> None:
            logger.debug(f"callback listener: {format % args}")

    return CallbackHandler


class AuthorizationFlow:
    """One-shot authorization-code flow.

    Example:
        >>> auth = GoogleOAuth()
        >>> record = AuthorizationFlow(auth, port=8085).run()

    Args:
        auth: Provides the OAuth session factory and the token store.
        port: Loopback port for the callback listener (0 picks a free port).
        timeout: Seconds to wait for the callback.
        open_browser: Whether to try launching the default browser.
        announce: Called with the authorization URL so the user can open it manually.
    """

    def __init__(
        self,
        auth: GoogleOAuth,
        port: int,
        timeout: float = DEFAULT_TIMEOUT,
        open_browser: bool = True,
        announce: Callable[[str], None] | None = None,
    ):
        self.auth = auth
        self.port = port
        self.timeout = timeout
        self.open_browser = open_browser
        self.announce = announce or print_authorization_url

        self.state = FlowState.IDLE
        self.redirect_uri: str | None = None

        self._expected_state: str | None = None
        self._handoff: queue.Queue[str | AuthFlowError] = queue.Queue(maxsize=1)
        self._lock = threading.Lock()
        self._callback_received = False

    def _transition(self, state: FlowState) -> None:
        logger.debug(f"authorization flow: {self.state.value} -> {state.value}")
        self.state = state

    def _signal(self, outcome: str | AuthFlowError) -> None:
        # Only the first outcome counts; anything after it is dropped.
        with contextlib.suppress(queue.Full):
            self._handoff.put_nowait(outcome)

    def handle_callback(self, params: dict[str, list[str]]) -> tuple[int, str]:
        """Process a callback request.

        Runs on the listener thread. Returns the HTTP status and body to send.
        """
        with self._lock:
            if self._callback_received:
                return 409, "Authorization already received"
            self._callback_received = True

        error = params.get("error", [""])[0]
        code = params.get("code", [""])[0]
        state = params.get("state", [""])[0]

        if error:
            self._signal(CallbackError(f"authorization denied: {error}"))
            return 400, f"Authorization failed: {error}"
        if not code:
            self._signal(CallbackError("no code in callback"))
            return 400, "No code received"
        if self._expected_state is not None and state != self._expected_state:
            self._signal(CallbackError("state mismatch in callback"))
            return 400, "State mismatch"

        self._signal(code)
        return 200, SUCCESS_PAGE

    def _start_listener(self) -> HTTPServer:
        try:
            server = HTTPServer(("localhost", self.port), _make_handler(self))
        except OSError as e:
            self._transition(FlowState.PORT_UNAVAILABLE)
            raise PortUnavailableError(self.port, str(e)) from e

        self.redirect_uri = f"http://localhost:{server.server_port}{CALLBACK_PATH}"
        self._transition(FlowState.LISTENER_STARTED)
        logger.info(f"Callback listener bound on port {server.server_port}")
        return server

    def _serve(self, server: HTTPServer) -> None:
        try:
            server.serve_forever(poll_interval=0.2)
        except Exception as e:
            logger.error(f"Callback listener failed: {e}")
            self._signal(AuthFlowError(f"callback server: {e}"))

    def _shutdown(self, server: HTTPServer, thread: threading.Thread) -> None:
        if thread.is_alive():
            server.shutdown()
            thread.join(timeout=SHUTDOWN_GRACE)
            if thread.is_alive():
                logger.warning("failed to shutdown callback server gracefully")
        server.server_close()
        logger.debug("Callback listener closed")

    def _launch_browser(self, url: str) -> None:
        if not self.open_browser:
            return
        try:
            opened = webbrowser.open(url)
        except webbrowser.Error as e:
            logger.warning(f"Could not open browser: {e}")
            return
        if not opened:
            logger.warning("No browser available; open the authorization URL manually")

    def _wait_for_code(self) -> str:
        try:
            outcome = self._handoff.get(timeout=self.timeout)
        except queue.Empty:
            self._transition(FlowState.TIMED_OUT)
            raise AuthTimeoutError("authorization timeout - no response received") from None

        if isinstance(outcome, AuthFlowError):
            self._transition(FlowState.CALLBACK_ERROR)
            raise outcome
        return outcome

    def _exchange(self, session: OAuth2Session, code: str) -> TokenRecord:
        self._transition(FlowState.EXCHANGING)
        try:
            token = session.fetch_token(
                self.auth.TOKEN_URL,
                grant_type="authorization_code",
                code=code,
                redirect_uri=self.redirect_uri,
            )
        except (AuthlibBaseError, requests.RequestException) as e:
            self._transition(FlowState.EXCHANGE_ERROR)
            raise ExchangeError(f"exchange code: {e}") from e

        record = TokenRecord.from_oauth_token(token)
        if not record.access_token:
            self._transition(FlowState.EXCHANGE_ERROR)
            raise ExchangeError("exchange code: no access token in response")

        try:
            self.auth.token_store.save(record)
        except OSError as e:
            self._transition(FlowState.EXCHANGE_ERROR)
            raise ExchangeError(f"save token: {e}") from e

        self._transition(FlowState.AUTHORIZED)
        logger.info("Authorization successful, token saved")
        return record

    def run(self) -> TokenRecord:
        """Run the flow to completion.

        Returns:
            The newly issued and persisted TokenRecord.

        Raises:
            PortUnavailableError: If the listener port cannot be bound.
            AuthTimeoutError: If no callback arrives in time.
            CallbackError: If the callback carries no usable code.
            ExchangeError: If the code exchange or token save fails.
        """
        if self.state is not FlowState.IDLE:
            raise AuthFlowError("authorization flow can only be run once")

        server = self._start_listener()
        thread = threading.Thread(
            target=self._serve, args=(server,), name="gcal-oauth-callback", daemon=True
        )
        thread.start()

        try:
            session = self.auth.create_session(redirect_uri=self.redirect_uri)
            url, state = session.create_authorization_url(
                self.auth.AUTHORIZE_URL,
                access_type="offline",
                prompt="consent",
            )
            self._expected_state = state
            self._transition(FlowState.AWAITING_CODE)

            self.announce(url)
            self._launch_browser(url)

            code = self._wait_for_code()
        finally:
            self._shutdown(server, thread)

        return self._exchange(session, code)
