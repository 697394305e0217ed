"""Tests for the interactive authorization flow and its callback listener."""

import json
import socket
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from authlib.integrations.requests_client import OAuth2Session
from authlib.oauth2 import OAuth2Error

from gcal_cli.google import (
    AuthFlowError,
    AuthorizationFlow,
    AuthTimeoutError,
    CallbackError,
    ExchangeError,
    FlowState,
    GoogleOAuth,
    PortUnavailableError,
)

EXCHANGED = {
    "access_token": "new-access-token",
    "refresh_token": "new-refresh-token",
    "token_type": "Bearer",
    "expires_in": 3599,
    "expires_at": int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp()),
}


def _get(url: str) -> requests.Response:
    with requests.Session() as session:
        session.trust_env = False  # never route loopback requests through a proxy
        return session.get(url, timeout=5)


class FlowRunner:
    """Runs a flow on a background thread and captures the consent URL."""

    def __init__(self, flow: AuthorizationFlow):
        self.flow = flow
        self.url: str | None = None
        self.record = None
        self.error: Exception | None = None
        self._url_ready = threading.Event()
        flow.announce = self._announce
        self._thread = threading.Thread(target=self._run, daemon=True)

    def _announce(self, url: str) -> None:
        self.url = url
        self._url_ready.set()

    def _run(self) -> None:
        try:
            self.record = self.flow.run()
        except Exception as e:
            self.error = e

    def start(self) -> "FlowRunner":
        self._thread.start()
        assert self._url_ready.wait(5), "flow never produced an authorization URL"
        return self

    def join(self) -> None:
        self._thread.join(10)
        assert not self._thread.is_alive()

    @property
    def params(self) -> dict[str, str]:
        return {key: values[0] for key, values in parse_qs(urlparse(self.url).query).items()}

    def callback(self, query: str) -> requests.Response:
        return _get(f"{self.params['redirect_uri']}?{query}")


@pytest.fixture
def auth(mock_credentials, gcal_paths) -> GoogleOAuth:
    return GoogleOAuth(port=0)


def _flow(auth: GoogleOAuth, timeout: float = 5) -> AuthorizationFlow:
    return AuthorizationFlow(auth, port=0, timeout=timeout, open_browser=False)


def _assert_listener_closed(redirect_uri: str) -> None:
    with pytest.raises(requests.ConnectionError):
        _get(redirect_uri)


class TestAuthorizationFlowSuccess:
    """Test the happy path from consent URL to saved token."""

    def test_authorization_url(self, auth):
        """Should request offline access with forced consent for the read-only scope."""
        with patch.object(OAuth2Session, "fetch_token", return_value=dict(EXCHANGED)):
            runner = FlowRunner(_flow(auth)).start()
            params = runner.params
            runner.callback(f"code=abc&state={params['state']}")
            runner.join()

        assert runner.url.startswith("https://accounts.google.com/o/oauth2/auth?")
        assert params["client_id"] == "test-client-id.apps.googleusercontent.com"
        assert params["access_type"] == "offline"
        assert params["prompt"] == "consent"
        assert params["scope"] == "https://www.googleapis.com/auth/calendar.readonly"
        assert params["redirect_uri"].startswith("http://localhost:")
        assert params["redirect_uri"].endswith("/callback")

    def test_code_is_exchanged_and_saved(self, auth, gcal_paths):
        """Should exchange the callback code and persist the token."""
        with patch.object(OAuth2Session, "fetch_token", return_value=dict(EXCHANGED)) as fetch:
            runner = FlowRunner(_flow(auth)).start()
            response = runner.callback(f"code=abc&state={runner.params['state']}")
            runner.join()

        assert response.status_code == 200
        assert "Authorization successful" in response.text

        assert runner.error is None
        assert runner.flow.state is FlowState.AUTHORIZED
        assert runner.record.access_token == "new-access-token"
        assert fetch.call_args.kwargs["code"] == "abc"
        assert fetch.call_args.kwargs["grant_type"] == "authorization_code"

        saved = json.loads(gcal_paths.token_path.read_text())
        assert saved["access_token"] == "new-access-token"
        assert saved["refresh_token"] == "new-refresh-token"

        _assert_listener_closed(runner.params["redirect_uri"])

    def test_other_paths_do_not_consume_the_attempt(self, auth):
        """Should answer 404 for stray requests and keep waiting for the callback."""
        with patch.object(OAuth2Session, "fetch_token", return_value=dict(EXCHANGED)):
            runner = FlowRunner(_flow(auth)).start()
            redirect = urlparse(runner.params["redirect_uri"])

            stray = _get(f"{redirect.scheme}://{redirect.netloc}/favicon.ico")
            assert stray.status_code == 404
            assert runner.flow.state is FlowState.AWAITING_CODE

            runner.callback(f"code=abc&state={runner.params['state']}")
            runner.join()

        assert runner.flow.state is FlowState.AUTHORIZED

    def test_authorize_runs_flow(self, auth, gcal_paths):
        """Should run the flow through GoogleOAuth.authorize."""
        urls: list[str] = []

        def answer(url: str) -> None:
            urls.append(url)
            params = {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}
            threading.Thread(
                target=_get,
                args=(f"{params['redirect_uri']}?code=xyz&state={params['state']}",),
                daemon=True,
            ).start()

        with patch.object(OAuth2Session, "fetch_token", return_value=dict(EXCHANGED)):
            record = auth.authorize(timeout=5, open_browser=False, announce=answer)

        assert len(urls) == 1
        assert record.access_token == "new-access-token"
        assert gcal_paths.token_path.exists()


class TestAuthorizationFlowFailures:
    """Test the terminal failure states."""

    def test_callback_without_code(self, auth, gcal_paths):
        """Should fail the flow when the callback has no code."""
        runner = FlowRunner(_flow(auth)).start()
        response = runner.callback(f"state={runner.params['state']}")
        runner.join()

        assert response.status_code == 400
        assert isinstance(runner.error, CallbackError)
        assert runner.flow.state is FlowState.CALLBACK_ERROR
        assert not gcal_paths.token_path.exists()
        _assert_listener_closed(runner.params["redirect_uri"])

    def test_callback_with_error(self, auth):
        """Should fail the flow when the user denies consent."""
        runner = FlowRunner(_flow(auth)).start()
        runner.callback("error=access_denied")
        runner.join()

        assert isinstance(runner.error, CallbackError)
        assert "access_denied" in str(runner.error)

    def test_callback_with_wrong_state(self, auth):
        """Should reject a callback whose state does not match."""
        runner = FlowRunner(_flow(auth)).start()
        runner.callback("code=abc&state=forged")
        runner.join()

        assert isinstance(runner.error, CallbackError)
        assert runner.flow.state is FlowState.CALLBACK_ERROR

    def test_timeout(self, auth):
        """Should time out and close the listener when no callback arrives."""
        flow = _flow(auth, timeout=0.2)
        flow.announce = lambda url: None

        with pytest.raises(AuthTimeoutError):
            flow.run()

        assert flow.state is FlowState.TIMED_OUT
        _assert_listener_closed(flow.redirect_uri)

    def test_port_unavailable(self, auth):
        """Should fail immediately when the port is taken."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
            blocker.bind(("127.0.0.1", 0))
            blocker.listen(1)
            port = blocker.getsockname()[1]

            flow = AuthorizationFlow(auth, port=port, timeout=1, open_browser=False)
            with pytest.raises(PortUnavailableError) as exc_info:
                flow.run()

        assert exc_info.value.port == port
        assert flow.state is FlowState.PORT_UNAVAILABLE

    def test_exchange_error(self, auth, gcal_paths):
        """Should fail the flow when the token endpoint rejects the code."""
        error = OAuth2Error(error="invalid_grant", description="Bad Request")
        with patch.object(OAuth2Session, "fetch_token", side_effect=error):
            runner = FlowRunner(_flow(auth)).start()
            runner.callback(f"code=abc&state={runner.params['state']}")
            runner.join()

        assert isinstance(runner.error, ExchangeError)
        assert runner.flow.state is FlowState.EXCHANGE_ERROR
        assert not gcal_paths.token_path.exists()

    def test_flow_runs_only_once(self, auth):
        """Should refuse to reuse a finished flow."""
        flow = _flow(auth, timeout=0.1)
        flow.announce = lambda url: None
        with pytest.raises(AuthTimeoutError):
            flow.run()
        with pytest.raises(AuthFlowError, match="only be run once"):
            flow.run()


class TestCallbackHandling:
    """Test callback processing without a listener."""

    def test_only_first_callback_is_honored(self, auth):
        flow = _flow(auth)

        assert flow.handle_callback({"code": ["first"]})[0] == 200
        assert flow.handle_callback({"code": ["second"]})[0] == 409
        assert flow._handoff.get_nowait() == "first"
        assert flow._handoff.empty()

    def test_missing_code_signals_error(self, auth):
        flow = _flow(auth)

        status, body = flow.handle_callback({})

        assert status == 400
        assert body == "No code received"
        assert isinstance(flow._handoff.get_nowait(), CallbackError)
