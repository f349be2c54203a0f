"""
Tests unitarios para feed_client.py.

El transporte HTTP se reemplaza por un requests.Session simulado.
"""
import sys
from unittest.mock import MagicMock

import pytest
import requests

from feedsync.infrastructure.external.report_feeds.feed_client import (
    FeedClient,
    build_auth,
    extract_error_message,
)
from feedsync.shared.exceptions.sync import (
    AuthenticationFailed,
    ConfigurationError,
    FeedFetchError,
    TransportError,
    UpstreamError,
)

URL = "http://rs.local/ReportServer?%2FReports%2FProjects&rs:Format=ATOM"


def _session_returning(status_code: int, content: bytes = b"", text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    response.text = text or content.decode("utf-8", errors="replace")
    session = MagicMock(spec=requests.Session)
    session.get.return_value = response
    return session


class TestFeedClientFetch:
    """Tests para FeedClient.fetch()."""

    def test_returns_body_bytes_on_success(self) -> None:
        session = _session_returning(200, b"<feed/>")
        client = FeedClient(session=session, timeout_s=30, verify_tls=False)

        assert client.fetch(URL) == b"<feed/>"
        session.get.assert_called_once_with(URL, timeout=30, verify=False)

    def test_401_raises_authentication_failed(self) -> None:
        client = FeedClient(session=_session_returning(401, b"denied"))

        with pytest.raises(AuthenticationFailed) as exc_info:
            client.fetch(URL)

        assert exc_info.value.details["status"] == 401
        assert isinstance(exc_info.value, FeedFetchError)

    def test_non_success_raises_upstream_error_with_extracted_message(self) -> None:
        body = '<html><div class="rsDetailedMessageDiv">The report <b>does not</b> exist.</div></html>'
        client = FeedClient(session=_session_returning(500, body.encode("utf-8")))

        with pytest.raises(UpstreamError) as exc_info:
            client.fetch(URL)

        assert exc_info.value.status == 500
        assert exc_info.value.upstream_message == "The report does not exist."
        assert exc_info.value.message == "HTTP 500: The report does not exist."

    def test_network_failure_raises_transport_error(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.get.side_effect = requests.ConnectionError("connection refused")
        client = FeedClient(session=session)

        with pytest.raises(TransportError) as exc_info:
            client.fetch(URL)

        assert "rs.local" in exc_info.value.message

    def test_timeout_raises_transport_error(self) -> None:
        session = MagicMock(spec=requests.Session)
        session.get.side_effect = requests.Timeout("read timed out")

        with pytest.raises(TransportError):
            FeedClient(session=session).fetch(URL)

    def test_auth_is_attached_to_session(self) -> None:
        session = MagicMock(spec=requests.Session)
        auth = object()

        FeedClient(auth=auth, session=session)

        assert session.auth is auth

    def test_close_closes_session(self) -> None:
        session = MagicMock(spec=requests.Session)

        FeedClient(session=session).close()

        session.close.assert_called_once()


class TestExtractErrorMessage:
    """Tests para extract_error_message()."""

    def test_error_span(self) -> None:
        body = '<span class="x rsErrorMessage">Parameter missing</span>'

        assert extract_error_message(body) == "Parameter missing"

    def test_exception_details(self) -> None:
        body = "<b>Exception Details:</b> System.Timeout: expired<br/>"

        assert extract_error_message(body) == "System.Timeout: expired"

    def test_processing_code_paragraph(self) -> None:
        body = "<p>rsProcessingAborted: Cannot process the report.</p>"

        assert extract_error_message(body) == "rsProcessingAborted: Cannot process the report."

    def test_falls_back_to_body_prefix(self) -> None:
        body = "x" * 800

        assert extract_error_message(body) == "x" * 500


class TestBuildAuth:
    """Tests para build_auth()."""

    def test_none_mode_has_no_auth(self) -> None:
        assert build_auth("none") is None
        assert build_auth("") is None

    def test_ntlm_requires_username(self) -> None:
        with pytest.raises(ConfigurationError):
            build_auth("ntlm", "", "secret")

    def test_ntlm_builds_handler(self) -> None:
        from requests_ntlm import HttpNtlmAuth

        auth = build_auth("NTLM", "CORP\\svc_reports", "secret")

        assert isinstance(auth, HttpNtlmAuth)

    def test_unknown_mode_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            build_auth("kerberos-magic")

    @pytest.mark.skipif(sys.platform == "win32", reason="SSPI disponible en Windows")
    def test_negotiate_outside_windows_is_a_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            build_auth("negotiate")
