"""Contract tests for the CA renewal client.

The CA is replaced by httpx.MockTransport; TLS contexts are still built
from the real certificate/key files.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import patch

import httpx
import pytest

from cert_renewer.ca.client import (
    RENEWAL_PATH,
    RenewalClient,
    extract_renewed_body,
)
from cert_renewer.config import CAConfig
from cert_renewer.crypto.cert import CertificateBundle, inspect_certificate
from cert_renewer.exceptions import NetworkError, ProtocolError, ReadError

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from conftest import CertFiles

EXPECTED_BODY = b"profileId=caSSLClientSelfRenewal&renewal=true&xmlOutput=true"


@pytest.fixture
def bundle(expiring_cert: CertFiles) -> CertificateBundle:
    """Inspected bundle for the expiring certificate."""
    return inspect_certificate(expiring_cert.cert_path, expiring_cert.key_path)


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    config: CAConfig | None = None,
) -> RenewalClient:
    """RenewalClient talking to a mock transport."""
    config = config or CAConfig(uri="https://ca.example.com:8443")
    return RenewalClient(config, transport=httpx.MockTransport(handler))


class TestRenewalRequest:
    """Tests for the HTTP request sent to the CA."""

    def test_posts_renewal_form(
        self,
        bundle: CertificateBundle,
        renewed_body: str,
        xml_response: Callable[[str], bytes],
    ) -> None:
        """POST carries the self-renewal profile form."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, content=xml_response(renewed_body))

        body = make_client(handler).renew(bundle)

        assert body == renewed_body
        assert len(requests) == 1
        request = requests[0]
        assert request.method == "POST"
        assert request.content == EXPECTED_BODY
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        assert str(request.url) == "https://ca.example.com:8443/ca/eeca/ca/profileSubmitSSLClient"

    def test_trailing_slash_in_uri(
        self,
        bundle: CertificateBundle,
        renewed_body: str,
        xml_response: Callable[[str], bytes],
    ) -> None:
        """Base URI trailing slash does not double the path separator."""
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, content=xml_response(renewed_body))

        make_client(handler, CAConfig(uri="https://ca.example.com/")).renew(bundle)

        assert seen == [RENEWAL_PATH]

    def test_logs_request(
        self,
        bundle: CertificateBundle,
        renewed_body: str,
        xml_response: Callable[[str], bytes],
    ) -> None:
        """Every request is logged with the certificate path."""
        client = make_client(lambda _r: httpx.Response(200, content=xml_response(renewed_body)))

        with patch("cert_renewer.ca.client.log_renewal_requested") as mock_log:
            client.renew(bundle)

        mock_log.assert_called_once_with(cert_path=str(bundle.cert_path), url=client.url)


class TestNetworkFailures:
    """Transport-level failures map to NetworkError."""

    def test_server_error_status(self, bundle: CertificateBundle) -> None:
        """HTTP 500 raises NetworkError with the status."""
        client = make_client(lambda _r: httpx.Response(500, content=b"boom"))

        with pytest.raises(NetworkError) as exc_info:
            client.renew(bundle)

        assert exc_info.value.status == 500
        assert exc_info.value.reason == "Internal Server Error"

    def test_forbidden_status(self, bundle: CertificateBundle) -> None:
        """HTTP 403 raises NetworkError."""
        client = make_client(lambda _r: httpx.Response(403))

        with pytest.raises(NetworkError) as exc_info:
            client.renew(bundle)

        assert exc_info.value.status == 403

    def test_connection_refused(self, bundle: CertificateBundle) -> None:
        """Connection errors raise NetworkError without status."""

        def handler(request: httpx.Request) -> httpx.Response:
            msg = "Connection refused"
            raise httpx.ConnectError(msg, request=request)

        with pytest.raises(NetworkError, match="Connection refused") as exc_info:
            make_client(handler).renew(bundle)

        assert exc_info.value.status is None

    def test_timeout(self, bundle: CertificateBundle) -> None:
        """Timeouts raise NetworkError."""

        def handler(request: httpx.Request) -> httpx.Response:
            msg = "timed out"
            raise httpx.ReadTimeout(msg, request=request)

        with pytest.raises(NetworkError):
            make_client(handler).renew(bundle)


class TestProtocolFailures:
    """Responses without a certificate map to ProtocolError."""

    def test_missing_b64(self, bundle: CertificateBundle) -> None:
        """A response without b64 raises ProtocolError carrying the body."""
        raw = b"<XMLResponse><Status>1</Status><Error>Profile not found</Error></XMLResponse>"
        client = make_client(lambda _r: httpx.Response(200, content=raw))

        with pytest.raises(ProtocolError, match="Profile not found") as exc_info:
            client.renew(bundle)

        assert exc_info.value.raw_response == raw.decode()


class TestClientIdentity:
    """Tests for building the TLS client identity."""

    def test_unreadable_ca_bundle(self, bundle: CertificateBundle, tmp_path: Path) -> None:
        """A configured but missing CA bundle raises ReadError."""
        config = CAConfig(uri="https://ca.example.com", ca_bundle=tmp_path / "missing.pem")
        client = make_client(lambda _r: httpx.Response(200), config)

        with pytest.raises(ReadError):
            client.renew(bundle)

    def test_key_file_removed_after_inspection(self, bundle: CertificateBundle) -> None:
        """Key files that vanish before the request raise ReadError."""
        bundle.key_path.unlink()
        client = make_client(lambda _r: httpx.Response(200))

        with pytest.raises(ReadError):
            client.renew(bundle)


class TestExtractRenewedBody:
    """Tests for extract_renewed_body."""

    def test_extracts_b64(self, renewed_body: str, xml_response: Callable[[str], bytes]) -> None:
        """Text of the b64 element is returned."""
        assert extract_renewed_body(xml_response(renewed_body)) == renewed_body

    def test_strips_whitespace(self, renewed_body: str, xml_response: Callable[[str], bytes]) -> None:
        """Line breaks inside the payload are removed."""
        wrapped = "\n".join(renewed_body[i : i + 64] for i in range(0, len(renewed_body), 64))

        assert extract_renewed_body(xml_response(f"\n{wrapped}\n")) == renewed_body

    def test_strips_pem_armor(self, renewed_body: str, xml_response: Callable[[str], bytes]) -> None:
        """PEM armor lines inside the element are dropped."""
        pem = f"-----BEGIN CERTIFICATE-----\n{renewed_body}\n-----END CERTIFICATE-----"

        assert extract_renewed_body(xml_response(pem)) == renewed_body

    def test_namespaced_element(self, renewed_body: str) -> None:
        """Namespace prefixes do not hide the element."""
        raw = f'<r:XMLResponse xmlns:r="urn:test"><r:b64>{renewed_body}</r:b64></r:XMLResponse>'.encode()

        assert extract_renewed_body(raw) == renewed_body

    def test_first_element_wins(self, renewed_body: str) -> None:
        """Only the first b64 element is used."""
        raw = f"<XMLResponse><b64>{renewed_body}</b64><b64>AAAA</b64></XMLResponse>".encode()

        assert extract_renewed_body(raw) == renewed_body

    def test_empty_element(self) -> None:
        """An empty b64 element raises ProtocolError."""
        with pytest.raises(ProtocolError, match="no renewed certificate"):
            extract_renewed_body(b"<XMLResponse><b64>  </b64></XMLResponse>")

    def test_no_element(self) -> None:
        """A response without b64 raises ProtocolError."""
        with pytest.raises(ProtocolError, match="status 0"):
            extract_renewed_body(b"<XMLResponse><Status>0</Status></XMLResponse>")

    def test_not_xml(self) -> None:
        """An HTML error page raises ProtocolError."""
        with pytest.raises(ProtocolError, match="not valid XML"):
            extract_renewed_body(b"<html><body>Login required")

    def test_invalid_base64(self) -> None:
        """A payload that is not base64 raises ProtocolError."""
        with pytest.raises(ProtocolError, match="unusable"):
            extract_renewed_body(b"<XMLResponse><b64>not*base64!</b64></XMLResponse>")
