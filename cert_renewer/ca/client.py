"""CA renewal client.

Submits the self-renewal profile request to the CA's end-entity REST
interface over mutual TLS, authenticating with the certificate being
renewed, and extracts the renewed certificate from the XML response.
"""

from __future__ import annotations

import base64
import binascii
import ssl
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING

import httpx

from cert_renewer.audit.logger import log_renewal_requested
from cert_renewer.exceptions import NetworkError, ProtocolError, ReadError

if TYPE_CHECKING:
    from cert_renewer.config import CAConfig
    from cert_renewer.crypto.cert import CertificateBundle

RENEWAL_PATH = "/ca/eeca/ca/profileSubmitSSLClient"

# Sent in this order: profileId=caSSLClientSelfRenewal&renewal=true&xmlOutput=true
RENEWAL_FORM = {
    "profileId": "caSSLClientSelfRenewal",
    "renewal": "true",
    "xmlOutput": "true",
}

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class RenewalClient:
    """Requests certificate renewal from a single CA."""

    def __init__(
        self,
        config: CAConfig,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize with CA settings.

        Args:
            config: CA endpoint configuration.
            transport: Optional httpx transport, replaces the network layer.
        """
        self._config = config
        self._transport = transport

    @property
    def url(self) -> str:
        """Full URL of the renewal endpoint."""
        return self._config.uri.rstrip("/") + RENEWAL_PATH

    def renew(self, bundle: CertificateBundle) -> str:
        """Submit a renewal request authenticated with the bundle's key pair.

        Args:
            bundle: Certificate and key to renew; also the TLS client identity.

        Returns:
            Base64 body of the renewed certificate, whitespace removed.

        Raises:
            ReadError: If the key pair cannot be loaded as a TLS identity.
            NetworkError: If the HTTPS exchange fails or returns non-2xx.
            ProtocolError: If the response carries no usable certificate.
        """
        ssl_context = self._client_ssl_context(bundle)
        log_renewal_requested(cert_path=str(bundle.cert_path), url=self.url)

        try:
            with httpx.Client(
                verify=ssl_context,
                timeout=self._config.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = client.post(
                    self.url,
                    data=RENEWAL_FORM,
                    headers={"Content-Type": FORM_CONTENT_TYPE},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NetworkError.http_status(
                url=self.url,
                status=e.response.status_code,
                reason=e.response.reason_phrase,
            ) from e
        except httpx.HTTPError as e:
            raise NetworkError.transport_failed(url=self.url, reason=str(e) or type(e).__name__) from e

        return extract_renewed_body(response.content)

    def _client_ssl_context(self, bundle: CertificateBundle) -> ssl.SSLContext:
        """Build a verifying TLS context presenting the bundle as client identity."""
        # Server verification always uses the system store
        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
        if self._config.ca_bundle is not None:
            try:
                context.load_verify_locations(cafile=str(self._config.ca_bundle))
            except (OSError, ssl.SSLError) as e:
                raise ReadError.file_unreadable(path=self._config.ca_bundle, cause=str(e)) from e

        try:
            context.load_cert_chain(certfile=str(bundle.cert_path), keyfile=str(bundle.key_path))
        except (OSError, ssl.SSLError) as e:
            raise ReadError.invalid_key(path=bundle.key_path, cause=str(e)) from e

        return context


def extract_renewed_body(raw: bytes) -> str:
    """Extract the base64 certificate from a CA XML response.

    The first element named ``b64`` anywhere in the document is used.
    PEM armor lines inside it, if any, are dropped.

    Args:
        raw: Response body.

    Returns:
        Base64 certificate body with all whitespace removed.

    Raises:
        ProtocolError: If the body is not XML, has no non-empty b64
            element, or the payload is not valid base64.
    """
    text = raw.decode("utf-8", errors="replace")
    try:
        root = ET.fromstring(raw)
    except ET.ParseError as e:
        raise ProtocolError.malformed_response(raw_response=text, reason=str(e)) from e

    element = _find_first(root, "b64")
    body = _strip_armor(element.text or "") if element is not None else ""
    if not body:
        raise ProtocolError.missing_payload(raw_response=text, ca_status=_ca_status(root))

    try:
        base64.b64decode(body, validate=True)
    except binascii.Error as e:
        raise ProtocolError.invalid_payload(raw_response=text, reason=str(e)) from e

    return body


def _local_name(tag: str) -> str:
    """Drop an ElementTree ``{namespace}`` prefix."""
    return tag.rsplit("}", 1)[-1]


def _find_first(root: ET.Element, name: str) -> ET.Element | None:
    for element in root.iter():
        if isinstance(element.tag, str) and _local_name(element.tag) == name:
            return element
    return None


def _strip_armor(text: str) -> str:
    lines = [line for line in text.splitlines() if not line.strip().startswith("-----")]
    return "".join("".join(lines).split())


def _ca_status(root: ET.Element) -> str | None:
    """Status or error text reported in the CA envelope, if present."""
    error = _find_first(root, "Error")
    if error is not None and error.text and error.text.strip():
        return error.text.strip()
    status = _find_first(root, "Status")
    if status is not None and status.text and status.text.strip():
        return f"status {status.text.strip()}"
    return None
