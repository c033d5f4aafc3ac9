"""Shared fixtures: client keys, certificates and CA responses."""

from __future__ import annotations

import base64
from collections.abc import Callable, Generator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
)
from cryptography.x509.oid import NameOID
from loguru import logger


@dataclass(frozen=True)
class CertFiles:
    """Paths of a certificate/key pair written for a test."""

    cert_path: Path
    key_path: Path
    certificate: x509.Certificate
    key: ec.EllipticCurvePrivateKey


def build_certificate(
    key: ec.EllipticCurvePrivateKey,
    not_after: datetime,
    common_name: str = "client.example.com",
) -> x509.Certificate:
    """Self-signed client certificate expiring at not_after."""
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_after - timedelta(days=365))
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )


def ca_response(body: str) -> bytes:
    """XML envelope as returned by the CA's profile submission servlet."""
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="no"?>'
        "<XMLResponse><Status>0</Status><Requests><Request>"
        "<Id>42</Id><SubjectDN>CN=client.example.com</SubjectDN>"
        f"<serialno>1a</serialno><b64>{body}</b64>"
        "</Request></Requests></XMLResponse>"
    ).encode()


@pytest.fixture
def client_key() -> ec.EllipticCurvePrivateKey:
    """Client private key for testing."""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time."""
    return datetime.now(UTC).replace(microsecond=0)


@pytest.fixture
def write_cert_files(tmp_path: Path, now: datetime) -> Callable[..., CertFiles]:
    """Factory writing a certificate expiring in `days_left` days plus its key."""

    def _write(name: str = "client", days_left: float = 5) -> CertFiles:
        key = ec.generate_private_key(ec.SECP256R1())
        certificate = build_certificate(key, now + timedelta(days=days_left))

        cert_path = tmp_path / f"{name}.crt"
        key_path = tmp_path / f"{name}.key"
        cert_path.write_bytes(certificate.public_bytes(Encoding.PEM))
        key_path.write_bytes(
            key.private_bytes(
                encoding=Encoding.PEM,
                format=PrivateFormat.PKCS8,
                encryption_algorithm=NoEncryption(),
            ),
        )
        return CertFiles(cert_path, key_path, certificate, key)

    return _write


@pytest.fixture
def make_renewed_body(now: datetime) -> Callable[..., str]:
    """Factory returning base64 DER of a renewed certificate for a key."""

    def _make(key: ec.EllipticCurvePrivateKey, days: int = 365) -> str:
        certificate = build_certificate(key, now + timedelta(days=days))
        return base64.b64encode(certificate.public_bytes(Encoding.DER)).decode("ascii")

    return _make


@pytest.fixture
def renewed_body(make_renewed_body: Callable[..., str], client_key: ec.EllipticCurvePrivateKey) -> str:
    """Base64 DER of a certificate valid for another year."""
    return make_renewed_body(client_key)


@pytest.fixture
def xml_response() -> Callable[[str], bytes]:
    """Builder for CA XML envelopes."""
    return ca_response


@pytest.fixture
def expiring_cert(write_cert_files: Callable[..., CertFiles]) -> CertFiles:
    """Certificate expiring in 5 days."""
    return write_cert_files("a", days_left=5)


@pytest.fixture
def expiring_renewed_body(expiring_cert: CertFiles, make_renewed_body: Callable[..., str]) -> str:
    """Renewed body for the expiring certificate, built once per test."""
    return make_renewed_body(expiring_cert.key)


@pytest.fixture(autouse=True)
def _reset_logger() -> Generator[None, None, None]:
    """Drop sinks added during a test; CliRunner closes its streams afterwards."""
    yield
    logger.remove()
