"""Certificate and private key loading.

Reads a PEM certificate/key pair from disk and exposes the certificate's
expiry for the renewal policy.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, rsa
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from cert_renewer.exceptions import ReadError

if TYPE_CHECKING:
    from datetime import datetime

# Key types usable as a TLS client identity
ClientAuthKey = (
    rsa.RSAPrivateKey
    | ec.EllipticCurvePrivateKey
    | ed25519.Ed25519PrivateKey
    | ed448.Ed448PrivateKey
)


@dataclass(frozen=True)
class CertificateBundle:
    """A parsed certificate together with its private key."""

    cert_path: Path
    key_path: Path
    certificate: x509.Certificate
    private_key: ClientAuthKey

    @property
    def not_after(self) -> datetime:
        """Certificate expiry as a UTC-aware datetime."""
        return self.certificate.not_valid_after_utc

    @property
    def subject_dn(self) -> str:
        """Subject as an RFC 4514 string."""
        return self.certificate.subject.rfc4514_string()


def inspect_certificate(cert_path: Path | str, key_path: Path | str) -> CertificateBundle:
    """Load a PEM certificate and its PEM private key.

    Args:
        cert_path: Path to the certificate file.
        key_path: Path to the unencrypted private key file.

    Returns:
        CertificateBundle holding both parsed objects.

    Raises:
        ReadError: If either file is missing, unreadable, not valid PEM,
            or the key does not belong to the certificate.
    """
    cert_path = Path(cert_path)
    key_path = Path(key_path)

    cert_data = _read_file(cert_path)
    try:
        certificate = x509.load_pem_x509_certificate(cert_data)
    except ValueError as e:
        raise ReadError.invalid_certificate(path=cert_path, cause=str(e)) from e

    key_data = _read_file(key_path)
    try:
        private_key = serialization.load_pem_private_key(key_data, password=None)
    except (ValueError, TypeError) as e:
        # TypeError: key is encrypted and no password was supplied
        raise ReadError.invalid_key(path=key_path, cause=str(e)) from e
    except UnsupportedAlgorithm as e:
        raise ReadError.invalid_key(path=key_path, cause=str(e)) from e

    if not isinstance(private_key, ClientAuthKey):
        raise ReadError.invalid_key(
            path=key_path,
            cause=f"unsupported key type: {type(private_key).__name__}",
        )

    if not _public_keys_match(certificate, private_key):
        raise ReadError.key_mismatch(path=key_path)

    return CertificateBundle(
        cert_path=cert_path,
        key_path=key_path,
        certificate=certificate,
        private_key=private_key,
    )


def load_certificate_bytes(data: bytes) -> x509.Certificate:
    """Parse a certificate from PEM or DER bytes.

    Args:
        data: Certificate bytes in either encoding.

    Returns:
        Parsed X.509 certificate.

    Raises:
        ValueError: If the data is not a certificate.
    """
    if data.lstrip().startswith(b"-----BEGIN"):
        return x509.load_pem_x509_certificate(data)
    return x509.load_der_x509_certificate(data)


def _read_file(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise ReadError.file_unreadable(path=path, cause=e.strerror or str(e)) from e


def _public_keys_match(certificate: x509.Certificate, private_key: ClientAuthKey) -> bool:
    """Compare the certificate's public key with the key pair's."""
    cert_spki = certificate.public_key().public_bytes(Encoding.DER, PublicFormat.SubjectPublicKeyInfo)
    key_spki = private_key.public_key().public_bytes(Encoding.DER, PublicFormat.SubjectPublicKeyInfo)
    return cert_spki == key_spki
