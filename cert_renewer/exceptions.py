"""Custom exception hierarchy for cert-renewer.

All exceptions inherit from RenewerError for consistent handling.
Only ConfigError aborts a batch run; every other error is scoped to a
single certificate entry and reported before moving on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path


class RenewerError(Exception):
    """Base exception for all cert-renewer errors.

    Attributes:
        message: Human-readable error description.
        details: Additional context for diagnostics.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Mapping[str, str | int | bool | None] | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Human-readable error description.
            details: Additional context for diagnostics.
        """
        super().__init__(message)
        self.message = message
        self.details = dict(details) if details else {}

    def to_audit_dict(self) -> dict[str, str | int | bool | None]:
        """Return dictionary suitable for structured logging.

        Returns:
            Dictionary with exception type, message, and details.
        """
        return {
            "exception_type": self.__class__.__name__,
            "message": self.message,
            **self.details,
        }


class ConfigError(RenewerError):
    """Certificate list or settings could not be loaded.

    Aborts the run: the process exits with status 1.
    """

    @classmethod
    def source_unreadable(cls, *, path: str, reason: str) -> ConfigError:
        """Create exception for a certificate list or settings file that cannot be read.

        Args:
            path: The unreadable path ("<stdin>" for standard input).
            reason: Why reading failed.

        Returns:
            ConfigError instance.
        """
        return cls(
            f"Cannot read {path}: {reason}",
            details={"source": path, "reason": reason},
        )

    @classmethod
    def invalid_config(cls, *, field: str, reason: str) -> ConfigError:
        """Create exception for invalid configuration.

        Args:
            field: The configuration field with the error.
            reason: Why the configuration is invalid.

        Returns:
            ConfigError instance.
        """
        return cls(f"Invalid configuration for '{field}': {reason}", details={"field": field, "reason": reason})


class ReadError(RenewerError):
    """Certificate or private key could not be read or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | str,
        cause: str,
    ) -> None:
        """Initialize with the offending path and underlying cause."""
        super().__init__(message, details={"path": str(path), "cause": cause})
        self.path = str(path)
        self.cause = cause

    @classmethod
    def file_unreadable(cls, *, path: Path | str, cause: str) -> ReadError:
        """Create exception for a missing or unreadable file.

        Args:
            path: File that could not be read.
            cause: Underlying OS error description.

        Returns:
            ReadError instance.
        """
        return cls(f"Cannot read {path}: {cause}", path=path, cause=cause)

    @classmethod
    def invalid_certificate(cls, *, path: Path | str, cause: str) -> ReadError:
        """Create exception for data that is not a PEM X.509 certificate.

        Args:
            path: Certificate file.
            cause: Parser error description.

        Returns:
            ReadError instance.
        """
        return cls(f"Invalid certificate in {path}: {cause}", path=path, cause=cause)

    @classmethod
    def invalid_key(cls, *, path: Path | str, cause: str) -> ReadError:
        """Create exception for data that is not a usable PEM private key.

        Args:
            path: Key file.
            cause: Parser error description.

        Returns:
            ReadError instance.
        """
        return cls(f"Invalid private key in {path}: {cause}", path=path, cause=cause)

    @classmethod
    def key_mismatch(cls, *, path: Path | str) -> ReadError:
        """Create exception for a private key that does not match its certificate.

        Args:
            path: Key file.

        Returns:
            ReadError instance.
        """
        return cls(
            f"Private key {path} does not match its certificate",
            path=path,
            cause="public key mismatch",
        )


class NetworkError(RenewerError):
    """HTTPS exchange with the CA failed at the transport level."""

    def __init__(self, message: str, *, status: int | None, reason: str) -> None:
        """Initialize with HTTP status (None when no response) and reason."""
        super().__init__(message, details={"status": status, "reason": reason})
        self.status = status
        self.reason = reason

    @classmethod
    def transport_failed(cls, *, url: str, reason: str) -> NetworkError:
        """Create exception for connection, TLS or timeout failure.

        Args:
            url: Request URL.
            reason: Transport error description.

        Returns:
            NetworkError instance.
        """
        return cls(f"Request to {url} failed: {reason}", status=None, reason=reason)

    @classmethod
    def http_status(cls, *, url: str, status: int, reason: str) -> NetworkError:
        """Create exception for a non-2xx HTTP response.

        Args:
            url: Request URL.
            status: HTTP status code.
            reason: HTTP reason phrase.

        Returns:
            NetworkError instance.
        """
        return cls(f"CA at {url} returned HTTP {status} {reason}", status=status, reason=reason)


class ProtocolError(RenewerError):
    """CA response did not contain a renewed certificate."""

    # Diagnostics keep only the head of large responses
    _RAW_LIMIT = 512

    def __init__(self, message: str, *, raw_response: str) -> None:
        """Initialize with the raw CA response body."""
        super().__init__(message, details={"raw_response": raw_response[: self._RAW_LIMIT]})
        self.raw_response = raw_response

    @classmethod
    def missing_payload(cls, *, raw_response: str, ca_status: str | None = None) -> ProtocolError:
        """Create exception for a response without a usable b64 element.

        Args:
            raw_response: Response body.
            ca_status: Status or error text reported by the CA, if any.

        Returns:
            ProtocolError instance.
        """
        message = "CA response contains no renewed certificate"
        if ca_status:
            message = f"{message} (CA reported: {ca_status})"
        return cls(message, raw_response=raw_response)

    @classmethod
    def malformed_response(cls, *, raw_response: str, reason: str) -> ProtocolError:
        """Create exception for a response body that is not XML.

        Args:
            raw_response: Response body.
            reason: Parser error description.

        Returns:
            ProtocolError instance.
        """
        return cls(f"CA response is not valid XML: {reason}", raw_response=raw_response)

    @classmethod
    def invalid_payload(cls, *, raw_response: str, reason: str) -> ProtocolError:
        """Create exception for a b64 payload that is not a certificate.

        Args:
            raw_response: Response body.
            reason: Decoder or parser error description.

        Returns:
            ProtocolError instance.
        """
        return cls(f"CA returned an unusable certificate payload: {reason}", raw_response=raw_response)


class WriteError(RenewerError):
    """Renewed certificate could not be persisted."""

    def __init__(self, message: str, *, path: Path | str, cause: str) -> None:
        """Initialize with the destination path and underlying cause."""
        super().__init__(message, details={"path": str(path), "cause": cause})
        self.path = str(path)
        self.cause = cause

    @classmethod
    def write_failed(cls, *, path: Path | str, cause: str) -> WriteError:
        """Create exception for a failed certificate replacement.

        Args:
            path: Destination certificate path.
            cause: Underlying OS error description.

        Returns:
            WriteError instance.
        """
        return cls(f"Cannot write renewed certificate to {path}: {cause}", path=path, cause=cause)
