"""Batch renewal driver.

Processes each configured certificate in order:
inspect -> evaluate -> (if due) renew -> write. A failure on one entry is
logged and the next entry is processed; only an unreadable certificate
list stops the run.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives.serialization import Encoding

from cert_renewer.audit.logger import (
    clear_correlation_id,
    log_batch_finished,
    log_batch_started,
    log_certificate_replaced,
    log_dry_run,
    log_entry_evaluated,
    log_entry_failed,
    log_fatal,
    set_correlation_id,
)
from cert_renewer.ca.client import RenewalClient
from cert_renewer.crypto.cert import inspect_certificate, load_certificate_bytes
from cert_renewer.entries import read_entry_source
from cert_renewer.exceptions import ConfigError, ProtocolError, RenewerError
from cert_renewer.storage.writer import write_certificate
from cert_renewer.validation.policy import evaluate

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from typing import TextIO

    from cryptography import x509

    from cert_renewer.config import RenewerSettings
    from cert_renewer.entries import CertificateEntry

EXIT_OK = 0
EXIT_FATAL = 1


class EntryOutcome(str, Enum):
    """Terminal state of one entry."""

    SKIPPED = "skipped"
    REPLACED = "replaced"
    FAILED = "failed"


@dataclass
class BatchReport:
    """Outcome of every entry in a batch run."""

    results: list[tuple[CertificateEntry, EntryOutcome]] = field(default_factory=list)

    def count(self, outcome: EntryOutcome) -> int:
        """Number of entries that ended in the given state."""
        return sum(1 for _, o in self.results if o is outcome)


class BatchDriver:
    """Runs the renewal pipeline over a list of certificate entries."""

    def __init__(
        self,
        settings: RenewerSettings,
        *,
        client: RenewalClient | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize with immutable settings.

        Args:
            settings: Run configuration.
            client: Renewal client; built from settings.ca if omitted.
            clock: Returns the current time; defaults to UTC now.
        """
        self._settings = settings
        self._client = client if client is not None else RenewalClient(settings.ca)
        self._clock = clock if clock is not None else _utc_now
        self.report = BatchReport()

    def run(self, entries: Sequence[CertificateEntry]) -> int:
        """Process every entry and return the process exit code.

        Returns:
            0 once the batch has run, whatever the individual outcomes.
        """
        self.report = BatchReport()
        set_correlation_id()
        try:
            log_batch_started(
                ca_uri=self._settings.ca.uri,
                window_days=self._settings.renewal.window_days,
                entry_count=len(entries),
                dry_run=self._settings.renewal.dry_run,
            )
            for entry in entries:
                self.report.results.append((entry, self.process_entry(entry)))
            log_batch_finished(
                replaced=self.report.count(EntryOutcome.REPLACED),
                skipped=self.report.count(EntryOutcome.SKIPPED),
                failed=self.report.count(EntryOutcome.FAILED),
            )
        finally:
            clear_correlation_id()
        return EXIT_OK

    def run_from_source(self, source: str | None = None, *, stdin: TextIO | None = None) -> int:
        """Load the certificate list, then run the batch.

        Args:
            source: Path or "-"; defaults to settings.input.
            stdin: Stream to read when the source is "-".

        Returns:
            1 if the certificate list cannot be read, otherwise run()'s code.
        """
        source = source if source is not None else self._settings.input
        try:
            entries = read_entry_source(source, stdin=stdin)
        except ConfigError as e:
            log_fatal(error=e)
            return EXIT_FATAL
        return self.run(entries)

    def process_entry(self, entry: CertificateEntry) -> EntryOutcome:
        """Run the pipeline for one entry, containing its failures."""
        try:
            return self._process(entry)
        except RenewerError as e:
            log_entry_failed(cert_path=str(entry.certificate_path), error=e)
            return EntryOutcome.FAILED

    def _process(self, entry: CertificateEntry) -> EntryOutcome:
        bundle = inspect_certificate(entry.certificate_path, entry.key_path)

        decision = evaluate(bundle.not_after, self._clock(), self._settings.renewal.window_days)
        log_entry_evaluated(
            cert_path=str(entry.certificate_path),
            subject_dn=bundle.subject_dn,
            not_after=decision.not_after,
            renew_at=decision.renew_at,
            renew=decision.renew,
        )
        if not decision.renew:
            return EntryOutcome.SKIPPED

        if self._settings.renewal.dry_run:
            log_dry_run(cert_path=str(entry.certificate_path))
            return EntryOutcome.SKIPPED

        body = self._client.renew(bundle)
        renewed = _parse_renewed(body)

        # PEM payloads are re-encoded so the file always wraps DER
        der_body = base64.b64encode(renewed.public_bytes(Encoding.DER)).decode("ascii")
        write_certificate(entry.certificate_path, der_body)
        log_certificate_replaced(
            cert_path=str(entry.certificate_path),
            not_after=renewed.not_valid_after_utc,
            serial_number=renewed.serial_number,
        )
        return EntryOutcome.REPLACED


def _parse_renewed(body: str) -> x509.Certificate:
    """Check that a renewed body decodes to a certificate before writing it."""
    try:
        return load_certificate_bytes(base64.b64decode(body, validate=True))
    except (binascii.Error, ValueError) as e:
        raise ProtocolError.invalid_payload(raw_response=body, reason=str(e)) from e


def _utc_now() -> datetime:
    return datetime.now(UTC)
