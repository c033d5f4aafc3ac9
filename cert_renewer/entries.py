"""Certificate list parsing.

Each non-comment line names a certificate file and its private key file,
separated by whitespace. A backslash escapes the following character, so
paths containing spaces are written as ``/etc/pki/my\\ cert.pem``.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from cert_renewer.audit.logger import log_entry_line_skipped
from cert_renewer.config import STDIN_SOURCE
from cert_renewer.exceptions import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import TextIO


@dataclass(frozen=True)
class CertificateEntry:
    """One certificate/key pair to check."""

    certificate_path: Path
    key_path: Path
    line_number: int | None = None


class EntryLineError(ValueError):
    """A single line of the certificate list is malformed."""


def split_fields(line: str) -> list[str]:
    """Split a line on unescaped whitespace.

    Raises:
        EntryLineError: If the line ends with a dangling backslash.
    """
    fields: list[str] = []
    current: list[str] = []
    in_field = False
    chars = iter(line)
    for char in chars:
        if char == "\\":
            escaped = next(chars, None)
            if escaped is None:
                msg = "trailing backslash"
                raise EntryLineError(msg)
            current.append(escaped)
            in_field = True
        elif char.isspace():
            if in_field:
                fields.append("".join(current))
                current = []
                in_field = False
        else:
            current.append(char)
            in_field = True
    if in_field:
        fields.append("".join(current))
    return fields


def parse_entry_line(line: str) -> tuple[str, str] | None:
    """Parse one line into (certificate path, key path).

    Returns:
        The two paths, or None for blank and comment lines.

    Raises:
        EntryLineError: If the line does not hold exactly two fields.
    """
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None

    fields = split_fields(stripped)
    if len(fields) != 2:  # noqa: PLR2004
        msg = f"expected certificate and key paths, found {len(fields)} field(s)"
        raise EntryLineError(msg)
    return fields[0], fields[1]


def parse_entries(
    lines: Iterable[str],
    *,
    source: str = STDIN_SOURCE,
    check_files: bool = True,
) -> list[CertificateEntry]:
    """Parse a certificate list, skipping malformed lines.

    Args:
        lines: Lines of the certificate list.
        source: Name of the source, used in diagnostics.
        check_files: Skip entries whose files are not readable.

    Returns:
        Entries in input order.
    """
    entries: list[CertificateEntry] = []
    for line_number, line in enumerate(lines, start=1):
        try:
            parsed = parse_entry_line(line)
        except EntryLineError as e:
            log_entry_line_skipped(source=source, line_number=line_number, reason=str(e))
            continue
        if parsed is None:
            continue

        cert_path, key_path = (Path(p) for p in parsed)
        if check_files:
            unreadable = [p for p in (cert_path, key_path) if not _is_readable_file(p)]
            if unreadable:
                log_entry_line_skipped(
                    source=source,
                    line_number=line_number,
                    reason=f"not a readable file: {unreadable[0]}",
                )
                continue

        entries.append(CertificateEntry(cert_path, key_path, line_number))
    return entries


def read_entry_source(
    source: str = STDIN_SOURCE,
    *,
    stdin: TextIO | None = None,
    check_files: bool = True,
) -> list[CertificateEntry]:
    """Read and parse the certificate list from a file or standard input.

    Args:
        source: File path, or "-" for standard input.
        stdin: Stream to use for "-" instead of sys.stdin.
        check_files: Skip entries whose files are not readable.

    Returns:
        Parsed entries; empty if the source holds only comments.

    Raises:
        ConfigError: If the source cannot be read.
    """
    if source == STDIN_SOURCE:
        stream = stdin if stdin is not None else sys.stdin
        try:
            lines = stream.read().splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError.source_unreadable(path="<stdin>", reason=str(e)) from e
        return parse_entries(lines, source="<stdin>", check_files=check_files)

    try:
        lines = Path(source).read_text().splitlines()
    except OSError as e:
        raise ConfigError.source_unreadable(path=source, reason=e.strerror or str(e)) from e
    except UnicodeDecodeError as e:
        raise ConfigError.source_unreadable(path=source, reason=str(e)) from e
    return parse_entries(lines, source=source, check_files=check_files)


def _is_readable_file(path: Path) -> bool:
    return path.is_file() and os.access(path, os.R_OK)
