"""Atomic replacement of certificate files.

The renewed certificate is written to a temporary file next to the target
and renamed over it, so readers see either the old or the new file and
never a truncated one.
"""

from __future__ import annotations

import contextlib
import os
import stat
import tempfile
import textwrap
from pathlib import Path

from cert_renewer.exceptions import WriteError

PEM_HEADER = "-----BEGIN CERTIFICATE-----"
PEM_FOOTER = "-----END CERTIFICATE-----"
PEM_LINE_LENGTH = 65


def wrap_pem(body: str) -> bytes:
    """Wrap a base64 certificate body in PEM armor.

    Args:
        body: Base64 certificate body; embedded whitespace is ignored.

    Returns:
        PEM bytes with a trailing newline.
    """
    compact = "".join(body.split())
    lines = [PEM_HEADER, *textwrap.wrap(compact, PEM_LINE_LENGTH), PEM_FOOTER]
    return ("\n".join(lines) + "\n").encode("ascii")


def write_certificate(cert_path: Path | str, body: str) -> None:
    """Replace cert_path with the PEM encoding of body.

    Args:
        cert_path: Certificate file to replace.
        body: Base64 certificate body.

    Raises:
        WriteError: If the file cannot be written or renamed into place.
    """
    path = Path(cert_path)
    pem = wrap_pem(body)

    tmp_name: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(pem)
            tmp.flush()
            os.fsync(tmp.fileno())

        _copy_mode(path, Path(tmp_name))
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)
        raise WriteError.write_failed(path=path, cause=e.strerror or str(e)) from e


def _copy_mode(source: Path, target: Path) -> None:
    """Give the new file the permission bits of the one it replaces."""
    try:
        mode = stat.S_IMODE(source.stat().st_mode)
    except FileNotFoundError:
        # NamedTemporaryFile creates 0600; certificates are public
        mode = 0o644
    target.chmod(mode)
