"""Command-line entry point for cert-renewer.

Reads a list of certificate/key pairs and renews every certificate that
expires within the renewal window. Run with: cert-renewer -i certs.list
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from cert_renewer import __version__
from cert_renewer.audit.logger import configure_logger, log_fatal
from cert_renewer.batch.driver import EXIT_FATAL, BatchDriver
from cert_renewer.config import (
    DEFAULT_CA_URI,
    DEFAULT_WINDOW_DAYS,
    RenewerSettings,
    apply_overrides,
    load_config,
    load_config_from_env,
)
from cert_renewer.exceptions import ConfigError


def build_settings(config_file: Path | None, **overrides: object) -> RenewerSettings:
    """Resolve settings: CLI flags over YAML file over environment over defaults.

    Raises:
        ConfigError: If the settings file is unreadable or invalid.
    """
    settings = load_config(config_file) if config_file is not None else load_config_from_env()
    return apply_overrides(settings, **overrides)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "-u",
    "--uri",
    default=None,
    help=f"CA base URI.  [default: {DEFAULT_CA_URI}]",
)
@click.option(
    "-i",
    "--input",
    "input_source",
    default=None,
    help="Certificate list file, or - for standard input.  [default: -]",
)
@click.option(
    "-d",
    "--days",
    type=click.IntRange(min=0),
    default=None,
    help=f"Renew certificates expiring within this many days.  [default: {DEFAULT_WINDOW_DAYS}]",
)
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    envvar="CERT_RENEWER_CONFIG",
    help="YAML settings file.",
)
@click.option(
    "-t",
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds to wait for the CA.  [default: 30]",
)
@click.option(
    "--ca-bundle",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Additional CA certificates to trust for the server.",
)
@click.option("-n", "--dry-run", is_flag=True, help="Report due certificates without renewing.")
@click.option("-v", "--verbose", is_flag=True, help="Log every decision.")
@click.version_option(version=__version__, prog_name="cert-renewer")
def cli(
    uri: str | None,
    input_source: str | None,
    days: int | None,
    config_file: Path | None,
    timeout: float | None,
    ca_bundle: Path | None,
    dry_run: bool,
    verbose: bool,
) -> None:
    """Renew client certificates that are about to expire.

    Each line of the certificate list holds a certificate path and a key
    path separated by whitespace. Escape spaces inside paths with a
    backslash. Lines starting with # are ignored.
    """
    try:
        settings = build_settings(
            config_file,
            uri=uri,
            input=input_source,
            days=days,
            timeout=timeout,
            ca_bundle=ca_bundle,
            dry_run=dry_run or None,
            verbose=verbose or None,
        )
    except ConfigError as e:
        log_fatal(error=e)
        sys.exit(EXIT_FATAL)

    configure_logger(settings.log)

    driver = BatchDriver(settings)
    sys.exit(driver.run_from_source())


def main() -> None:
    """Run the command-line interface."""
    cli()


if __name__ == "__main__":
    main()
