"""Allow running as ``python -m cert_renewer``."""

from cert_renewer.main import main

main()
