"""cert-renewer - Automatic renewal of mutual-TLS client certificates.

Checks configured client certificates against a renewal window and asks
the issuing CA to renew those about to expire, authenticating with the
certificate being renewed.
"""

__version__ = "0.1.0"
