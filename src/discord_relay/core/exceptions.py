from __future__ import annotations


class RelayError(Exception):
    """Base error for the relay."""

    recoverable = False
    severity = "error"


class TransientError(RelayError):
    """Error that may succeed when retried (rate limits, network blips)."""

    recoverable = True
    severity = "warning"


class PermanentError(RelayError):
    """Error that will not succeed on retry (bad credentials, missing access)."""

    recoverable = False
    severity = "error"
