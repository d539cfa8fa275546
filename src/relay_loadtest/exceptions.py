"""
Error types for the relay load tester.

Encoding and signing errors are fatal for the job that raised them. Relay
rejections, transport failures and confirmation timeouts are reported per job
and never abort a batch.
"""

from typing import Any


class RelayLoadTestError(Exception):
    """Base class for all relay load test errors."""


class EncodingError(RelayLoadTestError):
    """A transaction request is missing fields or holds malformed values."""


class SigningError(RelayLoadTestError):
    """The signing key is unavailable or the signature scheme failed."""


class RejectedByRelay(RelayLoadTestError):
    """The relay answered a submission with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TransportError(RelayLoadTestError):
    """Network failure while talking to the relay or balance service.

    This is the only error class a caller may choose to retry.
    """


class ConfirmationTimeout(RelayLoadTestError):
    """The deadline block passed without a matching RelayExecuted event."""

    def __init__(self, identifier: str, deadline: int, height: int) -> None:
        super().__init__(
            f"No confirmation for {identifier[:10]}... by deadline block {deadline} "
            f"(chain height {height})"
        )
        self.identifier = identifier
        self.deadline = deadline
        self.height = height


class BalanceCheckFailure(RelayLoadTestError):
    """The balance endpoint answered with a status above 200."""

    def __init__(self, address: str, status_code: int) -> None:
        super().__init__(f"Balance lookup for {address} failed with HTTP {status_code}")
        self.address = address
        self.status_code = status_code
