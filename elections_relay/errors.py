# elections_relay/errors.py
from typing import Dict, Type


class RelayError(Exception):
    """Base class for every error the relay reports to a caller."""

    kind = "RelayError"

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict:
        payload = {"kind": self.kind, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationFailure(RelayError):
    """The signed request does not have the shape its signing schema requires."""

    kind = "ValidationFailure"


class SubmissionFailure(RelayError):
    """The ledger could not be reached. Safe for the caller to retry."""

    kind = "SubmissionFailure"


class Reverted(RelayError):
    """The ledger rejected the call. Final, not retryable."""

    kind = "Reverted"

    def __init__(self, message: str, details=None, transaction_hash: str = None):
        super().__init__(message, details)
        self.transaction_hash = transaction_hash

    def to_payload(self) -> dict:
        payload = super().to_payload()
        if self.transaction_hash:
            payload["transactionHash"] = self.transaction_hash
        return payload


class Timeout(RelayError):
    """Inclusion was not observed in time. The transaction may still land."""

    kind = "Timeout"

    def __init__(self, message: str, transaction_hash: str = None):
        super().__init__(message)
        self.transaction_hash = transaction_hash

    def to_payload(self) -> dict:
        payload = super().to_payload()
        if self.transaction_hash:
            payload["transactionHash"] = self.transaction_hash
        return payload


class CacheWriteFailure(RelayError):
    kind = "CacheWriteFailure"


class CacheReadFailure(RelayError):
    kind = "CacheReadFailure"


class ReconciliationFetchFailure(RelayError):
    kind = "ReconciliationFetchFailure"


STATUS_CODES: Dict[Type[RelayError], int] = {
    ValidationFailure: 422,
    Reverted: 409,
    SubmissionFailure: 502,
    Timeout: 504,
    CacheReadFailure: 503,
}


def status_code_for(error: Exception) -> int:
    for error_type, status in STATUS_CODES.items():
        if isinstance(error, error_type):
            return status
    return 500
