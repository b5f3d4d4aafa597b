"""
Error types raised by the wallet store, status engine and webhook notifier.
"""


class WalletError(Exception):
    """Base class for wallet errors. `cause` holds the underlying error, if any."""

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class InvalidStatus(WalletError, ValueError):
    """Target status is not pending, approved or rejected."""


class InvalidTransaction(WalletError, ValueError):
    """Fields for a new cash-in request failed validation."""


class TransactionNotFound(WalletError):
    """No wallet row with the requested id."""

    def __init__(self, transaction_id):
        super().__init__(f"Transaction #{transaction_id} not found.")
        self.transaction_id = transaction_id


class EligibilityExpired(WalletError):
    """Reject requested after the eligibility window closed."""

    def __init__(self, transaction_id, window):
        hours = int(window.total_seconds() // 3600)
        super().__init__(f"Reject window expired ({hours} hours) for transaction #{transaction_id}.")
        self.transaction_id = transaction_id
        self.window = window


class StoreError(WalletError):
    """Raised by the store; the message is the database's own error text."""


class StoreUpdateFailed(WalletError):
    """A status update (or the read preceding it) failed in the store."""


class StoreWriteFailed(WalletError):
    """Inserting a new wallet row failed in the store."""


class NotificationFailed(WalletError):
    """Outbound webhook failed or answered with a non-success status."""
