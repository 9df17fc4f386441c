# Overview: Typed failures raised by the ledger; each carries its HTTP status class.

"""
Ledger error taxonomy.

- Validation (400): caller input is malformed; never retried.
- Business rule (400): deterministic given current state; never retried
  automatically, the caller may retry once state changes (e.g. restock).
- Not found (404).
- Infrastructure (500): storage unavailable after the unit of work was
  rolled back; safe for the caller to retry the whole request.

Routes map any LedgerError to `(error.to_dict(), error.status_code)`.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for ledger failures."""

    status_code = 500
    error_code = "ledger_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {
            "success": False,
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidQuantity(LedgerError):
    status_code = 400
    error_code = "invalid_quantity"


class InvalidTransactionType(LedgerError):
    status_code = 400
    error_code = "invalid_transaction_type"


class InvalidTransactionDate(LedgerError):
    status_code = 400
    error_code = "invalid_transaction_date"


class InsufficientStock(LedgerError):
    status_code = 400
    error_code = "insufficient_stock"

    def __init__(self, item_id: int, requested: int, on_hand: int):
        super().__init__(
            "Insufficient stock",
            details={"item_id": item_id, "requested": requested, "on_hand": on_hand},
        )
        self.item_id = item_id
        self.requested = requested
        self.on_hand = on_hand


class ItemNotFound(LedgerError):
    status_code = 404
    error_code = "item_not_found"

    def __init__(self, item_id):
        super().__init__("Item not found", details={"item_id": item_id})
        self.item_id = item_id


class TransactionNotFound(LedgerError):
    status_code = 404
    error_code = "transaction_not_found"

    def __init__(self, transaction_id):
        super().__init__("Transaction not found", details={"transaction_id": transaction_id})
        self.transaction_id = transaction_id


class NoDigestRecorded(LedgerError):
    status_code = 404
    error_code = "no_digest_recorded"

    def __init__(self, transaction_id):
        super().__init__(
            "No integrity digest recorded for this transaction",
            details={"transaction_id": transaction_id},
        )
        self.transaction_id = transaction_id


class SealedTransactionError(LedgerError):
    """A write tried to change a transaction whose digest is already set."""

    status_code = 409
    error_code = "transaction_sealed"


class StorageUnavailable(LedgerError):
    status_code = 500
    error_code = "storage_unavailable"
