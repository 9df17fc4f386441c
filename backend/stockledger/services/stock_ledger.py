# Overview: Stock arithmetic and validation for a single apply-transaction request.

"""
Stock Ledger Invariants (authoritative)

- Item.current_stock == sum of signed quantities of the item's transactions.
- initial_stock / adjustment_increase add quantity; adjustment_decrease /
  sale subtract it.
- A decrease larger than current stock fails with InsufficientStock and
  writes nothing.
- Every apply starts from the current persisted stock. A backdated
  transaction_date is recorded as-is but never reorders the arithmetic.
- quantity is a strictly positive int end to end: no bools, floats,
  "1.0", "1e3" or blank strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..errors import InsufficientStock, InvalidQuantity, InvalidTransactionDate, InvalidTransactionType
from ..models import Item, Transaction
from ..models.transactions import DECREASING_TYPES, TRANSACTION_TYPES
from ..validation import MAX_INT_VALUE
from stockledger.time_utils import normalize_utc, parse_iso_datetime, truncate_to_millis, utcnow


def validate_quantity(value) -> int:
    if isinstance(value, bool):
        raise InvalidQuantity("Quantity must be a positive integer")

    if isinstance(value, int):
        quantity = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not (stripped.isascii() and stripped.isdigit()):
            raise InvalidQuantity("Quantity must be a positive integer")
        quantity = int(stripped)
    else:
        raise InvalidQuantity("Quantity must be a positive integer")

    if quantity <= 0:
        raise InvalidQuantity("Quantity must be greater than 0")
    if quantity > MAX_INT_VALUE:
        raise InvalidQuantity(f"Quantity cannot exceed {MAX_INT_VALUE}")
    return quantity


def validate_transaction_type(value, allowed=TRANSACTION_TYPES) -> str:
    if not isinstance(value, str) or value not in allowed:
        raise InvalidTransactionType(
            "Invalid transaction type. Must be one of: " + ", ".join(sorted(allowed)),
            details={"transaction_type": value},
        )
    return value


def normalize_transaction_date(value) -> datetime:
    """
    Canonical UTC-naive, millisecond-precision occurred-at. Past and future
    dates are both recorded as given.

    None -> now. Strings are parsed as ISO-8601. Millisecond truncation
    happens before the row is written so the stored value reproduces
    its digest exactly.
    """
    if value is None:
        return truncate_to_millis(utcnow())

    if isinstance(value, datetime):
        dt = normalize_utc(value)
    elif isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            dt = None
        if dt is None:
            raise InvalidTransactionDate("transaction_date must be an ISO-8601 datetime")
    else:
        raise InvalidTransactionDate("transaction_date must be an ISO-8601 datetime")

    return truncate_to_millis(dt)


def signed_delta(transaction_type: str, quantity: int) -> int:
    if transaction_type in DECREASING_TYPES:
        return -quantity
    return quantity


@dataclass(frozen=True)
class StockChange:
    """Outcome of the stock check: the new level plus the row to append."""
    item_id: int
    transaction_type: str
    quantity: int
    user_id: int
    notes: str | None
    transaction_date: datetime
    previous_stock: int
    new_stock: int

    def build_transaction(self) -> Transaction:
        return Transaction(
            item_id=self.item_id,
            transaction_type=self.transaction_type,
            quantity=self.quantity,
            user_id=self.user_id,
            notes=self.notes,
            transaction_date=self.transaction_date,
        )


def compute_stock_change(
    item: Item,
    *,
    transaction_type: str,
    quantity: int,
    user_id: int,
    notes: str | None,
    transaction_date: datetime,
) -> StockChange:
    current = item.current_stock or 0
    if transaction_type in DECREASING_TYPES and current < quantity:
        raise InsufficientStock(item_id=item.id, requested=quantity, on_hand=current)

    new_stock = current + signed_delta(transaction_type, quantity)
    if new_stock > MAX_INT_VALUE:
        raise InvalidQuantity(
            f"Stock level cannot exceed {MAX_INT_VALUE}",
            details={"item_id": item.id, "on_hand": current, "requested": quantity},
        )

    return StockChange(
        item_id=item.id,
        transaction_type=transaction_type,
        quantity=quantity,
        user_id=user_id,
        notes=notes,
        transaction_date=transaction_date,
        previous_stock=current,
        new_stock=new_stock,
    )


class StockLedger:
    """
    Validates one stock-affecting request and applies it through the store's
    unit of work. Holds no state of its own beyond the store handle.
    """

    def __init__(self, store):
        self.store = store

    def apply(
        self,
        *,
        item_id: int,
        transaction_type: str,
        quantity,
        acting_user_id: int,
        notes: str | None = None,
        transaction_date=None,
    ) -> tuple[Transaction, Item]:
        quantity = validate_quantity(quantity)
        transaction_type = validate_transaction_type(transaction_type)
        occurred_at = normalize_transaction_date(transaction_date)
        notes = notes.strip() or None if isinstance(notes, str) else None

        def _mutate(item: Item) -> StockChange:
            return compute_stock_change(
                item,
                transaction_type=transaction_type,
                quantity=quantity,
                user_id=acting_user_id,
                notes=notes,
                transaction_date=occurred_at,
            )

        item, transaction = self.store.with_stock_update(item_id, _mutate)
        return transaction, item
