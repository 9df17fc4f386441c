from __future__ import annotations

from sqlalchemy import event, inspect, select

from ..extensions import db
from ..errors import SealedTransactionError
from stockledger.time_utils import to_iso_millis, to_utc_z

"""
Stock Transaction Invariants (authoritative)

- Append-only: rows are inserted by the ledger and never deleted.
- transaction_date is business time (may be backdated); created_at is
  system time. Stock arithmetic always follows commit order, never
  transaction_date.
- quantity is always positive; the sign comes from transaction_type.
- Once digest is set the row is sealed: item_id, transaction_type,
  quantity, transaction_date and user_id can no longer change.
- digest may stay NULL indefinitely (attach failed after commit);
  the backfill sweep fills it in later.
"""

INITIAL_STOCK = "initial_stock"
ADJUSTMENT_INCREASE = "adjustment_increase"
ADJUSTMENT_DECREASE = "adjustment_decrease"
SALE = "sale"

INCREASING_TYPES = frozenset({INITIAL_STOCK, ADJUSTMENT_INCREASE})
DECREASING_TYPES = frozenset({ADJUSTMENT_DECREASE, SALE})
TRANSACTION_TYPES = INCREASING_TYPES | DECREASING_TYPES

# Types a caller may record by hand; sales go through the shop path
ADJUSTMENT_TYPES = frozenset({INITIAL_STOCK, ADJUSTMENT_INCREASE, ADJUSTMENT_DECREASE})

SEALED_FIELDS = ("item_id", "transaction_type", "quantity", "transaction_date", "user_id")


class Transaction(db.Model):
    """
    One stock-affecting event.

    Not to be confused with a database transaction: the atomic scope that
    writes this row together with the item's stock is the UnitOfWork in
    services/transaction_store.py.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_item_date", "item_id", "transaction_date"),
        db.CheckConstraint("quantity > 0", name="ck_transactions_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(32), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    notes = db.Column(db.String(255), nullable=True)

    # Millisecond precision, so the stored value reproduces its digest
    transaction_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    # SHA-256 hex of the canonical field string; NULL until attached
    digest = db.Column(db.String(64), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    item = db.relationship("Item", backref=db.backref("transactions", lazy="dynamic"))
    user = db.relationship("User", backref=db.backref("transactions", lazy="dynamic"))

    @property
    def signed_quantity(self) -> int:
        if self.transaction_type in DECREASING_TYPES:
            return -self.quantity
        return self.quantity

    def __repr__(self) -> str:
        return (
            f"<Transaction id={self.id} item_id={self.item_id} "
            f"type={self.transaction_type!r} qty={self.quantity}>"
        )

    def to_dict(self, include_relations: bool = False) -> dict:
        data = {
            "id": self.id,
            "item_id": self.item_id,
            "transaction_type": self.transaction_type,
            "quantity": self.quantity,
            "signed_quantity": self.signed_quantity,
            "user_id": self.user_id,
            "notes": self.notes,
            "transaction_date": to_iso_millis(self.transaction_date),
            "digest": self.digest,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_relations:
            data["item"] = self.item.to_dict() if self.item else None
            data["recorded_by"] = self.user.to_public_dict() if self.user else None
        return data


def _is_sealed(state, connection, target) -> bool:
    """True when the row already carried a digest before this flush."""
    history = state.attrs.digest.history
    if history.deleted:
        return history.deleted[0] is not None
    if history.unchanged:
        return history.unchanged[0] is not None
    # Expired or never loaded: ask the database
    table = Transaction.__table__
    stored = connection.scalar(select(table.c.digest).where(table.c.id == target.id))
    return stored is not None


@event.listens_for(Transaction, "before_update")
def _reject_sealed_changes(mapper, connection, target):
    state = inspect(target)
    if not _is_sealed(state, connection, target):
        return

    changed = [name for name in SEALED_FIELDS if state.attrs[name].history.has_changes()]
    if changed:
        raise SealedTransactionError(
            "Transaction is sealed by its digest; record a compensating adjustment instead",
            details={"transaction_id": target.id, "fields": changed},
        )
