# Overview: Persistence for stock transactions; owns the database unit of work.

"""
Transaction Store

WHY: The item's stock level and the Transaction row explaining the change
must land together or not at all. Everything that writes either of them
goes through a UnitOfWork opened here.

NAMING: "Transaction" is the business row (models/transactions.py).
"UnitOfWork" is the database transaction. They are never the same object.

CONCURRENCY:
- The item row is read with SELECT ... FOR UPDATE (a no-op on SQLite).
- Item.version_id makes a stale write fail with StaleDataError.
- Lock waits and version conflicts re-run the whole unit of work with
  backoff. Nothing is committed by a failed attempt.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import contains_eager, joinedload

from ..errors import (
    InvalidTransactionType,
    ItemNotFound,
    SealedTransactionError,
    StorageUnavailable,
    TransactionNotFound,
)
from ..models import Item, Transaction
from ..models.transactions import TRANSACTION_TYPES
from .concurrency import RETRYABLE_ERRORS, lock_for_update, run_with_retry


SORTABLE_COLUMNS = {
    "transaction_date": Transaction.transaction_date,
    "created_at": Transaction.created_at,
    "quantity": Transaction.quantity,
    "transaction_type": Transaction.transaction_type,
    "item_name": Item.name,
    "id": Transaction.id,
}
DEFAULT_SORT = "transaction_date"


class UnitOfWork:
    """
    Database transaction scope.

    Commits on a clean exit. Any exception inside the block, including a
    failed commit or KeyboardInterrupt, rolls back and propagates.
    """

    def __init__(self, session):
        self.session = session

    def __enter__(self):
        return self.session

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.session.rollback()
            return False
        try:
            self.session.commit()
        except BaseException:
            self.session.rollback()
            raise
        return False


@dataclass
class TransactionFilters:
    transaction_type: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    search: str | None = None
    user_id: int | None = None


@dataclass
class TransactionPage:
    rows: list = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return math.ceil(self.total / self.limit)

    def pagination(self) -> dict:
        return {
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "totalPages": self.total_pages,
        }


class TransactionStore:
    """Reads and writes ledger rows through one explicitly passed session."""

    def __init__(self, session, *, attempts: int = 3, backoff_base: float = 0.1):
        self.session = session
        self.attempts = attempts
        self.backoff_base = backoff_base

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def with_stock_update(self, item_id: int, mutator) -> tuple[Item, Transaction]:
        """
        Load the item under lock, let `mutator` decide the change, then write
        the new stock and the transaction row in one commit.

        `mutator(item)` returns a StockChange or raises (e.g. InsufficientStock);
        a raise rolls back and is never retried.
        """
        def _unit():
            with UnitOfWork(self.session):
                item = lock_for_update(
                    self.session.query(Item).filter(Item.id == item_id)
                ).one_or_none()
                if item is None:
                    raise ItemNotFound(item_id)

                change = mutator(item)

                item.current_stock = change.new_stock
                self.session.flush()

                transaction = self._insert_transaction(change)
            return item, transaction

        try:
            return run_with_retry(
                _unit,
                session=self.session,
                attempts=self.attempts,
                backoff_base=self.backoff_base,
            )
        except RETRYABLE_ERRORS as exc:
            raise StorageUnavailable(
                "Storage unavailable; the stock change was not recorded",
                details={"item_id": item_id},
            ) from exc

    def _insert_transaction(self, change) -> Transaction:
        transaction = change.build_transaction()
        self.session.add(transaction)
        self.session.flush()
        return transaction

    def attach_digest(self, transaction_id: int, digest: str) -> Transaction:
        """Set the digest column only, in its own commit."""
        with UnitOfWork(self.session):
            transaction = self.session.get(Transaction, transaction_id)
            if transaction is None:
                raise TransactionNotFound(transaction_id)
            if transaction.digest and transaction.digest != digest:
                raise SealedTransactionError(
                    "Transaction already carries a different digest",
                    details={"transaction_id": transaction_id},
                )
            transaction.digest = digest
        return transaction

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_id(self, transaction_id: int) -> Transaction:
        transaction = self.session.get(Transaction, transaction_id)
        if transaction is None:
            raise TransactionNotFound(transaction_id)
        return transaction

    def filtered_query(self, filters: TransactionFilters):
        query = self.session.query(Transaction).join(Item, Transaction.item_id == Item.id)

        tx_type = filters.transaction_type
        if tx_type and tx_type != "all":
            if tx_type not in TRANSACTION_TYPES:
                raise InvalidTransactionType(
                    "Invalid transaction type filter",
                    details={"transaction_type": tx_type},
                )
            query = query.filter(Transaction.transaction_type == tx_type)

        if filters.user_id is not None:
            query = query.filter(Transaction.user_id == filters.user_id)

        if filters.start is not None:
            query = query.filter(Transaction.transaction_date >= filters.start)
        if filters.end is not None:
            query = query.filter(Transaction.transaction_date <= filters.end)

        search = (filters.search or "").strip()
        if search:
            like = f"%{search}%"
            query = query.filter(
                or_(
                    Item.name.ilike(like),
                    Item.sku.ilike(like),
                    Transaction.notes.ilike(like),
                )
            )

        return query

    def list_with_filters(
        self,
        filters: TransactionFilters,
        *,
        sort_by: str | None = None,
        order: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> TransactionPage:
        query = self.filtered_query(filters)
        total = query.count()

        column = SORTABLE_COLUMNS.get(sort_by or DEFAULT_SORT, SORTABLE_COLUMNS[DEFAULT_SORT])
        if (order or "desc").lower() == "asc":
            ordering = (column.asc(), Transaction.id.asc())
        else:
            ordering = (column.desc(), Transaction.id.desc())

        page = max(1, page)
        rows = (
            query.options(contains_eager(Transaction.item), joinedload(Transaction.user))
            .order_by(*ordering)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return TransactionPage(rows=rows, total=total, page=page, limit=limit)

    def list_missing_digest(self, limit: int = 500) -> list[Transaction]:
        """Committed rows whose digest never got attached, oldest first."""
        return (
            self.session.query(Transaction)
            .filter(Transaction.digest.is_(None))
            .order_by(Transaction.id.asc())
            .limit(limit)
            .all()
        )
