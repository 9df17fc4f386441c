# Overview: Use cases that record and verify stock transactions.

"""
Ledger Service

Per-call flow:

    Validated -> StockChecked -> Committed -> DigestAttached (optional) -> Returned

- Validation and the stock check happen inside StockLedger.apply; a
  failure there leaves no trace.
- Once committed, the stock change stands. The digest is attached in a
  separate commit and that step is best-effort: a failure is logged and
  the transaction keeps an empty digest until backfill_digests picks it up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import inspect

from ..errors import NoDigestRecorded
from ..models import Item, Transaction
from ..models.transactions import ADJUSTMENT_TYPES, SALE
from .fingerprint_service import FingerprintEngine
from .stock_ledger import StockLedger, validate_quantity, validate_transaction_type
from .transaction_store import TransactionStore


SALE_NOTE = "Online Sale"


@dataclass
class LedgerResult:
    transaction: Transaction
    item: Item
    digest_attached: bool

    def to_dict(self) -> dict:
        return {
            "transaction": self.transaction.to_dict(),
            "item": self.item.to_dict(),
        }


class LedgerService:
    def __init__(
        self,
        store: TransactionStore,
        fingerprint: FingerprintEngine | None = None,
        logger: logging.Logger | None = None,
    ):
        self.store = store
        self.ledger = StockLedger(store)
        self.fingerprint = fingerprint or FingerprintEngine()
        self._logger = logger

    @property
    def logger(self) -> logging.Logger:
        return self._logger or current_app.logger

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_sale(self, *, item_id: int, quantity, acting_user_id: int) -> LedgerResult:
        transaction, item = self.ledger.apply(
            item_id=item_id,
            transaction_type=SALE,
            quantity=quantity,
            acting_user_id=acting_user_id,
            notes=SALE_NOTE,
        )
        return self._finish(transaction, item)

    def record_adjustment(
        self,
        *,
        item_id: int,
        transaction_type: str,
        quantity,
        acting_user_id: int,
        notes: str | None = None,
        transaction_date=None,
    ) -> LedgerResult:
        """
        Manual stock movement. Sales are rejected here; they only come in
        through record_sale so their note and timestamp stay fixed.
        """
        validate_quantity(quantity)
        validate_transaction_type(transaction_type, allowed=ADJUSTMENT_TYPES)

        transaction, item = self.ledger.apply(
            item_id=item_id,
            transaction_type=transaction_type,
            quantity=quantity,
            acting_user_id=acting_user_id,
            notes=notes,
            transaction_date=transaction_date,
        )
        return self._finish(transaction, item)

    def _finish(self, transaction: Transaction, item: Item) -> LedgerResult:
        attached = self._attach_digest(transaction, item)
        return LedgerResult(transaction=transaction, item=item, digest_attached=attached)

    def _attach_digest(self, transaction: Transaction, item: Item) -> bool:
        # The commit expired both rows; only the identity key is safe to read without a refresh
        transaction_id = inspect(transaction).identity[0]
        try:
            self.logger.info(
                "Recorded %s of %s on item %s by user %s (transaction %s, stock now %s)",
                transaction.transaction_type,
                transaction.quantity,
                item.id,
                transaction.user_id,
                transaction_id,
                item.current_stock,
            )
            digest = self.fingerprint.compute(transaction)
            self.store.attach_digest(transaction_id, digest)
        except Exception:
            # Committed already; leave the digest empty for backfill
            self.logger.exception("Failed to attach digest to transaction %s", transaction_id)
            return False
        return True

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_transaction(self, transaction_id: int) -> dict:
        transaction = self.store.find_by_id(transaction_id)
        if not transaction.digest:
            raise NoDigestRecorded(transaction_id)

        is_valid = self.fingerprint.verify(transaction, transaction.digest)
        if not is_valid:
            self.logger.warning("Digest mismatch on transaction %s", transaction_id)

        return {
            "transaction_id": transaction.id,
            "digest": transaction.digest,
            "is_valid": is_valid,
            "explorer_url": self.fingerprint.explorer_url(transaction.digest),
        }

    def backfill_digests(self, limit: int = 500) -> dict:
        """
        Reconciliation sweep: attach digests to committed transactions that
        are still missing one. Individual failures are logged and skipped.
        """
        pending = self.store.list_missing_digest(limit)
        pending_ids = [transaction.id for transaction in pending]

        attached = 0
        failed = 0
        for transaction_id in pending_ids:
            try:
                transaction = self.store.find_by_id(transaction_id)
                self.store.attach_digest(transaction_id, self.fingerprint.compute(transaction))
            except Exception:
                self.logger.exception("Backfill failed for transaction %s", transaction_id)
                failed += 1
                continue
            attached += 1

        if pending_ids:
            self.logger.info(
                "Digest backfill: scanned=%s attached=%s failed=%s",
                len(pending_ids), attached, failed,
            )
        return {"scanned": len(pending_ids), "attached": attached, "failed": failed}


def build_ledger_service(session=None, config=None) -> LedgerService:
    """Wire a LedgerService from the app config and the request session."""
    if session is None:
        from ..extensions import db
        session = db.session
    config = config if config is not None else current_app.config

    store = TransactionStore(
        session,
        attempts=config.get("LEDGER_RETRY_ATTEMPTS", 3),
        backoff_base=config.get("LEDGER_RETRY_BACKOFF", 0.1),
    )
    fingerprint = FingerprintEngine(explorer_url_template=config.get("EXPLORER_URL_TEMPLATE"))
    return LedgerService(store, fingerprint=fingerprint)
