"""
Ledger service tests.

Verifies:
- Sales carry fixed type and note; adjustments cannot be sales
- Digest attach is best-effort after commit
- Verification outcomes (valid, tampered, no digest, not found)
- Backfill sweep
- End-to-end stock scenario
"""

import logging

import pytest
from sqlalchemy import update

from stockledger.errors import (
    InsufficientStock,
    InvalidQuantity,
    InvalidTransactionType,
    ItemNotFound,
    NoDigestRecorded,
    TransactionNotFound,
)
from stockledger.models import Item, Transaction
from stockledger.services.fingerprint_service import FingerprintEngine
from stockledger.services.ledger_service import SALE_NOTE, LedgerService
from stockledger.services.transaction_store import TransactionStore


@pytest.fixture
def test_logger():
    return logging.getLogger("stockledger.tests.ledger")


def service_with(db_session, engine, logger):
    return LedgerService(TransactionStore(db_session, backoff_base=0), fingerprint=engine, logger=logger)


# =============================================================================
# RECORDING
# =============================================================================


class TestRecordSale:

    def test_sale_type_note_and_digest(self, ledger, make_item, buyer_user):
        item = make_item(stock=4)

        result = ledger.record_sale(item_id=item.id, quantity=3, acting_user_id=buyer_user.id)

        tx = result.transaction
        assert tx.transaction_type == "sale"
        assert tx.notes == SALE_NOTE
        assert tx.user_id == buyer_user.id
        assert result.item.current_stock == 1
        assert result.digest_attached is True
        assert tx.digest == FingerprintEngine().compute(tx)

    def test_insufficient_stock(self, ledger, make_item, buyer_user, db_session):
        item = make_item(stock=2)

        with pytest.raises(InsufficientStock):
            ledger.record_sale(item_id=item.id, quantity=3, acting_user_id=buyer_user.id)

        db_session.expire_all()
        assert db_session.get(Item, item.id).current_stock == 2

    def test_unknown_item(self, ledger, buyer_user):
        with pytest.raises(ItemNotFound):
            ledger.record_sale(item_id=31337, quantity=1, acting_user_id=buyer_user.id)

    def test_result_payload(self, ledger, make_item, buyer_user):
        item = make_item(stock=4)
        payload = ledger.record_sale(item_id=item.id, quantity=1, acting_user_id=buyer_user.id).to_dict()

        assert payload["transaction"]["transaction_type"] == "sale"
        assert payload["transaction"]["signed_quantity"] == -1
        assert payload["transaction"]["transaction_date"].endswith("Z")
        assert payload["item"]["current_stock"] == 3


class TestRecordAdjustment:

    @pytest.mark.parametrize(
        "tx_type,qty,expected",
        [("initial_stock", 5, 15), ("adjustment_increase", 2, 12), ("adjustment_decrease", 4, 6)],
    )
    def test_adjustment_types(self, ledger, make_item, manager_user, tx_type, qty, expected):
        item = make_item(stock=10)
        result = ledger.record_adjustment(
            item_id=item.id, transaction_type=tx_type, quantity=qty, acting_user_id=manager_user.id
        )
        assert result.item.current_stock == expected

    def test_sale_is_not_an_adjustment(self, ledger, make_item, manager_user):
        item = make_item(stock=10)
        with pytest.raises(InvalidTransactionType):
            ledger.record_adjustment(
                item_id=item.id, transaction_type="sale", quantity=1, acting_user_id=manager_user.id
            )

    def test_quantity_is_checked_before_type(self, ledger, make_item, manager_user):
        item = make_item(stock=10)
        with pytest.raises(InvalidQuantity):
            ledger.record_adjustment(
                item_id=item.id, transaction_type="bogus", quantity="1.5", acting_user_id=manager_user.id
            )

    def test_backdated_with_note(self, ledger, make_item, manager_user):
        item = make_item(stock=10)
        result = ledger.record_adjustment(
            item_id=item.id,
            transaction_type="adjustment_increase",
            quantity=1,
            acting_user_id=manager_user.id,
            notes="Found in back room",
            transaction_date="2024-05-01T12:30:00.250Z",
        )
        payload = result.transaction.to_dict()
        assert payload["transaction_date"] == "2024-05-01T12:30:00.250Z"
        assert payload["notes"] == "Found in back room"


class TestBestEffortDigest:

    def test_commit_stands_when_digest_fails(self, db_session, broken_engine, make_item, buyer_user, test_logger, caplog):
        item = make_item(stock=5)
        service = service_with(db_session, broken_engine(), test_logger)

        with caplog.at_level(logging.ERROR, logger=test_logger.name):
            result = service.record_sale(item_id=item.id, quantity=2, acting_user_id=buyer_user.id)

        assert result.digest_attached is False
        assert "Failed to attach digest" in caplog.text

        db_session.expire_all()
        assert db_session.get(Item, item.id).current_stock == 3
        assert db_session.get(Transaction, result.transaction.id).digest is None

    def test_commit_stands_when_rows_cannot_be_refreshed(self, db_session, make_item, buyer_user, test_logger, caplog):
        item_id = make_item(stock=5).id

        class DetachingStore(TransactionStore):
            """Drops the rows from the session right after commit, as if the connection went away."""

            def with_stock_update(self, item_id, mutator):
                updated, transaction = super().with_stock_update(item_id, mutator)
                self.session.expunge(updated)
                self.session.expunge(transaction)
                return updated, transaction

        service = LedgerService(DetachingStore(db_session, backoff_base=0), logger=test_logger)

        with caplog.at_level(logging.ERROR, logger=test_logger.name):
            result = service.record_sale(item_id=item_id, quantity=2, acting_user_id=buyer_user.id)

        assert result.digest_attached is False
        assert "Failed to attach digest" in caplog.text

        db_session.expire_all()
        assert db_session.get(Item, item_id).current_stock == 3
        assert db_session.query(Transaction).filter_by(item_id=item_id, transaction_type="sale").count() == 1


# =============================================================================
# VERIFICATION
# =============================================================================


class TestVerifyTransaction:

    def test_valid(self, app, ledger, make_item, buyer_user):
        item = make_item(stock=5)
        tx = ledger.record_sale(item_id=item.id, quantity=1, acting_user_id=buyer_user.id).transaction

        outcome = ledger.verify_transaction(tx.id)

        assert outcome["transaction_id"] == tx.id
        assert outcome["is_valid"] is True
        assert outcome["digest"] == tx.digest
        assert outcome["explorer_url"] == app.config["EXPLORER_URL_TEMPLATE"].format(digest=tx.digest)

    def test_tampered_row_is_invalid(self, ledger, make_item, buyer_user, db_session):
        item = make_item(stock=5)
        tx = ledger.record_sale(item_id=item.id, quantity=1, acting_user_id=buyer_user.id).transaction

        # Raw SQL bypasses the ORM seal, like someone editing the database directly
        db_session.execute(
            update(Transaction.__table__).where(Transaction.__table__.c.id == tx.id).values(quantity=4)
        )
        db_session.commit()
        db_session.expire_all()

        assert ledger.verify_transaction(tx.id)["is_valid"] is False

    def test_no_digest(self, db_session, broken_engine, make_item, buyer_user, test_logger):
        item = make_item(stock=5)
        service = service_with(db_session, broken_engine(), test_logger)
        tx = service.record_sale(item_id=item.id, quantity=1, acting_user_id=buyer_user.id).transaction

        with pytest.raises(NoDigestRecorded) as exc_info:
            service.verify_transaction(tx.id)
        assert exc_info.value.status_code == 404

    def test_not_found(self, ledger):
        with pytest.raises(TransactionNotFound):
            ledger.verify_transaction(987654)


# =============================================================================
# BACKFILL
# =============================================================================


class TestBackfillDigests:

    def test_attaches_missing_digests(self, db_session, broken_engine, ledger, make_item, buyer_user, test_logger):
        item = make_item(stock=10)
        broken = service_with(db_session, broken_engine(), test_logger)
        ids = [
            broken.record_sale(item_id=item.id, quantity=q, acting_user_id=buyer_user.id).transaction.id
            for q in (1, 2)
        ]

        summary = ledger.backfill_digests()

        assert summary == {"scanned": 2, "attached": 2, "failed": 0}
        for tx_id in ids:
            assert ledger.verify_transaction(tx_id)["is_valid"] is True

    def test_failures_are_counted_and_skipped(self, db_session, broken_engine, make_item, buyer_user, test_logger):
        item = make_item(stock=10)
        broken = service_with(db_session, broken_engine(), test_logger)
        for q in (1, 2, 3):
            broken.record_sale(item_id=item.id, quantity=q, acting_user_id=buyer_user.id)

        partial = service_with(db_session, broken_engine(fail_on={2}), test_logger)
        summary = partial.backfill_digests()

        assert summary == {"scanned": 3, "attached": 2, "failed": 1}
        remaining = db_session.query(Transaction).filter(Transaction.digest.is_(None)).all()
        assert [tx.quantity for tx in remaining] == [2]

    def test_nothing_to_do(self, ledger, make_item):
        make_item(stock=3)
        assert ledger.backfill_digests() == {"scanned": 0, "attached": 0, "failed": 0}


# =============================================================================
# END TO END
# =============================================================================


class TestScenario:

    def test_stock_lifecycle(self, ledger, make_item, manager_user, buyer_user, db_session):
        item = make_item(stock=10)

        result = ledger.record_adjustment(
            item_id=item.id, transaction_type="initial_stock", quantity=5, acting_user_id=manager_user.id
        )
        assert result.item.current_stock == 15

        sale = ledger.record_sale(item_id=item.id, quantity=3, acting_user_id=buyer_user.id)
        assert sale.item.current_stock == 12

        assert ledger.verify_transaction(sale.transaction.id)["is_valid"] is True

        with pytest.raises(InsufficientStock):
            ledger.record_sale(item_id=item.id, quantity=100, acting_user_id=buyer_user.id)

        db_session.expire_all()
        assert db_session.get(Item, item.id).current_stock == 12
        rows = db_session.query(Transaction).filter_by(item_id=item.id).all()
        assert sum(row.signed_quantity for row in rows) == 12
