"""
Fingerprint tests.

Verifies:
- Canonical string layout and millisecond timestamp rendering
- Digest determinism and sensitivity to each sealed field
- verify() true for the row's own digest, false otherwise
- Explorer link is pure formatting
"""

import hashlib
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from stockledger.services.fingerprint_service import FingerprintEngine


engine = FingerprintEngine()


def make_tx(**overrides):
    fields = {
        "item_id": 7,
        "transaction_type": "sale",
        "quantity": 3,
        "transaction_date": datetime(2024, 5, 1, 12, 30, 0, 250000),
        "user_id": 42,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestCanonicalString:

    def test_layout(self):
        assert FingerprintEngine.canonical_string(make_tx()) == "7-sale-3-2024-05-01T12:30:00.250Z-42"

    def test_sub_millisecond_digits_are_dropped(self):
        tx = make_tx(transaction_date=datetime(2024, 5, 1, 12, 30, 0, 250999))
        assert "2024-05-01T12:30:00.250Z" in FingerprintEngine.canonical_string(tx)

    def test_aware_datetime_is_rendered_in_utc(self):
        local = datetime(2024, 5, 1, 14, 30, 0, 250000, tzinfo=timezone(timedelta(hours=2)))
        assert FingerprintEngine.canonical_string(make_tx(transaction_date=local)) == \
            FingerprintEngine.canonical_string(make_tx())


class TestCompute:

    def test_matches_sha256_of_canonical_string(self):
        expected = hashlib.sha256(b"7-sale-3-2024-05-01T12:30:00.250Z-42").hexdigest()
        assert engine.compute(make_tx()) == expected

    def test_lowercase_hex_64(self):
        digest = engine.compute(make_tx())
        assert len(digest) == 64
        assert digest == digest.lower()
        int(digest, 16)

    def test_deterministic(self):
        assert engine.compute(make_tx()) == engine.compute(make_tx())

    @pytest.mark.parametrize(
        "field,value",
        [
            ("item_id", 8),
            ("transaction_type", "adjustment_decrease"),
            ("quantity", 4),
            ("transaction_date", datetime(2024, 5, 1, 12, 30, 0, 251000)),
            ("user_id", 43),
        ],
    )
    def test_each_field_changes_digest(self, field, value):
        assert engine.compute(make_tx(**{field: value})) != engine.compute(make_tx())


class TestVerify:

    def test_own_digest_is_valid(self):
        tx = make_tx()
        assert engine.verify(tx, engine.compute(tx)) is True

    def test_other_digest_is_invalid(self):
        assert engine.verify(make_tx(), engine.compute(make_tx(quantity=99))) is False

    @pytest.mark.parametrize("digest", [None, ""])
    def test_missing_digest_is_invalid(self, digest):
        assert engine.verify(make_tx(), digest) is False


class TestExplorerUrl:

    def test_formats_template(self):
        engine = FingerprintEngine(explorer_url_template="https://explorer.test/tx/0x{digest}")
        assert engine.explorer_url("abc") == "https://explorer.test/tx/0xabc"

    def test_none_without_digest_or_template(self):
        assert FingerprintEngine(explorer_url_template="x/{digest}").explorer_url("") is None
        assert FingerprintEngine().explorer_url("abc") is None
