# Overview: Deterministic integrity digest for stock transactions.

"""
Transaction fingerprints.

The digest is SHA-256 over a canonical string built from exactly these
fields, in this order, joined with "-":

    item_id - transaction_type - quantity - transaction_date - user_id

transaction_date is rendered as ISO-8601 UTC with millisecond precision
(2024-05-01T12:30:00.250Z). Output is lowercase hex.

This is a content hash, not a chain: each digest depends only on its own
transaction, so anyone holding the row can recompute and compare it.
"""

from __future__ import annotations

import hashlib

from stockledger.time_utils import to_iso_millis


DIGEST_DELIMITER = "-"
DIGEST_ALGORITHM = "sha256"


class FingerprintEngine:
    """Computes and checks transaction digests. Holds no mutable state."""

    def __init__(self, explorer_url_template: str | None = None, algorithm: str = DIGEST_ALGORITHM):
        self.explorer_url_template = explorer_url_template
        self.algorithm = algorithm

    @staticmethod
    def canonical_string(transaction) -> str:
        parts = (
            str(transaction.item_id),
            str(transaction.transaction_type),
            str(transaction.quantity),
            to_iso_millis(transaction.transaction_date),
            str(transaction.user_id),
        )
        return DIGEST_DELIMITER.join(parts)

    def compute(self, transaction) -> str:
        payload = self.canonical_string(transaction).encode("utf-8")
        return hashlib.new(self.algorithm, payload).hexdigest()

    def verify(self, transaction, digest: str | None) -> bool:
        if not digest:
            return False
        return self.compute(transaction) == digest

    def explorer_url(self, digest: str | None) -> str | None:
        """Cosmetic external link for a digest. Pure string formatting."""
        if not digest or not self.explorer_url_template:
            return None
        return self.explorer_url_template.format(digest=digest)

