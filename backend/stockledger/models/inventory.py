from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


class Item(db.Model):
    """
    Inventory item (stock-keeping unit).

    STOCK DESIGN DECISION:
    current_stock is denormalized from the transaction ledger for fast reads.
    - It must equal the signed sum of this item's transactions
    - It is only written inside a ledger unit of work, together with the
      Transaction row that explains the change
    - Catalog edits never touch it

    version_id is the optimistic-lock counter: a stale read-modify-write
    fails its UPDATE (StaleDataError) and the unit of work is re-run.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.Index("ix_items_name", "name"),
        db.CheckConstraint("current_stock >= 0", name="ck_items_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    reorder_point = db.Column(db.Integer, nullable=True)

    image_url = db.Column(db.String(512), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def needs_reorder(self) -> bool:
        return self.reorder_point is not None and self.current_stock <= self.reorder_point

    def __repr__(self) -> str:
        return f"<Item id={self.id} sku={self.sku!r} name={self.name!r} stock={self.current_stock}>"

    def to_shop_dict(self) -> dict:
        """Storefront view: no cost price, no reorder data."""
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "sale_price_cents": self.sale_price_cents,
            "current_stock": self.current_stock,
            "image_url": self.image_url,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "unit_price_cents": self.unit_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "current_stock": self.current_stock,
            "reorder_point": self.reorder_point,
            "needs_reorder": self.needs_reorder,
            "image_url": self.image_url,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
