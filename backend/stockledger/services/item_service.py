# Overview: Service-layer operations for the item catalog.

"""
Item Catalog Service

STOCK RULE: nothing here writes Item.current_stock. New items start at 0;
opening stock is recorded through the ledger as an initial_stock
transaction so the conservation invariant holds from the first row.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..errors import ItemNotFound
from ..models import Item, Transaction
from ..validation import ConflictError

ITEM_MUTABLE_FIELDS = {
    "sku",
    "name",
    "description",
    "unit_price_cents",
    "sale_price_cents",
    "reorder_point",
    "image_url",
}

ITEM_SORT_COLUMNS = {
    "name": Item.name,
    "sku": Item.sku,
    "current_stock": Item.current_stock,
    "unit_price_cents": Item.unit_price_cents,
    "sale_price_cents": Item.sale_price_cents,
    "created_at": Item.created_at,
}


def apply_item_patch(item: Item, patch: dict) -> None:
    for k, v in patch.items():
        if k not in ITEM_MUTABLE_FIELDS:
            continue
        setattr(item, k, v)


def _ensure_sku_free(sku: str, *, exclude_id: int | None = None) -> None:
    query = db.session.query(Item).filter(Item.sku == sku)
    if exclude_id is not None:
        query = query.filter(Item.id != exclude_id)
    if query.first():
        raise ConflictError("SKU already exists.")


def get_item(item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if item is None:
        raise ItemNotFound(item_id)
    return item


def item_query(*, search: str | None = None, in_stock_only: bool = False):
    query = db.session.query(Item)
    search = (search or "").strip()
    if search:
        like = f"%{search}%"
        query = query.filter(
            or_(Item.name.ilike(like), Item.sku.ilike(like), Item.description.ilike(like))
        )
    if in_stock_only:
        query = query.filter(Item.current_stock > 0)
    return query


def ordered(query, sort_by: str | None, order: str | None):
    column = ITEM_SORT_COLUMNS.get(sort_by or "name", Item.name)
    if (order or "asc").lower() == "desc":
        return query.order_by(column.desc(), Item.id.desc())
    return query.order_by(column.asc(), Item.id.asc())


def list_items(
    *,
    search: str | None = None,
    sort_by: str | None = None,
    order: str | None = None,
    page: int = 1,
    limit: int = 10,
    in_stock_only: bool = False,
    storefront: bool = False,
) -> dict:
    """
    Catalog listing with search and pagination.

    storefront=True serializes without cost prices.
    Returns {"data": [...], "pagination": {total, page, limit, totalPages}}.
    """
    query = item_query(search=search, in_stock_only=in_stock_only)

    page = max(page, 1)
    total = query.count()
    total_pages = (total + limit - 1) // limit if limit > 0 else 0

    items = ordered(query, sort_by, order).offset((page - 1) * limit).limit(limit).all()

    return {
        "data": [item.to_shop_dict() if storefront else item.to_dict() for item in items],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": total_pages,
        },
    }


def create_item(*, patch: dict) -> Item:
    """
    Create an item from a validated patch dict. Stock starts at zero.

    Raises:
        ConflictError: If the SKU is taken
    """
    sku = patch.get("sku")
    if sku is None:
        raise ValueError("sku is required")
    _ensure_sku_free(sku)

    item = Item(current_stock=0)
    apply_item_patch(item, patch)

    db.session.add(item)
    db.session.commit()
    return item


def update_item(*, item_id: int, patch: dict) -> Item:
    """Catalog edit. current_stock is owned by the ledger and never changes here."""
    item = get_item(item_id)

    if "sku" in patch and patch["sku"] != item.sku:
        _ensure_sku_free(patch["sku"], exclude_id=item.id)

    apply_item_patch(item, patch)
    db.session.commit()
    return item


def delete_item(*, item_id: int) -> None:
    """
    Delete an item with no ledger history.

    Transactions are append-only, so an item that has any cannot go away.
    """
    item = get_item(item_id)

    has_history = db.session.query(Transaction.id).filter(Transaction.item_id == item.id).first()
    if has_history:
        raise ConflictError("Cannot delete an item that has transactions.")

    db.session.delete(item)
    db.session.commit()
