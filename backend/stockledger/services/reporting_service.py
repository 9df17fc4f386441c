# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

import csv
import io

from sqlalchemy import case, func

from stockledger.extensions import db
from stockledger.models import Item, Transaction
from stockledger.models.transactions import SALE
from stockledger.services import item_service
from stockledger.services.transaction_store import TransactionFilters, TransactionStore
from stockledger.time_utils import to_iso_millis


INVENTORY_CSV_COLUMNS = [
    "id",
    "sku",
    "name",
    "current_stock",
    "reorder_point",
    "needs_reorder",
    "unit_price_cents",
    "sale_price_cents",
    "total_value_cents",
    "total_sale_value_cents",
    "potential_profit_cents",
]


def _inventory_row(item: Item) -> dict:
    total_value = item.unit_price_cents * item.current_stock
    total_sale_value = item.sale_price_cents * item.current_stock
    row = item.to_dict()
    row.update({
        "total_value_cents": total_value,
        "total_sale_value_cents": total_sale_value,
        "potential_profit_cents": total_sale_value - total_value,
    })
    return row


def _inventory_totals(query) -> dict:
    value = Item.unit_price_cents * Item.current_stock
    sale_value = Item.sale_price_cents * Item.current_stock
    row = query.with_entities(
        func.count(Item.id),
        func.coalesce(func.sum(Item.current_stock), 0),
        func.coalesce(func.sum(value), 0),
        func.coalesce(func.sum(sale_value), 0),
    ).one()
    total_items, total_stock, total_value, total_sale_value = (int(v or 0) for v in row)
    return {
        "totalItems": total_items,
        "totalStock": total_stock,
        "totalValue": total_value,
        "totalSaleValue": total_sale_value,
        "totalPotentialProfit": total_sale_value - total_value,
    }


def inventory_summary(
    *,
    search: str | None = None,
    sort_by: str | None = None,
    order: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """
    Per-item stock valuation, paginated. Totals cover the whole filtered
    set, not just the current page. Money is in cents.
    """
    query = item_service.item_query(search=search)

    page = max(page, 1)
    total = query.count()
    items = (
        item_service.ordered(query, sort_by, order)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "data": [_inventory_row(item) for item in items],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": (total + limit - 1) // limit if limit > 0 else 0,
        },
        "totals": _inventory_totals(item_service.item_query(search=search)),
    }


def _transaction_value_expr():
    # Sales are valued at sale price, everything else at unit cost
    return case(
        (Transaction.transaction_type == SALE, Item.sale_price_cents),
        else_=Item.unit_price_cents,
    ) * Transaction.quantity


def _transaction_row(tx: Transaction) -> dict:
    item = tx.item
    user = tx.user
    price = item.sale_price_cents if tx.transaction_type == SALE else item.unit_price_cents
    recorded_by = " ".join(p for p in (user.first_name, user.last_name) if p) or user.username
    return {
        "id": tx.id,
        "item_id": item.id,
        "item_name": item.name,
        "sku": item.sku,
        "transaction_type": tx.transaction_type,
        "quantity": tx.quantity,
        "transaction_date": to_iso_millis(tx.transaction_date),
        "recorded_by": recorded_by,
        "username": user.username,
        "role": user.role.name if user.role else None,
        "notes": tx.notes or "",
        "unit_price_cents": item.unit_price_cents,
        "sale_price_cents": item.sale_price_cents,
        "total_value_cents": price * tx.quantity,
        "digest": tx.digest,
    }


def transactions_report(
    *,
    filters: TransactionFilters,
    sort_by: str | None = None,
    order: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    store = TransactionStore(db.session)
    result = store.list_with_filters(filters, sort_by=sort_by, order=order, page=page, limit=limit)

    totals_row = store.filtered_query(filters).with_entities(
        func.coalesce(func.sum(Transaction.quantity), 0),
        func.coalesce(func.sum(_transaction_value_expr()), 0),
    ).one()

    return {
        "data": [_transaction_row(tx) for tx in result.rows],
        "pagination": result.pagination(),
        "totals": {
            "totalTransactions": result.total,
            "totalQuantity": int(totals_row[0] or 0),
            "totalValue": int(totals_row[1] or 0),
        },
    }


def inventory_summary_csv(*, search: str | None = None) -> str:
    """Full inventory summary (no pagination) as CSV text."""
    items = item_service.ordered(item_service.item_query(search=search), "name", "asc").all()

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=INVENTORY_CSV_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    for item in items:
        writer.writerow(_inventory_row(item))
    return buffer.getvalue()
