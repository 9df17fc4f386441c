# Overview: Flask API routes for item catalog operations; parses input and returns JSON responses.

"""
Item management routes.

SECURITY: All routes require authentication.
- Read operations require read_item
- create_item / update_item / delete_item for writes

Stock is never set directly. An optional "initial_stock" on create is
recorded through the ledger as an initial_stock transaction.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import LedgerError
from ..models import Item
from ..models.transactions import INITIAL_STOCK
from ..services import item_service
from ..services.ledger_service import build_ledger_service
from ..services.stock_ledger import validate_quantity
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_item,
    ValidationError,
    ConflictError,
)
from .transactions import ledger_error_response, parse_pagination

ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku",
        "name",
        "description",
        "unit_price_cents",
        "sale_price_cents",
        "reorder_point",
        "image_url",
    },
    required_on_create={"sku", "name"},
)

items_bp = Blueprint("items", __name__, url_prefix="/api/items")


@items_bp.get("")
@require_auth
@require_permission("read_item")
def list_items_route():
    """
    Query params: search, sortBy, order, page, limit.
    """
    page, limit = parse_pagination()
    result = item_service.list_items(
        search=request.args.get("search"),
        sort_by=request.args.get("sortBy"),
        order=request.args.get("order"),
        page=page,
        limit=limit,
    )
    return jsonify({"success": True, **result}), 200


@items_bp.get("/<int:item_id>")
@require_auth
@require_permission("read_item")
def get_item_route(item_id: int):
    try:
        item = item_service.get_item(item_id)
    except LedgerError as e:
        return ledger_error_response(e)
    return jsonify({"success": True, "data": item.to_dict()}), 200


@items_bp.post("")
@require_auth
@require_permission("create_item")
def create_item_route():
    """
    Create a new item. Optional "initial_stock" (positive int) is booked as
    an initial_stock transaction by the caller.
    """
    payload = dict(request.get_json(silent=True) or {})
    initial_stock = payload.pop("initial_stock", None)

    try:
        patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=False)
        enforce_rules_item(patch)
        if initial_stock not in (None, "", 0):
            initial_stock = validate_quantity(initial_stock)
        else:
            initial_stock = None
    except ValidationError as e:
        return jsonify({"success": False, "error": "validation_error", "message": str(e)}), 400
    except LedgerError as e:
        return ledger_error_response(e)

    try:
        item = item_service.create_item(patch=patch)
    except ConflictError as e:
        return jsonify({"success": False, "error": "conflict", "message": str(e)}), 409

    if initial_stock:
        try:
            result = build_ledger_service().record_adjustment(
                item_id=item.id,
                transaction_type=INITIAL_STOCK,
                quantity=initial_stock,
                acting_user_id=g.current_user.id,
                notes="Initial stock",
            )
            item = result.item
        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            current_app.logger.exception("Item %s created but initial stock was not recorded", item.id)
            return jsonify({"success": False, "error": "Internal server error"}), 500

    return jsonify({"success": True, "message": "Item created successfully", "data": item.to_dict()}), 201


@items_bp.patch("/<int:item_id>")
@require_auth
@require_permission("update_item")
def update_item_route(item_id: int):
    """Catalog edit. Stock changes go through /api/transactions."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=True)
        enforce_rules_item(patch)
    except ValidationError as e:
        return jsonify({"success": False, "error": "validation_error", "message": str(e)}), 400

    try:
        item = item_service.update_item(item_id=item_id, patch=patch)
    except ConflictError as e:
        return jsonify({"success": False, "error": "conflict", "message": str(e)}), 409
    except LedgerError as e:
        return ledger_error_response(e)

    return jsonify({"success": True, "message": "Item updated successfully", "data": item.to_dict()}), 200


@items_bp.delete("/<int:item_id>")
@require_auth
@require_permission("delete_item")
def delete_item_route(item_id: int):
    """Only items without transaction history can be deleted."""
    try:
        item_service.delete_item(item_id=item_id)
    except ConflictError as e:
        return jsonify({"success": False, "error": "conflict", "message": str(e)}), 409
    except LedgerError as e:
        return ledger_error_response(e)

    return jsonify({"success": True, "message": "Item deleted successfully"}), 200
