# Overview: Flask API routes for the storefront; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import LedgerError
from ..models import Transaction
from ..services import item_service
from ..services.ledger_service import build_ledger_service
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from .transactions import ledger_error_response, parse_pagination


PURCHASE_POLICY = ModelValidationPolicy(
    writable_fields={"item_id", "quantity"},
    required_on_create={"item_id", "quantity"},
    raw_fields={"quantity"},
)

shop_bp = Blueprint("shop", __name__, url_prefix="/api/shop")


@shop_bp.get("/items")
@require_auth
@require_permission("read_item_for_sale")
def list_shop_items_route():
    """In-stock items only, without cost prices."""
    page, limit = parse_pagination()
    result = item_service.list_items(
        search=request.args.get("search"),
        sort_by=request.args.get("sortBy"),
        order=request.args.get("order"),
        page=page,
        limit=limit,
        in_stock_only=True,
        storefront=True,
    )
    return jsonify({"success": True, **result}), 200


@shop_bp.post("/buy")
@require_auth
@require_permission("create_sale_transaction")
def buy_route():
    """
    Purchase an item. Body: {item_id, quantity}.

    Records a sale for the caller; fails with insufficient_stock (400)
    when the item cannot cover the quantity.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Transaction, payload=payload, policy=PURCHASE_POLICY, partial=False)
    except ValidationError as e:
        return jsonify({"success": False, "error": "validation_error", "message": str(e)}), 400

    try:
        result = build_ledger_service().record_sale(
            item_id=patch["item_id"],
            quantity=patch["quantity"],
            acting_user_id=g.current_user.id,
        )
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to complete purchase")
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return jsonify({
        "success": True,
        "message": "Purchase successful",
        "data": result.to_dict(),
    }), 200
