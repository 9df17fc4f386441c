# Overview: Flask API routes for stock transactions; parses input and returns JSON responses.

"""
Transaction routes.

SECURITY: All routes require authentication.
- Recording adjustments requires create_transaction
- Listing everything requires read_transactions; /mine needs read_own_transactions
- Verification requires verify_blockchain or read_transactions
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_any_permission, require_auth, require_permission
from ..errors import LedgerError, TransactionNotFound
from ..models import Transaction
from ..services.ledger_service import build_ledger_service
from ..services.transaction_store import TransactionFilters
from ..time_utils import parse_date_bound
from ..validation import ModelValidationPolicy, ValidationError, validate_payload


# quantity / type / date are checked by the ledger itself
TRANSACTION_POLICY = ModelValidationPolicy(
    writable_fields={"item_id", "transaction_type", "quantity", "notes", "transaction_date"},
    required_on_create={"item_id", "transaction_type", "quantity"},
    raw_fields={"transaction_type", "quantity", "transaction_date"},
)

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def parse_pagination() -> tuple[int, int]:
    """page / limit query args, clamped to the configured page size."""
    page = request.args.get("page", default=1, type=int) or 1
    limit = request.args.get("limit", default=current_app.config["DEFAULT_PAGE_SIZE"], type=int)
    limit = max(1, min(limit or current_app.config["DEFAULT_PAGE_SIZE"], current_app.config["MAX_PAGE_SIZE"]))
    return max(page, 1), limit


def parse_transaction_filters(user_id: int | None = None) -> TransactionFilters:
    """
    Query args: search, type, startDate, endDate.

    A date-only endDate covers that whole day. Raises ValidationError on
    an unparseable date.
    """
    try:
        start = parse_date_bound(request.args.get("startDate"))
        end = parse_date_bound(request.args.get("endDate"), end=True)
    except ValueError:
        raise ValidationError("startDate and endDate must be ISO-8601 dates")

    return TransactionFilters(
        transaction_type=request.args.get("type"),
        start=start,
        end=end,
        search=request.args.get("search"),
        user_id=user_id,
    )


def ledger_error_response(e: LedgerError):
    if e.status_code >= 500:
        current_app.logger.error("Ledger failure: %s %s", e.message, e.details)
    return jsonify(e.to_dict()), e.status_code


def _list_transactions(user_id: int | None):
    try:
        filters = parse_transaction_filters(user_id=user_id)
        page, limit = parse_pagination()
        service = build_ledger_service()
        result = service.store.list_with_filters(
            filters,
            sort_by=request.args.get("sortBy"),
            order=request.args.get("order"),
            page=page,
            limit=limit,
        )
        return jsonify({
            "success": True,
            "data": [tx.to_dict(include_relations=True) for tx in result.rows],
            "pagination": result.pagination(),
        }), 200
    except ValidationError as e:
        return jsonify({"success": False, "error": "validation_error", "message": str(e)}), 400
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@transactions_bp.post("")
@require_auth
@require_permission("create_transaction")
def create_transaction_route():
    """
    Record a manual stock movement (initial_stock, adjustment_increase,
    adjustment_decrease). Sales go through /api/shop/buy.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Transaction, payload=payload, policy=TRANSACTION_POLICY, partial=False)
    except ValidationError as e:
        return jsonify({"success": False, "error": "validation_error", "message": str(e)}), 400

    try:
        result = build_ledger_service().record_adjustment(
            item_id=patch["item_id"],
            transaction_type=patch["transaction_type"],
            quantity=patch["quantity"],
            acting_user_id=g.current_user.id,
            notes=patch.get("notes"),
            transaction_date=patch.get("transaction_date"),
        )
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record transaction")
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return jsonify({
        "success": True,
        "message": "Transaction recorded successfully",
        "data": result.to_dict(),
    }), 201


@transactions_bp.get("")
@require_auth
@require_permission("read_transactions")
def list_transactions_route():
    """
    Query params: search, type, startDate, endDate, sortBy, order, page, limit.
    """
    return _list_transactions(user_id=None)


@transactions_bp.get("/mine")
@require_auth
@require_permission("read_own_transactions")
def list_my_transactions_route():
    """Same filters as the full list, scoped to the caller."""
    return _list_transactions(user_id=g.current_user.id)


@transactions_bp.get("/<int:transaction_id>")
@require_auth
@require_any_permission("read_transactions", "read_own_transactions")
def get_transaction_route(transaction_id: int):
    """Users limited to their own history get 404 for anyone else's rows."""
    try:
        tx = build_ledger_service().store.find_by_id(transaction_id)
        if "read_transactions" not in g.permissions and tx.user_id != g.current_user.id:
            raise TransactionNotFound(transaction_id)
    except LedgerError as e:
        return ledger_error_response(e)

    return jsonify({"success": True, "data": tx.to_dict(include_relations=True)}), 200


@transactions_bp.get("/<int:transaction_id>/verify")
@require_auth
@require_any_permission("verify_blockchain", "read_transactions")
def verify_transaction_route(transaction_id: int):
    """Recompute the digest and compare it with the stored one."""
    try:
        outcome = build_ledger_service().verify_transaction(transaction_id)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to verify transaction %s", transaction_id)
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return jsonify({"success": True, "data": outcome}), 200
