from flask import Blueprint, Response, current_app, jsonify, request

from stockledger.decorators import require_auth, require_permission
from stockledger.errors import LedgerError
from stockledger.routes.transactions import (
    ledger_error_response,
    parse_pagination,
    parse_transaction_filters,
)
from stockledger.services import reporting_service
from stockledger.time_utils import utcnow
from stockledger.validation import ValidationError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/inventory-summary")
@require_auth
@require_permission("view_reports")
def inventory_summary_report():
    page, limit = parse_pagination()
    report = reporting_service.inventory_summary(
        search=request.args.get("search"),
        sort_by=request.args.get("sortBy"),
        order=request.args.get("order"),
        page=page,
        limit=limit,
    )
    return jsonify(report), 200


@reports_bp.get("/transactions")
@require_auth
@require_permission("view_reports")
def transactions_report():
    try:
        filters = parse_transaction_filters()
        page, limit = parse_pagination()
        report = reporting_service.transactions_report(
            filters=filters,
            sort_by=request.args.get("sortBy"),
            order=request.args.get("order"),
            page=page,
            limit=limit,
        )
        return jsonify(report), 200
    except ValidationError as exc:
        return jsonify({"success": False, "error": "validation_error", "message": str(exc)}), 400
    except LedgerError as exc:
        return ledger_error_response(exc)


@reports_bp.get("/inventory-summary/csv")
@require_auth
@require_permission("export_reports")
def inventory_summary_csv():
    try:
        body = reporting_service.inventory_summary_csv(search=request.args.get("search"))
    except Exception:
        current_app.logger.exception("Failed to export inventory summary")
        return jsonify({"success": False, "error": "Internal server error"}), 500

    filename = f"inventory-summary-{utcnow().strftime('%Y%m%d')}.csv"
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
