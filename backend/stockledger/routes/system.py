"""
System health endpoint.

Reports database connectivity plus the one ledger-specific signal worth
watching: committed transactions still waiting for a digest.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Item, Permission, Role, Transaction
from stockledger.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.
    """
    start_time = time.time()
    try:
        item_count = db.session.query(Item).count()
        transaction_count = db.session.query(Transaction).count()
        role_count = db.session.query(Role).count()
        permission_count = db.session.query(Permission).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "items": item_count,
                "transactions": transaction_count,
                "roles": role_count,
                "permissions": permission_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_ledger_health() -> dict:
    """Degraded while transactions are waiting for a digest backfill."""
    try:
        missing = db.session.query(Transaction).filter(Transaction.digest.is_(None)).count()
    except Exception:
        current_app.logger.exception("Ledger health check failed")
        return {"status": "unhealthy", "error": "Ledger query failed"}

    if missing:
        return {
            "status": "degraded",
            "warning": "Run `flask ledger backfill-digests`",
            "details": {"missing_digests": missing},
        }
    return {"status": "healthy", "details": {"missing_digests": 0}}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    ledger_health = check_ledger_health()

    all_checks = [database_health, ledger_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "ledger": ledger_health,
        }
    }

    return response, http_status
