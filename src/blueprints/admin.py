from __future__ import annotations

import hmac
import logging
import platform
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request

from src.observability import get_metrics_snapshot, increment_counter
from src.observability.logging_config import ensure_request_id
from src.services.pricing_errors import PriceStorageError, PriceValidationError
from src.services.pricing_service import PricingService, compute_change_percent
from src.services.public_config_service import PublicConfigService

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")

ADMIN_KEY_HEADER = "X-Admin-Key"

_ENDPOINTS = [
    {"path": "/price", "methods": ["GET", "PUT"], "persistence": "temporal"},
    {"path": "/price/permanent", "methods": ["POST"], "persistence": "permanent"},
    {"path": "/price/reset", "methods": ["POST"]},
    {"path": "/price/reload", "methods": ["POST"]},
    {"path": "/price/validate", "methods": ["POST"]},
    {"path": "/price/history", "methods": ["GET"]},
    {"path": "/stats", "methods": ["GET"]},
    {"path": "/health", "methods": ["GET"]},
]


def _get_pricing_service() -> PricingService:
    return current_app.extensions["pricing_service"]


def _get_public_config() -> PublicConfigService:
    return current_app.extensions["public_config_service"]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(message: str, code: str, status: int, **extra: Any):
    body: Dict[str, Any] = {
        "success": False,
        "error": message,
        "code": code,
        "request_id": ensure_request_id(),
    }
    body.update(extra)
    return jsonify(body), status


def require_admin_key(view):
    """Reject the request unless X-Admin-Key matches the configured ADMIN_KEY."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        expected = current_app.config.get("ADMIN_KEY")
        if not expected:
            logger.error("ADMIN_KEY is not configured; refusing admin request")
            return _error("Server configuration incomplete", "ADMIN_KEY_MISSING", 500)

        provided = request.headers.get(ADMIN_KEY_HEADER)
        if not provided:
            logger.warning("Admin request without key from %s", request.remote_addr)
            return _error("Admin key required", "ADMIN_KEY_REQUIRED", 401)

        if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
            increment_counter("admin_auth_failures_total")
            logger.warning("Admin request with invalid key from %s", request.remote_addr)
            return _error("Access denied", "INVALID_ADMIN_KEY", 403)

        return view(*args, **kwargs)

    return wrapper


def _validation_error(exc: PriceValidationError):
    increment_counter("price_validation_failures_total", labels={"kind": exc.kind.value})
    logger.warning("Rejected admin price %r: %s", exc.value, exc.message)
    return _error("Invalid price", "INVALID_PRICE", 400, kind=exc.kind.value, details=exc.message)


def _storage_error(exc: PriceStorageError):
    extra: Dict[str, Any] = {"retryable": True}
    if current_app.debug:
        extra["debug"] = str(exc)
    return _error("Price could not be saved, try again", "PRICE_STORAGE_ERROR", 503, **extra)


def _change_limit_error(current_price: float, new_price: float):
    """Return an error response when the change exceeds PRICE_MAX_CHANGE_PERCENT."""
    limit = current_app.config.get("PRICE_MAX_CHANGE_PERCENT") or 0
    if limit <= 0:
        return None
    change = compute_change_percent(current_price, new_price)
    if change is None or abs(change) <= limit:
        return None
    logger.warning("Rejected price change of %.1f%% (limit %s%%)", change, limit)
    return _error(
        f"Price change too large ({abs(change):.1f}%), verify the value",
        "PRICE_CHANGE_TOO_LARGE",
        400,
        change_percent=change,
        max_change_percent=limit,
    )


def _requested_price() -> Any:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return None
    return payload.get("unit_price")


@admin_bp.route("/price", methods=["GET"])
@require_admin_key
def get_price():
    pricing = _get_pricing_service()
    return jsonify(
        {
            "success": True,
            "data": {
                "unit_price": pricing.get_unit_price(),
                "active_tier": pricing.get_active_tier().value,
                "currency_id": pricing.currency,
                "updated_at": _now_iso(),
                "environment": pricing.environment_name,
            },
            "metadata": {
                "request_id": ensure_request_id(),
                "note": "Use POST /price/permanent for changes that survive restarts",
            },
        }
    )


@admin_bp.route("/price", methods=["PUT"])
@require_admin_key
def update_runtime_price():
    pricing = _get_pricing_service()
    try:
        new_price = pricing.validate(_requested_price())
    except PriceValidationError as exc:
        return _validation_error(exc)

    old_price = pricing.get_unit_price()
    limit_error = _change_limit_error(old_price, new_price)
    if limit_error:
        return limit_error

    updated = pricing.set_runtime_price(new_price)
    _get_public_config().clear()
    return jsonify(
        {
            "success": True,
            "message": "Price updated in memory",
            "data": {
                "previous_price": old_price,
                "new_price": updated,
                "change_percent": compute_change_percent(old_price, updated),
                "currency_id": pricing.currency,
                "updated_at": _now_iso(),
                "persisted": False,
            },
            "metadata": {
                "request_id": ensure_request_id(),
                "warning": "This change lives in memory and is lost when the server restarts",
            },
        }
    )


@admin_bp.route("/price/permanent", methods=["POST"])
@require_admin_key
def update_permanent_price():
    pricing = _get_pricing_service()
    try:
        new_price = pricing.validate(_requested_price())
    except PriceValidationError as exc:
        return _validation_error(exc)

    limit_error = _change_limit_error(pricing.get_unit_price(), new_price)
    if limit_error:
        return limit_error

    try:
        result = pricing.set_permanent_price(new_price, updated_by=f"admin:{request.remote_addr or 'unknown'}")
    except PriceStorageError as exc:
        return _storage_error(exc)

    _get_public_config().clear()
    return jsonify(
        {
            "success": True,
            "message": "Price updated permanently",
            "data": {
                "previous_price": result.old_price,
                "new_price": result.new_price,
                "change_percent": result.change_percent,
                "currency_id": pricing.currency,
                "updated_at": result.timestamp.isoformat(),
                "persisted": result.persisted,
                "storage": result.storage,
            },
            "metadata": {
                "request_id": ensure_request_id(),
                "note": "This change survives server restarts",
            },
        }
    )


@admin_bp.route("/price/reset", methods=["POST"])
@require_admin_key
def reset_runtime_price():
    pricing = _get_pricing_service()
    previous = pricing.get_unit_price()
    restored = pricing.reset_runtime_price()
    _get_public_config().clear()
    return jsonify(
        {
            "success": True,
            "message": "Runtime price cleared",
            "data": {
                "previous_price": previous,
                "unit_price": restored,
                "active_tier": pricing.get_active_tier().value,
                "currency_id": pricing.currency,
            },
            "metadata": {"request_id": ensure_request_id()},
        }
    )


@admin_bp.route("/price/reload", methods=["POST"])
@require_admin_key
def reload_persisted_price():
    pricing = _get_pricing_service()
    persisted = pricing.reload_persisted()
    _get_public_config().clear()
    return jsonify(
        {
            "success": True,
            "data": {
                "persisted_price": persisted,
                "unit_price": pricing.get_unit_price(),
                "active_tier": pricing.get_active_tier().value,
            },
            "metadata": {"request_id": ensure_request_id()},
        }
    )


@admin_bp.route("/price/validate", methods=["POST"])
@require_admin_key
def validate_price_candidate():
    result = _get_pricing_service().validate_external(_requested_price())
    result["request_id"] = ensure_request_id()
    return jsonify(result), 200 if result["valid"] else 400


@admin_bp.route("/price/history", methods=["GET"])
@require_admin_key
def price_history():
    pricing = _get_pricing_service()
    limit: Optional[int] = request.args.get("limit", type=int)
    records = pricing.get_history(limit)
    return jsonify(
        {
            "success": True,
            "data": [record.to_dict() for record in records],
            "metadata": {
                "request_id": ensure_request_id(),
                "capacity": pricing.history_size,
            },
        }
    )


@admin_bp.route("/stats", methods=["GET"])
@require_admin_key
def admin_stats():
    pricing = _get_pricing_service()
    started_at = current_app.extensions.get("started_at", time.monotonic())
    return jsonify(
        {
            "success": True,
            "data": {
                "pricing": pricing.get_pricing_stats().to_dict(),
                "system": {
                    "python_version": platform.python_version(),
                    "environment": pricing.environment_name,
                    "uptime_seconds": round(time.monotonic() - started_at, 3),
                    "price_store": pricing.store.describe(),
                },
                "metrics": get_metrics_snapshot(),
                "api": {"endpoints": _ENDPOINTS},
            },
            "metadata": {"request_id": ensure_request_id(), "generated_at": _now_iso()},
        }
    )


@admin_bp.route("/health", methods=["GET"])
@require_admin_key
def admin_health():
    return jsonify(
        {
            "status": "healthy",
            "service": "admin",
            "timestamp": _now_iso(),
            "authentication": {
                "required": True,
                "method": ADMIN_KEY_HEADER,
                "configured": bool(current_app.config.get("ADMIN_KEY")),
            },
            "endpoints": _ENDPOINTS,
            "limits": {"max_price_change_percent": current_app.config.get("PRICE_MAX_CHANGE_PERCENT")},
        }
    )
