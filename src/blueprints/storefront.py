from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import Blueprint, abort, current_app, jsonify, request

from src.observability import check_price_store_health, check_pricing_health
from src.services.order_quote_service import OrderQuoteService
from src.services.pricing_service import PricingService
from src.services.public_config_service import ConfigUnavailableError, PublicConfigService

logger = logging.getLogger(__name__)

storefront_bp = Blueprint("storefront", __name__)

PUBLIC_CACHE_CONTROL = "public, max-age=60"


def _get_pricing_service() -> PricingService:
    return current_app.extensions["pricing_service"]


def _get_public_config() -> PublicConfigService:
    return current_app.extensions["public_config_service"]


def _get_order_quote_service() -> OrderQuoteService:
    return current_app.extensions["order_quote_service"]


@storefront_bp.route("/api/config/price", methods=["GET"])
def get_unit_price():
    pricing = _get_pricing_service()
    response = jsonify(
        {
            "success": True,
            "unit_price": pricing.get_unit_price(),
            "currency_id": pricing.currency,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    response.headers["Cache-Control"] = PUBLIC_CACHE_CONTROL
    return response


@storefront_bp.route("/api/config", methods=["GET"])
def get_public_config():
    public_config = _get_public_config()
    try:
        document = public_config.get_config()
    except ConfigUnavailableError as exc:
        logger.error("Public config unavailable: %s", exc)
        body = {"success": False, "error": "Configuration temporarily unavailable"}
        if current_app.debug:
            body["debug"] = str(exc)
        return jsonify(body), 503

    response = jsonify({"success": True, "data": document, "cache": public_config.cache_info()})
    response.headers["Cache-Control"] = PUBLIC_CACHE_CONTROL
    return response


@storefront_bp.route("/api/config/health", methods=["GET"])
def config_health():
    pricing = _get_pricing_service()
    pricing_health = check_pricing_health(pricing)
    store_health = check_price_store_health(pricing.store)
    healthy = pricing_health["healthy"] and pricing_health["has_valid_price"]
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "service": "config",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "dependencies": {
            "pricing_service": pricing_health,
            "price_store": store_health,
            "environment": pricing.environment_name,
        },
        "cache": _get_public_config().cache_info(),
    }
    return jsonify(body), 200 if healthy else 503


@storefront_bp.route("/api/config/cache/clear", methods=["POST"])
def clear_config_cache():
    if current_app.config.get("ENV") == "production":
        abort(404)
    previous = _get_public_config().clear()
    return jsonify(
        {
            "success": True,
            "message": "Cache cleared",
            "previous_cache": {
                "unit_price": previous["unit_price"],
                "updated_at": previous["updated_at"],
            }
            if previous
            else None,
        }
    )


@storefront_bp.route("/api/order/quote", methods=["POST"])
def quote_order():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    success, message, quote = _get_order_quote_service().quote(
        name=payload.get("name"),
        email=payload.get("email"),
        photo_count=payload.get("photo_count"),
    )
    if not success:
        return jsonify({"success": False, "error": message}), 400
    return jsonify({"success": True, "message": message, "quote": quote.to_dict()})
