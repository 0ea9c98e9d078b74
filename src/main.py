# src/main.py
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import Flask, g, jsonify, request

from src.config import Config
from src.blueprints.admin import admin_bp
from src.blueprints.storefront import storefront_bp
from src.observability import (
    configure_logging,
    increment_counter,
    observe_latency,
)
from src.observability.logging_config import ensure_request_id
from src.services.order_quote_service import OrderQuoteService
from src.services.pricing_service import PricingService
from src.services.public_config_service import PublicConfigService

logger = logging.getLogger(__name__)


def create_app(
    config: Any = Config,
    pricing_service: Optional[PricingService] = None,
    config_overrides: Optional[Dict[str, Any]] = None,
) -> Flask:
    """Build the Flask app and the services it shares between requests."""
    app = Flask(__name__)
    config.configure_app(app)
    if config_overrides:
        app.config.update(config_overrides)
    configure_logging(app)

    pricing = pricing_service or PricingService.from_config(config)
    app.extensions["pricing_service"] = pricing
    app.extensions["public_config_service"] = PublicConfigService(pricing, config=config)
    app.extensions["order_quote_service"] = OrderQuoteService(
        pricing,
        min_photos=config.ORDER_MIN_PHOTOS,
        max_photos=config.ORDER_MAX_PHOTOS,
    )
    app.extensions["started_at"] = time.monotonic()

    app.register_blueprint(admin_bp)
    app.register_blueprint(storefront_bp)
    _register_request_hooks(app)
    _register_health_routes(app)

    logger.info(
        "%s started: unit price %s %s (%s tier, store %s)",
        config.APP_NAME,
        pricing.get_unit_price(),
        pricing.currency,
        pricing.get_active_tier().value,
        pricing.store.describe(),
    )
    return app


def _register_request_hooks(app: Flask) -> None:
    @app.before_request
    def start_request_tracking():
        g.request_started_at = time.perf_counter()
        g.request_id = ensure_request_id()
        increment_counter(
            "http_requests_total",
            labels={
                "method": request.method,
                "endpoint": request.endpoint or request.path,
            },
        )

    @app.after_request
    def finish_request_tracking(response):
        started = getattr(g, "request_started_at", None)
        if started is not None:
            duration_ms = (time.perf_counter() - started) * 1000
            observe_latency(
                "http_request_latency_ms",
                duration_ms,
                labels={
                    "method": request.method,
                    "endpoint": request.endpoint or request.path,
                    "status": str(response.status_code),
                },
            )
        response.headers[Config.REQUEST_ID_HEADER] = ensure_request_id()
        if response.status_code >= 500:
            increment_counter(
                "http_errors_total",
                labels={
                    "method": request.method,
                    "endpoint": request.endpoint or request.path,
                    "status": str(response.status_code),
                },
            )
            logger.error("Request finished with error status %s", response.status_code)
        else:
            logger.info("Request finished", extra={"status_code": response.status_code})
        return response


def _register_health_routes(app: Flask) -> None:
    @app.route("/", methods=["GET"])
    def index():
        return f"{app.config['APP_NAME']} online"

    @app.route("/api/health", methods=["GET"])
    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok", "time": datetime.now(timezone.utc).isoformat()})


app = create_app()
