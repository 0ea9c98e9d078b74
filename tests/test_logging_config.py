import json
import logging

from src.observability.logging_config import JsonFormatter, RequestContextFilter


def _record(message="price resolved"):
    return logging.LogRecord("src.services.pricing_service", logging.INFO, __file__, 1, message, None, None)


def test_json_formatter_outside_request():
    record = _record()
    RequestContextFilter().filter(record)
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "price resolved"
    assert payload["level"] == "INFO"
    assert payload["endpoint"] is None
    assert payload["request_id"] is None


def test_json_formatter_inside_request(app):
    with app.test_request_context("/api/config/price", headers={"X-Request-ID": "req-42"}):
        app.preprocess_request()
        record = _record()
        RequestContextFilter().filter(record)
        payload = json.loads(JsonFormatter().format(record))
    assert payload["path"] == "/api/config/price"
    assert payload["method"] == "GET"
    assert payload["endpoint"] == "storefront.get_unit_price"
    assert payload["request_id"] == "req-42"
