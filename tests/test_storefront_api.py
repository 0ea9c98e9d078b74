"""
Storefront API tests: public price/config endpoints and order quotes.
"""
import pytest


def test_liveness_routes(client):
    assert client.get("/").status_code == 200
    assert client.get("/health").get_json()["status"] == "ok"
    assert client.get("/api/health").get_json()["status"] == "ok"


def test_unit_price_endpoint(client):
    response = client.get("/api/config/price")
    assert response.status_code == 200
    assert response.headers["Cache-Control"] == "public, max-age=60"
    body = response.get_json()
    assert body["success"] is True
    assert body["unit_price"] == 2500.0
    assert body["currency_id"] == "ARS"
    assert "updated_at" in body


def test_public_config_is_cached(client):
    first = client.get("/api/config").get_json()
    assert first["success"] is True
    assert first["data"]["unit_price"] == 2500.0
    assert first["data"]["features"]["min_photos"] == 4
    assert first["data"]["features"]["max_photos"] == 15
    assert first["cache"]["cached"] is True

    second = client.get("/api/config").get_json()
    assert second["data"]["updated_at"] == first["data"]["updated_at"]


def test_cache_clear_outside_production(client):
    client.get("/api/config")
    response = client.post("/api/config/cache/clear")
    assert response.status_code == 200
    assert response.get_json()["previous_cache"]["unit_price"] == 2500.0

    assert client.post("/api/config/cache/clear").get_json()["previous_cache"] is None


def test_cache_clear_hidden_in_production(app_factory):
    app = app_factory(ENV="production")
    with app.test_client() as client:
        assert client.post("/api/config/cache/clear").status_code == 404


def test_config_health(client):
    response = client.get("/api/config/health")
    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "healthy"
    assert body["dependencies"]["pricing_service"]["price"] == 2500.0
    assert body["dependencies"]["price_store"]["status"] == "UP"


def test_config_health_reports_store_outage(app_factory, make_pricing_service, failing_store):
    app = app_factory(pricing_service=make_pricing_service(store=failing_store))
    with app.test_client() as client:
        body = client.get("/api/config/health").get_json()
    # Pricing still answers from lower tiers while the store is down
    assert body["status"] == "healthy"
    assert body["dependencies"]["price_store"]["status"] == "DOWN"


def test_order_quote(client):
    response = client.post(
        "/api/order/quote",
        json={"name": " Ana ", "email": "ana@example.com", "photo_count": 6},
    )
    assert response.status_code == 200
    quote = response.get_json()["quote"]
    assert quote["order_id"].startswith("ORD-")
    assert quote["customer"] == {"name": "Ana", "email": "ana@example.com"}
    assert quote["unit_price"] == 2500.0
    assert quote["total"] == 15000.0
    assert quote["currency_id"] == "ARS"


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"email": "ana@example.com", "photo_count": 6}, "Name and email are required"),
        ({"name": "Ana", "email": "not-an-email", "photo_count": 6}, "Email address is not valid"),
        ({"name": "Ana", "email": "ana@example.com", "photo_count": 3}, "At least 4 photos are required"),
        ({"name": "Ana", "email": "ana@example.com", "photo_count": 16}, "At most 15 photos are allowed per order"),
        ({"name": "Ana", "email": "ana@example.com", "photo_count": "many"}, "Photo count must be a whole number"),
    ],
)
def test_order_quote_rejections(client, payload, message):
    response = client.post("/api/order/quote", json=payload)
    assert response.status_code == 400
    assert response.get_json() == {"success": False, "error": message}


def test_order_quote_with_overflowing_photo_count(client):
    response = client.post(
        "/api/order/quote",
        data='{"name": "Ana", "email": "ana@example.com", "photo_count": 1e400}',
        content_type="application/json",
    )
    assert response.status_code == 400
    assert response.get_json()["error"] == "Photo count must be a whole number"


@pytest.mark.parametrize("payload", [["x"], "x", 6])
def test_order_quote_requires_a_json_object(client, payload):
    response = client.post("/api/order/quote", json=payload)
    assert response.status_code == 400
    assert response.get_json() == {"success": False, "error": "Name and email are required"}
