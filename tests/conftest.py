# tests/conftest.py
"""
Pytest configuration and fixtures shared by the pricing, store and API tests.
"""

import os
import sys
import tempfile
from datetime import datetime, timezone

import pytest

# Keep pytest's log capture intact and never read the repo's price file
os.environ.setdefault("STRUCTURED_LOGS_ENABLED", "false")
os.environ.setdefault("PRICE_FILE_PATH", os.path.join(tempfile.gettempdir(), "magnetico-tests", "price.json"))

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from src.database import build_engine, build_session_factory, init_schema
from src.observability.metrics import reset_metrics
from src.services.price_store import JsonFilePriceStore, StoredPrice
from src.services.pricing_errors import PriceStorageError
from src.services.pricing_service import PricingService

ADMIN_KEY = "test-admin-key"


class FailingPriceStore:
    """Price store whose writes (and optionally reads) always fail."""

    def __init__(self, record=None, fail_on_load=False):
        self.record = record
        self.fail_on_load = fail_on_load
        self.save_calls = 0

    def load(self):
        if self.fail_on_load:
            raise PriceStorageError("disk unavailable")
        return self.record

    def save(self, record):
        self.save_calls += 1
        raise PriceStorageError("disk full")

    def describe(self):
        return "failing"

    def check_health(self):
        return {"status": "DOWN", "backend": "failing", "detail": "disk full"}


def make_stored_price(price, updated_by="seed"):
    return StoredPrice(
        price=price,
        currency="ARS",
        last_updated=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        updated_by=updated_by,
        environment="test",
    )


@pytest.fixture(autouse=True)
def _clean_metrics():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def price_file(tmp_path):
    return tmp_path / "data" / "price.json"


@pytest.fixture
def file_store(price_file):
    return JsonFilePriceStore(price_file)


@pytest.fixture
def make_pricing_service(file_store):
    """Factory for services; a new call on the same store simulates a restart."""

    def _make(store=None, **kwargs):
        return PricingService(store if store is not None else file_store, **kwargs)

    return _make


@pytest.fixture
def sqlite_session_factory():
    engine = build_engine("sqlite://", echo=False)
    init_schema(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def app_factory(make_pricing_service):
    from src.main import create_app

    def _create(pricing_service=None, **overrides):
        config_overrides = {
            "ADMIN_KEY": ADMIN_KEY,
            "TESTING": True,
            "ENV": "development",
            "PRICE_MAX_CHANGE_PERCENT": 50,
        }
        config_overrides.update(overrides)
        service = pricing_service or make_pricing_service(environment_default="2500", environment_name="test")
        return create_app(pricing_service=service, config_overrides=config_overrides)

    return _create


@pytest.fixture
def app(app_factory):
    return app_factory()


@pytest.fixture
def client(app):
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture
def admin_headers():
    return {"X-Admin-Key": ADMIN_KEY}


@pytest.fixture
def failing_store():
    return FailingPriceStore()


@pytest.fixture
def stored_price():
    return make_stored_price
