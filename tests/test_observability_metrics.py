from src.observability.metrics import (
    MetricsRegistry,
    increment_counter,
    observe_latency,
    get_counter_value,
    get_metrics_snapshot,
)


def test_metrics_snapshot_accumulates_counts():
    increment_counter("test_counter")
    increment_counter("test_counter", amount=2, labels={"route": "/example"})
    observe_latency("test_latency", 100, labels={"route": "/example"})
    observe_latency("test_latency", 50, labels={"route": "/example"})

    snapshot = get_metrics_snapshot()
    counters = snapshot["counters"]["test_counter"]
    assert len(counters) == 2
    assert get_counter_value("test_counter", {"route": "/example"}) == 2

    hist = snapshot["histograms"]["test_latency"][0]["stats"]
    assert hist["count"] == 2
    assert hist["max"] == 100
    assert hist["avg"] == 75


def test_event_log_is_bounded():
    registry = MetricsRegistry(max_events=3)
    for i in range(5):
        registry.record_event("price_changed", {"new_price": i})

    events = registry.snapshot()["events"]
    assert [event["payload"]["new_price"] for event in events] == [2, 3, 4]


def test_price_events_reach_the_shared_registry(make_pricing_service):
    service = make_pricing_service(environment_default="2500")
    service.set_runtime_price(2600)

    (event,) = get_metrics_snapshot()["events"]
    assert event["name"] == "price_changed"
    assert event["payload"]["new_price"] == 2600.0
    assert event["payload"]["source"] == "admin_runtime"


def test_http_requests_are_counted(client):
    client.get("/api/config/price")
    assert get_counter_value(
        "http_requests_total",
        {"method": "GET", "endpoint": "storefront.get_unit_price"},
    ) == 1
