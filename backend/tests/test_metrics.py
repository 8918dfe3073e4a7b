from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.monitoring.registry import MetricsRegistry


def test_counter_renders_labelled_samples() -> None:
    registry = MetricsRegistry()
    counter = registry.counter("frames_total", "Frames seen.", label_names=("reason",))
    counter.labels("malformed").inc()
    counter.labels("malformed").inc(2)
    counter.labels('quote"d').inc()

    text = registry.render()

    assert "# TYPE frames_total counter" in text
    assert 'frames_total{reason="malformed"} 3' in text
    assert 'frames_total{reason="quote\\"d"} 1' in text
    assert counter.value("malformed") == 3


def test_gauge_without_samples_renders_zero() -> None:
    registry = MetricsRegistry()
    gauge = registry.gauge("sessions_active", "Sessions.")

    assert "sessions_active 0" in registry.render()

    gauge.inc(2)
    gauge.dec()
    assert gauge.value() == 1


def test_registry_rejects_duplicates_and_bad_labels() -> None:
    registry = MetricsRegistry()
    counter = registry.counter("events_total", "Events.", label_names=("topic",))

    with pytest.raises(ValueError):
        registry.counter("events_total", "Events again.")
    with pytest.raises(ValueError):
        counter.labels()
    with pytest.raises(ValueError):
        counter.labels("x").inc(-1)
    with pytest.raises(AttributeError):
        counter.labels("x").set(3)


def test_metrics_endpoint_exposes_realtime_series(client: TestClient) -> None:
    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "realtime_active_connections" in response.text
    assert "call_sessions_active" in response.text
