from prometheus_client import CONTENT_TYPE_LATEST


def test_metrics_endpoint_returns_200(api_client):
    """Test that /metrics endpoint is accessible and returns 200."""
    response = api_client.get("/metrics")
    assert response.status_code == 200
    assert response.headers["content-type"] == CONTENT_TYPE_LATEST


def test_metrics_exposes_injected_counters(api_client, metrics):
    """Counters recorded on the injected handle show up in the scrape."""
    metrics.record_hit("user")
    metrics.record_miss("osekai_medals")

    body = api_client.get("/metrics").text

    assert 'osubot_cache_hits_total{entity="user"} 1.0' in body
    assert 'osubot_cache_misses_total{entity="osekai_medals"} 1.0' in body


def test_health_reports_cache_up(api_client):
    response = api_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "cache": "up"}


def test_health_degrades_when_cache_down(api_client, fake_valkey):
    fake_valkey.should_fail = True

    response = api_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "degraded", "cache": "down"}
