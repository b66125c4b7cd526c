import pytest
from fastapi.testclient import TestClient

from contextstream.config import StreamConfig
from contextstream.main import create_app
from contextstream.stream.context_stream import ContextStream


@pytest.fixture
def stream(clock, scheduler, ids):
    return ContextStream(StreamConfig(), clock=clock, scheduler=scheduler, ids=ids)


@pytest.fixture
def client(stream):
    with TestClient(create_app(stream)) as client:
        yield client


def _event(n, session_id="s1", event_type="code", **metadata):
    return {
        "id": f"evt_{n}",
        "type": event_type,
        "timestamp": f"2024-03-04T09:{10 * n:02d}:00Z",
        "session_id": session_id,
        "metadata": metadata,
    }


def test_startup_starts_stream(client, stream):
    assert stream.is_running
    assert client.get("/health").json()["status"] == "ok"
    assert client.get("/").json()["service"] == "Context Stream API"


def test_submit_and_read_context(client):
    response = client.post("/events", json=[_event(1), _event(2), _event(3)])
    assert response.json() == {"accepted": 3}

    [summary] = client.get("/contexts").json()
    assert summary["session_id"] == "s1"
    assert summary["event_count"] == 3

    window = client.get("/contexts/s1").json()
    assert window["activity_summary"]["dominant_activity"] == "code"
    assert window["insights"][0]["kind"] == "pattern"


def test_missing_context_is_404(client):
    assert client.get("/contexts/nope").status_code == 404


def test_invalid_event_rejected(client):
    response = client.post("/events", json=[{"type": "not-a-type", "timestamp": "2024-03-04T09:00:00Z"}])
    assert response.status_code == 422


def test_insights_and_active_sessions(client):
    client.post("/events", json=[_event(n) for n in (1, 2, 3)])

    insights = client.get("/insights", params={"limit": 1}).json()
    assert len(insights) == 1
    assert client.get("/sessions/active").json() == {"sessions": ["s1"]}


def test_metrics(client):
    client.post("/events", json=[_event(1)])

    metrics = client.get("/metrics").json()
    assert metrics["events_processed"] == 1
    assert metrics["buffer_size"] == 1


def test_config_roundtrip(client):
    assert client.get("/config").json()["buffer_size"] == 100

    response = client.patch("/config", json={"buffer_size": 10})
    assert response.status_code == 200
    assert response.json()["buffer_size"] == 10

    assert client.patch("/config", json={"buffer_size": -1}).status_code == 422
    assert client.patch("/config", json={"bogus": 1}).status_code == 422


def test_shutdown_stops_stream(stream):
    with TestClient(create_app(stream)):
        pass
    assert not stream.is_running
