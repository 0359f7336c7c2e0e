import pytest
from fastapi.testclient import TestClient


@pytest.fixture(scope="session")
def test_client():
    from cors_proxy.server import app

    with TestClient(app) as client:
        yield client


def test_info_page_served(test_client):
    resp = test_client.get("/")

    assert resp.status_code == 200
    assert "Usage:" in resp.text


def test_metrics_exposed(test_client):
    resp = test_client.get("/metrics")

    assert resp.status_code == 200
    assert "fastapi_app_info" in resp.text
