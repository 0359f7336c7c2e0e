"""End-to-end tests of the proxy route with the outbound client mocked."""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from cors_proxy.admission import AdmissionPolicy, PatternList
from cors_proxy.proxy.forwarder import OutboundResponse
from cors_proxy.routes import router

ORIGIN = "https://app.example.com"


@pytest.fixture
def app():
    test_app = FastAPI()
    test_app.include_router(router)
    return test_app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def policy(monkeypatch):
    def _set(denylist=(), allowlist=(".*",)):
        monkeypatch.setattr(
            "cors_proxy.routes.admission_policy",
            AdmissionPolicy(
                denylist=PatternList.compile(denylist),
                allowlist=PatternList.compile(allowlist),
            ),
        )

    _set()
    return _set


@pytest.fixture
def mock_forward():
    upstream = OutboundResponse(
        status_code=200,
        reason_phrase="OK",
        headers=httpx.Headers(
            [("content-type", "application/json"), ("x-amzn-trace-id", "Root=1-abc")]
        ),
        content=b'{"url": "https://httpbin.org/get"}',
    )
    with patch("cors_proxy.routes.forward", new_callable=AsyncMock) as forward:
        forward.return_value = upstream
        yield forward


class TestForwarding:
    def test_get_is_forwarded_with_cors_headers(self, client, policy, mock_forward):
        resp = client.get(
            "/?https%3A%2F%2Fhttpbin.org%2Fget", headers={"Origin": ORIGIN}
        )

        outbound = mock_forward.call_args[0][0]
        assert outbound.method == "GET"
        assert outbound.url == "https://httpbin.org/get"
        assert "origin" not in {k.lower() for k in outbound.headers}

        assert resp.status_code == 200
        assert resp.json() == {"url": "https://httpbin.org/get"}
        assert resp.headers["access-control-allow-origin"] == ORIGIN
        assert json.loads(resp.headers["cors-received-headers"]) == {
            "content-type": "application/json",
            "x-amzn-trace-id": "Root=1-abc",
        }
        assert (
            resp.headers["access-control-expose-headers"]
            == "content-type,x-amzn-trace-id,cors-received-headers"
        )

    def test_path_is_ignored(self, client, policy, mock_forward):
        client.get("/anything/here?https://example.com/a")
        assert mock_forward.call_args[0][0].url == "https://example.com/a"

    def test_target_status_passes_through(self, client, policy, mock_forward):
        mock_forward.return_value = OutboundResponse(
            status_code=418,
            reason_phrase="I'm a teapot",
            headers=httpx.Headers(),
            content=b"short and stout",
        )

        resp = client.get("/?https://example.com/teapot")

        assert resp.status_code == 418
        assert resp.content == b"short and stout"

    def test_overrides_shape_outbound_request(self, client, policy, mock_forward):
        client.get(
            "/?https://httpbin.org/post",
            headers={
                "x-cors-headers": '{"Authorization": "Bearer abc"}',
                "x-cors-method": "POST",
                "x-cors-body": '{"name": "test"}',
            },
        )

        outbound = mock_forward.call_args[0][0]
        assert outbound.method == "POST"
        assert outbound.body == '{"name":"test"}'
        assert outbound.headers["Authorization"] == "Bearer abc"
        assert outbound.headers["Content-Type"] == "application/json"
        assert not any(k.lower().startswith("x-cors") for k in outbound.headers)

    def test_body_override_without_method_is_ignored(
        self, client, policy, mock_forward
    ):
        client.post(
            "/?https://httpbin.org/post",
            content=b"original body",
            headers={"content-type": "text/plain", "x-cors-body": '{"a": 1}'},
        )

        outbound = mock_forward.call_args[0][0]
        assert outbound.method == "POST"
        assert outbound.body == b"original body"

    def test_get_override_drops_override_body(self, client, policy, mock_forward):
        client.post(
            "/?https://httpbin.org/get",
            headers={"x-cors-method": "GET", "x-cors-body": '{"a": 1}'},
        )

        outbound = mock_forward.call_args[0][0]
        assert outbound.method == "GET"
        assert outbound.body is None

    def test_get_override_drops_inbound_body(self, client, policy, mock_forward):
        client.post(
            "/?https://httpbin.org/get",
            content=b"inbound payload",
            headers={"x-cors-method": "GET", "x-cors-body": '{"a":1}'},
        )

        outbound = mock_forward.call_args[0][0]
        assert outbound.method == "GET"
        assert outbound.body is None

    def test_non_standard_method_is_forwarded(self, client, policy, mock_forward):
        resp = client.request(
            "PROPFIND",
            "/?https://example.com/dav",
            headers={"Origin": ORIGIN, "Depth": "1"},
        )

        assert mock_forward.called
        outbound = mock_forward.call_args[0][0]
        assert outbound.method == "PROPFIND"
        assert outbound.url == "https://example.com/dav"
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == ORIGIN

    def test_non_ascii_target_header_is_relayed(self, client, policy, mock_forward):
        mock_forward.return_value = OutboundResponse(
            status_code=200,
            reason_phrase="OK",
            headers=httpx.Headers(
                [
                    (b"x-name", "日本".encode()),
                    (b"content-disposition", "attachment; filename=ü.txt".encode()),
                ]
            ),
            content=b"file",
        )

        resp = client.get("/?https://example.com/download")

        assert resp.status_code == 200
        raw = dict(resp.headers.raw)
        assert raw[b"x-name"] == "日本".encode()
        assert raw[b"content-disposition"] == "attachment; filename=ü.txt".encode()

    def test_forwarding_failure_maps_to_gateway_error(
        self, client, policy, mock_forward
    ):
        mock_forward.side_effect = HTTPException(status_code=504, detail="Gateway timeout")

        resp = client.get("/?https://slow.example.com/", headers={"Origin": ORIGIN})

        assert resp.status_code == 504
        assert resp.text == "Gateway timeout"
        assert resp.headers["access-control-allow-origin"] == ORIGIN


class TestPreflight:
    def test_preflight_never_contacts_target(self, client, policy, mock_forward):
        resp = client.options(
            "/?https://httpbin.org/put",
            headers={
                "Origin": ORIGIN,
                "access-control-request-method": "PUT",
                "access-control-request-headers": "content-type",
            },
        )

        mock_forward.assert_not_called()
        assert resp.status_code == 200
        assert resp.content == b""
        assert resp.headers["access-control-allow-origin"] == ORIGIN
        assert resp.headers["access-control-allow-methods"] == "PUT"
        assert resp.headers["access-control-allow-headers"] == "content-type"
        assert resp.headers["access-control-allow-credentials"] == "true"


class TestAdmission:
    def test_denylisted_target_is_forbidden(self, client, policy, mock_forward):
        policy(denylist=[r"^https?://localhost"])

        for method in ("GET", "POST", "OPTIONS"):
            resp = client.request(
                method,
                "/?http%3A%2F%2Flocalhost%3A8080%2Fadmin",
                headers={"Origin": ORIGIN, "x-cors-method": "DELETE"},
            )
            assert resp.status_code == 403
            assert "access-control-allow-origin" not in resp.headers

        mock_forward.assert_not_called()

    def test_disallowed_origin_is_forbidden(self, client, policy, mock_forward):
        policy(allowlist=[r"^https://app\.example\.com$"])

        resp = client.get(
            "/?https://httpbin.org/get", headers={"Origin": "https://evil.example.net"}
        )

        assert resp.status_code == 403
        mock_forward.assert_not_called()

    def test_missing_origin_is_admitted_with_empty_allowlist(
        self, client, policy, mock_forward
    ):
        policy(allowlist=[])

        resp = client.get("/?https://httpbin.org/get")

        assert resp.status_code == 200
        mock_forward.assert_called_once()


class TestInfoPage:
    def test_no_query_returns_usage(self, client, policy, mock_forward):
        resp = client.get("/", headers={"Origin": ORIGIN})

        mock_forward.assert_not_called()
        assert resp.status_code == 200
        assert "Usage:" in resp.text
        assert "http://testserver/?uri" in resp.text
        assert "IP: testclient" in resp.text
        assert f"Origin: {ORIGIN}" in resp.text
        assert resp.headers["access-control-allow-origin"] == ORIGIN

    def test_echoes_overrides(self, client, policy, mock_forward):
        resp = client.get("/", headers={"x-cors-method": "PATCH"})
        assert resp.text.endswith("\nx-cors-method: PATCH")
