"""
Tests for the individual pipeline stages — redaction, request id,
tracing, CORS and rate limiting.
"""

from __future__ import annotations

from collections.abc import Sequence

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from structlog.testing import capture_logs

from keel.api.app import create_app
from keel.api.middleware.cors import CorsStage
from keel.api.middleware.pipeline import Pipeline, PipelineMiddleware, Stage
from keel.api.middleware.rate_limit import RateLimitStage, client_key
from keel.api.middleware.request_id import RequestIdStage
from keel.api.middleware.sensitive_headers import (
    REDACTED,
    SensitiveHeadersStage,
    redact_headers,
)
from keel.api.middleware.tracing import TracingStage
from keel.core.logging import get_logger
from keel.core.rate_limit import KeyedRateLimiter
from keel.core.settings import CorsPolicy, RateLimitPolicy, Settings


def _mini_app(stages: Sequence[Stage]) -> FastAPI:
    """Bare app with one echo route behind *stages*."""
    app = FastAPI()
    app.add_middleware(PipelineMiddleware, pipeline=Pipeline(stages))

    @app.get("/echo/{item}")
    async def echo(item: str, request: Request) -> dict:
        return {
            "item": item,
            "authorization": request.headers.get("authorization"),
            "request_id_header": request.headers.get("x-request-id"),
            "request_id_state": getattr(request.state, "request_id", None),
            "redacted": getattr(request.state, "redacted_headers", None),
        }

    return app


class TestSensitiveHeaders:
    def test_redact_headers(self):
        redacted = redact_headers({"Authorization": "Bearer s3cret", "Accept": "text/html"})
        assert redacted == {"authorization": REDACTED, "accept": "text/html"}

    def test_handler_sees_original_value(self):
        client = TestClient(_mini_app([SensitiveHeadersStage()]))
        body = client.get(
            "/echo/x", headers={"authorization": "Bearer s3cret", "cookie": "sid=1"}
        ).json()
        assert body["authorization"] == "Bearer s3cret"
        assert body["redacted"]["authorization"] == REDACTED
        assert body["redacted"]["cookie"] == REDACTED

    def test_custom_sensitive_set(self):
        stage = SensitiveHeadersStage(["X-Api-Key"])
        assert stage.sensitive == frozenset({"x-api-key"})


class TestRequestIdStage:
    def test_generated_id_is_visible_downstream(self):
        client = TestClient(_mini_app([RequestIdStage()]))
        resp = client.get("/echo/x")
        body = resp.json()
        assert body["request_id_header"] == resp.headers["x-request-id"]
        assert body["request_id_state"] == resp.headers["x-request-id"]

    def test_inbound_id_is_kept(self):
        client = TestClient(_mini_app([RequestIdStage()]))
        body = client.get("/echo/x", headers={"x-request-id": "abc"}).json()
        assert body["request_id_header"] == "abc"


class TestTracing:
    def test_span_fields(self, client):
        with capture_logs() as logs:
            resp = client.get("/health")

        finished = [entry for entry in logs if entry["event"] == "request_finished"]
        assert len(finished) == 1
        span = finished[0]
        assert span["method"] == "GET"
        assert span["path"] == "/health"
        assert span["route"] == "/health"
        assert span["status"] == 200
        assert span["request_id"] == resp.headers["x-request-id"]
        assert isinstance(span["latency_us"], int)
        assert span["latency_us"] >= 0
        assert "headers" not in span

    def test_route_template_and_unmatched_path(self):
        client = TestClient(
            _mini_app([RequestIdStage(), TracingStage(get_logger("test"))]),
        )
        with capture_logs() as logs:
            client.get("/echo/42")
            client.get("/missing")

        routes = [entry["route"] for entry in logs if entry["event"] == "request_finished"]
        assert routes == ["/echo/{item}", "/missing"]

    def test_include_headers_logs_redacted_view_only(self):
        client = TestClient(
            _mini_app(
                [
                    SensitiveHeadersStage(),
                    RequestIdStage(),
                    TracingStage(get_logger("test"), include_headers=True),
                ]
            )
        )
        with capture_logs() as logs:
            client.get("/echo/x", headers={"authorization": "Bearer s3cret"})

        span = next(entry for entry in logs if entry["event"] == "request_finished")
        assert span["headers"]["authorization"] == REDACTED
        assert "s3cret" not in repr(logs)


class TestCors:
    def test_allow_any(self):
        with TestClient(create_app(Settings(cors=CorsPolicy.allow_any()))) as c:
            resp = c.get("/health", headers={"origin": "https://anywhere.example"})
        assert resp.headers["access-control-allow-origin"] == "*"
        assert resp.headers["access-control-expose-headers"] == "x-request-id"

    def test_allow_any_without_origin(self):
        with TestClient(create_app(Settings(cors=CorsPolicy.allow_any()))) as c:
            resp = c.get("/health")
        assert resp.headers["access-control-allow-origin"] == "*"

    def test_allow_any_preflight_is_permissive(self):
        with TestClient(create_app(Settings(cors=CorsPolicy.allow_any()))) as c:
            resp = c.options(
                "/health",
                headers={
                    "origin": "https://anywhere.example",
                    "access-control-request-method": "DELETE",
                    "access-control-request-headers": "x-custom",
                },
            )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "*"
        assert "DELETE" in resp.headers["access-control-allow-methods"]
        assert resp.headers["access-control-allow-headers"] == "x-custom"

    def test_allow_list_match_echoes_origin(self):
        settings = Settings(cors=CorsPolicy.allow_list(["https://a.example", "https://b.example"]))
        with TestClient(create_app(settings)) as c:
            resp = c.get("/health", headers={"origin": "https://b.example"})
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "https://b.example"
        assert resp.headers["access-control-expose-headers"] == "x-request-id"
        assert "origin" in resp.headers["vary"].lower()

    def test_allow_list_mismatch_has_no_cors_headers(self):
        settings = Settings(cors=CorsPolicy.allow_list(["https://a.example"]))
        with TestClient(create_app(settings)) as c:
            resp = c.get("/health", headers={"origin": "https://evil.example"})
        assert resp.status_code == 200
        assert "access-control-allow-origin" not in resp.headers
        assert "access-control-expose-headers" not in resp.headers

    def test_preflight_answered_without_routing(self):
        settings = Settings(cors=CorsPolicy.allow_list(["https://a.example"]))
        with TestClient(create_app(settings)) as c:
            resp = c.options(
                "/health",
                headers={
                    "origin": "https://a.example",
                    "access-control-request-method": "GET",
                    "access-control-request-headers": "x-request-id",
                },
            )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "https://a.example"
        assert resp.headers["access-control-max-age"] == "600"
        assert resp.headers["access-control-allow-headers"] == "x-request-id"
        assert resp.headers["x-request-id"]

    def test_preflight_from_unlisted_origin_reaches_routing(self):
        settings = Settings(cors=CorsPolicy.allow_list(["https://a.example"]))
        with TestClient(create_app(settings)) as c:
            resp = c.options(
                "/health",
                headers={
                    "origin": "https://evil.example",
                    "access-control-request-method": "GET",
                },
            )
        assert resp.json()["code"] == "bad_request"
        assert "access-control-allow-origin" not in resp.headers

    def test_disabled_policy_adds_no_stage(self):
        app = create_app(Settings())
        assert "cors" not in app.state.pipeline.names

    def test_stage_rejects_disabled_policy(self):
        with pytest.raises(ValueError):
            CorsStage(CorsPolicy.disabled())


class TestRateLimit:
    def test_rejects_after_burst(self):
        settings = Settings(rate_limit=RateLimitPolicy(rps=1, burst=1))
        with TestClient(create_app(settings)) as c:
            first = c.get("/health")
            second = c.get("/health", headers={"x-request-id": "limited-1"})

        assert first.status_code == 200
        assert second.status_code == 429
        assert second.json() == {"code": "rate_limited", "message": "Too many requests"}
        assert int(second.headers["retry-after"]) >= 1
        assert second.headers["x-request-id"] == "limited-1"

    def test_trust_proxy_keys_on_forwarded_for(self):
        settings = Settings(rate_limit=RateLimitPolicy(rps=1, burst=1, trust_proxy=True))
        with TestClient(create_app(settings)) as c:
            a = c.get("/health", headers={"x-forwarded-for": "203.0.113.1, 10.0.0.1"})
            b = c.get("/health", headers={"x-forwarded-for": "203.0.113.2"})
            a_again = c.get("/health", headers={"x-forwarded-for": "203.0.113.1"})
        assert (a.status_code, b.status_code, a_again.status_code) == (200, 200, 429)

    def test_forwarded_for_ignored_without_trust_proxy(self):
        settings = Settings(rate_limit=RateLimitPolicy(rps=1, burst=1))
        with TestClient(create_app(settings)) as c:
            c.get("/health", headers={"x-forwarded-for": "203.0.113.1"})
            resp = c.get("/health", headers={"x-forwarded-for": "203.0.113.2"})
        assert resp.status_code == 429

    def test_rejection_logged_at_info(self):
        settings = Settings(rate_limit=RateLimitPolicy(rps=1, burst=1))
        with TestClient(create_app(settings)) as c:
            with capture_logs() as logs:
                c.get("/health")
                c.get("/health")
        rejected = [entry for entry in logs if entry["event"] == "rate_limited"]
        assert len(rejected) == 1
        assert rejected[0]["log_level"] == "info"

    @pytest.mark.parametrize(
        ("headers", "trust_proxy", "expected"),
        [
            ({"x-forwarded-for": "198.51.100.7, 10.0.0.1"}, True, "198.51.100.7"),
            ({"x-real-ip": "198.51.100.8"}, True, "198.51.100.8"),
            ({"x-forwarded-for": "198.51.100.7"}, False, "testclient"),
            ({}, True, "testclient"),
        ],
    )
    def test_client_key(self, headers, trust_proxy, expected):
        seen: list[str] = []
        app = FastAPI()

        @app.get("/key")
        async def key(request: Request) -> dict:
            seen.append(client_key(request, trust_proxy))
            return {}

        TestClient(app).get("/key", headers=headers)
        assert seen == [expected]

    def test_injected_limiter(self):
        limiter = KeyedRateLimiter(rate=1, capacity=1)
        stage = RateLimitStage(RateLimitPolicy(rps=1, burst=1), get_logger("test"), limiter=limiter)
        assert stage.limiter is limiter

    def test_injected_limiter_drives_decisions(self):
        now = [100.0]
        limiter = KeyedRateLimiter(rate=1, capacity=1, clock=lambda: now[0])
        stage = RateLimitStage(RateLimitPolicy(rps=100, burst=100), get_logger("test"), limiter=limiter)
        client = TestClient(_mini_app([stage]))

        assert client.get("/echo/a").status_code == 200
        limited = client.get("/echo/a")
        assert limited.status_code == 429
        assert limited.headers["retry-after"] == "1"

        now[0] += 1.0
        assert client.get("/echo/a").status_code == 200
