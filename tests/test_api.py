"""Tests for API endpoints."""

import json

import httpx
import pytest
import respx
from fastapi.testclient import TestClient
from httpx import Response

from forecast_inference.api.dependencies import get_forecast_service
from forecast_inference.config import Settings
from forecast_inference.main import create_app
from forecast_inference.services.forecast import ForecastTimeoutError

NWS_FORECAST_URL = "https://api.weather.gov/gridpoints/SEW/127,75/forecast"
MESSAGES_URL = "https://api.anthropic.com/v1/messages"


class FailingForecastService:
    """Forecast service stand-in that raises a fixed error."""

    def __init__(self, error: Exception) -> None:
        self._error = error

    async def get_summary(self):
        raise self._error

    async def get_breakdown(self):
        raise self._error


class TestSummaryEndpoint:
    """Tests for /api/v1/forecast/summary."""

    def test_get_summary_success(
        self, client: TestClient, nws_document, anthropic_reply, summary_text
    ) -> None:
        """Test a miss returns the generated summary, and the repeat is a cache hit."""
        with respx.mock:
            respx.get(NWS_FORECAST_URL).mock(return_value=Response(200, json=nws_document))
            llm = respx.post(MESSAGES_URL).mock(
                return_value=Response(200, json=anthropic_reply(summary_text))
            )

            response1 = client.get("/api/v1/forecast/summary")
            response2 = client.get("/api/v1/forecast/summary")

            assert response1.status_code == 200
            assert response1.headers["content-type"] == "application/json"
            data = response1.json()
            assert data["summary"] == json.loads(summary_text)["summary"]
            assert data["icon"] == "cloud-moon"
            assert data["last_updated"]
            assert "X-Request-ID" in response1.headers

            assert response2.status_code == 200
            assert response2.json() == data
            assert llm.call_count == 1

    def test_get_summary_upstream_error(self, client: TestClient) -> None:
        """Test a source failure returns a 500 problem detail."""
        with respx.mock(assert_all_called=False) as respx_mock:
            respx_mock.get(NWS_FORECAST_URL).mock(return_value=Response(500, text="Internal Error"))
            respx_mock.post(MESSAGES_URL)

            response = client.get("/api/v1/forecast/summary")

            assert response.status_code == 500
            assert response.headers["content-type"] == "application/problem+json"
            data = response.json()
            assert data["status"] == 500
            assert data["title"] == "failed to get forecast periods"
            assert data["instance"] == "/api/v1/forecast/summary"

    def test_get_summary_inference_error(self, client: TestClient, nws_document) -> None:
        with respx.mock:
            respx.get(NWS_FORECAST_URL).mock(return_value=Response(200, json=nws_document))
            respx.post(MESSAGES_URL).mock(side_effect=httpx.ConnectError("refused"))

            response = client.get("/api/v1/forecast/summary")

            assert response.status_code == 500
            assert response.json()["title"] == "failed to get forecast summary"

    def test_get_summary_malformed_reply(
        self, client: TestClient, nws_document, anthropic_reply
    ) -> None:
        """Test a reply that is not JSON gets a distinct problem title."""
        with respx.mock:
            respx.get(NWS_FORECAST_URL).mock(return_value=Response(200, json=nws_document))
            respx.post(MESSAGES_URL).mock(
                return_value=Response(200, json=anthropic_reply("Sunny all weekend!"))
            )

            response = client.get("/api/v1/forecast/summary")

            assert response.status_code == 500
            data = response.json()
            assert data["title"] == "failed to parse forecast summary"
            assert "expected shape" in data["detail"]


class TestDetailedEndpoint:
    """Tests for /api/v1/forecast/detailed."""

    def test_get_detailed_success(
        self, client: TestClient, nws_document, anthropic_reply, breakdown_text
    ) -> None:
        with respx.mock:
            respx.get(NWS_FORECAST_URL).mock(return_value=Response(200, json=nws_document))
            respx.post(MESSAGES_URL).mock(
                return_value=Response(200, json=anthropic_reply(breakdown_text))
            )

            response = client.get("/api/v1/forecast/detailed")

            assert response.status_code == 200
            data = response.json()
            assert [p["name"] for p in data["periods"]] == ["Tonight", "Sunday", "Sunday Night"]
            tonight = data["periods"][0]
            assert tonight["icon"] == "cloud-moon"
            assert tonight["time_of_day"] == "night"
            assert tonight["beaufort"] == "Light air"
            assert tonight["temperature"] == 54
            assert tonight["start_time"] == "2024-06-08T20:00:00-07:00"
            assert data["last_updated"]

    def test_get_detailed_partial_annotations(
        self, client: TestClient, nws_document, anthropic_reply
    ) -> None:
        """Test two annotations for three periods yield two periods in source order."""
        reply = json.dumps(
            [
                {"name": "Sunday", "time_of_day": "day", "icon": "sun", "beaufort": "Calm"},
                {"name": "Tonight", "time_of_day": "night", "icon": "cloud", "beaufort": "Calm"},
            ]
        )
        with respx.mock:
            respx.get(NWS_FORECAST_URL).mock(return_value=Response(200, json=nws_document))
            respx.post(MESSAGES_URL).mock(return_value=Response(200, json=anthropic_reply(reply)))

            response = client.get("/api/v1/forecast/detailed")

            assert response.status_code == 200
            assert [p["name"] for p in response.json()["periods"]] == ["Tonight", "Sunday"]


class TestAuthentication:
    """Tests for X-API-Key authentication."""

    @pytest.fixture
    def auth_client(self, settings: Settings):
        auth_settings = settings.model_copy(
            update={"authentication_enabled": True, "api_keys": "key-one, key-two"}
        )
        with TestClient(create_app(auth_settings)) as test_client:
            yield test_client

    def test_missing_key_rejected(self, auth_client: TestClient) -> None:
        response = auth_client.get("/api/v1/forecast/summary")

        assert response.status_code == 401
        assert response.headers["content-type"] == "application/problem+json"
        data = response.json()
        assert data["status"] == 401
        assert data["instance"] == "/api/v1/forecast/summary"
        assert data["title"]
        assert data["detail"]

    def test_wrong_key_rejected(self, auth_client: TestClient) -> None:
        response = auth_client.get("/api/v1/forecast/detailed", headers={"X-API-Key": "nope"})

        assert response.status_code == 401
        assert response.json()["title"] == "invalid api key"

    def test_valid_key_accepted(
        self, auth_client: TestClient, nws_document, anthropic_reply, summary_text
    ) -> None:
        with respx.mock:
            respx.get(NWS_FORECAST_URL).mock(return_value=Response(200, json=nws_document))
            respx.post(MESSAGES_URL).mock(
                return_value=Response(200, json=anthropic_reply(summary_text))
            )

            response = auth_client.get(
                "/api/v1/forecast/summary", headers={"X-API-Key": "key-two"}
            )

            assert response.status_code == 200

    def test_health_does_not_require_key(self, auth_client: TestClient) -> None:
        assert auth_client.get("/health/live").status_code == 200


class TestUnexpectedErrors:
    """Tests for failures outside the forecast error mapping."""

    def test_deadline_returns_gateway_timeout(self, app) -> None:
        app.dependency_overrides[get_forecast_service] = lambda: FailingForecastService(
            ForecastTimeoutError("Producing forecast-summary exceeded 5.0s")
        )
        with TestClient(app) as test_client:
            response = test_client.get("/api/v1/forecast/summary")

        assert response.status_code == 504
        assert response.headers["content-type"] == "application/problem+json"
        data = response.json()
        assert data["status"] == 504
        assert data["title"] == "timed out getting forecast summary"
        assert data["instance"] == "/api/v1/forecast/summary"

    def test_unmapped_error_returns_problem_detail(self, app) -> None:
        """Test an arbitrary exception still yields an RFC 9457 body."""
        app.dependency_overrides[get_forecast_service] = lambda: FailingForecastService(
            RuntimeError("boom")
        )
        with TestClient(app, raise_server_exceptions=False) as test_client:
            response = test_client.get("/api/v1/forecast/detailed")

        assert response.status_code == 500
        assert response.headers["content-type"] == "application/problem+json"
        data = response.json()
        assert data["status"] == 500
        assert data["title"] == "internal server error"
        assert data["instance"] == "/api/v1/forecast/detailed"
        assert "boom" not in data["detail"]


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_liveness(self, client: TestClient) -> None:
        """Test liveness probe."""
        response = client.get("/health/live")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_readiness(self, client: TestClient) -> None:
        """Test readiness probe."""
        response = client.get("/health/ready")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["checks"]["cache"] == "ok"


class TestMetricsEndpoint:
    """Tests for metrics endpoint."""

    def test_metrics(self, client: TestClient) -> None:
        """Test Prometheus metrics endpoint."""
        client.get("/health/live")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "http_requests_total" in response.text

    def test_metrics_disabled(self, settings: Settings) -> None:
        app = create_app(settings.model_copy(update={"metrics_enabled": False}))
        with TestClient(app) as test_client:
            assert test_client.get("/metrics").status_code == 404


class TestOpenAPIEndpoints:
    """Tests for OpenAPI documentation endpoints."""

    def test_docs(self, client: TestClient) -> None:
        """Test Swagger docs endpoint."""
        response = client.get("/docs")
        assert response.status_code == 200

    def test_openapi_json(self, client: TestClient) -> None:
        """Test OpenAPI JSON schema."""
        response = client.get("/openapi.json")
        assert response.status_code == 200
        data = response.json()
        assert data["info"]["title"] == "Forecast Inference API"
        assert "/api/v1/forecast/summary" in data["paths"]
        assert "/api/v1/forecast/detailed" in data["paths"]
