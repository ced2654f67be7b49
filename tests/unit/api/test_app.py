"""Tests for application wiring."""

from fastapi.middleware.cors import CORSMiddleware

from api.main import app
from core.config import settings
from core.middleware import ErrorHandlingMiddleware, StructuredLoggingMiddleware


def test_middleware_order():
    """CORS is outermost and error handling sits innermost, under logging."""
    assert [m.cls for m in app.user_middleware] == [
        CORSMiddleware,
        StructuredLoggingMiddleware,
        ErrorHandlingMiddleware,
    ]


async def test_error_responses_carry_request_id(client):
    response = await client.get(
        f"{settings.api_v1_prefix}/assessment/state", headers={"x-request-id": "req-42"}
    )
    assert response.status_code == 401
    assert response.headers["x-request-id"] == "req-42"
