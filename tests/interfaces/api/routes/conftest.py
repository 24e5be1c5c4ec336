"""Fixtures for exercising the HTTP API with a test client."""

import pytest
from fastapi.testclient import TestClient

from app.infrastructure.security import create_access_token
from app.interfaces.api.dependencies import get_notification_service


@pytest.fixture()
def client(service):
    from main import create_app

    app = create_app()
    app.dependency_overrides[get_notification_service] = lambda: service
    # Without the context manager the lifespan (and its background sweeper)
    # does not start.
    return TestClient(app)


@pytest.fixture()
def auth_headers():
    def _headers(user) -> dict[str, str]:
        token = create_access_token({"sub": user.email})
        return {"Authorization": f"Bearer {token}"}

    return _headers
