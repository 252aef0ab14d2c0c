"""Fixtures for HTTP tests of both portals."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from joymed.adapters.auth import InMemoryAccountGateway
from joymed.core.auth.guard import ADMIN_PORTAL, DOCTOR_PORTAL
from joymed.entrypoints.api.app import create_app
from joymed.entrypoints.api.deps import get_gateway


@pytest.fixture
def admin_app(gateway: InMemoryAccountGateway) -> FastAPI:
    """Create the admin portal app over the in-memory gateway."""
    app = create_app(ADMIN_PORTAL)
    app.dependency_overrides[get_gateway] = lambda: gateway
    return app


@pytest.fixture
def doctor_app(gateway: InMemoryAccountGateway) -> FastAPI:
    """Create the doctor portal app over the in-memory gateway."""
    app = create_app(DOCTOR_PORTAL)
    app.dependency_overrides[get_gateway] = lambda: gateway
    return app


@pytest.fixture
def admin_client(admin_app: FastAPI) -> TestClient:
    """Create admin portal test client."""
    return TestClient(admin_app)


@pytest.fixture
def doctor_client(doctor_app: FastAPI) -> TestClient:
    """Create doctor portal test client."""
    return TestClient(doctor_app)
