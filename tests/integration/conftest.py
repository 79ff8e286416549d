"""
Integration test configuration
"""
import pytest
from fastapi.testclient import TestClient

from imagehost.app.dependencies import get_context
from imagehost.app.main import app


@pytest.fixture
def client(ctx):
    """FastAPI test client bound to the in-memory store context."""
    app.dependency_overrides[get_context] = lambda: ctx
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def api():
    return "/api/v1"
