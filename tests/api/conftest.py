"""Fixtures for route tests: the app with its service dependencies overridden."""
import pytest
from fastapi.testclient import TestClient

from idvt.api import deps
from idvt.main import app


@pytest.fixture
def client():
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def override():
    """Replace a dependency with a fixed value for one test."""
    def _override(dependency, value):
        app.dependency_overrides[dependency] = lambda: value
        return value
    return _override


@pytest.fixture
def store(make_store, override):
    return override(deps.document_store, make_store())
