# tests/routes/conftest.py
import pytest
from fastapi.testclient import TestClient

from tutorhub.api.dependencies.database import get_clock, get_db
from tutorhub.api.dependencies.services import get_notification_service
from tutorhub.main import app


@pytest.fixture
def client(db, clock, sink):
    """TestClient bound to the test session, fixed clock and recording sink."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notification_service] = lambda: sink
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
