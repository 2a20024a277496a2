"""
Tests for FastAPI Endpoints

Integration tests for the allow-access endpoint.
"""

import pytest
from fastapi.testclient import TestClient
from structlog.testing import capture_logs

from gateway.api.server import INTERNAL_SERVER_ERROR, create_app
from gateway.config import Settings
from gateway.persistence import PersistenceDriver, Repository

FORM = {
    "name": "Bank A",
    "domain": "banka.com",
    "public_key": "GABC...",
}


@pytest.fixture
def app(database_url):
    return create_app(Settings(database_url=database_url))


@pytest.fixture
def client(app):
    """Create test client (runs the lifespan: connect + migrate)."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def reader(client, database_url):
    """Separate driver on the same database, for checking what was written."""
    driver = PersistenceDriver()
    driver.init(database_url)
    yield driver
    driver.close()


def count_rows(driver, table):
    return driver.database.execute(f"SELECT COUNT(*) AS cnt FROM {table}")[0]["cnt"]


class TestHealthEndpoint:
    """Test health check endpoint."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data
        assert "uptime_seconds" in data


class TestAllowAccessEndpoint:
    """Test the allow-access endpoint."""

    def test_user_id_creates_allowed_user(self, client, reader):
        response = client.post("/allow_access", data={**FORM, "user_id": "u1"})

        assert response.status_code == 200
        assert count_rows(reader, "AllowedUser") == 1
        assert count_rows(reader, "AllowedFi") == 0

        user = Repository(reader).get_allowed_user("banka.com", "u1")
        assert user.fi_name == "Bank A"
        assert user.fi_public_key == "GABC..."
        assert user.allowed_at is not None

    def test_without_user_id_creates_allowed_fi(self, client, reader):
        response = client.post("/allow_access", data=FORM)

        assert response.status_code == 200
        assert count_rows(reader, "AllowedFi") == 1
        assert count_rows(reader, "AllowedUser") == 0

        fi = Repository(reader).get_allowed_fi_by_domain("banka.com")
        assert fi.name == "Bank A"
        assert fi.public_key == "GABC..."

    def test_empty_user_id_creates_allowed_fi(self, client, reader):
        response = client.post("/allow_access", data={**FORM, "user_id": ""})

        assert response.status_code == 200
        assert count_rows(reader, "AllowedFi") == 1

    def test_persistence_error_hidden(self, app, client, monkeypatch):
        def explode(entity):
            raise RuntimeError("disk full at /var/lib/secret")

        monkeypatch.setattr(app.state.gateway.entity_manager, "persist", explode)

        with capture_logs() as logs:
            response = client.post("/allow_access", data=FORM)

        assert response.status_code == 500
        assert response.json() == INTERNAL_SERVER_ERROR
        assert "secret" not in response.text

        failures = [log for log in logs if log["event"] == "allow_access_persist_failed"]
        assert failures and "secret" in failures[0]["err"]
        assert failures[0]["log_level"] == "warning"

    def test_not_initialized(self, app):
        """Without the lifespan the app has no driver."""
        response = TestClient(app).post("/allow_access", data=FORM)

        assert response.status_code == 503
