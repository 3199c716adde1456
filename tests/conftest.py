"""Pytest configuration for the portfolio API test suite."""

import os

import mongomock
import pytest
from fastapi.testclient import TestClient


def _ensure_test_env() -> None:
    """Keep the import-time settings away from any real backend."""
    os.environ.pop("DATABASE_URL", None)
    os.environ.setdefault("ENVIRONMENT", "development")


_ensure_test_env()

from auth import session_token  # noqa: E402
from config import Settings, get_settings  # noqa: E402
from contact import limiter  # noqa: E402
from database import get_db  # noqa: E402
from fallback import FallbackData, get_fallback  # noqa: E402
from main import app  # noqa: E402
from schemas import Session  # noqa: E402


def make_settings(tmp_path, **overrides) -> Settings:
    values = {
        "environment": "development",
        "jwt_secret": "test-secret",
        "admin_email": "admin@example.com",
        "admin_password": "correct-horse",
        "admin_user_id": "admin-1",
        "upload_dir": str(tmp_path / "uploads"),
        "public_base_url": "https://cdn.example.com/uploads",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def mongo():
    return mongomock.MongoClient()["portfolio_test"]


@pytest.fixture
def fallback():
    return FallbackData()


@pytest.fixture
def client(settings, mongo, fallback):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_db] = lambda: mongo
    app.dependency_overrides[get_fallback] = lambda: fallback
    limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_token(settings):
    return session_token(Session(user_id="admin-1", email="admin@example.com", role="admin"), settings)


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}", "User-Agent": "pytest-agent", "X-Forwarded-For": "203.0.113.7"}
