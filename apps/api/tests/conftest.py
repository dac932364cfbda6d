"""
Pytest configuration and fixtures

No test talks to a real provider: the identity verifier is patched and the
OpenAI client dependency is overridden with a MagicMock. Temp session files go
to a per-test directory so tests can assert nothing is left behind.
"""
import os
import sys
from unittest.mock import MagicMock, patch

import pytest

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("SUPABASE_URL", "https://identity.example.test")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("OPENAI_API_KEY", "sk-test-key")
os.environ.setdefault("VECTOR_STORE_ID", "vs_test_store")
os.environ.setdefault("LOG_FORMAT", "text")

from fastapi.testclient import TestClient

from main import app
from core.config import settings
from core.openai_client import get_openai_client
from core.rate_limit import memory_backend
from fixtures.relay_fixtures import VALID_TOKEN, FakeBatch, FakeVerifier


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    memory_backend.reset()
    yield
    memory_backend.reset()


@pytest.fixture(autouse=True)
def ingest_tmp_dir(tmp_path, monkeypatch):
    tmp_dir = tmp_path / "ingest"
    monkeypatch.setattr(settings, "INGEST_TMP_DIR", str(tmp_dir))
    return tmp_dir


@pytest.fixture
def identity_verifier():
    verifier = FakeVerifier()
    with patch("core.identity.get_identity_verifier", return_value=verifier):
        yield verifier


@pytest.fixture
def openai_client():
    fake = MagicMock()
    fake.vector_stores.file_batches.upload_and_poll.return_value = FakeBatch()
    app.dependency_overrides[get_openai_client] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_openai_client, None)


@pytest.fixture
def client(identity_verifier, openai_client):
    return TestClient(app)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {VALID_TOKEN}"}
