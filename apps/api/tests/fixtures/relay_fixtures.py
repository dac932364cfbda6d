"""Fakes for the relay's external providers (identity service, vector store)."""
from typing import Any, Dict, Optional

from pydantic import BaseModel

from core.identity import Principal

VALID_TOKEN = "valid-test-token"
TEST_PRINCIPAL = Principal(id="user-123", email="player@example.com")


class FakeVerifier:
    """Accepts VALID_TOKEN only and records every token it is asked about."""

    def __init__(self):
        self.calls = []

    def verify(self, token: str) -> Optional[Principal]:
        self.calls.append(token)
        return TEST_PRINCIPAL if token == VALID_TOKEN else None


class FakeBatch(BaseModel):
    """Stand-in for the vector store file batch returned by upload_and_poll."""
    id: str = "vsfb_test"
    object: str = "vector_store.files_batch"
    status: str = "completed"
    vector_store_id: str = "vs_test_store"
    file_counts: Dict[str, Any] = {"completed": 1, "failed": 0, "in_progress": 0, "cancelled": 0, "total": 1}
