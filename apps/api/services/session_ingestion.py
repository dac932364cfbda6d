"""
Session Ingestion

Hands one serialized session to the coach's OpenAI vector store:

1. render the markdown summary with the authenticated user id
2. write it to a uniquely named temp file
3. upload the file and wait for the vector store to finish indexing it
4. delete the temp file, whatever the upload outcome

No local copy survives the call. Upload latency is entirely the provider's.
"""
from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from openai import OpenAI, OpenAIError

from schemas import SessionPayload
from services.session_serializer import serialize_session

logger = logging.getLogger(__name__)

FAILED_BATCH_STATUSES = ("failed", "cancelled")

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


class IngestionError(Exception):
    """The vector store did not accept the session document."""


@dataclass
class IngestResult:
    session_id: str
    upload_response: Any


def resolve_session_id(session: SessionPayload) -> str:
    """Client-supplied id, or the current epoch-millisecond timestamp."""
    if session.id:
        return session.id
    return str(int(time.time() * 1000))


def _filename_part(value: str, max_length: int = 64) -> str:
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", value).strip("_")
    return cleaned[:max_length] or "unknown"


def artifact_path(tmp_dir: Path, user_id: str, session_id: str) -> Path:
    """
    Temp file for one upload.

    The user and session parts keep concurrent uploads from different users
    apart; the random suffix keeps retries of the same session apart.
    """
    nonce = uuid.uuid4().hex[:8]
    return tmp_dir / f"session-{_filename_part(user_id)}-{_filename_part(session_id)}-{nonce}.md"


def _to_jsonable(upload_response: Any) -> Any:
    if hasattr(upload_response, "model_dump"):
        return upload_response.model_dump(mode="json")
    return upload_response


class SessionIngestor:
    """Uploads session summaries to one vector store."""

    def __init__(self, client: OpenAI, vector_store_id: str, tmp_dir: Path):
        self.client = client
        self.vector_store_id = vector_store_id
        self.tmp_dir = Path(tmp_dir)

    def ingest(self, session: SessionPayload, user_id: str) -> IngestResult:
        session_id = resolve_session_id(session)
        document = serialize_session(session, user_id=user_id, session_id=session_id)
        path = artifact_path(self.tmp_dir, user_id, session_id)

        try:
            self.tmp_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(document, encoding="utf-8")
            batch = self._upload(path)
        except (OpenAIError, OSError) as e:
            logger.error(
                f"Upload failed for session {session_id}: {e}",
                extra={"extra_fields": {"user_id": user_id, "session_id": session_id}},
            )
            raise IngestionError(f"Upload failed for session {session_id}") from e
        finally:
            self._cleanup(path)

        status = getattr(batch, "status", None)
        if status in FAILED_BATCH_STATUSES:
            logger.error(
                f"Vector store rejected session {session_id}: batch status {status}",
                extra={"extra_fields": {"user_id": user_id, "session_id": session_id}},
            )
            raise IngestionError(f"Vector store batch {status} for session {session_id}")

        logger.info(
            f"Uploaded session {session_id} to vector store",
            extra={"extra_fields": {"user_id": user_id, "session_id": session_id}},
        )
        return IngestResult(session_id=session_id, upload_response=_to_jsonable(batch))

    def _upload(self, path: Path) -> Any:
        with path.open("rb") as fh:
            return self.client.vector_stores.file_batches.upload_and_poll(
                vector_store_id=self.vector_store_id,
                files=[fh],
            )

    @staticmethod
    def _cleanup(path: Path) -> None:
        # The response does not depend on whether this succeeds
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove temp session file {path}: {e}")
