"""
Session Ingest API Router

Receives a practice-session summary from the mobile app and stores it in the
coach's vector store.
"""
from pathlib import Path

from fastapi import APIRouter, Depends
from openai import OpenAI

from core.auth import get_current_principal
from core.config import settings
from core.exceptions import UpstreamServiceError
from core.identity import Principal
from core.openai_client import get_openai_client, get_vector_store_id
from schemas import IngestResponse, SessionPayload
from services.session_ingestion import IngestionError, SessionIngestor

router = APIRouter(prefix="/ingest", tags=["Ingest"])


def get_session_ingestor(
    client: OpenAI = Depends(get_openai_client),
    vector_store_id: str = Depends(get_vector_store_id),
) -> SessionIngestor:
    return SessionIngestor(client, vector_store_id, Path(settings.INGEST_TMP_DIR))


@router.post("", response_model=IngestResponse)
def ingest_session(
    session: SessionPayload,
    principal: Principal = Depends(get_current_principal),
    ingestor: SessionIngestor = Depends(get_session_ingestor),
):
    """
    Upload one session summary.

    The document is attributed to the authenticated caller; any user id in
    the body is ignored.
    """
    try:
        result = ingestor.ingest(session, user_id=principal.id)
    except IngestionError:
        raise UpstreamServiceError("Failed to upload session")

    return IngestResponse(
        ok=True,
        message=f"Session {result.session_id} uploaded successfully",
        upload_response=result.upload_response,
    )
