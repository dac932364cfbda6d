"""
Coach Query API Router

Answers a player's free-text question from their indexed sessions.
"""
from fastapi import APIRouter, Depends
from openai import OpenAI

from core.auth import get_current_principal
from core.config import settings
from core.exceptions import UpstreamServiceError
from core.identity import Principal
from core.openai_client import get_openai_client, get_vector_store_id
from schemas import QueryRequest, QueryResponse
from services.coach_query import CoachQueryError, CoachQueryResponder

router = APIRouter(prefix="/query", tags=["AI Coach"])


def get_coach_responder(
    client: OpenAI = Depends(get_openai_client),
    vector_store_id: str = Depends(get_vector_store_id),
) -> CoachQueryResponder:
    return CoachQueryResponder(client, vector_store_id, settings.OPENAI_MODEL)


@router.post("", response_model=QueryResponse)
def ask_coach(
    request: QueryRequest,
    principal: Principal = Depends(get_current_principal),
    responder: CoachQueryResponder = Depends(get_coach_responder),
):
    """Ask the coach a question about your own sessions."""
    try:
        reply = responder.answer(request.message, user_id=principal.id)
    except CoachQueryError:
        raise UpstreamServiceError("Failed to get a reply from the coach")

    return QueryResponse(reply=reply)
