"""
OpenAI client shared by the ingestion and query routes.

Exposed as a FastAPI dependency so tests can swap it through
``app.dependency_overrides``.
"""
import logging
from typing import Optional

from openai import OpenAI

from core.config import settings
from core.exceptions import UpstreamServiceError

logger = logging.getLogger(__name__)

_openai_client: Optional[OpenAI] = None


def get_openai_client() -> OpenAI:
    global _openai_client

    if _openai_client is not None:
        return _openai_client

    if not settings.OPENAI_API_KEY:
        logger.error("OPENAI_API_KEY is not set; coach features unavailable")
        raise UpstreamServiceError("Coach service is not configured")

    _openai_client = OpenAI(api_key=settings.OPENAI_API_KEY)
    return _openai_client


def get_vector_store_id() -> str:
    if not settings.VECTOR_STORE_ID:
        logger.error("VECTOR_STORE_ID is not set; coach features unavailable")
        raise UpstreamServiceError("Coach service is not configured")
    return settings.VECTOR_STORE_ID
