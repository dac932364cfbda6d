"""
Coach Query Responder

Forwards one player question to the OpenAI Responses API with the
``file_search`` tool pointed at the coach's vector store. Retrieval and
generation both happen on the provider side.
"""
from __future__ import annotations

import logging

from openai import OpenAI, OpenAIError

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Sorry, I couldn't find any relevant insights right now."

COACH_INSTRUCTIONS = (
    "You are Flick, a friendly basketball shooting coach. "
    "Answer using factual data from the player's session summaries in the vector store. "
    "Only use documents whose **User:** line is exactly {user_id}; "
    "ignore sessions that belong to anyone else. "
    "Be brief and motivational."
)


class CoachQueryError(Exception):
    """The LLM provider failed to produce a reply."""


def build_instructions(user_id: str) -> str:
    return COACH_INSTRUCTIONS.format(user_id=user_id)


class CoachQueryResponder:
    def __init__(self, client: OpenAI, vector_store_id: str, model: str):
        self.client = client
        self.vector_store_id = vector_store_id
        self.model = model

    def answer(self, message: str, user_id: str) -> str:
        try:
            response = self.client.responses.create(
                model=self.model,
                instructions=build_instructions(user_id),
                input=message,
                tools=[{
                    "type": "file_search",
                    "vector_store_ids": [self.vector_store_id],
                }],
            )
        except OpenAIError as e:
            logger.error(
                f"Query failed: {e}",
                extra={"extra_fields": {"user_id": user_id, "model": self.model}},
            )
            raise CoachQueryError("Coach query failed") from e

        reply = (getattr(response, "output_text", None) or "").strip()
        if not reply:
            logger.info(
                "Coach returned no text, using fallback reply",
                extra={"extra_fields": {"user_id": user_id}},
            )
            return FALLBACK_REPLY
        return reply
