from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

# Ownership comes from the bearer token, never from the body
CLIENT_IDENTITY_FIELDS = ("user", "user_id", "userId")

Percentage = Annotated[float, Field(ge=0, le=100)]
Tag = Annotated[str, Field(min_length=1, max_length=64)]


class SessionStats(BaseModel):
    """Legacy nested stats block sent by older app builds."""
    accuracy: Optional[Percentage] = None
    consistency: Optional[Percentage] = None  # form score

    model_config = ConfigDict(extra="allow", allow_inf_nan=False)


class SessionPayload(BaseModel):
    """
    One recorded practice session as posted by the mobile app.

    Unknown fields pass through into ``model_extra``; known fields are type
    and range checked.
    """
    id: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=128,
        validation_alias=AliasChoices("id", "session_id", "sessionId"),
    )
    captured_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("captured_at", "capturedAt", "timestamp"),
    )
    duration_seconds: Optional[float] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("duration_seconds", "duration"),
    )
    shots_count: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("shots_count", "shotsCount"),
    )
    accuracy: Optional[Percentage] = None
    form_score: Optional[Percentage] = Field(
        default=None,
        validation_alias=AliasChoices("form_score", "formScore"),
    )
    notes: Optional[str] = Field(default=None, max_length=1000)
    stats: Optional[SessionStats] = None
    tags: Optional[List[Tag]] = Field(default=None, max_length=50)

    model_config = ConfigDict(extra="allow", allow_inf_nan=False)

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> Any:
        # Older clients send Date.now() as a number
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        # Blank ids fall back to the server timestamp like a missing one
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def effective_accuracy(self) -> Optional[float]:
        if self.accuracy is not None:
            return self.accuracy
        return self.stats.accuracy if self.stats else None

    @property
    def effective_form_score(self) -> Optional[float]:
        if self.form_score is not None:
            return self.form_score
        return self.stats.consistency if self.stats else None

    def extra_fields(self) -> Dict[str, Any]:
        """Pass-through fields, minus any client-supplied identity."""
        return {
            key: value
            for key, value in (self.model_extra or {}).items()
            if key not in CLIENT_IDENTITY_FIELDS
        }


class IngestResponse(BaseModel):
    ok: bool = True
    message: str
    upload_response: Any = Field(default=None, serialization_alias="uploadResponse")


class QueryRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)


class QueryResponse(BaseModel):
    reply: str


class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: str
