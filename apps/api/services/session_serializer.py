"""
Session Summary Serializer

Renders a validated session payload as a markdown document for the coach's
vector store. The ``**User:**`` line always carries the authenticated user id;
the query instructions rely on it to scope retrieval to one player.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from schemas import SessionPayload

NOT_AVAILABLE = "N/A"


def _format_number(value: float) -> str:
    if isinstance(value, int):
        return str(value)
    if value.is_integer():
        return str(int(value))
    return f"{value:g}"


def _percent(value: Optional[float]) -> str:
    return f"{_format_number(value)}%" if value is not None else NOT_AVAILABLE


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _metric_lines(extra: Dict[str, Any]) -> List[str]:
    """Numeric pass-through fields, flattening one level of nesting (e.g. ``metrics``)."""
    lines = []
    for key in sorted(extra):
        value = extra[key]
        if _is_number(value):
            lines.append(f"- {key}: {_format_number(value)}")
        elif isinstance(value, dict):
            for sub_key in sorted(value):
                sub_value = value[sub_key]
                if _is_number(sub_value):
                    lines.append(f"- {key}.{sub_key}: {_format_number(sub_value)}")
    return lines


def serialize_session(
    session: SessionPayload,
    user_id: str,
    session_id: str,
    now: Optional[datetime] = None,
) -> str:
    """Build the markdown summary for one session."""
    captured_at = session.captured_at or now or datetime.now(timezone.utc)
    duration = (
        f"{_format_number(session.duration_seconds)}s"
        if session.duration_seconds is not None
        else NOT_AVAILABLE
    )
    shots = str(session.shots_count) if session.shots_count is not None else NOT_AVAILABLE

    sections = [
        "# Session Summary",
        "\n".join([
            f"**User:** {user_id}",
            f"**Session:** {session_id}",
            f"**Date:** {captured_at.isoformat()}",
        ]),
        "\n".join([
            "## Shooting Performance",
            f"- Accuracy: {_percent(session.effective_accuracy)}",
            f"- Form Score: {_percent(session.effective_form_score)}",
            f"- Shots Count: {shots}",
            f"- Duration: {duration}",
        ]),
    ]

    metric_lines = _metric_lines(session.extra_fields())
    if metric_lines:
        sections.append("\n".join(["## Additional Metrics"] + metric_lines))

    if session.tags:
        sections.append("## Focus Tags\n" + ", ".join(session.tags))

    sections.append("## Coach Notes\n" + (session.notes or "No notes provided."))

    return "\n\n".join(sections) + "\n"
