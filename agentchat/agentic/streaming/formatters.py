"""SSE formatting functions.

Converts events to SSE wire format: ``data: {json}\\n\\n``

The JSON is FLAT: ``{"type": "chunk", "content": "Hi"}``, not
``{"type": "chunk", "data": {...}}``. The client decoder re-nests every
field except ``type`` under ``data``. The asymmetry is part of the wire
contract shared with the browser client; keep both sides in step.

Only ``data:`` lines are written (no ``event:``, ``id:`` or ``retry:``).
Each function returns one complete record, which the response writes and
flushes as a single body chunk.
"""

import json
from typing import Any

from pydantic import BaseModel

from agentchat.agentic.streaming.events import (
    AnnotationsEvent,
    ChunkEvent,
    ConversationIdEvent,
    DoneEvent,
    ErrorEvent,
    McpApprovalRequestEvent,
    UsageEvent,
)
from agentchat.models.chat import Annotation, ApprovalRequestInfo


def format_sse_event(event: BaseModel) -> str:
    """Format a Pydantic event model as an SSE data record.

    Args:
        event: Pydantic model with a 'type' field

    Returns:
        SSE-formatted string: "data: {json}\\n\\n"
    """
    data = event.model_dump(mode="json", by_alias=True, exclude_none=True)
    return format_sse_data(data)


def format_sse_data(data: dict[str, Any]) -> str:
    """Format a plain dict as an SSE data record."""
    payload = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    return f"data: {payload}\n\n"


def format_conversation_id(conversation_id: str) -> str:
    return format_sse_event(ConversationIdEvent(conversation_id=conversation_id))


def format_chunk(content: str) -> str:
    return format_sse_event(ChunkEvent(content=content))


def format_annotations(annotations: list[Annotation]) -> str:
    return format_sse_event(AnnotationsEvent(annotations=annotations))


def format_approval_request(approval: ApprovalRequestInfo) -> str:
    return format_sse_event(McpApprovalRequestEvent(approval_request=approval))


def format_usage(
    duration_ms: float,
    prompt_tokens: int,
    completion_tokens: int,
    total_tokens: int,
) -> str:
    return format_sse_event(UsageEvent(
        duration=round(duration_ms, 3),
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
    ))


def format_done() -> str:
    return format_sse_event(DoneEvent())


def format_error(message: str) -> str:
    return format_sse_event(ErrorEvent(message=message))
