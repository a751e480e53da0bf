"""SSE event types for chat streaming.

All events are Pydantic models for consistent serialization. Field names
are camelCase on the wire, and the discriminator is the ``type`` field.
"""

from typing import Literal

from pydantic import Field

from agentchat.models.chat import Annotation, ApprovalRequestInfo, WireModel


class ConversationIdEvent(WireModel):
    """First record of every stream: the conversation the turn belongs to."""

    type: Literal["conversationId"] = "conversationId"
    conversation_id: str


class ChunkEvent(WireModel):
    """Incremental assistant text."""

    type: Literal["chunk"] = "chunk"
    content: str


class AnnotationsEvent(WireModel):
    """Citations for text already streamed."""

    type: Literal["annotations"] = "annotations"
    annotations: list[Annotation] = Field(default_factory=list)


class McpApprovalRequestEvent(WireModel):
    """Tool approval needed. Terminal for this stream, not for the turn."""

    type: Literal["mcpApprovalRequest"] = "mcpApprovalRequest"
    approval_request: ApprovalRequestInfo


class UsageEvent(WireModel):
    """Token accounting and wall time (milliseconds) for the turn."""

    type: Literal["usage"] = "usage"
    duration: float
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class DoneEvent(WireModel):
    type: Literal["done"] = "done"


class ErrorEvent(WireModel):
    type: Literal["error"] = "error"
    message: str


StreamEvent = (
    ConversationIdEvent
    | ChunkEvent
    | AnnotationsEvent
    | McpApprovalRequestEvent
    | UsageEvent
    | DoneEvent
    | ErrorEvent
)
