"""Streaming module for chat responses.

Components:
- events.py: SSE event types (Pydantic models)
- state.py: StreamingState for tracking one response
- formatters.py: SSE formatting functions (one per event kind)
- core.py: stream_turn, the stream orchestrator
"""

from agentchat.agentic.streaming.core import stream_turn
from agentchat.agentic.streaming.events import (
    AnnotationsEvent,
    ChunkEvent,
    ConversationIdEvent,
    DoneEvent,
    ErrorEvent,
    McpApprovalRequestEvent,
    StreamEvent,
    UsageEvent,
)
from agentchat.agentic.streaming.formatters import (
    format_annotations,
    format_approval_request,
    format_chunk,
    format_conversation_id,
    format_done,
    format_error,
    format_sse_data,
    format_sse_event,
    format_usage,
)
from agentchat.agentic.streaming.state import StreamingState

__all__ = [
    # Orchestrator
    "stream_turn",
    # Event types
    "AnnotationsEvent",
    "ChunkEvent",
    "ConversationIdEvent",
    "DoneEvent",
    "ErrorEvent",
    "McpApprovalRequestEvent",
    "StreamEvent",
    "UsageEvent",
    # State
    "StreamingState",
    # Formatters
    "format_annotations",
    "format_approval_request",
    "format_chunk",
    "format_conversation_id",
    "format_done",
    "format_error",
    "format_sse_data",
    "format_sse_event",
    "format_usage",
]
