"""agentchat agentic module - SSE streaming of agent turns.

Streaming:
- stream_turn: stream orchestrator for POST /api/chat/stream
- format_*: one SSE formatter per wire record kind
"""

from agentchat.agentic.streaming import (
    StreamingState,
    format_sse_event,
    stream_turn,
)

__all__ = [
    "StreamingState",
    "format_sse_event",
    "stream_turn",
]
