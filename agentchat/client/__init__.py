"""agentchat client - consume the chat stream from Python.

- sse: SSE decoder (split_sse_buffer, parse_sse_line, SseDecoder, iter_sse_events)
- state: chat session state machine (chat_reducer and its actions)
- session: ChatSession dispatch loop
- service: ChatService over httpx
"""

from agentchat.client.service import ChatService
from agentchat.client.session import ChatSession
from agentchat.client.sse import SseDecoder, SseEvent, iter_sse_events, parse_sse_line, split_sse_buffer
from agentchat.client.state import (
    ApprovalCard,
    AssistantMessage,
    ChatSessionState,
    UserMessage,
    chat_reducer,
)

__all__ = [
    "ApprovalCard",
    "AssistantMessage",
    "ChatService",
    "ChatSession",
    "ChatSessionState",
    "SseDecoder",
    "SseEvent",
    "UserMessage",
    "chat_reducer",
    "iter_sse_events",
    "parse_sse_line",
    "split_sse_buffer",
]
