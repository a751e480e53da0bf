"""
Chat Session State Machine
==========================

Client-side conversation state, advanced only by ``chat_reducer``. State
and chat items are frozen pydantic models; every transition returns a new
state (or the same object when the action is not legal in the current
status).

STATUS FLOW
-----------

    idle ──ChatSubmitted──> sending ──first event──> streaming
      ^                       │                        │
      │                       │                        ├── done ────────────> idle
      │                       │                        ├── mcpApprovalRequest > idle (card appended)
      │                       │                        ├── StreamCancelled ──> idle
      │                       ├──── StreamAborted ─────┴─────────────────────> idle
      │                       └──── error / StreamFailed ──────────────────> error
      │                                                                        │
      └────────────────────── ErrorCleared / ChatSubmitted ───────────────────┘

One assistant message at a time is open for mutation
(``streaming_message_id``). Chunks and annotations fold into it; any
terminal record freezes it with whatever text it has.
"""

from dataclasses import dataclass
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError

from agentchat.client.sse import SseEvent
from agentchat.models.chat import Annotation

ChatStatus = Literal["idle", "sending", "streaming", "error"]

DEFAULT_ERROR_MESSAGE = "An error occurred while streaming the response."


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class UserMessage(_Frozen):
    kind: Literal["user"] = "user"
    id: str
    text: str
    attachments: tuple[str, ...] = ()  # file names


class AssistantMessage(_Frozen):
    kind: Literal["assistant"] = "assistant"
    id: str
    text: str = ""
    annotations: tuple[Annotation, ...] = ()


class ApprovalCard(_Frozen):
    """A tool call the user must approve or reject."""

    kind: Literal["approval"] = "approval"
    id: str
    tool_name: str
    server_label: str
    arguments: str | dict[str, Any] | None = None
    previous_response_id: str | None = None
    resolved: bool = False


ChatItem = UserMessage | AssistantMessage | ApprovalCard


class UsageInfo(_Frozen):
    duration: float = 0.0  # milliseconds
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatSessionState(_Frozen):
    status: ChatStatus = "idle"
    messages: tuple[ChatItem, ...] = ()
    streaming_message_id: str | None = None
    current_conversation_id: str | None = None
    last_error: str | None = None
    last_usage: UsageInfo | None = None
    agent_id: str | None = None


# =============================================================================
# Actions
# =============================================================================


@dataclass(frozen=True)
class ChatSubmitted:
    """Start a turn. ``user_message`` is None when resuming after an approval."""

    user_message: UserMessage | None
    assistant_message_id: str


@dataclass(frozen=True)
class StreamEventReceived:
    event: SseEvent


@dataclass(frozen=True)
class StreamFailed:
    """Transport failure, HTTP error, or a stream that ended without a terminal record."""

    message: str


@dataclass(frozen=True)
class StreamCancelled:
    pass


@dataclass(frozen=True)
class StreamAborted:
    """The caller stopped waiting (timeout, interrupt) before a terminal record."""


@dataclass(frozen=True)
class ApprovalResponded:
    approval_id: str


@dataclass(frozen=True)
class ErrorCleared:
    pass


@dataclass(frozen=True)
class ChatCleared:
    pass


@dataclass(frozen=True)
class AgentSelected:
    agent_id: str | None


ChatAction = (
    ChatSubmitted
    | StreamEventReceived
    | StreamFailed
    | StreamCancelled
    | StreamAborted
    | ApprovalResponded
    | ErrorCleared
    | ChatCleared
    | AgentSelected
)


# =============================================================================
# Selectors
# =============================================================================


def open_message(state: ChatSessionState) -> AssistantMessage | None:
    """The assistant message currently receiving stream content, if any."""
    if state.streaming_message_id is None:
        return None
    for item in reversed(state.messages):
        if isinstance(item, AssistantMessage) and item.id == state.streaming_message_id:
            return item
    return None


def find_approval_card(state: ChatSessionState, approval_id: str) -> ApprovalCard | None:
    for item in state.messages:
        if isinstance(item, ApprovalCard) and item.id == approval_id:
            return item
    return None


def last_user_message(state: ChatSessionState) -> UserMessage | None:
    for item in reversed(state.messages):
        if isinstance(item, UserMessage):
            return item
    return None


# =============================================================================
# Reducer
# =============================================================================


def _replace_item(state: ChatSessionState, target: ChatItem, **changes: Any) -> ChatSessionState:
    # Approval ids come from the server and may collide with message ids
    messages = tuple(
        item.model_copy(update=changes) if item.kind == target.kind and item.id == target.id else item
        for item in state.messages
    )
    return state.model_copy(update={"messages": messages})


def _append_to_open_message(state: ChatSessionState, **fields: Any) -> ChatSessionState:
    message = open_message(state)
    if message is None:
        return state
    changes: dict[str, Any] = {}
    if "text" in fields:
        changes["text"] = message.text + fields["text"]
    if "annotations" in fields:
        changes["annotations"] = message.annotations + tuple(fields["annotations"])
    return _replace_item(state, message, **changes)


def _parse_annotations(raw: Any) -> list[Annotation]:
    annotations = []
    for entry in raw if isinstance(raw, list) else []:
        try:
            annotations.append(Annotation.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"Skipping malformed annotation: {e.error_count()} errors")
    return annotations


def _parse_approval(raw: Any) -> ApprovalCard | None:
    if not isinstance(raw, dict) or not raw.get("id"):
        return None
    return ApprovalCard(
        id=str(raw["id"]),
        tool_name=str(raw.get("toolName") or ""),
        server_label=str(raw.get("serverLabel") or ""),
        arguments=raw.get("arguments"),
        previous_response_id=raw.get("previousResponseId"),
    )


def _apply_event(state: ChatSessionState, event: SseEvent) -> ChatSessionState:
    if state.status not in ("sending", "streaming"):
        return state
    if state.status == "sending":
        state = state.model_copy(update={"status": "streaming"})

    data = event.data
    if event.type == "conversationId":
        conversation_id = data.get("conversationId")
        if isinstance(conversation_id, str) and conversation_id:
            return state.model_copy(update={"current_conversation_id": conversation_id})
        return state

    if event.type == "chunk":
        content = data.get("content")
        if not isinstance(content, str) or not content:
            return state
        return _append_to_open_message(state, text=content)

    if event.type == "annotations":
        annotations = _parse_annotations(data.get("annotations"))
        if not annotations:
            return state
        return _append_to_open_message(state, annotations=annotations)

    if event.type == "mcpApprovalRequest":
        card = _parse_approval(data.get("approvalRequest"))
        if card is None:
            logger.warning("Ignoring approval request without an id")
            return state
        return state.model_copy(
            update={
                "messages": state.messages + (card,),
                "streaming_message_id": None,
                "status": "idle",
            }
        )

    if event.type == "usage":
        try:
            usage = UsageInfo(
                duration=data.get("duration") or 0,
                prompt_tokens=data.get("promptTokens") or 0,
                completion_tokens=data.get("completionTokens") or 0,
                total_tokens=data.get("totalTokens") or 0,
            )
        except ValidationError:
            logger.warning(f"Ignoring malformed usage record: {data}")
            return state
        return state.model_copy(update={"last_usage": usage})

    if event.type == "done":
        return state.model_copy(update={"streaming_message_id": None, "status": "idle"})

    if event.type == "error":
        message = data.get("message")
        return _fail(state, message if isinstance(message, str) and message else DEFAULT_ERROR_MESSAGE)

    return state


def _fail(state: ChatSessionState, message: str) -> ChatSessionState:
    return state.model_copy(
        update={"streaming_message_id": None, "status": "error", "last_error": message}
    )


def chat_reducer(state: ChatSessionState, action: ChatAction) -> ChatSessionState:
    """Apply one action. Returns ``state`` itself when the action does not apply."""
    if isinstance(action, ChatSubmitted):
        if state.status not in ("idle", "error"):
            return state
        assistant = AssistantMessage(id=action.assistant_message_id)
        user_items = (action.user_message,) if action.user_message is not None else ()
        return state.model_copy(
            update={
                "messages": state.messages + user_items + (assistant,),
                "streaming_message_id": assistant.id,
                "last_error": None,
                "status": "sending",
            }
        )

    if isinstance(action, StreamEventReceived):
        return _apply_event(state, action.event)

    if isinstance(action, StreamFailed):
        if state.status not in ("sending", "streaming"):
            return state
        return _fail(state, action.message or DEFAULT_ERROR_MESSAGE)

    if isinstance(action, StreamCancelled):
        if state.status != "streaming":
            return state
        return state.model_copy(update={"streaming_message_id": None, "status": "idle"})

    if isinstance(action, StreamAborted):
        if state.status not in ("sending", "streaming"):
            return state
        return state.model_copy(update={"streaming_message_id": None, "status": "idle"})

    if isinstance(action, ApprovalResponded):
        card = find_approval_card(state, action.approval_id)
        if card is None or card.resolved or state.status in ("sending", "streaming"):
            return state
        return _replace_item(state, card, resolved=True)

    if isinstance(action, ErrorCleared):
        if state.status != "error":
            return state
        return state.model_copy(update={"status": "idle", "last_error": None})

    if isinstance(action, ChatCleared):
        return ChatSessionState(agent_id=state.agent_id)

    if isinstance(action, AgentSelected):
        if action.agent_id == state.agent_id:
            return state
        return state.model_copy(update={"agent_id": action.agent_id})

    return state
