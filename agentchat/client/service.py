"""
ChatService - HTTP client for the streaming chat endpoint
=========================================================

Sends turns to ``POST {api_url}/chat/stream``, decodes the SSE body and
folds every record into a ``ChatSession``. Usable from any asyncio
program; the CLI ``chat`` command is one.

    async with ChatService() as chat:
        await chat.send_message("test citations")
        print(chat.state.messages[-1].text)

Failures never raise out of ``send_message``. HTTP error statuses,
transport errors and streams that end without a terminal record all land
in the session as ``StreamFailed``; the caller reads ``state.status`` and
``state.last_error``.
"""

import asyncio
import json
import uuid
from typing import Any, Awaitable, Callable

import httpx
from loguru import logger

from agentchat.client.session import ChatSession
from agentchat.client.sse import iter_sse_events
from agentchat.client.state import (
    AgentSelected,
    ApprovalResponded,
    ChatCleared,
    ChatSessionState,
    ChatSubmitted,
    ErrorCleared,
    StreamAborted,
    StreamCancelled,
    StreamEventReceived,
    StreamFailed,
    UserMessage,
    find_approval_card,
)
from agentchat.models.agents import AgentListResponse, AgentMetadata
from agentchat.models.chat import ChatTurnRequest, FileAttachment, McpApprovalResponse
from agentchat.settings import settings

TokenProvider = Callable[[], Awaitable[str | None]]

# Records after which the server sends nothing more
TERMINAL_EVENT_TYPES = frozenset({"done", "error", "mcpApprovalRequest"})

CONNECTION_LOST_MESSAGE = "Connection lost before the response completed. Please try again."


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _problem_detail(status_code: int, body: bytes) -> str:
    """Best human-readable message from an error response body."""
    try:
        problem = json.loads(body)
    except ValueError:
        problem = None
    if isinstance(problem, dict):
        detail = problem.get("detail") or problem.get("title")
        if isinstance(detail, str) and detail:
            return detail
    text = body.decode("utf-8", errors="replace").strip()
    return text[:200] if text else f"Request failed with status {status_code}"


class ChatService:
    """Client-side chat turns against the agentchat API."""

    def __init__(
        self,
        session: ChatSession | None = None,
        *,
        api_url: str | None = None,
        timeout: float | None = None,
        token_provider: TokenProvider | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.session = session or ChatSession()
        self.api_url = (api_url or settings.client.api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.client.timeout
        self.token_provider = token_provider
        self._client = http_client
        self._owns_client = http_client is None
        self._task: asyncio.Task | None = None
        self._last_request: ChatTurnRequest | None = None

    async def __aenter__(self) -> "ChatService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def state(self) -> ChatSessionState:
        return self.session.state

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _headers(self, accept: str = "application/json") -> dict[str, str]:
        headers = {"Accept": accept}
        if self.token_provider is not None:
            token = await self.token_provider()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    # -------------------------------------------------------------------------
    # Turns
    # -------------------------------------------------------------------------

    async def send_message(
        self, text: str, attachments: list[FileAttachment] | None = None
    ) -> ChatSessionState:
        """Send a user message and stream the reply into the session."""
        if self.state.status in ("sending", "streaming"):
            logger.warning("A response is already streaming; message not sent")
            return self.state

        attachments = attachments or []
        images = [a.data_uri for a in attachments if a.mime_type.lower().startswith("image/")]
        files = [a for a in attachments if not a.mime_type.lower().startswith("image/")]

        request = ChatTurnRequest(
            message=text,
            conversation_id=self.state.current_conversation_id,
            images=images,
            files=files,
            agent_id=self.state.agent_id,
        )
        user_message = UserMessage(
            id=_new_id("msg"),
            text=text,
            attachments=tuple(a.file_name for a in attachments),
        )
        return await self._run_turn(request, user_message)

    async def send_mcp_approval(
        self,
        approval_request_id: str,
        approved: bool,
        previous_response_id: str | None = None,
        conversation_id: str | None = None,
    ) -> ChatSessionState:
        """Answer a pending approval card and stream the resumed turn."""
        card = find_approval_card(self.state, approval_request_id)
        if self.state.status != "idle" or card is None or card.resolved:
            logger.warning(f"Approval {approval_request_id} is not pending; ignoring response")
            return self.state

        self.session.dispatch(ApprovalResponded(approval_request_id))
        request = ChatTurnRequest(
            message="",
            conversation_id=conversation_id or self.state.current_conversation_id,
            previous_response_id=previous_response_id or card.previous_response_id,
            mcp_approval=McpApprovalResponse(
                approval_request_id=approval_request_id,
                approved=approved,
            ),
            agent_id=self.state.agent_id,
        )
        return await self._run_turn(request, None)

    async def retry(self) -> ChatSessionState:
        """Re-send the last turn after an error."""
        if self.state.status != "error" or self._last_request is None:
            return self.state
        request = self._last_request.model_copy(
            update={"conversation_id": self.state.current_conversation_id}
        )
        user_message = None
        if not request.is_approval_resume:
            user_message = UserMessage(
                id=_new_id("msg"),
                text=request.message,
                attachments=tuple(f.file_name for f in request.files),
            )
        return await self._run_turn(request, user_message)

    async def _run_turn(
        self, request: ChatTurnRequest, user_message: UserMessage | None
    ) -> ChatSessionState:
        before = self.state
        if self.session.dispatch(ChatSubmitted(user_message, _new_id("msg"))) is before:
            return self.state
        self._last_request = request

        task = asyncio.create_task(self._stream(request))
        self._task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            # The caller gave up (timeout, interrupt): stop the stream and
            # leave the session idle with the partial text.
            task.cancel()
            logger.info("Chat turn abandoned by caller; stream cancelled")
            self.session.dispatch(StreamAborted())
            raise
        finally:
            self._task = None

        if not task.cancelled() and task.exception() is not None:
            exc = task.exception()
            logger.opt(exception=exc).error(f"Chat stream failed: {exc}")
            self.session.dispatch(StreamFailed(str(exc) or CONNECTION_LOST_MESSAGE))
        return self.state

    async def _stream(self, request: ChatTurnRequest) -> None:
        payload = request.model_dump(mode="json", by_alias=True, exclude_none=True)
        url = f"{self.api_url}/chat/stream"
        terminal = False

        try:
            headers = await self._headers(accept="text/event-stream")
            async with self._get_client().stream(
                "POST", url, json=payload, headers=headers, timeout=self.timeout
            ) as response:
                if not response.is_success:
                    body = await response.aread()
                    detail = _problem_detail(response.status_code, body)
                    logger.warning(f"Chat stream rejected ({response.status_code}): {detail}")
                    self.session.dispatch(StreamFailed(detail))
                    return

                async for event in iter_sse_events(response.aiter_bytes()):
                    self.session.dispatch(StreamEventReceived(event))
                    if event.type in TERMINAL_EVENT_TYPES:
                        terminal = True
                        break
        except httpx.HTTPError as e:
            logger.warning(f"Chat stream transport error: {e!r}")
            self.session.dispatch(StreamFailed(f"Connection error: {e}" if str(e) else CONNECTION_LOST_MESSAGE))
            return

        if not terminal:
            logger.warning("Chat stream ended without a terminal record")
            self.session.dispatch(StreamFailed(CONNECTION_LOST_MESSAGE))

    # -------------------------------------------------------------------------
    # Controls
    # -------------------------------------------------------------------------

    def cancel_stream(self) -> bool:
        """Stop the in-flight stream. Text received so far is kept."""
        if self.state.status != "streaming" or self._task is None or self._task.done():
            return False
        self.session.dispatch(StreamCancelled())
        self._task.cancel()
        return True

    def clear_error(self) -> None:
        self.session.dispatch(ErrorCleared())

    def clear_chat(self) -> None:
        """Start a new chat. Cancels any in-flight stream first."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._last_request = None
        self.session.dispatch(ChatCleared())

    def set_agent_id(self, agent_id: str | None) -> None:
        self.session.dispatch(AgentSelected(agent_id))

    # -------------------------------------------------------------------------
    # Agents
    # -------------------------------------------------------------------------

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._get_client().get(
            f"{self.api_url}{path}", params=params, headers=await self._headers()
        )
        response.raise_for_status()
        return response.json()

    async def get_agent_metadata(self) -> AgentMetadata:
        return AgentMetadata.model_validate(await self._get_json("/agent"))

    async def list_agents(self, limit: int | None = None) -> AgentListResponse:
        params = {"limit": limit} if limit else None
        return AgentListResponse.model_validate(await self._get_json("/agents", params))
