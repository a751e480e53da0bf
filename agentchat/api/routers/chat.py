"""Chat router - streaming chat endpoint.

Provides:
- POST /chat/stream - Stream an agent turn as Server-Sent Events

Supports the MCP tool approval flow: a stream that ends with an
``mcpApprovalRequest`` record is resumed by posting a new turn carrying
``previousResponseId`` and ``mcpApproval``.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from loguru import logger

from agentchat.agentic.streaming import StreamingState, stream_turn
from agentchat.api.auth import Principal, require_chat_scope
from agentchat.api.dependencies import exception_problem, get_agent_service, get_settings
from agentchat.models.chat import ChatTurnRequest
from agentchat.services.agent_service import AgentService
from agentchat.services.attachments import validate_turn_request
from agentchat.services.errors import TurnValidationError
from agentchat.settings import Settings

router = APIRouter(prefix="/chat", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # disable proxy buffering (nginx)
}


@router.post("/stream")
async def stream_chat_message(
    request: ChatTurnRequest,
    agent_service: AgentService = Depends(get_agent_service),
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(require_chat_scope),
):
    """
    Stream an agent response.

    Record sequence: conversationId → chunk/annotations* → usage → done,
    or → mcpApprovalRequest (paused), or → error.

    Input problems found before streaming (empty message, malformed
    attachment) return 400 application/problem+json. After the first
    record, every failure is an in-band ``error`` record on a 200 response.
    """
    try:
        validate_turn_request(request)
    except TurnValidationError as e:
        logger.warning(f"Rejected chat turn from {principal.id}: {e}")
        return exception_problem(e, 400, settings)

    state = StreamingState(agent_id=request.agent_id)
    logger.debug(f"[{state.request_id}] chat turn from {principal.id}")

    return StreamingResponse(
        stream_turn(
            request,
            agent_service,
            include_error_details=settings.is_development,
            state=state,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
