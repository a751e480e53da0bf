"""
Chat Stream Orchestrator
========================

Drives one upstream agent run for one HTTP request and frames every item
as an SSE record. The generator returned by ``stream_turn`` is the body of
a ``StreamingResponse``; each yielded string is one record, written and
flushed by the server before the next upstream pull.

RECORD SEQUENCE
---------------

    conversationId                      always first, exactly once
    (chunk | annotations)*              passthrough, in upstream order
    then exactly one of:
      usage, done                       upstream exhausted normally
      mcpApprovalRequest                upstream stopped, turn paused
      error                             anything raised after the start

    ┌───────────────────────────────────────────────────────────────┐
    │ stream_turn()                                                  │
    │                                                                │
    │ 1. conversation id: request's, or create_conversation()        │
    │    → yield conversationId                                      │
    │ 2. open agent_service.stream_message(turn), start the clock    │
    │ 3. for each item:                                              │
    │      TextDelta        → yield chunk                            │
    │      AnnotationsItem  → yield annotations                      │
    │      ApprovalRequest  → yield mcpApprovalRequest, STOP         │
    │      UsageSnapshot    → remember (terminal item of the run)    │
    │ 4. exhausted → yield usage(elapsed, snapshot), yield done      │
    │ 5. except Exception → yield error (single catch boundary)      │
    └───────────────────────────────────────────────────────────────┘

APPROVAL STOPS THE PULL
-----------------------
After the approval record the loop breaks and ``aclosing`` closes the
upstream iterator, so nothing more is pulled and no usage/done follow.
The client tells "awaiting approval" from "finished" by that absence.

CANCELLATION
------------
When the client disconnects, the server cancels the task running this
generator. ``asyncio.CancelledError`` (and ``GeneratorExit`` on close) are
BaseExceptions, so the ``except Exception`` boundary never sees them:
nothing more is written, not even an error, and ``aclosing`` still closes
the upstream.

ERRORS
------
Once the first record is out the HTTP status is fixed at 200, so every
failure becomes one in-band error record. Validation failures are
checked by the router before streaming starts (HTTP 400); if the upstream
raises one mid-stream it is still in-band.
"""

from contextlib import aclosing
from typing import AsyncGenerator

from loguru import logger

from agentchat.agentic.streaming.formatters import (
    format_annotations,
    format_approval_request,
    format_chunk,
    format_conversation_id,
    format_done,
    format_error,
    format_usage,
)
from agentchat.agentic.streaming.state import StreamingState
from agentchat.models.chat import ApprovalRequestInfo, ChatTurnRequest
from agentchat.services.agent_service import (
    AgentService,
    AnnotationsItem,
    ApprovalRequest,
    TextDelta,
    TurnInput,
    UsageSnapshot,
)
from agentchat.services.errors import TurnValidationError, build_error_response


async def stream_turn(
    request: ChatTurnRequest,
    agent_service: AgentService,
    *,
    include_error_details: bool = False,
    state: StreamingState | None = None,
) -> AsyncGenerator[str, None]:
    """
    Stream one chat turn as SSE records.

    Args:
        request: Validated chat turn request
        agent_service: Upstream agent collaborator
        include_error_details: Expose exception messages in error records
            (development only)
        state: Optional pre-created state, for callers that want the
            counters after the stream ends

    Yields:
        SSE-formatted strings (each ending with \\n\\n)
    """
    state = state or StreamingState(agent_id=request.agent_id)

    try:
        # 1. Conversation id goes out before anything else can fail
        conversation_id = request.conversation_id
        if not conversation_id:
            conversation_id = await agent_service.create_conversation(request.message)
        state.conversation_id = conversation_id
        yield format_conversation_id(conversation_id)

        # 2. Open the upstream
        turn = TurnInput(
            conversation_id=conversation_id,
            message=request.message,
            images=request.images,
            files=request.files,
            previous_response_id=request.previous_response_id,
            mcp_approval=request.mcp_approval,
            agent_id=request.agent_id,
        )
        state.mark_upstream_started()
        logger.debug(
            f"[{state.request_id}] stream start conversation={conversation_id} "
            f"agent={request.agent_id or 'default'} resume={request.is_approval_resume}"
        )

        # 3. Sequential pull; one record per item
        async with aclosing(agent_service.stream_message(turn)) as items:
            async for item in items:
                if isinstance(item, TextDelta):
                    state.record_chunk(item.content)
                    yield format_chunk(item.content)

                elif isinstance(item, AnnotationsItem):
                    state.record_annotations(len(item.annotations))
                    yield format_annotations(item.annotations)

                elif isinstance(item, ApprovalRequest):
                    state.awaiting_approval = True
                    yield format_approval_request(ApprovalRequestInfo(
                        id=item.id,
                        tool_name=item.tool_name,
                        server_label=item.server_label,
                        arguments=item.arguments,
                        previous_response_id=item.response_id,
                    ))
                    break

                elif isinstance(item, UsageSnapshot):
                    state.usage = item

                else:
                    logger.warning(f"[{state.request_id}] ignoring unknown stream item: {type(item).__name__}")

        if state.awaiting_approval:
            logger.info(
                f"[{state.request_id}] stream paused for tool approval "
                f"conversation={conversation_id} chunks={state.chunk_count}"
            )
            return

        # 4. Normal completion
        usage = state.final_usage()
        duration_ms = state.elapsed_ms()
        yield format_usage(
            duration_ms,
            usage.input_tokens,
            usage.output_tokens,
            usage.total_tokens,
        )
        yield format_done()
        logger.info(
            f"[{state.request_id}] stream done conversation={conversation_id} "
            f"duration={duration_ms:.0f}ms chunks={state.chunk_count} "
            f"tokens={usage.total_tokens}"
        )

    except Exception as e:
        # 5. Single catch boundary: one in-band error record
        status = 400 if isinstance(e, TurnValidationError) else 500
        if status == 400:
            logger.warning(f"[{state.request_id}] invalid turn: {e}")
        else:
            logger.exception(f"[{state.request_id}] streaming error: {e}")
        error = build_error_response(e, status, include_error_details)
        yield format_error(error.detail or error.title)
