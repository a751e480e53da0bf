"""
Unit tests for the stream orchestrator (stream_turn).

A scripted AgentService stands in for the upstream. It records how many
items were pulled and whether the iterator was closed, so the tests can
check that an approval request really stops the pull.
"""

import asyncio
import json

import pytest

from agentchat.agentic.streaming import StreamingState, stream_turn
from agentchat.models.chat import Annotation, ChatTurnRequest, McpApprovalResponse
from agentchat.services.agent_service import (
    AgentService,
    AnnotationsItem,
    ApprovalRequest,
    TextDelta,
    UsageSnapshot,
)
from agentchat.services.errors import UpstreamError


class ScriptedAgentService(AgentService):
    """Upstream that yields a fixed list of items, then optionally raises."""

    def __init__(self, items=(), error: Exception | None = None, create_error: Exception | None = None):
        super().__init__(registry=None)
        self.items = list(items)
        self.error = error
        self.create_error = create_error
        self.created: list[str] = []
        self.turns = []
        self.pulled = 0
        self.closed = False

    async def create_conversation(self, first_message: str) -> str:
        if self.create_error:
            raise self.create_error
        self.created.append(first_message)
        return "conv_new"

    async def stream_message(self, turn):
        self.turns.append(turn)
        try:
            for item in self.items:
                self.pulled += 1
                yield item
            if self.error:
                raise self.error
        finally:
            self.closed = True


async def collect(request: ChatTurnRequest, service: AgentService, **kwargs) -> list[dict]:
    records = []
    async for record in stream_turn(request, service, **kwargs):
        assert record.startswith("data: ") and record.endswith("\n\n")
        records.append(json.loads(record[len("data: "):]))
    return records


def types(records: list[dict]) -> list[str]:
    return [r["type"] for r in records]


class TestConversationId:
    """The conversation id is always the first record."""

    @pytest.mark.asyncio
    async def test_created_when_missing(self):
        service = ScriptedAgentService([TextDelta("ok"), UsageSnapshot(1, 1, 2)])
        records = await collect(ChatTurnRequest(message="Hi"), service)

        assert records[0] == {"type": "conversationId", "conversationId": "conv_new"}
        assert service.created == ["Hi"]

    @pytest.mark.asyncio
    async def test_existing_id_echoed_without_creation(self):
        service = ScriptedAgentService([UsageSnapshot()])
        records = await collect(ChatTurnRequest(message="Hi", conversation_id="conv_existing"), service)

        assert records[0] == {"type": "conversationId", "conversationId": "conv_existing"}
        assert service.created == []
        assert service.turns[0].conversation_id == "conv_existing"

    @pytest.mark.asyncio
    async def test_creation_failure_is_a_single_error(self):
        service = ScriptedAgentService(create_error=RuntimeError("store down"))
        records = await collect(ChatTurnRequest(message="Hi"), service)

        assert types(records) == ["error"]
        assert service.turns == []


class TestSuccessfulTurn:
    """Text, annotations, usage and done."""

    @pytest.mark.asyncio
    async def test_full_sequence(self):
        annotation = Annotation(type="url_citation", label="[1]", url="https://a")
        service = ScriptedAgentService([
            TextDelta("Hel"),
            TextDelta("lo"),
            AnnotationsItem([annotation]),
            UsageSnapshot(input_tokens=5, output_tokens=2, total_tokens=7),
        ])
        records = await collect(ChatTurnRequest(message="Hi"), service)

        assert types(records) == ["conversationId", "chunk", "chunk", "annotations", "usage", "done"]
        assert "".join(r["content"] for r in records if r["type"] == "chunk") == "Hello"
        assert records[3]["annotations"][0]["label"] == "[1]"
        usage = records[4]
        assert usage["promptTokens"] == 5
        assert usage["completionTokens"] == 2
        assert usage["totalTokens"] == 7
        assert usage["duration"] >= 0
        assert service.closed

    @pytest.mark.asyncio
    async def test_usage_zero_filled_without_snapshot(self):
        service = ScriptedAgentService([TextDelta("x")])
        records = await collect(ChatTurnRequest(message="Hi"), service)

        assert types(records)[-2:] == ["usage", "done"]
        assert records[-2]["totalTokens"] == 0
        assert records[-2]["promptTokens"] == 0

    @pytest.mark.asyncio
    async def test_turn_input_carries_request_fields(self):
        service = ScriptedAgentService([UsageSnapshot()])
        request = ChatTurnRequest(
            message="",
            conversation_id="conv_1",
            previous_response_id="resp_1",
            mcp_approval=McpApprovalResponse(approval_request_id="call_1", approved=True),
            agent_id="travel-agent",
        )
        await collect(request, service)

        turn = service.turns[0]
        assert turn.previous_response_id == "resp_1"
        assert turn.mcp_approval.approved is True
        assert turn.agent_id == "travel-agent"

    @pytest.mark.asyncio
    async def test_state_counters(self):
        state = StreamingState()
        service = ScriptedAgentService([TextDelta("ab"), TextDelta("c"), UsageSnapshot(1, 2, 3)])
        await collect(ChatTurnRequest(message="Hi"), service, state=state)

        assert state.conversation_id == "conv_new"
        assert state.chunk_count == 2
        assert state.char_count == 3
        assert state.usage == UsageSnapshot(1, 2, 3)


class TestApprovalPause:
    """An approval request ends the stream and stops the upstream."""

    @pytest.mark.asyncio
    async def test_approval_stops_the_pull(self):
        service = ScriptedAgentService([
            TextDelta("Let me "),
            TextDelta("check."),
            ApprovalRequest(
                id="call_1",
                tool_name="get_weather",
                server_label="weather",
                arguments='{"location": "Seattle"}',
                response_id="resp_1",
            ),
            TextDelta("never sent"),
            UsageSnapshot(1, 1, 2),
        ])
        records = await collect(ChatTurnRequest(message="weather?"), service)

        assert types(records) == ["conversationId", "chunk", "chunk", "mcpApprovalRequest"]
        assert records[-1]["approvalRequest"] == {
            "id": "call_1",
            "toolName": "get_weather",
            "serverLabel": "weather",
            "arguments": '{"location": "Seattle"}',
            "previousResponseId": "resp_1",
        }
        assert service.pulled == 3
        assert service.closed


class TestErrors:
    """Failures after the first record are in-band."""

    @pytest.mark.asyncio
    async def test_upstream_error_after_deltas(self):
        service = ScriptedAgentService([TextDelta("partial")], error=UpstreamError("model exploded"))
        records = await collect(ChatTurnRequest(message="Hi"), service)

        assert types(records) == ["conversationId", "chunk", "error"]
        assert records[-1]["message"] == "An unexpected error occurred. Please try again."
        assert service.closed

    @pytest.mark.asyncio
    async def test_error_details_in_development(self):
        service = ScriptedAgentService(error=UpstreamError("model exploded"))
        records = await collect(ChatTurnRequest(message="Hi"), service, include_error_details=True)

        assert records[-1] == {"type": "error", "message": "model exploded"}

    @pytest.mark.asyncio
    async def test_cancellation_writes_nothing_more(self):
        closed = asyncio.Event()

        class HangingService(ScriptedAgentService):
            async def stream_message(self, turn):
                try:
                    yield TextDelta("partial")
                    await asyncio.Event().wait()
                    yield TextDelta("never")
                finally:
                    closed.set()

        records = []

        async def consume():
            async for record in stream_turn(ChatTurnRequest(message="Hi"), HangingService()):
                records.append(record)

        task = asyncio.create_task(consume())
        while len(records) < 2:
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(records) == 2
        assert not any('"type":"error"' in r for r in records)
        assert closed.is_set()
