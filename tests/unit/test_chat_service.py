"""
Unit tests for ChatService over httpx.MockTransport.

Response bodies are async byte iterators, so records can be split across
transport chunks and the stream can be held open for cancellation tests.
"""

import asyncio
import json

import httpx
import pytest

from agentchat.client.service import CONNECTION_LOST_MESSAGE, ChatService
from agentchat.client.session import ChatSession
from agentchat.client.state import ApprovalCard, AssistantMessage, ChatSessionState, UserMessage
from agentchat.models.chat import FileAttachment

API_URL = "http://agentchat.test/api"


def sse(*records: dict) -> bytes:
    return b"".join(
        f"data: {json.dumps(r, ensure_ascii=False)}\n\n".encode("utf-8") for r in records
    )


def chunked(data: bytes, size: int = 9):
    async def body():
        for i in range(0, len(data), size):
            yield data[i:i + size]

    return body()


def stream_response(data: bytes) -> httpx.Response:
    return httpx.Response(
        200,
        headers={"content-type": "text/event-stream"},
        content=chunked(data),
    )


HELLO_TURN = sse(
    {"type": "conversationId", "conversationId": "conv_1"},
    {"type": "chunk", "content": "Hel"},
    {"type": "chunk", "content": "lo ✓"},
    {"type": "usage", "duration": 12.0, "promptTokens": 2, "completionTokens": 3, "totalTokens": 5},
    {"type": "done"},
)


class Recorder:
    """MockTransport handler that replays queued responses and records requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def payload(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


def make_service(handler, **kwargs) -> ChatService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ChatService(api_url=API_URL, http_client=client, **kwargs)


def assistant_text(state: ChatSessionState) -> str:
    return [m for m in state.messages if isinstance(m, AssistantMessage)][-1].text


class TestSendMessage:

    @pytest.mark.asyncio
    async def test_streams_into_session(self):
        recorder = Recorder(stream_response(HELLO_TURN))
        service = make_service(recorder)

        state = await service.send_message("Hi")

        assert state.status == "idle"
        assert state.current_conversation_id == "conv_1"
        assert assistant_text(state) == "Hello ✓"
        assert state.last_usage.total_tokens == 5
        assert state.last_error is None
        assert str(recorder.requests[0].url) == f"{API_URL}/chat/stream"
        assert recorder.payload() == {"message": "Hi", "imageDataUris": [], "fileDataUris": []}

    @pytest.mark.asyncio
    async def test_second_turn_sends_conversation_id(self):
        recorder = Recorder(stream_response(HELLO_TURN), stream_response(HELLO_TURN))
        service = make_service(recorder)

        await service.send_message("Hi")
        await service.send_message("More")

        assert recorder.payload(1)["conversationId"] == "conv_1"
        assert [m.kind for m in service.state.messages] == ["user", "assistant", "user", "assistant"]

    @pytest.mark.asyncio
    async def test_attachments_split_by_mime_type(self):
        recorder = Recorder(stream_response(HELLO_TURN))
        service = make_service(recorder)
        image = FileAttachment(data_uri="data:image/png;base64,aGk=", file_name="a.png", mime_type="image/png")
        document = FileAttachment(
            data_uri="data:application/pdf;base64,aGk=", file_name="b.pdf", mime_type="application/pdf"
        )

        state = await service.send_message("Look", [image, document])

        payload = recorder.payload()
        assert payload["imageDataUris"] == ["data:image/png;base64,aGk="]
        assert payload["fileDataUris"] == [
            {"dataUri": "data:application/pdf;base64,aGk=", "fileName": "b.pdf", "mimeType": "application/pdf"}
        ]
        user = state.messages[0]
        assert isinstance(user, UserMessage)
        assert user.attachments == ("a.png", "b.pdf")

    @pytest.mark.asyncio
    async def test_bearer_token_and_agent_id(self):
        recorder = Recorder(stream_response(HELLO_TURN))

        async def token_provider():
            return "token-123"

        service = make_service(recorder, token_provider=token_provider)
        service.set_agent_id("travel-agent")
        await service.send_message("Hi")

        assert recorder.requests[0].headers["authorization"] == "Bearer token-123"
        assert recorder.requests[0].headers["accept"] == "text/event-stream"
        assert recorder.payload()["agentId"] == "travel-agent"

    @pytest.mark.asyncio
    async def test_rejected_while_streaming(self):
        recorder = Recorder()
        session = ChatSession(ChatSessionState(status="streaming", streaming_message_id="a1"))
        service = ChatService(
            session,
            api_url=API_URL,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(recorder)),
        )

        state = await service.send_message("Hi")

        assert state is session.state
        assert recorder.requests == []


class TestFailures:
    """No exception escapes send_message."""

    @pytest.mark.asyncio
    async def test_http_error_status_uses_problem_detail(self):
        problem = httpx.Response(
            400,
            headers={"content-type": "application/problem+json"},
            json={"title": "Invalid Request", "status": 400, "detail": "Invalid attachment encoding"},
        )
        service = make_service(Recorder(problem))

        state = await service.send_message("Hi")

        assert state.status == "error"
        assert state.last_error == "Invalid attachment encoding"
        assert assistant_text(state) == ""

    @pytest.mark.asyncio
    async def test_http_error_without_body(self):
        service = make_service(Recorder(httpx.Response(502)))
        state = await service.send_message("Hi")
        assert state.last_error == "Request failed with status 502"

    @pytest.mark.asyncio
    async def test_transport_error(self):
        service = make_service(Recorder(httpx.ConnectError("connection refused")))

        state = await service.send_message("Hi")

        assert state.status == "error"
        assert "connection refused" in state.last_error

    @pytest.mark.asyncio
    async def test_stream_end_without_terminal_record(self):
        body = sse(
            {"type": "conversationId", "conversationId": "conv_1"},
            {"type": "chunk", "content": "partial"},
        )
        service = make_service(Recorder(stream_response(body)))

        state = await service.send_message("Hi")

        assert state.status == "error"
        assert state.last_error == CONNECTION_LOST_MESSAGE
        assert assistant_text(state) == "partial"

    @pytest.mark.asyncio
    async def test_in_band_error_record(self):
        body = sse(
            {"type": "conversationId", "conversationId": "conv_1"},
            {"type": "chunk", "content": "partial"},
            {"type": "error", "message": "Upstream failed"},
        )
        service = make_service(Recorder(stream_response(body)))

        state = await service.send_message("Hi")

        assert state.status == "error"
        assert state.last_error == "Upstream failed"
        assert assistant_text(state) == "partial"

    @pytest.mark.asyncio
    async def test_token_provider_failure(self):
        async def token_provider():
            raise RuntimeError("token cache unavailable")

        service = make_service(Recorder(), token_provider=token_provider)
        state = await service.send_message("Hi")

        assert state.status == "error"
        assert state.last_error == "token cache unavailable"

    @pytest.mark.asyncio
    async def test_retry_after_error(self):
        recorder = Recorder(httpx.Response(500, json={"detail": "busy"}), stream_response(HELLO_TURN))
        service = make_service(recorder)

        failed = await service.send_message("Hi")
        assert failed.status == "error"

        state = await service.retry()

        assert state.status == "idle"
        assert assistant_text(state) == "Hello ✓"
        assert recorder.payload(1)["message"] == "Hi"

    @pytest.mark.asyncio
    async def test_clear_error(self):
        service = make_service(Recorder(httpx.Response(500)))
        await service.send_message("Hi")

        service.clear_error()

        assert service.state.status == "idle"
        assert service.state.last_error is None


class TestApprovalFlow:

    @pytest.mark.asyncio
    async def test_pause_then_resume(self):
        paused = sse(
            {"type": "conversationId", "conversationId": "conv_1"},
            {"type": "chunk", "content": "Checking. "},
            {
                "type": "mcpApprovalRequest",
                "approvalRequest": {
                    "id": "mcpr_1",
                    "toolName": "get_weather",
                    "serverLabel": "weather",
                    "arguments": '{"location": "Seattle"}',
                    "previousResponseId": "resp_1",
                },
            },
        )
        resumed = sse(
            {"type": "conversationId", "conversationId": "conv_1"},
            {"type": "chunk", "content": "18°C in Seattle."},
            {"type": "usage", "duration": 1.0, "promptTokens": 1, "completionTokens": 1, "totalTokens": 2},
            {"type": "done"},
        )
        recorder = Recorder(stream_response(paused), stream_response(resumed))
        service = make_service(recorder)

        state = await service.send_message("weather?")
        assert state.status == "idle"
        card = state.messages[-1]
        assert isinstance(card, ApprovalCard) and not card.resolved

        state = await service.send_mcp_approval("mcpr_1", approved=True)

        assert recorder.payload(1) == {
            "message": "",
            "conversationId": "conv_1",
            "imageDataUris": [],
            "fileDataUris": [],
            "previousResponseId": "resp_1",
            "mcpApproval": {"approvalRequestId": "mcpr_1", "approved": True},
        }
        assert state.status == "idle"
        assert next(m for m in state.messages if isinstance(m, ApprovalCard)).resolved
        assert assistant_text(state) == "18°C in Seattle."
        assert [m.kind for m in state.messages] == ["user", "assistant", "approval", "assistant"]

    @pytest.mark.asyncio
    async def test_unknown_approval_is_ignored(self):
        recorder = Recorder()
        service = make_service(recorder)

        state = await service.send_mcp_approval("mcpr_missing", approved=True)

        assert state.status == "idle"
        assert recorder.requests == []


class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancel_keeps_partial_text(self):
        release = asyncio.Event()

        async def body():
            yield sse(
                {"type": "conversationId", "conversationId": "conv_1"},
                {"type": "chunk", "content": "partial"},
            )
            await release.wait()
            yield sse({"type": "chunk", "content": " never"})

        service = make_service(Recorder(httpx.Response(200, content=body())))
        turn = asyncio.create_task(service.send_message("Hi"))

        def received_partial() -> bool:
            state = service.state
            return state.status == "streaming" and assistant_text(state) == "partial"

        while not received_partial():
            await asyncio.sleep(0)
        assert service.cancel_stream() is True

        state = await turn

        assert state.status == "idle"
        assert state.last_error is None
        assert assistant_text(state) == "partial"
        assert service.cancel_stream() is False

    @pytest.mark.asyncio
    async def test_caller_timeout_leaves_session_usable(self):
        release = asyncio.Event()

        async def body():
            yield sse(
                {"type": "conversationId", "conversationId": "conv_1"},
                {"type": "chunk", "content": "partial"},
            )
            await release.wait()
            yield sse({"type": "chunk", "content": " never"})

        recorder = Recorder(httpx.Response(200, content=body()), stream_response(HELLO_TURN))
        service = make_service(recorder)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(service.send_message("Hi"), 0.2)

        assert service.state.status == "idle"
        assert service.state.streaming_message_id is None
        assert service.state.last_error is None
        assert assistant_text(service.state) == "partial"

        state = await service.send_message("Again")

        assert len(recorder.requests) == 2
        assert state.status == "idle"
        assert assistant_text(state) == "Hello ✓"

    @pytest.mark.asyncio
    async def test_clear_chat_keeps_agent(self):
        service = make_service(Recorder(stream_response(HELLO_TURN)))
        service.set_agent_id("travel-agent")
        await service.send_message("Hi")

        service.clear_chat()

        assert service.state == ChatSessionState(agent_id="travel-agent")


class TestAgentQueries:

    @pytest.mark.asyncio
    async def test_list_agents(self):
        listing = httpx.Response(200, json={
            "agents": [{"name": "Default Agent", "id": "default-agent", "model": "m", "createdAt": 1}],
            "totalCount": 1,
        })
        recorder = Recorder(listing)
        service = make_service(recorder)

        result = await service.list_agents(limit=5)

        assert result.total_count == 1
        assert result.agents[0].id == "default-agent"
        assert recorder.requests[0].url.params["limit"] == "5"
