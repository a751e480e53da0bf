"""
pydantic-ai Agent Service
=========================

Real upstream for the chat endpoint. Adapts pydantic-ai's ``agent.iter()``
node stream to the ``StreamItem`` contract:

| pydantic-ai                        | StreamItem                  |
|------------------------------------|-----------------------------|
| PartStartEvent(TextPart)           | TextDelta (initial content) |
| PartDeltaEvent(TextPartDelta)      | TextDelta                   |
| output is DeferredToolRequests     | ApprovalRequest             |
| run finished (agent_run.usage())   | UsageSnapshot               |

TOOL APPROVAL
-------------
Tools named in ``approval_tools`` are registered with
``requires_approval=True`` and the agent's output type includes
``DeferredToolRequests``. When the model calls one, the run ends with the
deferred request instead of executing the tool. The message history at
that point is saved under a fresh response id, which becomes the
client's ``previousResponseId``. Resuming loads that history and passes
``DeferredToolResults`` with the user's decision, continuing the same
model turn.

Only one approval is surfaced per turn. Other calls deferred in the same
batch are denied so the run can continue.

Conversation history is kept in memory per conversation id, capped at
``max_conversations`` (least recently written dropped first). Unanswered
approvals expire after ``approval_ttl`` seconds.
"""

import threading
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable

from loguru import logger
from pydantic_ai import (
    Agent,
    BinaryContent,
    DeferredToolRequests,
    DeferredToolResults,
    Tool,
    ToolDenied,
)

from agentchat.models.agents import AgentDefinition
from agentchat.services.agent_service import (
    AgentService,
    ApprovalRequest,
    StreamItem,
    TextDelta,
    TurnInput,
    UsageSnapshot,
    new_conversation_id,
)
from agentchat.services.attachments import decode_file, decode_image
from agentchat.services.bounded import BoundedStore
from agentchat.services.errors import UpstreamError
from agentchat.services.registry import AgentRegistry


@dataclass
class _PendingApproval:
    conversation_id: str
    messages: list
    tool_call_ids: list[str]


def extract_text_delta(event: Any) -> str | None:
    """Return the assistant text carried by a model stream event, if any."""
    event_type = type(event).__name__

    if event_type == "PartStartEvent" and hasattr(event, "part"):
        if type(event.part).__name__ == "TextPart":
            return event.part.content or None

    elif event_type == "PartDeltaEvent" and hasattr(event, "delta"):
        # ThinkingPartDelta also has content_delta; only stream answer text
        if type(event.delta).__name__ == "TextPartDelta":
            return event.delta.content_delta or None

    return None


def usage_snapshot(usage: Any) -> UsageSnapshot:
    """Convert a pydantic-ai usage object to a UsageSnapshot."""
    if usage is None:
        return UsageSnapshot()
    input_tokens = getattr(usage, "input_tokens", None) or getattr(usage, "request_tokens", 0) or 0
    output_tokens = getattr(usage, "output_tokens", None) or getattr(usage, "response_tokens", 0) or 0
    total_tokens = getattr(usage, "total_tokens", None) or input_tokens + output_tokens
    return UsageSnapshot(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=total_tokens,
    )


class PydanticAIAgentService(AgentService):
    """AgentService backed by pydantic-ai agents built from registry definitions."""

    def __init__(
        self,
        registry: AgentRegistry,
        *,
        tools: list[Callable[..., Any]] | None = None,
        approval_tools: list[str] | None = None,
        model: Any = None,
        max_conversations: int = 1000,
        max_pending_approvals: int = 100,
        approval_ttl: float | None = 900.0,
    ):
        super().__init__(registry)
        self.tools = tools or []
        tool_names = {fn.__name__ for fn in self.tools}
        unknown = set(approval_tools or []) - tool_names
        if unknown:
            logger.warning(f"Approval tools not registered as tools, ignoring: {sorted(unknown)}")
        self.approval_tools = set(approval_tools or []) & tool_names
        self.model_override = model  # e.g. pydantic_ai.models.test.TestModel
        self._lock = threading.Lock()
        self._agents: dict[tuple[str, str], Agent] = {}
        self._history: BoundedStore[list] = BoundedStore(max_conversations, name="conversation history")
        self._pending: BoundedStore[_PendingApproval] = BoundedStore(
            max_pending_approvals, ttl=approval_ttl, name="pending approvals"
        )

    # -- agents ---------------------------------------------------------

    def _build_agent(self, definition: AgentDefinition) -> Agent:
        tools = [
            Tool(fn, requires_approval=fn.__name__ in self.approval_tools)
            for fn in self.tools
        ]
        output_type: Any = [str, DeferredToolRequests] if self.approval_tools else str

        model_settings: dict[str, Any] = {}
        if definition.temperature is not None:
            model_settings["temperature"] = definition.temperature
        if definition.top_p is not None:
            model_settings["top_p"] = definition.top_p

        return Agent(
            self.model_override or definition.model,
            instructions=definition.instructions,
            tools=tools,
            output_type=output_type,
            model_settings=model_settings or None,
            name=definition.id,
        )

    def _get_agent(self, definition: AgentDefinition) -> Agent:
        key = (definition.id, definition.version)
        with self._lock:
            agent = self._agents.get(key)
            if agent is None:
                agent = self._build_agent(definition)
                self._agents[key] = agent
                logger.debug(f"Built agent {definition.id} v{definition.version} ({definition.model})")
            return agent

    # -- conversations --------------------------------------------------

    async def create_conversation(self, first_message: str) -> str:
        conversation_id = new_conversation_id()
        self._history.set(conversation_id, [])
        logger.debug(f"Conversation created: {conversation_id} ({first_message[:40]!r})")
        return conversation_id

    def _build_prompt(self, turn: TurnInput) -> str | list[Any]:
        if not turn.images and not turn.files:
            return turn.message
        parts: list[Any] = [turn.message]
        for uri in turn.images:
            image = decode_image(uri)
            parts.append(BinaryContent(data=image.data, media_type=image.media_type))
        for attachment in turn.files:
            doc = decode_file(attachment)
            parts.append(BinaryContent(data=doc.data, media_type=doc.media_type))
        return parts

    def _resume_state(self, turn: TurnInput) -> tuple[list, DeferredToolResults]:
        pending = self._pending.pop(turn.previous_response_id or "")
        if pending is None:
            raise UpstreamError(f"No pending approval for response '{turn.previous_response_id}'")
        if pending.conversation_id != turn.conversation_id:
            raise UpstreamError("Approval response does not belong to this conversation")

        decision = turn.mcp_approval
        results = DeferredToolResults()
        for call_id in pending.tool_call_ids:
            if call_id == decision.approval_request_id:
                results.approvals[call_id] = (
                    True if decision.approved else ToolDenied("The user rejected this tool call.")
                )
            else:
                results.approvals[call_id] = ToolDenied("Only one tool approval is handled per turn.")
        return pending.messages, results

    # -- streaming ------------------------------------------------------

    async def stream_message(self, turn: TurnInput) -> AsyncIterator[StreamItem]:
        definition = self.resolve_agent(turn.agent_id)
        agent = self._get_agent(definition)

        deferred_results = None
        if turn.mcp_approval is not None:
            history, deferred_results = self._resume_state(turn)
            prompt = turn.message or None
        else:
            history = list(self._history.get(turn.conversation_id, []))
            prompt = self._build_prompt(turn)

        iter_kwargs: dict[str, Any] = {}
        if history:
            iter_kwargs["message_history"] = history
        if deferred_results is not None:
            iter_kwargs["deferred_tool_results"] = deferred_results

        async with agent.iter(prompt, **iter_kwargs) as agent_run:
            async for node in agent_run:
                # Only model requests carry text; tool nodes run silently
                if Agent.is_model_request_node(node):
                    async with node.stream(agent_run.ctx) as request_stream:
                        async for event in request_stream:
                            text = extract_text_delta(event)
                            if text:
                                yield TextDelta(content=text)

            result = agent_run.result
            usage = usage_snapshot(agent_run.usage())

        messages = result.all_messages()
        output = result.output

        if isinstance(output, DeferredToolRequests) and output.approvals:
            call = output.approvals[0]
            response_id = f"resp_{uuid.uuid4().hex[:12]}"
            self._pending.set(response_id, _PendingApproval(
                conversation_id=turn.conversation_id,
                messages=messages,
                tool_call_ids=[c.tool_call_id for c in output.approvals],
            ))
            logger.info(f"Tool approval required: {call.tool_name} ({response_id})")
            yield ApprovalRequest(
                id=call.tool_call_id,
                tool_name=call.tool_name,
                server_label=definition.name,
                arguments=call.args_as_json_str(),
                response_id=response_id,
            )
            return

        self._history.set(turn.conversation_id, messages)
        yield usage

    @property
    def provider_name(self) -> str:
        return "pydantic-ai"
