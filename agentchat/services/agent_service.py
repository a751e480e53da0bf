"""
Upstream Agent Service Contract
===============================

The chat endpoint never talks to a model directly. It drives an
``AgentService``, which turns one user turn into an ordered, cancellable
async stream of typed items:

    TextDelta          incremental assistant text
    AnnotationsItem    citations for text already emitted
    ApprovalRequest    a tool call that needs a human decision
    UsageSnapshot      token accounting, always the LAST item of a run

The usage snapshot travels inside the stream as its terminal item. A
service object is shared by concurrent requests, so it must not keep a
"last usage" field that the endpoint reads after the fact.

STREAM CONTRACT
---------------

    async with aclosing(service.stream_message(...)) as items:
        async for item in items:
            ...

- Items arrive in emission order; consumers must not reorder them.
- A consumer may stop early (approval request) and close the iterator;
  implementations release their upstream resources in ``finally``.
- Cancellation arrives as ``asyncio.CancelledError`` at the pending
  ``__anext__``; implementations must let it propagate.
- Failures raise. ``TurnValidationError`` for bad input,
  ``AgentNotFoundError`` for an unknown agent id, anything else for
  backend trouble.

Implementations:
- ``PydanticAIAgentService`` (pydantic_agent.py): real model via pydantic-ai
- ``SimulatorAgentService`` (simulator.py): scripted, no LLM
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from agentchat.models.agents import (
    AgentDefinition,
    AgentListResponse,
    AgentMetadata,
    CreateAgentRequest,
    CreateAgentResponse,
)
from agentchat.models.chat import Annotation, FileAttachment, McpApprovalResponse
from agentchat.services.registry import AgentRegistry


@dataclass(frozen=True)
class TextDelta:
    content: str


@dataclass(frozen=True)
class AnnotationsItem:
    annotations: list[Annotation]


@dataclass(frozen=True)
class ApprovalRequest:
    """Tool call paused for approval.

    ``response_id`` is the continuation token the client sends back as
    ``previousResponseId`` to resume this exact model turn.
    """

    id: str
    tool_name: str
    server_label: str
    arguments: str | dict[str, Any] | None = None
    response_id: str | None = None


@dataclass(frozen=True)
class UsageSnapshot:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


StreamItem = TextDelta | AnnotationsItem | ApprovalRequest | UsageSnapshot


@dataclass
class TurnInput:
    """Everything the upstream needs for one turn."""

    conversation_id: str
    message: str
    images: list[str] = field(default_factory=list)
    files: list[FileAttachment] = field(default_factory=list)
    previous_response_id: str | None = None
    mcp_approval: McpApprovalResponse | None = None
    agent_id: str | None = None


def new_conversation_id() -> str:
    return f"conv_{uuid.uuid4().hex}"


class AgentService:
    """Base class for upstream agent services.

    Subclasses implement ``create_conversation`` and ``stream_message``.
    Agent metadata and CRUD go through the shared ``AgentRegistry``.
    """

    def __init__(self, registry: AgentRegistry):
        self.registry = registry

    async def create_conversation(self, first_message: str) -> str:
        """Create a conversation seeded by the first user message."""
        raise NotImplementedError

    def stream_message(self, turn: TurnInput) -> AsyncIterator[StreamItem]:
        """Stream one turn. See the module docstring for the contract."""
        raise NotImplementedError

    def resolve_agent(self, agent_id: str | None) -> AgentDefinition:
        return self.registry.get(agent_id)

    # -- metadata and CRUD (thin pass-through) ---------------------------

    async def get_agent_metadata(self) -> AgentMetadata:
        agent = self.registry.default
        return AgentMetadata(
            id=agent.id,
            created_at=agent.created_at,
            name=agent.name,
            description=agent.description,
            model=agent.model,
            metadata=dict(agent.metadata),
            starter_prompts=agent.starter_prompts or None,
        )

    async def get_agent_info(self) -> str:
        agent = self.registry.default
        return f"{agent.name} (id={agent.id}, model={agent.model}, provider={self.provider_name})"

    async def create_agent(self, request: CreateAgentRequest) -> CreateAgentResponse:
        agent = self.registry.create(request)
        return CreateAgentResponse(
            name=agent.name,
            version=agent.version,
            description=agent.description,
            model=agent.model,
            instructions=agent.instructions,
            created_at=agent.created_at,
            metadata=agent.metadata or None,
        )

    async def list_agents(self, limit: int | None = None) -> AgentListResponse:
        return self.registry.list(limit)

    @property
    def provider_name(self) -> str:
        return type(self).__name__
