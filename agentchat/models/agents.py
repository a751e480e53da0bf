"""Agent definition models for the metadata and CRUD endpoints."""

import time
from typing import Any

from pydantic import Field

from agentchat.models.chat import WireModel


class AgentDefinition(WireModel):
    """An agent the service can route turns to."""

    id: str
    name: str
    model: str
    instructions: str
    version: str = "1"
    description: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    starter_prompts: list[str] = Field(default_factory=list)
    temperature: float | None = None
    top_p: float | None = None
    created_at: int = Field(default_factory=lambda: int(time.time()))


class CreateAgentRequest(WireModel):
    name: str
    model: str
    instructions: str
    description: str | None = None
    metadata: dict[str, str] | None = None
    temperature: float | None = None
    top_p: float | None = None


class CreateAgentResponse(WireModel):
    name: str
    version: str
    description: str | None = None
    model: str
    instructions: str
    created_at: int
    metadata: dict[str, str] | None = None


class AgentListItem(WireModel):
    name: str
    id: str
    description: str | None = None
    model: str
    created_at: int


class AgentListResponse(WireModel):
    agents: list[AgentListItem]
    total_count: int


class AgentMetadata(WireModel):
    """Display metadata for the agent picker and chat header."""

    id: str
    object: str = "agent"
    created_at: int
    name: str
    description: str | None = None
    model: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    starter_prompts: list[str] | None = None
