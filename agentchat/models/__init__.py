"""agentchat models."""

from agentchat.models.agents import (
    AgentDefinition,
    AgentListItem,
    AgentListResponse,
    AgentMetadata,
    CreateAgentRequest,
    CreateAgentResponse,
)
from agentchat.models.chat import (
    Annotation,
    ApprovalRequestInfo,
    ChatTurnRequest,
    FileAttachment,
    McpApprovalResponse,
    WireModel,
)

__all__ = [
    "AgentDefinition",
    "AgentListItem",
    "AgentListResponse",
    "AgentMetadata",
    "CreateAgentRequest",
    "CreateAgentResponse",
    "Annotation",
    "ApprovalRequestInfo",
    "ChatTurnRequest",
    "FileAttachment",
    "McpApprovalResponse",
    "WireModel",
]
