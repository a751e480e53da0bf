"""agentchat services."""

from loguru import logger

from agentchat.services.agent_service import (
    AgentService,
    AnnotationsItem,
    ApprovalRequest,
    StreamItem,
    TextDelta,
    TurnInput,
    UsageSnapshot,
)
from agentchat.services.bounded import BoundedStore
from agentchat.services.errors import (
    AgentChatError,
    AgentNotFoundError,
    AttachmentValidationError,
    TurnValidationError,
    UpstreamError,
    build_error_response,
)
from agentchat.services.registry import AgentRegistry
from agentchat.services.simulator import SimulatorAgentService
from agentchat.services.tools import resolve_tools
from agentchat.settings import Settings


def create_agent_service(settings: Settings) -> AgentService:
    """Build the upstream agent service selected by ``AGENT__PROVIDER``."""
    agent_settings = settings.agent
    registry = AgentRegistry.from_settings(agent_settings)
    provider = agent_settings.provider.lower()

    if provider == "simulator":
        logger.info("Using simulator agent service (no LLM)")
        return SimulatorAgentService(
            registry,
            max_pending_approvals=agent_settings.max_pending_approvals,
            approval_ttl=agent_settings.approval_ttl_seconds,
        )

    if provider in ("pydantic-ai", "pydantic_ai"):
        # Imported lazily: pydantic-ai pulls in model provider SDKs
        from agentchat.services.pydantic_agent import PydanticAIAgentService

        logger.info(f"Using pydantic-ai agent service (model={agent_settings.default_model})")
        return PydanticAIAgentService(
            registry,
            tools=resolve_tools(agent_settings.tools),
            approval_tools=agent_settings.approval_tools,
            max_conversations=agent_settings.max_conversations,
            max_pending_approvals=agent_settings.max_pending_approvals,
            approval_ttl=agent_settings.approval_ttl_seconds,
        )

    raise ValueError(f"Unknown agent provider: {settings.agent.provider}")


__all__ = [
    "AgentService",
    "AnnotationsItem",
    "ApprovalRequest",
    "StreamItem",
    "TextDelta",
    "TurnInput",
    "UsageSnapshot",
    "AgentChatError",
    "AgentNotFoundError",
    "AttachmentValidationError",
    "TurnValidationError",
    "UpstreamError",
    "build_error_response",
    "AgentRegistry",
    "SimulatorAgentService",
    "BoundedStore",
    "resolve_tools",
    "create_agent_service",
]
