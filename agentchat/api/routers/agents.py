"""Agents router - agent metadata and CRUD.

Provides:
- GET  /agent        - Default agent metadata (name, description, model, metadata)
- GET  /agent/info   - Debug description of the default agent
- POST /agents       - Create an agent
- GET  /agents       - List agents

Thin validation around ``AgentService``; unexpected errors become
problem responses.
"""

from fastapi import APIRouter, Depends, Query, Response
from loguru import logger

from agentchat.api.auth import require_chat_scope
from agentchat.api.dependencies import exception_problem, get_agent_service, get_settings, problem
from agentchat.models.agents import (
    AgentListResponse,
    AgentMetadata,
    CreateAgentRequest,
    CreateAgentResponse,
)
from agentchat.services.agent_service import AgentService
from agentchat.settings import Settings

router = APIRouter(tags=["agents"], dependencies=[Depends(require_chat_scope)])


@router.get("/agent", response_model=AgentMetadata)
async def get_agent_metadata(
    agent_service: AgentService = Depends(get_agent_service),
    settings: Settings = Depends(get_settings),
):
    """Metadata for the default agent, used for the chat header and starter prompts."""
    try:
        return await agent_service.get_agent_metadata()
    except Exception as e:
        logger.exception(f"Failed to load agent metadata: {e}")
        return exception_problem(e, 500, settings)


@router.get("/agent/info")
async def get_agent_info(
    agent_service: AgentService = Depends(get_agent_service),
    settings: Settings = Depends(get_settings),
):
    try:
        info = await agent_service.get_agent_info()
        return {"info": info, "status": "ready"}
    except Exception as e:
        logger.exception(f"Failed to load agent info: {e}")
        return exception_problem(e, 500, settings)


@router.post("/agents", response_model=CreateAgentResponse, status_code=201)
async def create_agent(
    request: CreateAgentRequest,
    response: Response,
    agent_service: AgentService = Depends(get_agent_service),
    settings: Settings = Depends(get_settings),
):
    if not request.name.strip():
        return problem(400, "Invalid Request", "Name is required.")
    if not request.model.strip():
        return problem(400, "Invalid Request", "Model is required.")
    if not request.instructions.strip():
        return problem(400, "Invalid Request", "Instructions are required.")

    try:
        created = await agent_service.create_agent(request)
    except Exception as e:
        logger.exception(f"Failed to create agent {request.name!r}: {e}")
        return exception_problem(e, 500, settings)

    response.headers["Location"] = f"/api/agents/{created.name}"
    return created


@router.get("/agents", response_model=AgentListResponse)
async def list_agents(
    limit: int | None = Query(default=None, ge=1),
    agent_service: AgentService = Depends(get_agent_service),
    settings: Settings = Depends(get_settings),
):
    try:
        return await agent_service.list_agents(limit)
    except Exception as e:
        logger.exception(f"Failed to list agents: {e}")
        return exception_problem(e, 500, settings)
