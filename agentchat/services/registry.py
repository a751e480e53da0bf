"""In-memory agent registry.

Holds the default agent (from settings), agents seeded from an optional
YAML definitions file, and agents created through ``POST /api/agents``.

Definitions file format::

    agents:
      - id: travel-agent
        name: Travel Agent
        model: openai:gpt-4o
        instructions: You plan trips.
        starter_prompts: ["Plan a weekend in Lisbon"]
"""

import re
import threading
from pathlib import Path

import yaml
from loguru import logger

from agentchat.models.agents import (
    AgentDefinition,
    AgentListItem,
    AgentListResponse,
    CreateAgentRequest,
)
from agentchat.services.errors import AgentNotFoundError
from agentchat.settings import AgentSettings


def _slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "agent"


def _next_version(current: str) -> str:
    """Version after ``current``: "3" -> "4", "2024-06" -> "2024-06-r2" -> "2024-06-r3"."""
    current = current.strip()
    if current.isdigit():
        return str(int(current) + 1)
    base, sep, revision = current.rpartition("-r")
    if sep and base and revision.isdigit():
        return f"{base}-r{int(revision) + 1}"
    return f"{current or '0'}-r2"


class AgentRegistry:
    """Thread-safe store of agent definitions keyed by id."""

    def __init__(self, default: AgentDefinition):
        self._lock = threading.Lock()
        self._agents: dict[str, AgentDefinition] = {default.id: default}
        self._default_id = default.id

    @classmethod
    def from_settings(cls, agent_settings: AgentSettings) -> "AgentRegistry":
        default = AgentDefinition(
            id=_slugify(agent_settings.name),
            name=agent_settings.name,
            model=agent_settings.default_model,
            instructions=agent_settings.instructions,
            description=agent_settings.description,
            temperature=agent_settings.temperature,
            metadata={"logo": "Avatar_Default.svg"},
        )
        registry = cls(default)
        if agent_settings.definitions_file:
            registry.load_file(Path(agent_settings.definitions_file))
        return registry

    def load_file(self, path: Path) -> int:
        """Load agent definitions from YAML. Returns the number loaded."""
        if not path.exists():
            logger.warning(f"Agent definitions file not found: {path}")
            return 0
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        loaded = 0
        for raw in data.get("agents", []):
            raw.setdefault("id", _slugify(raw.get("name", "")))
            agent = AgentDefinition.model_validate(raw)
            with self._lock:
                self._agents[agent.id] = agent
            loaded += 1
        logger.info(f"Loaded {loaded} agent definitions from {path}")
        return loaded

    @property
    def default(self) -> AgentDefinition:
        with self._lock:
            return self._agents[self._default_id]

    def get(self, agent_id: str | None = None) -> AgentDefinition:
        """Return an agent by id, or the default agent when id is empty."""
        if not agent_id:
            return self.default
        with self._lock:
            agent = self._agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(f"Agent '{agent_id}' not found")
        return agent

    def create(self, request: CreateAgentRequest) -> AgentDefinition:
        """Register a new agent, or a new version of an existing name."""
        agent_id = _slugify(request.name)
        with self._lock:
            existing = self._agents.get(agent_id)
            version = _next_version(existing.version) if existing else "1"
            agent = AgentDefinition(
                id=agent_id,
                name=request.name,
                model=request.model,
                instructions=request.instructions,
                version=version,
                description=request.description,
                metadata=request.metadata or {},
                temperature=request.temperature,
                top_p=request.top_p,
            )
            self._agents[agent_id] = agent
        logger.info(f"Registered agent {agent_id} v{version} ({agent.model})")
        return agent

    def list(self, limit: int | None = None) -> AgentListResponse:
        with self._lock:
            agents = sorted(self._agents.values(), key=lambda a: a.created_at)
        total = len(agents)
        if limit is not None and limit > 0:
            agents = agents[:limit]
        return AgentListResponse(
            agents=[
                AgentListItem(
                    name=a.name,
                    id=a.id,
                    description=a.description,
                    model=a.model,
                    created_at=a.created_at,
                )
                for a in agents
            ],
            total_count=total,
        )
