"""
Pytest configuration and shared fixtures for agentchat tests.

Test Organization:
- tests/unit/     - In-process tests: simulator upstream, TestModel, mock transports
"""

import json

import pytest

from agentchat.services.registry import AgentRegistry
from agentchat.services.simulator import SimulatorAgentService
from agentchat.settings import AgentSettings, AuthSettings, CorsSettings, Settings


@pytest.fixture
def agent_settings() -> AgentSettings:
    """Default agent configuration, independent of the local .env."""
    return AgentSettings(
        provider="simulator",
        default_model="test",
        name="Default Agent",
        description="A test agent for unit tests",
        instructions="You are a helpful assistant.",
        definitions_file=None,
        tools=[],
        approval_tools=[],
        temperature=0.5,
    )


@pytest.fixture
def test_settings(agent_settings) -> Settings:
    """Development settings with auth disabled."""
    return Settings(
        agent=agent_settings,
        auth=AuthSettings(enabled=False, required_scope="Chat.ReadWrite"),
        cors=CorsSettings(allowed_origins=["https://chat.example.com"]),
        environment="development",
    )


@pytest.fixture
def registry(agent_settings) -> AgentRegistry:
    return AgentRegistry.from_settings(agent_settings)


@pytest.fixture
def simulator_service(registry) -> SimulatorAgentService:
    """Scripted upstream with no per-chunk delay."""
    return SimulatorAgentService(registry, delay_ms=0)


@pytest.fixture
def parse_records():
    """Parse an SSE body into the list of flat JSON records."""

    def parse(body: str) -> list[dict]:
        return [
            json.loads(line[len("data: "):])
            for line in body.split("\n")
            if line.startswith("data: ")
        ]

    return parse
