"""agentchat settings with environment variable support."""

import os
from pathlib import Path

# Load .env file from project root
from dotenv import load_dotenv

# Find .env file - check current dir and parent dirs
def _find_env_file() -> Path | None:
    """Find .env file in current or parent directories."""
    current = Path.cwd()
    for _ in range(5):  # Check up to 5 levels
        env_file = current / ".env"
        if env_file.exists():
            return env_file
        current = current.parent
    # Also check package directory
    pkg_dir = Path(__file__).parent.parent
    env_file = pkg_dir / ".env"
    if env_file.exists():
        return env_file
    return None

env_file = _find_env_file()
if env_file:
    load_dotenv(env_file, override=True)  # Override shell vars with .env

from pydantic import BaseModel


def _csv_env(key: str, default: str = "") -> list[str]:
    """Read a comma separated env var as a list of non-empty items."""
    raw = os.getenv(key, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _default_provider() -> str:
    """Use the real agent backend only when a model key is configured."""
    if os.getenv("OPENAI_API_KEY") or os.getenv("ANTHROPIC_API_KEY"):
        return "pydantic-ai"
    return "simulator"


class AgentSettings(BaseModel):
    """Upstream agent settings."""

    provider: str = os.getenv("AGENT__PROVIDER", _default_provider())  # pydantic-ai or simulator
    default_model: str = os.getenv("AGENT__DEFAULT_MODEL", "openai:gpt-4o-mini")
    name: str = os.getenv("AGENT__NAME", "default-agent")
    description: str = os.getenv(
        "AGENT__DESCRIPTION", "Your intelligent conversational partner"
    )
    instructions: str = os.getenv(
        "AGENT__INSTRUCTIONS", "You are a helpful assistant. Answer clearly and concisely."
    )
    definitions_file: str | None = os.getenv("AGENT__DEFINITIONS_FILE")
    tools: list[str] = _csv_env("AGENT__TOOLS")  # dotted paths, e.g. myapp.tools:get_weather
    approval_tools: list[str] = _csv_env("AGENT__APPROVAL_TOOLS")  # names from tools
    temperature: float = float(os.getenv("AGENT__TEMPERATURE", "0.5"))
    max_conversations: int = int(os.getenv("AGENT__MAX_CONVERSATIONS", "1000"))
    max_pending_approvals: int = int(os.getenv("AGENT__MAX_PENDING_APPROVALS", "100"))
    approval_ttl_seconds: float = float(os.getenv("AGENT__APPROVAL_TTL_SECONDS", "900"))


class AuthSettings(BaseModel):
    """Bearer token settings for the /api routes."""

    enabled: bool = os.getenv("AUTH__ENABLED", "false").lower() == "true"
    required_scope: str = os.getenv("AUTH__REQUIRED_SCOPE", "Chat.ReadWrite")


class CorsSettings(BaseModel):
    """CORS settings. Development mode allows any localhost origin."""

    allowed_origins: list[str] = _csv_env("CORS__ALLOWED_ORIGINS", "http://localhost:8080")


class ClientSettings(BaseModel):
    """Settings for the chat client and CLI."""

    api_url: str = os.getenv("CLIENT__API_URL", "http://localhost:8000/api")
    timeout: float = float(os.getenv("CLIENT__TIMEOUT", "300"))
    access_token: str | None = os.getenv("CLIENT__ACCESS_TOKEN")


class Settings(BaseModel):
    """Application settings."""

    agent: AgentSettings = AgentSettings()
    auth: AuthSettings = AuthSettings()
    cors: CorsSettings = CorsSettings()
    client: ClientSettings = ClientSettings()
    environment: str = os.getenv("ENVIRONMENT", "development")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


settings = Settings()
