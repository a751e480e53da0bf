"""agentchat API module.

Provides:
- FastAPI application factory (create_app)
- Auth dependency (require_chat_scope)
"""

from agentchat.api.auth import Principal, TokenValidator, require_chat_scope
from agentchat.api.main import create_app

__all__ = [
    "Principal",
    "TokenValidator",
    "create_app",
    "require_chat_scope",
]
