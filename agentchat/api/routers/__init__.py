"""API routers for agentchat.

Routers:
- chat_router: streaming chat turns
- agents_router: agent metadata and CRUD
"""

from agentchat.api.routers.agents import router as agents_router
from agentchat.api.routers.chat import router as chat_router

__all__ = [
    "agents_router",
    "chat_router",
]
