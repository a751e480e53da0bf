"""Bearer token authorization for the /api routes.

Token validation itself belongs to the identity provider. The app is given
a ``TokenValidator``: a callable (sync or async) that takes the raw bearer
token and returns its claims, or raises if the token is invalid. Scopes
are read from the ``scp`` claim (space separated) or ``roles``.

With ``AUTH__ENABLED=false`` every request runs as a local development
principal holding the required scope.
"""

import inspect
from typing import Any, Awaitable, Callable

from fastapi import Depends, HTTPException, Request
from loguru import logger
from pydantic import BaseModel, Field

from agentchat.settings import Settings

TokenValidator = Callable[[str], dict[str, Any] | Awaitable[dict[str, Any]]]


class Principal(BaseModel):
    """The authenticated caller."""

    id: str = "unknown"
    name: str = "unknown"
    scopes: list[str] = Field(default_factory=list)

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "Principal":
        scopes: list[str] = []
        scp = claims.get("scp")
        if isinstance(scp, str):
            scopes.extend(scp.split())
        elif isinstance(scp, list):
            scopes.extend(str(s) for s in scp)
        roles = claims.get("roles")
        if isinstance(roles, list):
            scopes.extend(str(r) for r in roles)
        return cls(
            id=str(claims.get("oid") or claims.get("sub") or "unknown"),
            name=str(claims.get("name") or "unknown"),
            scopes=scopes,
        )


async def get_principal(request: Request) -> Principal:
    settings: Settings = request.app.state.settings
    if not settings.auth.enabled:
        return Principal(id="local-dev", name="Local Developer", scopes=[settings.auth.required_scope])

    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Missing bearer token")

    validator: TokenValidator | None = getattr(request.app.state, "token_validator", None)
    if validator is None:
        logger.error("AUTH__ENABLED is set but no token validator is configured")
        raise HTTPException(status_code=401, detail="Token validation is not configured")

    try:
        claims = validator(token.strip())
        if inspect.isawaitable(claims):
            claims = await claims
    except Exception as e:
        logger.warning(f"Token rejected: {e}")
        raise HTTPException(status_code=401, detail="Invalid bearer token") from e

    return Principal.from_claims(claims)


async def require_chat_scope(
    request: Request,
    principal: Principal = Depends(get_principal),
) -> Principal:
    """Require the configured chat scope (``Chat.ReadWrite`` by default)."""
    required = request.app.state.settings.auth.required_scope
    if required not in principal.scopes:
        raise HTTPException(status_code=403, detail=f"Missing required scope: {required}")
    return principal
