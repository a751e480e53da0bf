"""Request dependencies and shared response helpers."""

from fastapi import Request
from fastapi.responses import JSONResponse

from agentchat.services.agent_service import AgentService
from agentchat.services.errors import ErrorResponse, build_error_response
from agentchat.settings import Settings


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_agent_service(request: Request) -> AgentService:
    return request.app.state.agent_service


def problem_response(error: ErrorResponse) -> JSONResponse:
    """Render an ErrorResponse as application/problem+json."""
    return JSONResponse(
        status_code=error.status,
        content=error.to_problem(),
        media_type="application/problem+json",
    )


def problem(status: int, title: str, detail: str) -> JSONResponse:
    return problem_response(ErrorResponse(title=title, status=status, detail=detail))


def exception_problem(exc: Exception, status: int, settings: Settings) -> JSONResponse:
    return problem_response(build_error_response(exc, status, settings.is_development))
