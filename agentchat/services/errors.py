"""Service exceptions and the problem-details error factory.

Every error that leaves the server, as an HTTP problem response or as an
in-band SSE error record, goes through ``build_error_response`` so the
same rule applies everywhere: exception details only in development.
"""

from typing import Any

from pydantic import BaseModel, Field


class AgentChatError(Exception):
    """Base class for agentchat service errors."""


class TurnValidationError(AgentChatError, ValueError):
    """A chat turn request is malformed."""


class AttachmentValidationError(TurnValidationError):
    """An image or file attachment could not be decoded or is not allowed."""


class AgentNotFoundError(AgentChatError, LookupError):
    """The requested agent id is not registered."""


class UpstreamError(AgentChatError):
    """The agent backend failed while producing a turn."""


class ErrorResponse(BaseModel):
    """RFC 7807 style problem description."""

    title: str
    status: int
    detail: str | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)

    def to_problem(self) -> dict[str, Any]:
        body: dict[str, Any] = {"title": self.title, "status": self.status}
        if self.detail:
            body["detail"] = self.detail
        body.update(self.extensions)
        return body


_TITLES = {
    400: "Invalid Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    500: "An error occurred while processing your request",
    502: "Agent service error",
}

_GENERIC_DETAIL = {
    400: "The request could not be processed. Check attachments and try again.",
    404: "The requested resource was not found.",
    500: "An unexpected error occurred. Please try again.",
    502: "The agent service is unavailable. Please try again.",
}


def build_error_response(
    exc: BaseException,
    status: int,
    include_details: bool,
) -> ErrorResponse:
    """Create a problem description for an exception.

    Validation errors always carry their message: it is written for the
    user. Other errors only expose the exception message and type when
    ``include_details`` is set (development).
    """
    title = _TITLES.get(status, _TITLES[500])

    if isinstance(exc, TurnValidationError) or status == 400:
        return ErrorResponse(title=title, status=status, detail=str(exc) or _GENERIC_DETAIL[400])

    if include_details:
        return ErrorResponse(
            title=title,
            status=status,
            detail=str(exc) or type(exc).__name__,
            extensions={"exceptionType": type(exc).__name__},
        )

    return ErrorResponse(
        title=title,
        status=status,
        detail=_GENERIC_DETAIL.get(status, _GENERIC_DETAIL[500]),
    )
