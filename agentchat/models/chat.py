"""Chat request and stream payload models.

JSON field names are camelCase on the wire and snake_case in Python.
Both are accepted on input.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for models that cross the HTTP boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileAttachment(WireModel):
    """A document attachment sent inline as a base64 data URI."""

    data_uri: str
    file_name: str
    mime_type: str


class McpApprovalResponse(WireModel):
    """A user's decision on a tool call the agent asked to run."""

    approval_request_id: str
    approved: bool


class ChatTurnRequest(WireModel):
    """One user turn, or the resumption of a turn after a tool approval."""

    message: str
    conversation_id: str | None = None
    images: list[str] = Field(default_factory=list, alias="imageDataUris")
    files: list[FileAttachment] = Field(default_factory=list, alias="fileDataUris")
    previous_response_id: str | None = None
    mcp_approval: McpApprovalResponse | None = None
    agent_id: str | None = None

    @property
    def is_approval_resume(self) -> bool:
        return self.mcp_approval is not None


class Annotation(WireModel):
    """A citation attached to assistant output.

    Anchored either by offsets (start_index/end_index) or by a quoted
    substring (quote, or text_to_replace for inline citation markers).
    """

    type: str
    label: str
    url: str | None = None
    file_id: str | None = None
    text_to_replace: str | None = None
    start_index: int | None = None
    end_index: int | None = None
    quote: str | None = None

    def resolve_span(self, text: str) -> tuple[int, int] | None:
        """Return the (start, end) span of ``text`` this annotation covers."""
        if self.start_index is not None and self.end_index is not None:
            if 0 <= self.start_index <= self.end_index <= len(text):
                return self.start_index, self.end_index
        for needle in (self.text_to_replace, self.quote):
            if needle:
                pos = text.find(needle)
                if pos >= 0:
                    return pos, pos + len(needle)
        return None


class ApprovalRequestInfo(WireModel):
    """A tool call waiting for a human decision."""

    id: str
    tool_name: str
    server_label: str
    arguments: str | dict[str, Any] | None = None
    previous_response_id: str | None = None
