"""agentchat - Streaming chat front end for hosted AI agents."""

__version__ = "0.1.0"

from agentchat.models.chat import ChatTurnRequest, FileAttachment, McpApprovalResponse

__all__ = ["ChatTurnRequest", "FileAttachment", "McpApprovalResponse"]
