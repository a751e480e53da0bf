"""agentchat CLI - Command Line Interface."""

import asyncio
import base64
import json
import mimetypes
from pathlib import Path

import click

from agentchat import __version__


@click.group()
@click.version_option(__version__)
def cli():
    """agentchat - Streaming chat front end for hosted AI agents."""
    pass


@cli.command()
@click.option("--host", "-h", default="0.0.0.0", help="Host to bind")
@click.option("--port", "-p", default=8000, help="Port to bind")
@click.option("--reload/--no-reload", default=False, help="Enable auto-reload")
def serve(host: str, port: int, reload: bool):
    """Start the agentchat API server."""
    import uvicorn

    click.echo(f"Starting agentchat server v{__version__} on http://{host}:{port}")
    click.echo(f"  API docs: http://{host}:{port}/docs")
    click.echo(f"  Chat stream: http://{host}:{port}/api/chat/stream")
    uvicorn.run(
        "agentchat.api.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@cli.command()
@click.argument("message")
@click.option("--conversation", "-c", help="Continue an existing conversation id")
@click.option("--agent", "-a", "agent_id", help="Agent id to handle the turn")
@click.option(
    "--attach",
    "attachments",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="File or image to attach (repeatable)",
)
@click.option("--api-url", help="API base URL (default: CLIENT__API_URL)")
def chat(message: str, conversation: str | None, agent_id: str | None, attachments: tuple[Path, ...], api_url: str | None):
    """
    Send a message and stream the reply.

    Examples:
        agentchat chat "test citations"
        agentchat chat "test approval"
        agentchat chat "What is in this image?" --attach photo.png
        agentchat chat "Tell me more" --conversation conv_1a2b3c
    """
    asyncio.run(_chat_async(message, conversation, agent_id, list(attachments), api_url))


def _attachment_from_path(path: Path):
    from agentchat.models.chat import FileAttachment

    mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return FileAttachment(
        data_uri=f"data:{mime_type};base64,{encoded}",
        file_name=path.name,
        mime_type=mime_type,
    )


async def _chat_async(
    message: str,
    conversation_id: str | None,
    agent_id: str | None,
    paths: list[Path],
    api_url: str | None,
):
    """Async implementation of chat command."""
    from agentchat.client import ChatService, ChatSession, ChatSessionState
    from agentchat.client.state import ApprovalCard, open_message
    from agentchat.settings import settings

    session = ChatSession(ChatSessionState(current_conversation_id=conversation_id))
    printed = {"id": None, "length": 0}

    def print_delta(state: ChatSessionState) -> None:
        current = open_message(state)
        if current is None:
            return
        if current.id != printed["id"]:
            printed["id"], printed["length"] = current.id, 0
        click.echo(current.text[printed["length"]:], nl=False)
        printed["length"] = len(current.text)

    session.subscribe(print_delta)

    async def token_provider() -> str | None:
        return settings.client.access_token

    async with ChatService(session, api_url=api_url, token_provider=token_provider) as service:
        if agent_id:
            service.set_agent_id(agent_id)

        attachments = [_attachment_from_path(p) for p in paths]
        state = await service.send_message(message, attachments)
        click.echo()

        while state.status == "idle" and state.messages and isinstance(state.messages[-1], ApprovalCard):
            card = state.messages[-1]
            arguments = card.arguments if isinstance(card.arguments, str) else json.dumps(card.arguments)
            click.echo(f"\nTool approval requested: {card.tool_name} ({card.server_label})")
            click.echo(f"  arguments: {arguments}")
            approved = click.confirm("Allow this tool call?", default=False)
            state = await service.send_mcp_approval(card.id, approved)
            click.echo()

        if state.status == "error":
            click.echo(f"Error: {state.last_error}", err=True)
            raise SystemExit(1)

        if state.last_usage is not None:
            usage = state.last_usage
            click.echo(
                f"\n[{usage.total_tokens} tokens "
                f"({usage.prompt_tokens} prompt, {usage.completion_tokens} completion), "
                f"{usage.duration / 1000:.1f}s]",
                err=True,
            )
        if state.current_conversation_id:
            click.echo(f"conversation: {state.current_conversation_id}", err=True)


@cli.command()
@click.option("--limit", "-l", default=None, type=int, help="Maximum agents to list")
@click.option("--api-url", help="API base URL (default: CLIENT__API_URL)")
def agents(limit: int | None, api_url: str | None):
    """List agents known to the server."""
    asyncio.run(_agents_async(limit, api_url))


async def _agents_async(limit: int | None, api_url: str | None):
    import httpx

    from agentchat.client import ChatService
    from agentchat.settings import settings

    async def token_provider() -> str | None:
        return settings.client.access_token

    async with ChatService(api_url=api_url, token_provider=token_provider) as service:
        try:
            result = await service.list_agents(limit)
        except httpx.HTTPError as e:
            click.echo(f"Error: could not list agents: {e}", err=True)
            raise SystemExit(1)

    click.echo(f"{result.total_count} agent(s)")
    for agent in result.agents:
        click.echo(f"  {agent.id:<24} {agent.model:<28} {agent.description or ''}")


if __name__ == "__main__":
    cli()
