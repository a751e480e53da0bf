"""
Simulator Agent Service - Scripted Upstream for UI and Protocol Testing
=======================================================================

Produces the same item stream a real agent would, without an LLM. Lets
the browser client, the CLI and the tests exercise every wire record.

Supported test modes (based on prompt):
- "help"            - Show available test modes
- "test text"       - Markdown text streaming
- "test citations"  - Text followed by annotations (offset and quote anchored)
- "test approval"   - Text, then a tool approval request; resume to finish
- "test error"      - Text, then an upstream failure
- anything else     - Echo the prompt back word by word

Resuming an approval (``previous_response_id`` + ``mcp_approval``) streams
the tool outcome and completes the turn. An unknown or expired continuation token
fails the turn.
"""

import asyncio
import uuid
from typing import AsyncIterator

from loguru import logger

from agentchat.models.chat import Annotation
from agentchat.services.agent_service import (
    AgentService,
    AnnotationsItem,
    ApprovalRequest,
    StreamItem,
    TextDelta,
    TurnInput,
    UsageSnapshot,
    new_conversation_id,
)
from agentchat.services.bounded import BoundedStore
from agentchat.services.errors import UpstreamError
from agentchat.services.registry import AgentRegistry


SAMPLE_MARKDOWN = """# Simulator Response

This is a **simulated response** demonstrating markdown rendering.

1. **Headers** - H1 and H2 levels
2. **Text formatting** - Bold, *italic*, `inline code`

```python
def hello_world():
    return "Hello from the simulator!"
```
"""

CITED_TEXT = "The Eiffel Tower is 330 metres tall [1]. It was completed in 1889 [2]."

HELP_TEXT = """# Simulator - Help

| Command | Records generated |
|---------|-------------------|
| `test text` | chunk |
| `test citations` | chunk, annotations |
| `test approval` | chunk, mcpApprovalRequest |
| `test error` | chunk, error |

Any other message is echoed back.
"""

SIMULATOR_TOOL = "get_weather"
SIMULATOR_SERVER = "simulator-mcp"


def parse_test_mode(prompt: str) -> str:
    """Pick the scripted mode for a prompt."""
    prompt_lower = prompt.lower().strip()
    if prompt_lower == "help":
        return "help"
    for mode in ("text", "citations", "approval", "error"):
        if f"test {mode}" in prompt_lower:
            return mode
    return "echo"


def _split_words(text: str) -> list[str]:
    """Split text into chunks that concatenate back to the original."""
    chunks: list[str] = []
    current = ""
    for ch in text:
        current += ch
        if ch == " ":
            chunks.append(current)
            current = ""
    if current:
        chunks.append(current)
    return chunks


class SimulatorAgentService(AgentService):
    """AgentService that streams scripted responses."""

    def __init__(
        self,
        registry: AgentRegistry,
        delay_ms: int = 30,
        *,
        max_pending_approvals: int = 100,
        approval_ttl: float | None = 900.0,
    ):
        super().__init__(registry)
        self.delay = delay_ms / 1000.0
        # response_id -> request
        self._pending: BoundedStore[ApprovalRequest] = BoundedStore(
            max_pending_approvals, ttl=approval_ttl, name="simulator approvals"
        )

    async def create_conversation(self, first_message: str) -> str:
        conversation_id = new_conversation_id()
        logger.debug(f"Simulator conversation created: {conversation_id} ({first_message[:40]!r})")
        return conversation_id

    async def stream_message(self, turn: TurnInput) -> AsyncIterator[StreamItem]:
        agent = self.resolve_agent(turn.agent_id)
        output_tokens = 0

        async def emit_text(text: str) -> AsyncIterator[TextDelta]:
            nonlocal output_tokens
            for chunk in _split_words(text):
                output_tokens += 1
                yield TextDelta(content=chunk)
                if self.delay:
                    await asyncio.sleep(self.delay)

        if turn.mcp_approval is not None:
            async for item in self._resume(turn, emit_text):
                yield item
            yield UsageSnapshot(
                input_tokens=1, output_tokens=output_tokens, total_tokens=1 + output_tokens
            )
            return

        mode = parse_test_mode(turn.message)
        input_tokens = len(turn.message.split()) + len(turn.images) + len(turn.files)
        logger.debug(f"Simulator [{agent.id}] mode={mode}")

        if mode == "help":
            async for item in emit_text(HELP_TEXT):
                yield item

        elif mode == "text":
            async for item in emit_text(SAMPLE_MARKDOWN):
                yield item

        elif mode == "citations":
            first, second = CITED_TEXT.split(". ", 1)
            async for item in emit_text(first + ". "):
                yield item
            yield AnnotationsItem(annotations=[
                Annotation(
                    type="url_citation",
                    label="[1]",
                    url="https://www.toureiffel.paris/en/the-monument/key-figures",
                    text_to_replace="[1]",
                    start_index=CITED_TEXT.index("[1]"),
                    end_index=CITED_TEXT.index("[1]") + 3,
                ),
            ])
            async for item in emit_text(second):
                yield item
            yield AnnotationsItem(annotations=[
                Annotation(
                    type="file_citation",
                    label="history.pdf",
                    file_id="file_simulator_1",
                    quote="completed in 1889",
                ),
            ])

        elif mode == "approval":
            async for item in emit_text("Let me check the weather for you. "):
                yield item
            request = ApprovalRequest(
                id=f"mcpr_{uuid.uuid4().hex[:12]}",
                tool_name=SIMULATOR_TOOL,
                server_label=SIMULATOR_SERVER,
                arguments='{"location": "Seattle"}',
                response_id=f"resp_{uuid.uuid4().hex[:12]}",
            )
            self._pending.set(request.response_id, request)
            yield request
            # Stream consumers stop here. Anything below is never pulled.
            async for item in emit_text("(unreachable after approval)"):
                yield item

        elif mode == "error":
            async for item in emit_text("Starting to answer, but "):
                yield item
            raise UpstreamError("Simulated upstream failure")

        else:
            async for item in emit_text(f"You said: {turn.message}"):
                yield item

        yield UsageSnapshot(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
        )

    async def _resume(self, turn: TurnInput, emit_text) -> AsyncIterator[StreamItem]:
        pending = self._pending.pop(turn.previous_response_id or "")
        if pending is None or pending.id != turn.mcp_approval.approval_request_id:
            raise UpstreamError(
                f"No pending approval for response '{turn.previous_response_id}'"
            )
        if turn.mcp_approval.approved:
            text = f"The {pending.tool_name} tool returned: 18°C and cloudy in Seattle."
        else:
            text = f"The {pending.tool_name} call was rejected, so I can't check the weather."
        async for item in emit_text(text):
            yield item

    @property
    def provider_name(self) -> str:
        return "simulator"
