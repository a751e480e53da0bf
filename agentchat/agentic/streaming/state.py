"""Streaming state management."""

import time
import uuid
from dataclasses import dataclass, field

from agentchat.services.agent_service import UsageSnapshot


@dataclass
class StreamingState:
    """Tracks one streaming response.

    Owned by a single request; never shared between requests.
    - Request identifier for log correlation
    - Conversation id once resolved
    - Upstream start time (for the usage record's duration)
    - Usage snapshot delivered by the upstream's terminal item
    - Counters for the completion log line
    """

    request_id: str = field(default_factory=lambda: f"req_{uuid.uuid4().hex[:8]}")
    conversation_id: str | None = None
    agent_id: str | None = None

    start_time: float | None = None
    usage: UsageSnapshot | None = None

    chunk_count: int = 0
    char_count: int = 0
    annotation_count: int = 0
    awaiting_approval: bool = False

    def mark_upstream_started(self) -> None:
        self.start_time = time.perf_counter()

    def elapsed_ms(self) -> float:
        """Milliseconds since the upstream was opened (0 if never opened)."""
        if self.start_time is None:
            return 0.0
        return (time.perf_counter() - self.start_time) * 1000

    def record_chunk(self, content: str) -> None:
        self.chunk_count += 1
        self.char_count += len(content)

    def record_annotations(self, count: int) -> None:
        self.annotation_count += count

    def final_usage(self) -> UsageSnapshot:
        """Usage to report, zero-filled when the upstream sent none."""
        return self.usage or UsageSnapshot()
