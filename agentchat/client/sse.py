"""SSE decoding for the chat stream.

The server writes flat records::

    data: {"type": "chunk", "content": "Hel"}

and the decoder hands them to the client re-nested::

    SseEvent(type="chunk", data={"content": "Hel"})

The reshaping is intentional: reducers switch on ``type`` and read the
payload from ``data`` without caring which fields a record kind carries.

Transport chunks can split a record anywhere, including inside a
multi-byte UTF-8 character. ``SseDecoder`` keeps the unterminated tail
between feeds. Malformed lines are logged and skipped; decoding never
raises.
"""

import codecs
import json
import re
from typing import Any, AsyncIterable, AsyncIterator

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

DATA_PREFIX = "data: "

_LINE_SPLIT = re.compile(r"\r?\n")


class SseEvent(BaseModel):
    """A decoded stream record: its ``type`` and every other field as ``data``."""

    model_config = ConfigDict(frozen=True)

    type: str
    data: dict[str, Any] = Field(default_factory=dict)


def split_sse_buffer(buffer: str) -> tuple[list[str], str]:
    """Split ``buffer`` into complete lines and the unterminated remainder."""
    parts = _LINE_SPLIT.split(buffer)
    return parts[:-1], parts[-1]


def parse_sse_line(line: str) -> SseEvent | None:
    """Parse one line. Returns None for blank, non-data or malformed lines.

    A record needs a non-empty string ``type``. Records whose type is any
    other JSON value (number, boolean, object) are skipped like malformed
    JSON; the server only ever writes string types.
    """
    line = line.strip()
    if not line.startswith(DATA_PREFIX):
        return None

    payload = line[len(DATA_PREFIX):]
    try:
        record = json.loads(payload)
    except json.JSONDecodeError as e:
        logger.warning(f"Skipping malformed SSE record: {e} ({payload[:80]!r})")
        return None

    if not isinstance(record, dict):
        logger.warning(f"Skipping SSE record that is not an object: {payload[:80]!r}")
        return None
    event_type = record.pop("type", None)
    if not isinstance(event_type, str) or not event_type:
        logger.warning(f"Skipping SSE record without a type: {payload[:80]!r}")
        return None

    return SseEvent(type=event_type, data=record)


class SseDecoder:
    """Incremental decoder. Feed transport chunks, get whole events back."""

    def __init__(self):
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: str | bytes) -> list[SseEvent]:
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        self._buffer += chunk
        lines, self._buffer = split_sse_buffer(self._buffer)
        return [event for event in map(parse_sse_line, lines) if event is not None]

    def flush(self) -> list[SseEvent]:
        """Process whatever is left once the transport has ended."""
        tail = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        lines, remainder = split_sse_buffer(tail)
        lines.append(remainder)
        return [event for event in map(parse_sse_line, lines) if event is not None]


async def iter_sse_events(chunks: AsyncIterable[str | bytes]) -> AsyncIterator[SseEvent]:
    """Decode an async stream of transport chunks into events, in arrival order."""
    decoder = SseDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
    for event in decoder.flush():
        yield event
