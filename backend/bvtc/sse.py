"""Minimal text/event-stream decoder for aiohttp response bodies."""
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Optional


@dataclass
class ServerSentEvent:
    event: str = "message"
    data: str = ""
    id: Optional[str] = None
    retry: Optional[int] = None


async def iter_sse_events(lines: AsyncIterable[bytes]) -> AsyncIterator[ServerSentEvent]:
    """
    Fold raw lines (``resp.content`` yields them one by one) into events.

    An event is dispatched on a blank line; an event still open when the
    stream ends is discarded.
    """
    event_name = ""
    data_lines = []
    last_id = None
    retry = None

    async for raw in lines:
        line = raw.decode("utf-8", errors="replace").rstrip("\r\n")

        if not line:
            if data_lines or event_name:
                yield ServerSentEvent(
                    event=event_name or "message",
                    data="\n".join(data_lines),
                    id=last_id,
                    retry=retry,
                )
            event_name = ""
            data_lines = []
            continue

        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "event":
            event_name = value
        elif field == "data":
            data_lines.append(value)
        elif field == "id":
            last_id = value
        elif field == "retry" and value.isdigit():
            retry = int(value)
