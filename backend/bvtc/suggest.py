"""
AI 标题建议 (SSE 流式)

The backend answers ``bilibili/suggest-title-batch/stream`` with an event
stream: ``open``, one placeholder ``progress`` per bvid, then one
``progress`` per finished item (``suggestedTitle`` or ``error``), periodic
``ping`` and a final ``done``.
"""
import asyncio
import json
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence, Union

from .errors import BvtcError, FlowError, StreamAborted, TransportError
from .sse import ServerSentEvent

logger = logging.getLogger(__name__)


@dataclass
class Progress:
    bvid: str
    suggested_title: str = ""
    error: str = ""

    @property
    def resolved(self) -> bool:
        return bool(self.suggested_title or self.error)


@dataclass
class Done:
    pass


StreamEvent = Union[Progress, Done]


class StreamBroken(BvtcError):
    """The server reported a connection-level failure on the stream."""


def decode_event(sse: ServerSentEvent) -> Optional[StreamEvent]:
    """Turn a raw event into Progress / Done; None for events we ignore."""
    if sse.event == "done":
        return Done()

    if sse.event == "error":
        try:
            message = json.loads(sse.data).get("message", "")
        except (ValueError, AttributeError):
            message = sse.data
        raise StreamBroken(message or "stream error")

    if sse.event not in ("progress", "message"):
        # open / ping
        return None

    try:
        payload = json.loads(sse.data)
    except ValueError:
        logger.warning("Dropping undecodable progress event: %r", sse.data)
        return None
    if not isinstance(payload, dict) or not payload.get("bvid"):
        return None

    return Progress(
        bvid=payload["bvid"],
        suggested_title=(payload.get("suggestedTitle") or "").strip(),
        error=payload.get("error") or "",
    )


async def stream_events(client, bvids: Sequence[str]) -> AsyncIterator[StreamEvent]:
    async with aclosing(client.stream_suggestions(bvids)) as raw_events:
        async for sse in raw_events:
            event = decode_event(sse)
            if event is not None:
                yield event


@dataclass
class SuggestionResult:
    titles: Dict[str, str] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    reconnects: int = 0


class SuggestionStreamer:
    """
    Folds streamed title suggestions into a title map.

    Args:
        client: ApiClient (anything with ``stream_suggestions``)
        apply: called with (bvid, title) for every non-empty suggestion
        max_retries: reconnect budget for dropped streams
        retry_delay: seconds to wait before reconnecting
    """

    def __init__(self, client, apply: Callable[[str, str], None],
                 max_retries: int = 3, retry_delay: float = 1.0):
        self.client = client
        self.apply = apply
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.last_result: Optional[SuggestionResult] = None
        self.last_error: str = ""
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def suggesting(self) -> bool:
        return self._running

    async def run(self, bvids: Sequence[str]) -> SuggestionResult:
        """Stream suggestions for ``bvids`` and return once ``done`` arrives."""
        if self._running:
            raise FlowError("正在生成标题，请稍候")
        self._running = True
        try:
            return await self._consume(bvids)
        finally:
            self._running = False

    def start(self, bvids: Sequence[str]) -> asyncio.Task:
        """Run in the background; the page polls ``suggesting``."""
        if self._running:
            raise FlowError("正在生成标题，请稍候")
        self._running = True
        self.last_error = ""
        self._task = asyncio.create_task(self._run_in_background(list(bvids)))
        return self._task

    async def _run_in_background(self, bvids: List[str]):
        me = asyncio.current_task()
        try:
            await self._consume(bvids)
        except BvtcError as e:
            logger.error("Title suggestion failed: %s", e.message)
            self.last_error = e.message
        except Exception:
            logger.exception("Title suggestion crashed")
            self.last_error = "标题生成失败"
        finally:
            # A cancelled run must not clear the flag of the run that replaced it
            if self._task is me:
                self._running = False

    def cancel(self):
        """Close a running stream. Safe to call any number of times."""
        task = self._task
        if task is not None and not task.done():
            task.cancel()
        self._task = None
        # A task cancelled before its first step never reaches its finally
        self._running = False

    async def _consume(self, bvids: Sequence[str]) -> SuggestionResult:
        pending = list(dict.fromkeys(bvids))
        result = SuggestionResult()
        self.last_result = result
        if not pending:
            return result

        while True:
            try:
                async with aclosing(stream_events(self.client, list(pending))) as events:
                    async for event in events:
                        if isinstance(event, Done):
                            logger.info("Title suggestions done: %d ok, %d failed",
                                        len(result.titles), len(result.errors))
                            return result
                        self._fold(event, result, pending)
                reason = "stream closed before done"
            except (TransportError, StreamBroken) as e:
                reason = e.message

            if not pending:
                # Everything arrived, only the closing event was lost
                return result
            if result.reconnects >= self.max_retries:
                raise StreamAborted(f"标题生成中断: {reason}")
            result.reconnects += 1
            logger.warning("Suggestion stream dropped (%s), reconnecting %d/%d for %d videos",
                           reason, result.reconnects, self.max_retries, len(pending))
            await asyncio.sleep(self.retry_delay)

    def _fold(self, event: Progress, result: SuggestionResult, pending: List[str]):
        if not event.resolved:
            return
        if event.suggested_title:
            result.titles[event.bvid] = event.suggested_title
            result.errors.pop(event.bvid, None)
            self.apply(event.bvid, event.suggested_title)
        else:
            logger.warning("No title suggestion for %s: %s", event.bvid, event.error)
            result.errors[event.bvid] = event.error
        if event.bvid in pending:
            pending.remove(event.bvid)
