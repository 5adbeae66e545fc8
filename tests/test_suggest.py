"""AI 标题建议流测试"""
import asyncio

import pytest

from bvtc.errors import FlowError, NetworkError, StreamAborted
from bvtc.sse import ServerSentEvent
from bvtc.suggest import Done, Progress, StreamBroken, SuggestionStreamer, decode_event

from conftest import done, progress


def _streamer(client, titles, max_retries=3):
    return SuggestionStreamer(client, lambda bvid, title: titles.__setitem__(bvid, title),
                              max_retries=max_retries, retry_delay=0)


class TestDecodeEvent:
    def test_progress(self):
        event = decode_event(progress("BV1", title=" 晴天 "))
        assert event == Progress(bvid="BV1", suggested_title="晴天")
        assert event.resolved

    def test_placeholder_is_unresolved(self):
        assert not decode_event(progress("BV1")).resolved

    def test_done(self):
        assert isinstance(decode_event(done()), Done)

    @pytest.mark.parametrize("sse", [
        ServerSentEvent(event="open", data="{}"),
        ServerSentEvent(event="ping", data="{}"),
        ServerSentEvent(event="progress", data="not json"),
        ServerSentEvent(event="progress", data='{"error": "no bvid"}'),
    ])
    def test_ignored(self, sse):
        assert decode_event(sse) is None

    def test_error_event(self):
        with pytest.raises(StreamBroken, match="upstream closed"):
            decode_event(ServerSentEvent(event="error", data='{"message": "upstream closed"}'))


class TestSuggestionStreamer:
    async def test_collects_every_title_before_returning(self, fake_client):
        fake_client.stream_scripts = [[
            ServerSentEvent(event="open", data="{}"),
            progress("BV1"), progress("BV2"),
            progress("BV1", title="X1"),
            progress("BV2", title="X2"),
            done(),
        ]]
        titles = {}
        result = await _streamer(fake_client, titles).run(["BV1", "BV2"])

        assert titles == {"BV1": "X1", "BV2": "X2"}
        assert result.titles == titles
        assert result.reconnects == 0
        assert fake_client.stream_calls == [["BV1", "BV2"]]

    async def test_item_error_keeps_others(self, fake_client):
        fake_client.stream_scripts = [[
            progress("BV1", title="X1"),
            progress("BV2", error="字幕获取失败"),
            done(),
        ]]
        titles = {}
        result = await _streamer(fake_client, titles).run(["BV1", "BV2"])

        assert titles == {"BV1": "X1"}
        assert result.errors == {"BV2": "字幕获取失败"}

    async def test_reconnects_for_unresolved_only(self, fake_client):
        fake_client.stream_scripts = [
            [progress("BV1", title="X1"), NetworkError()],
            [progress("BV2", title="X2"), done()],
        ]
        titles = {}
        result = await _streamer(fake_client, titles).run(["BV1", "BV2"])

        assert titles == {"BV1": "X1", "BV2": "X2"}
        assert result.reconnects == 1
        assert fake_client.stream_calls == [["BV1", "BV2"], ["BV2"]]

    async def test_error_event_triggers_reconnect(self, fake_client):
        fake_client.stream_scripts = [
            [ServerSentEvent(event="error", data='{"message": "boom"}')],
            [progress("BV1", title="X1"), done()],
        ]
        titles = {}
        result = await _streamer(fake_client, titles).run(["BV1"])
        assert titles == {"BV1": "X1"}
        assert result.reconnects == 1

    async def test_gives_up_after_budget(self, fake_client):
        fake_client.stream_scripts = [[NetworkError()] for _ in range(5)]
        titles = {}
        with pytest.raises(StreamAborted):
            await _streamer(fake_client, titles, max_retries=2).run(["BV1"])
        assert len(fake_client.stream_calls) == 3

    async def test_lost_done_with_everything_resolved(self, fake_client):
        fake_client.stream_scripts = [[progress("BV1", title="X1")]]
        titles = {}
        result = await _streamer(fake_client, titles).run(["BV1"])
        assert titles == {"BV1": "X1"}
        assert len(fake_client.stream_calls) == 1

    async def test_duplicate_bvids_requested_once(self, fake_client):
        fake_client.stream_scripts = [[progress("BV1", title="X1"), done()]]
        await _streamer(fake_client, {}).run(["BV1", "BV1"])
        assert fake_client.stream_calls == [["BV1"]]

    async def test_background_run(self, fake_client):
        fake_client.stream_scripts = [[progress("BV1", title="X1"), done()]]
        titles = {}
        streamer = _streamer(fake_client, titles)

        task = streamer.start(["BV1"])
        assert streamer.suggesting
        with pytest.raises(FlowError):
            await streamer.run(["BV1"])
        await task

        assert not streamer.suggesting
        assert titles == {"BV1": "X1"}
        assert streamer.last_error == ""

    async def test_background_failure_recorded(self, fake_client):
        fake_client.stream_scripts = [[NetworkError()]]
        streamer = _streamer(fake_client, {}, max_retries=0)
        await streamer.start(["BV1"])
        assert streamer.last_error.startswith("标题生成中断")
        assert not streamer.suggesting

    async def test_cancel(self, fake_client):
        gate = asyncio.Event()

        async def hanging_stream(bvids):
            fake_client.stream_calls.append(list(bvids))
            await gate.wait()
            yield done()

        fake_client.stream_suggestions = hanging_stream
        streamer = _streamer(fake_client, {})
        task = streamer.start(["BV1"])
        await asyncio.sleep(0.01)

        streamer.cancel()
        streamer.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert not streamer.suggesting

    async def test_restart_after_cancel_stays_suggesting(self, fake_client):
        gate = asyncio.Event()

        async def hanging_stream(bvids):
            fake_client.stream_calls.append(list(bvids))
            await gate.wait()
            yield done()

        fake_client.stream_suggestions = hanging_stream
        streamer = _streamer(fake_client, {})
        first = streamer.start(["BV1"])
        await asyncio.sleep(0.01)

        streamer.cancel()
        second = streamer.start(["BV2"])
        await asyncio.sleep(0.01)

        assert first.cancelled()
        assert not second.done()
        assert streamer.suggesting
        with pytest.raises(FlowError):
            streamer.start(["BV3"])

        gate.set()
        await second
        assert not streamer.suggesting

    async def test_unexpected_error_recorded(self, fake_client):
        fake_client.stream_scripts = [[ValueError("Chunk too big")]]
        streamer = _streamer(fake_client, {})
        await streamer.start(["BV1"])
        assert streamer.last_error == "标题生成失败"
        assert not streamer.suggesting
