"""SSE 解码测试"""
from bvtc.sse import iter_sse_events


async def _lines(*lines):
    for line in lines:
        yield line


async def _collect(*lines):
    return [e async for e in iter_sse_events(_lines(*lines))]


class TestIterSseEvents:
    async def test_named_event(self):
        events = await _collect(b"event: progress\n", b'data: {"bvid": "BV1"}\n', b"\n")
        assert len(events) == 1
        assert events[0].event == "progress"
        assert events[0].data == '{"bvid": "BV1"}'

    async def test_default_event_name(self):
        events = await _collect(b"data: hello\n", b"\n")
        assert events[0].event == "message"

    async def test_multiline_data_and_crlf(self):
        events = await _collect(b"data: a\r\n", b"data: b\r\n", b"\r\n")
        assert events[0].data == "a\nb"

    async def test_comments_and_blank_runs_ignored(self):
        events = await _collect(b": keep-alive\n", b"\n", b"\n", b"event: done\n", b"data: {}\n", b"\n")
        assert [e.event for e in events] == ["done"]

    async def test_id_and_retry(self):
        events = await _collect(b"id: 7\n", b"retry: 1500\n", b"data: x\n", b"\n")
        assert events[0].id == "7"
        assert events[0].retry == 1500

    async def test_unterminated_event_dropped(self):
        events = await _collect(b"event: ping\n", b"data: 1\n", b"\n", b"event: done\n", b"data: {}\n")
        assert [e.event for e in events] == ["ping"]

    async def test_value_without_space(self):
        events = await _collect(b"event:open\n", b"data:{}\n", b"\n")
        assert events[0].event == "open"
        assert events[0].data == "{}"
