"""
测试公共夹具

FakeClient stands in for ApiClient: every backend call is scripted per test
and recorded so tests can check what was (and was not) requested.
"""
import json

import pytest

from bvtc.models import Playlist, UploadTask, VideoInfo, VideoItem
from bvtc.sse import ServerSentEvent


def make_video_info(count=25, author="up主", list_title="合集·测试合集"):
    """第一个为当前视频，其余 count-1 个为合集"""
    items = [VideoItem(bvid=f"BV{i:04d}", title=f"Song {i}") for i in range(count)]
    return VideoInfo(author=author, list_title=list_title, video_list=items)


def progress(bvid, title="", error=""):
    payload = {"bvid": bvid}
    if title:
        payload["suggestedTitle"] = title
    if error:
        payload["error"] = error
    return ServerSentEvent(event="progress", data=json.dumps(payload))


def done():
    return ServerSentEvent(event="done", data="{}")


def task(status, progress=0, success=None, failed=None, error=""):
    return UploadTask(task_id="task-1", status=status, progress=progress,
                      success=success or [], failed=failed or [], error=error)


class FakeClient:
    def __init__(self):
        self.video_info = make_video_info()
        self.video_error = None
        self.logged_in = True
        self.login_error = None
        self.playlists = [Playlist(pid=1, pname="我喜欢的音乐"), Playlist(pid=2, pname="歌单二")]
        self.playlist_error = None
        self.task_id = "task-1"
        self.create_error = None
        # check_task answers in order; the last one repeats
        self.task_script = []
        # one list per stream connection; an Exception item is raised at that point
        self.stream_scripts = []
        self.captcha_error = None
        self.verify_error = None

        self.created = []
        self.check_calls = 0
        self.stream_calls = []
        self.captcha_calls = []
        self.logout_calls = 0
        self.closed = False

    async def get_video_list(self, video_id):
        if self.video_error:
            raise self.video_error
        return self.video_info

    async def check_login(self):
        if self.login_error:
            raise self.login_error
        return self.logged_in

    async def get_playlists(self):
        if self.playlist_error:
            raise self.playlist_error
        return list(self.playlists)

    async def create_task(self, req):
        self.created.append(req)
        if self.create_error:
            raise self.create_error
        return self.task_id

    async def check_task(self, task_id):
        index = min(self.check_calls, len(self.task_script) - 1)
        self.check_calls += 1
        answer = self.task_script[index]
        if isinstance(answer, Exception):
            raise answer
        return answer

    async def stream_suggestions(self, bvids):
        self.stream_calls.append(list(bvids))
        script = self.stream_scripts.pop(0) if self.stream_scripts else []
        for item in script:
            if isinstance(item, Exception):
                raise item
            yield item

    async def send_captcha(self, phone):
        self.captcha_calls.append(phone)
        if self.captcha_error:
            raise self.captcha_error

    async def verify_captcha(self, phone, captcha):
        if self.verify_error:
            raise self.verify_error
        return "登录成功"

    async def logout(self):
        self.logout_calls += 1

    async def get_avatar(self):
        return b"\x89PNG", "image/png"

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_client():
    return FakeClient()
