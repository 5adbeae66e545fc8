"""
上传流程编排

search -> select -> save (login check, playlists) -> choose playlist ->
title mode (optionally AI suggestions) -> confirm -> poll -> report -> dismiss
"""
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from .errors import (
    ApiError, FlowError, InputError, LoginRequired, NetworkError, RequestTimeout, TransportError,
)
from .models import CreateTaskRequest, FailedItem, Playlist, TaskStatus, VideoInfo, cloud_only_playlist
from .poller import PollState, TaskPoller
from .session import SelectionState
from .suggest import SuggestionResult, SuggestionStreamer
from .utils import validate_captcha, validate_phone

logger = logging.getLogger(__name__)


@dataclass
class UploadReport:
    """上传结果 (部分失败不算整体失败)"""
    status: TaskStatus
    success: List[str] = field(default_factory=list)
    failed: List[FailedItem] = field(default_factory=list)
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == TaskStatus.COMPLETED and not self.failed

    @property
    def message(self) -> str:
        if self.status == TaskStatus.COMPLETED:
            if self.failed:
                lines = [f"《{f.title}》处理失败: {f.error}" for f in self.failed]
                return "部分视频上传失败 (ŏ﹏ŏ、)\n" + "\n".join(lines)
            return "所有音乐上传成功 (≧▽≦)"
        return f"上传失败 (ŏ﹏ŏ、)۶: {self.error or '未知错误'}"

    @classmethod
    def from_state(cls, state: PollState) -> "UploadReport":
        return cls(status=state.status, success=list(state.success),
                   failed=list(state.failed), error=state.error)


class UploadFlow:
    """
    One user's session on the main page.

    All state lives on the event loop thread; the busy flags (loading,
    uploading, suggesting) are what the page uses to disable its controls.
    """

    def __init__(self, client, page_size: int = 10, poll_interval: float = 2.0,
                 stream_max_retries: int = 3, stream_retry_delay: float = 1.0,
                 captcha_cooldown: int = 60, clock: Callable[[], float] = time.monotonic):
        self.client = client
        self.selection = SelectionState(page_size=page_size)
        self.poller = TaskPoller(client, interval=poll_interval)
        self.streamer = SuggestionStreamer(
            client, self.selection.set_title_override,
            max_retries=stream_max_retries, retry_delay=stream_retry_delay,
        )
        self.playlists: List[Playlist] = []
        self.chosen: Optional[Playlist] = None
        self.loading = False
        self.captcha_cooldown = captcha_cooldown
        self._clock = clock
        self._captcha_sent_at: Optional[float] = None

    @property
    def uploading(self) -> bool:
        status = self.poller.state.status
        return self.poller.active or status in (TaskStatus.PENDING, TaskStatus.PROCESSING)

    @property
    def suggesting(self) -> bool:
        return self.streamer.suggesting

    # --- Step 1: search ---

    async def search(self, video_id: str) -> VideoInfo:
        self.loading = True
        try:
            info = await self.client.get_video_list(video_id)
        except ApiError as e:
            if e.http_status == 400:
                raise InputError("请输入正确的bvid号(´～`)") from e
            raise FlowError(e.msg or "获取视频信息失败") from e
        finally:
            self.loading = False

        self.selection.load(info)
        self.playlists = []
        self.chosen = None
        logger.info("Loaded %d videos by %s", len(info.video_list), info.author)
        return info

    # --- Step 2: save dialog ---

    async def open_save_dialog(self) -> List[Playlist]:
        if not self.selection.selected:
            raise InputError("请至少选择一个视频")

        self.loading = True
        try:
            try:
                logged_in = await self.client.check_login()
            except (ApiError, TransportError) as e:
                logger.info("Login check failed: %s", e.message)
                raise LoginRequired() from e
            if not logged_in:
                raise LoginRequired()

            try:
                playlists = await self.client.get_playlists()
            except (ApiError, TransportError) as e:
                logger.info("Playlist fetch failed: %s", e.message)
                raise LoginRequired() from e
        finally:
            self.loading = False

        self.playlists = [cloud_only_playlist()] + playlists
        self.chosen = None
        return self.playlists

    def choose_playlist(self, pid: Optional[int]) -> Playlist:
        if not self.playlists:
            raise FlowError("请先打开歌单列表")
        for playlist in self.playlists:
            if playlist.pid == pid:
                self.chosen = playlist
                return playlist
        raise InputError("歌单不存在")

    # --- Step 3: titles ---

    def set_title_mode(self, keep_original: bool):
        if keep_original and self.suggesting:
            self.streamer.cancel()
        self.selection.set_title_mode(keep_original)

    def _suggest_targets(self, bvids: Optional[Sequence[str]]) -> List[str]:
        targets = list(bvids) if bvids else self.selection.selected_bvids()
        if not targets:
            raise InputError("请至少选择一个视频")
        unknown = [b for b in targets if b not in self.selection.selected]
        if unknown:
            raise InputError(f"视频 {unknown[0]} 未被选中")
        self.selection.set_title_mode(False)
        return targets

    async def suggest_titles(self, bvids: Optional[Sequence[str]] = None) -> SuggestionResult:
        """Stream suggestions for the selection (or the given bvids) and wait for done."""
        return await self.streamer.run(self._suggest_targets(bvids))

    def start_suggestions(self, bvids: Optional[Sequence[str]] = None):
        return self.streamer.start(self._suggest_targets(bvids))

    def edit_title(self, bvid: str, title: str):
        if bvid not in self.selection.selected:
            raise InputError(f"视频 {bvid} 未被选中")
        self.selection.keep_original = False
        self.selection.set_title_override(bvid, title)

    # --- Step 4: confirm & upload ---

    def build_request(self) -> CreateTaskRequest:
        bvids = self.selection.selected_bvids()
        if not bvids:
            raise InputError("请至少选择一个视频")
        if self.chosen is None:
            raise FlowError("请先选择歌单")
        return CreateTaskRequest(
            bvid=bvids,
            splaylist=not self.chosen.is_cloud_only,
            pid=self.chosen.pid,
            title_override=self.selection.title_override_payload(),
        )

    async def confirm_upload(self) -> str:
        if self.uploading:
            raise FlowError("已有上传任务进行中")
        if self.poller.state.is_terminal:
            raise FlowError("请先确认上一次上传结果")
        if self.suggesting:
            raise FlowError("正在生成标题，请稍候")
        req = self.build_request()

        logger.info("Creating upload task for %d videos (playlist=%s)", len(req.bvid), req.pid)
        try:
            task_id = await self.client.create_task(req)
        except ApiError as e:
            raise FlowError(f"上传失败 (ŏ﹏ŏ、)۶: {e.msg or '未知错误'}") from e
        except NetworkError as e:
            raise NetworkError("网络连接失败，请检查网络连接或稍后重试 (ŏ﹏ŏ、)۶") from e
        except RequestTimeout as e:
            raise RequestTimeout("上传超时，请检查网络连接或稍后重试 (ŏ﹏ŏ、)۶") from e

        self.poller.start(task_id)
        return task_id

    def upload_status(self) -> dict:
        state = self.poller.state
        data = state.model_dump(mode="json")
        data["uploading"] = self.uploading
        if state.is_terminal:
            report = UploadReport.from_state(state)
            data["report"] = {"ok": report.ok, "message": report.message}
        return data

    def report(self) -> UploadReport:
        state = self.poller.state
        if not state.is_terminal:
            raise FlowError("上传尚未完成")
        return UploadReport.from_state(state)

    def dismiss_result(self):
        if not self.poller.state.is_terminal:
            raise FlowError("上传尚未完成")
        self.poller.reset()
        self.playlists = []
        self.chosen = None

    # --- Account ---

    def captcha_cooldown_left(self) -> int:
        if self._captcha_sent_at is None:
            return 0
        left = self.captcha_cooldown - (self._clock() - self._captcha_sent_at)
        return max(0, math.ceil(left))

    async def send_captcha(self, phone: str):
        phone = validate_phone(phone)
        left = self.captcha_cooldown_left()
        if left > 0:
            raise InputError(f"请在{left}秒后重新获取验证码")
        try:
            await self.client.send_captcha(phone)
        except (ApiError, TransportError) as e:
            logger.warning("Captcha request failed: %s", e.message)
            raise FlowError("验证码发送失败") from e
        self._captcha_sent_at = self._clock()

    async def login(self, phone: str, captcha: str) -> str:
        phone = validate_phone(phone)
        captcha = validate_captcha(captcha)
        try:
            msg = await self.client.verify_captcha(phone, captcha)
        except ApiError as e:
            raise FlowError(e.msg or "登录失败") from e
        except TransportError as e:
            raise FlowError("登录请求失败") from e
        logger.info("Logged in as %s****%s", phone[:3], phone[-4:])
        return msg

    async def logout(self):
        await self.client.logout()
        self.playlists = []
        self.chosen = None

    # --- Teardown ---

    async def close(self):
        self.poller.stop()
        self.streamer.cancel()
