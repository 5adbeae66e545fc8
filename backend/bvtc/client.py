import asyncio
import logging
from typing import AsyncIterator, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import aiohttp

from .errors import ApiError, NetworkError, RequestTimeout
from .models import CreateTaskRequest, Playlist, UploadTask, VideoInfo
from .sse import ServerSentEvent, iter_sse_events
from .utils import parse_video_id

logger = logging.getLogger(__name__)

SUCCESS_CODE = 200


class ApiClient:
    """
    异步后端API客户端

    One aiohttp session per client, created lazily. The base URL and timeout
    are fixed at construction; every request carries the session cookie jar.
    """

    def __init__(self, base_url: str, timeout: float = 300, headers: Optional[Dict[str, str]] = None):
        self.base_url = base_url.rstrip('/') + '/'
        self.timeout = timeout
        self.headers = dict(headers or {})
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self.get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                # The backend keeps the login in a SessionId cookie; accept it for IP hosts too
                cookie_jar=aiohttp.CookieJar(unsafe=True),
            )
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def url(self, path: str) -> str:
        return self.base_url + path.lstrip('/')

    # --- Transport ---

    async def request(self, method: str, path: str, *, params: Optional[dict] = None,
                      json: Optional[dict] = None) -> dict:
        """Send a request and return the decoded ``{code, msg, data}`` envelope."""
        session = await self.get_session()
        url = self.url(path)
        try:
            async with session.request(method, url, params=params, json=json) as resp:
                return await self._decode(resp)
        except asyncio.TimeoutError as e:
            logger.warning("%s %s timed out", method, url)
            raise RequestTimeout() from e
        except aiohttp.ClientError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise NetworkError() from e

    async def _decode(self, resp: aiohttp.ClientResponse) -> dict:
        try:
            body = await resp.json(content_type=None)
        except ValueError:
            body = None

        if not isinstance(body, dict):
            if resp.status >= 400:
                raise ApiError(resp.status, http_status=resp.status)
            return {"code": SUCCESS_CODE, "data": body}

        code = body.get("code", resp.status)
        if code != SUCCESS_CODE:
            raise ApiError(code, body.get("msg"), http_status=resp.status)
        return body

    # --- Bilibili ---

    async def get_video_list(self, video_id: str) -> VideoInfo:
        key, value = parse_video_id(video_id)
        envelope = await self.request("GET", "bilibili/list", params={key: value})
        return VideoInfo.model_validate(envelope.get("data") or {})

    async def create_task(self, req: CreateTaskRequest) -> str:
        envelope = await self.request("POST", "bilibili/createtask", json=req.to_payload())
        data = envelope.get("data") or {}
        task_id = data.get("task_id")
        if not task_id:
            raise ApiError(envelope.get("code", SUCCESS_CODE), "任务创建失败: 未返回任务ID")
        return task_id

    async def check_task(self, task_id: str) -> UploadTask:
        envelope = await self.request("GET", f"bilibili/checktask/{quote(task_id, safe='')}")
        task = UploadTask.model_validate(envelope.get("data") or {})
        if not task.task_id:
            task.task_id = task_id
        return task

    def suggest_stream_url(self, bvids: Sequence[str]) -> str:
        csv = ",".join(bvids)
        return self.url("bilibili/suggest-title-batch/stream") + "?bvids=" + quote(csv, safe=",")

    async def stream_suggestions(self, bvids: Sequence[str]) -> AsyncIterator[ServerSentEvent]:
        """Open one event stream for the batch and yield its raw events."""
        session = await self.get_session()
        url = self.suggest_stream_url(bvids)
        # The stream is long-lived: only bound the connect phase
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self.timeout)
        try:
            async with session.get(url, headers={'accept': 'text/event-stream'}, timeout=timeout) as resp:
                if resp.status != 200:
                    await self._decode(resp)
                    raise ApiError(resp.status, http_status=resp.status)
                async for event in iter_sse_events(resp.content):
                    yield event
        except asyncio.TimeoutError as e:
            raise RequestTimeout() from e
        except aiohttp.ClientError as e:
            logger.warning("suggestion stream failed: %s", e)
            raise NetworkError() from e

    # --- NetEase Cloud Music ---

    async def check_login(self) -> bool:
        envelope = await self.request("GET", "netcloud/login/check")
        if "data" not in envelope:
            return True
        return bool(envelope["data"])

    async def get_playlists(self) -> List[Playlist]:
        envelope = await self.request("GET", "netcloud/playlist")
        return [Playlist.model_validate(p) for p in envelope.get("data") or []]

    async def send_captcha(self, phone: str) -> None:
        await self.request("GET", "netcloud/login", params={"phone": phone})

    async def verify_captcha(self, phone: str, captcha: str) -> str:
        envelope = await self.request("POST", "netcloud/login/verify", json={"phone": phone, "captcha": captcha})
        return envelope.get("msg") or ""

    async def logout(self) -> None:
        await self.request("POST", "netcloud/logout")

    async def get_avatar(self) -> Tuple[bytes, str]:
        """Raw avatar image, served as-is to the page."""
        session = await self.get_session()
        url = self.url("netcloud/useravatar")
        try:
            async with session.get(url) as resp:
                if resp.status != 200:
                    await self._decode(resp)
                    raise ApiError(resp.status, http_status=resp.status)
                content = await resp.read()
                return content, resp.content_type or "image/jpeg"
        except asyncio.TimeoutError as e:
            raise RequestTimeout() from e
        except aiohttp.ClientError as e:
            raise NetworkError() from e
