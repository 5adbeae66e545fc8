from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Name of the synthetic "upload to cloud drive only" entry shown before real playlists
CLOUD_ONLY_NAME = "不加入歌单，仅添加到云盘"


class VideoItem(BaseModel):
    """单个视频"""
    bvid: str
    title: str
    url: str = ""


class VideoInfo(BaseModel):
    """一次搜索的结果：第一个视频为当前视频，其余为合集列表"""
    author: str = ""
    list_title: Optional[str] = None
    video_list: List[VideoItem] = Field(default_factory=list)

    @property
    def primary(self) -> Optional[VideoItem]:
        return self.video_list[0] if self.video_list else None

    @property
    def collection(self) -> List[VideoItem]:
        return self.video_list[1:]

    @property
    def display_list_title(self) -> str:
        return (self.list_title or "").replace("合集·", "")


class Playlist(BaseModel):
    """网易云歌单，pid 为空表示仅上传到云盘"""
    pid: Optional[int] = None
    pname: str

    @property
    def is_cloud_only(self) -> bool:
        return self.pid is None


def cloud_only_playlist() -> Playlist:
    return Playlist(pid=None, pname=CLOUD_ONLY_NAME)


class TaskStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    @classmethod
    def from_backend(cls, raw: Optional[str]) -> "TaskStatus":
        """Map the backend's status strings onto the poller states."""
        value = (raw or "").strip().lower()
        if value == "pending":
            return cls.PENDING
        if value == "completed":
            return cls.COMPLETED
        if value in ("failed", "outtime"):
            return cls.FAILED
        # running / processing / anything unknown but non-terminal
        return cls.PROCESSING


class FailedItem(BaseModel):
    title: str = ""
    error: str = ""


class UploadTask(BaseModel):
    """上传任务状态 (由后端创建，前端轮询)"""
    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(default="", alias="id")
    status: TaskStatus = TaskStatus.PENDING
    progress: int = 0  # 0-100
    total: int = 0
    success: List[str] = Field(default_factory=list)
    failed: List[FailedItem] = Field(default_factory=list)
    error: str = ""

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, v):
        if isinstance(v, TaskStatus):
            return v
        return TaskStatus.from_backend(v)

    @field_validator("progress", mode="before")
    @classmethod
    def _clamp_progress(cls, v):
        try:
            v = int(v)
        except (TypeError, ValueError):
            return 0
        return max(0, min(100, v))

    @field_validator("success", "failed", mode="before")
    @classmethod
    def _none_to_list(cls, v):
        # Go encodes empty slices as null
        return v or []


class CreateTaskRequest(BaseModel):
    """创建上传任务的请求体"""
    model_config = ConfigDict(populate_by_name=True)

    bvid: List[str]
    splaylist: bool = False
    pid: Optional[int] = None
    title_override: Optional[Dict[str, str]] = Field(default=None, alias="titleOverride")

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# --- Request bodies for the front-end's own API ---

class CaptchaRequest(BaseModel):
    phone: str


class LoginRequest(BaseModel):
    phone: str
    captcha: str


class SelectRequest(BaseModel):
    bvid: str
    checked: bool


class SelectAllRequest(BaseModel):
    checked: bool


class ChoosePlaylistRequest(BaseModel):
    pid: Optional[int] = None


class TitleModeRequest(BaseModel):
    keep_original: bool


class SuggestRequest(BaseModel):
    # Empty means "every selected video"; one bvid regenerates a single title
    bvids: List[str] = Field(default_factory=list)


class TitleEditRequest(BaseModel):
    title: str
