"""
选择与会话状态

Holds what the main page shows: the searched VideoInfo, the selected bvids,
the pagination window and keyword filter over the collection, and the title
mode with its override map.
"""
import math
from typing import Dict, List, Optional

from .errors import InputError
from .models import VideoInfo, VideoItem


class SelectionState:
    def __init__(self, page_size: int = 10):
        self.page_size = page_size
        self.video_info: Optional[VideoInfo] = None
        self.selected: set = set()
        self.page = 1
        self.keyword = ""
        self.keep_original = True
        self.title_overrides: Dict[str, str] = {}

    # --- Search reset ---

    def load(self, video_info: Optional[VideoInfo]):
        """A new search replaces everything at once."""
        self.video_info = video_info
        self.selected = set()
        self.page = 1
        self.keyword = ""
        self.keep_original = True
        self.title_overrides = {}

    def clear(self):
        self.load(None)

    @property
    def videos(self) -> List[VideoItem]:
        return self.video_info.video_list if self.video_info else []

    def _known_bvids(self) -> set:
        return {v.bvid for v in self.videos}

    # --- Selection ---

    def select(self, bvid: str, checked: bool):
        if bvid not in self._known_bvids():
            raise InputError(f"视频 {bvid} 不在当前列表中")
        if checked:
            self.selected.add(bvid)
        else:
            self.selected.discard(bvid)
            self.title_overrides.pop(bvid, None)

    def select_all(self, checked: bool):
        if checked:
            self.selected = self._known_bvids()
        else:
            self.selected = set()
            self.title_overrides = {}

    @property
    def all_selected(self) -> bool:
        return bool(self.videos) and len(self.selected) == len(self.videos)

    @property
    def indeterminate(self) -> bool:
        return 0 < len(self.selected) < len(self.videos)

    def selected_bvids(self) -> List[str]:
        # Keep the list order so the upload follows what the user sees
        return [v.bvid for v in self.videos if v.bvid in self.selected]

    # --- Filter & pagination (collection only; the primary video is shown apart) ---

    def set_filter(self, keyword: str):
        keyword = (keyword or "").strip()
        if keyword != self.keyword:
            self.keyword = keyword
            self.page = 1

    def filtered_collection(self) -> List[VideoItem]:
        items = self.video_info.collection if self.video_info else []
        if not self.keyword:
            return items
        needle = self.keyword.lower()
        return [v for v in items if needle in v.title.lower() or needle in v.bvid.lower()]

    @property
    def total(self) -> int:
        return len(self.filtered_collection())

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self.page_size))

    def set_page(self, page: int):
        self.page = max(1, min(int(page), self.total_pages))

    def page_items(self) -> List[VideoItem]:
        start = (self.page - 1) * self.page_size
        return self.filtered_collection()[start:start + self.page_size]

    # --- Titles ---

    def set_title_mode(self, keep_original: bool):
        self.keep_original = keep_original
        if keep_original:
            self.title_overrides = {}

    def set_title_override(self, bvid: str, title: str):
        # Suggestions can arrive after the user deselected the video
        if bvid not in self.selected:
            return
        title = (title or "").strip()
        if title:
            self.title_overrides[bvid] = title
        else:
            self.title_overrides.pop(bvid, None)

    def original_title(self, bvid: str) -> str:
        for v in self.videos:
            if v.bvid == bvid:
                return v.title
        return ""

    def resolved_title(self, bvid: str) -> str:
        return self.title_overrides.get(bvid) or self.original_title(bvid)

    def title_override_payload(self) -> Optional[Dict[str, str]]:
        if self.keep_original:
            return None
        payload = {bvid: self.title_overrides[bvid]
                   for bvid in self.selected_bvids() if bvid in self.title_overrides}
        return payload or None

    def snapshot(self) -> dict:
        info = self.video_info
        return {
            "author": info.author if info else "",
            "list_title": info.display_list_title if info else "",
            "primary": info.primary.model_dump() if info and info.primary else None,
            "items": [v.model_dump() for v in self.page_items()],
            "page": self.page,
            "page_size": self.page_size,
            "total": self.total,
            "keyword": self.keyword,
            "selected": self.selected_bvids(),
            "all_selected": self.all_selected,
            "indeterminate": self.indeterminate,
        }
