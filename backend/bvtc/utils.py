import re
from typing import Tuple

from .errors import InputError

_PHONE_RE = re.compile(r'^1\d{10}$')
_BVID_IN_URL_RE = re.compile(r'/video/(BV[a-zA-Z0-9]+)')
_AVID_IN_URL_RE = re.compile(r'/video/av(\d+)', re.IGNORECASE)


def extract_bvid_from_url(url_or_bvid: str) -> str:
    """从Bilibili URL中提取BV号，如果已经是BV号则直接返回。"""
    if url_or_bvid.startswith('http'):
        match = _BVID_IN_URL_RE.search(url_or_bvid)
        if match:
            return match.group(1)
        match = _AVID_IN_URL_RE.search(url_or_bvid)
        if match:
            return f"av{match.group(1)}"
        raise InputError(f"无法从URL中提取BV号: {url_or_bvid}")
    # 假设已经是BV号
    return url_or_bvid


def parse_video_id(video_id: str) -> Tuple[str, object]:
    """
    把用户输入转换为查询参数。

    Returns:
        ("avid", int) 或 ("bvid", str)
    """
    video_id = (video_id or "").strip()
    if not video_id:
        raise InputError("请输入视频ID")

    video_id = extract_bvid_from_url(video_id)
    lowered = video_id.lower()
    if lowered.startswith("av"):
        digits = lowered[2:]
        if not digits.isdigit():
            raise InputError("请输入正确的bvid号(´～`)")
        return "avid", int(digits)
    if lowered.startswith("bv") and len(video_id) > 2:
        return "bvid", video_id
    raise InputError("请输入正确的bvid号(´～`)")


def validate_phone(phone: str) -> str:
    phone = (phone or "").strip()
    if not phone:
        raise InputError("请输入手机号")
    if not _PHONE_RE.match(phone):
        raise InputError("请输入11位中国大陆手机号")
    return phone


def validate_captcha(captcha: str) -> str:
    captcha = (captcha or "").strip()
    if not captcha:
        raise InputError("请输入验证码")
    if len(captcha) != 4:
        raise InputError("验证码为4位数字")
    return captcha
