import pytest

from bvtc.errors import InputError
from bvtc.utils import extract_bvid_from_url, parse_video_id, validate_captcha, validate_phone


class TestParseVideoId:
    def test_bvid(self):
        assert parse_video_id(" BV1xx411c7mD ") == ("bvid", "BV1xx411c7mD")

    def test_avid(self):
        assert parse_video_id("av170001") == ("avid", 170001)
        assert parse_video_id("AV170001") == ("avid", 170001)

    def test_url(self):
        assert parse_video_id("https://www.bilibili.com/video/BV1xx411c7mD?p=2") == ("bvid", "BV1xx411c7mD")
        assert parse_video_id("https://www.bilibili.com/video/av170001/") == ("avid", 170001)

    @pytest.mark.parametrize("value", ["", "   "])
    def test_empty(self, value):
        with pytest.raises(InputError, match="请输入视频ID"):
            parse_video_id(value)

    @pytest.mark.parametrize("value", ["hello", "avabc", "BV"])
    def test_invalid(self, value):
        with pytest.raises(InputError, match="bvid"):
            parse_video_id(value)

    def test_url_without_id(self):
        with pytest.raises(InputError):
            extract_bvid_from_url("https://www.bilibili.com/")


class TestLoginInput:
    def test_phone(self):
        assert validate_phone(" 13800138000 ") == "13800138000"

    @pytest.mark.parametrize("phone", ["", "23800138000", "1380013800", "138001380001"])
    def test_bad_phone(self, phone):
        with pytest.raises(InputError):
            validate_phone(phone)

    def test_captcha(self):
        assert validate_captcha("1234") == "1234"
        with pytest.raises(InputError, match="请输入验证码"):
            validate_captcha("")
        with pytest.raises(InputError, match="4位"):
            validate_captcha("123")
