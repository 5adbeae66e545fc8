"""
统一异常定义

Every error carries a user-facing message; the web layer turns them into
notifications instead of letting them crash the page.
"""
from typing import Optional


class BvtcError(Exception):
    """Base class for all front-end tier errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputError(BvtcError):
    """Bad user input, caught before any network call."""


class TransportError(BvtcError):
    """The backend could not be reached or did not answer in time."""


class NetworkError(TransportError):
    def __init__(self, message: str = "网络连接失败，请检查网络连接或后端服务是否启动"):
        super().__init__(message)


class RequestTimeout(TransportError):
    def __init__(self, message: str = "请求超时，请检查网络连接"):
        super().__init__(message)


class ApiError(BvtcError):
    """
    The backend answered, but with a non-200 ``code``.

    Attributes:
        code: envelope code (falls back to the HTTP status for non-JSON bodies)
        msg: server-supplied message, if any
        http_status: HTTP status of the response
    """

    def __init__(self, code: int, msg: Optional[str] = None, http_status: int = 200):
        super().__init__(msg or f"请求失败 (code {code})")
        self.code = code
        self.msg = msg
        self.http_status = http_status


class LoginRequired(BvtcError):
    def __init__(self, message: str = "请先登录网易云音乐账号"):
        super().__init__(message)


class FlowError(BvtcError):
    """A step of the upload flow cannot run in the current state."""


class StreamAborted(BvtcError):
    """The title suggestion stream gave up after its reconnect budget."""
