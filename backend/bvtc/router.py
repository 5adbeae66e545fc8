from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from .errors import ApiError, BvtcError, FlowError
from .flow import UploadFlow
from .models import (
    CaptchaRequest, ChoosePlaylistRequest, LoginRequest, SelectAllRequest, SelectRequest,
    SuggestRequest, TitleEditRequest, TitleModeRequest,
)

router = APIRouter(prefix="/api")


def get_flow(request: Request) -> UploadFlow:
    return request.app.state.flow


def ok(data=None, msg: str = "success") -> dict:
    """Same envelope as the backend: code 200 means success."""
    return {"code": 200, "msg": msg, "data": data}


async def is_logged_in(flow: UploadFlow) -> bool:
    try:
        return await flow.client.check_login()
    except BvtcError:
        return False


# --- Account ---

@router.post("/login/captcha", response_class=JSONResponse)
async def send_captcha(body: CaptchaRequest, flow: UploadFlow = Depends(get_flow)):
    await flow.send_captcha(body.phone)
    return ok({"cooldown": flow.captcha_cooldown_left()}, "验证码已发送，请注意查收")


@router.post("/login", response_class=JSONResponse)
async def login(body: LoginRequest, flow: UploadFlow = Depends(get_flow)):
    await flow.login(body.phone, body.captcha)
    return ok({"redirect": "/bilibili"}, "登录成功，正在跳转...")


@router.get("/login/check", response_class=JSONResponse)
async def login_check(flow: UploadFlow = Depends(get_flow)):
    return ok({"logged_in": await is_logged_in(flow)})


@router.post("/logout", response_class=JSONResponse)
async def logout(flow: UploadFlow = Depends(get_flow)):
    await flow.logout()
    return ok({"redirect": "/login"})


@router.get("/avatar")
async def avatar(flow: UploadFlow = Depends(get_flow)):
    content, media_type = await flow.client.get_avatar()
    return Response(content=content, media_type=media_type)


# --- Search & selection ---

@router.get("/search", response_class=JSONResponse)
async def search(video_id: str = "", flow: UploadFlow = Depends(get_flow)):
    await flow.search(video_id)
    return ok(flow.selection.snapshot())


@router.get("/videos", response_class=JSONResponse)
async def list_videos(page: int = 1, keyword: Optional[str] = None, flow: UploadFlow = Depends(get_flow)):
    """Current page of the collection, optionally filtered by title or bvid."""
    selection = flow.selection
    if keyword is not None and keyword.strip() != selection.keyword:
        # A new filter always starts from the first page
        selection.set_filter(keyword)
    else:
        selection.set_page(page)
    return ok(selection.snapshot())


@router.post("/videos/select", response_class=JSONResponse)
async def select_video(body: SelectRequest, flow: UploadFlow = Depends(get_flow)):
    flow.selection.select(body.bvid, body.checked)
    return ok(flow.selection.snapshot())


@router.post("/videos/select-all", response_class=JSONResponse)
async def select_all(body: SelectAllRequest, flow: UploadFlow = Depends(get_flow)):
    flow.selection.select_all(body.checked)
    return ok(flow.selection.snapshot())


# --- Playlists ---

@router.post("/save", response_class=JSONResponse)
async def open_save_dialog(flow: UploadFlow = Depends(get_flow)):
    playlists = await flow.open_save_dialog()
    return ok([p.model_dump() for p in playlists])


@router.get("/playlists", response_class=JSONResponse)
async def list_playlists(flow: UploadFlow = Depends(get_flow)):
    try:
        playlists = await flow.client.get_playlists()
    except ApiError as e:
        raise FlowError("获取歌单列表失败") from e
    return ok([p.model_dump() for p in playlists])


@router.post("/playlist/choose", response_class=JSONResponse)
async def choose_playlist(body: ChoosePlaylistRequest, flow: UploadFlow = Depends(get_flow)):
    playlist = flow.choose_playlist(body.pid)
    target = playlist.pname if playlist.pid is not None else "云盘"
    return ok(playlist.model_dump(), f"是否确认上传到{target}？")


# --- Titles ---

def _titles_view(flow: UploadFlow) -> dict:
    selection = flow.selection
    result = flow.streamer.last_result
    errors = result.errors if result else {}
    return {
        "keep_original": selection.keep_original,
        "suggesting": flow.suggesting,
        "error": flow.streamer.last_error,
        "items": [
            {
                "bvid": bvid,
                "original": selection.original_title(bvid),
                "title": selection.resolved_title(bvid),
                "overridden": bvid in selection.title_overrides,
                "error": errors.get(bvid, ""),
            }
            for bvid in selection.selected_bvids()
        ],
    }


@router.post("/titles/mode", response_class=JSONResponse)
async def set_title_mode(body: TitleModeRequest, flow: UploadFlow = Depends(get_flow)):
    flow.set_title_mode(body.keep_original)
    return ok(_titles_view(flow))


@router.post("/titles/suggest", response_class=JSONResponse, status_code=202)
async def suggest_titles(body: SuggestRequest, flow: UploadFlow = Depends(get_flow)):
    flow.start_suggestions(body.bvids or None)
    return ok(_titles_view(flow), "正在生成标题...")


@router.get("/titles", response_class=JSONResponse)
async def get_titles(flow: UploadFlow = Depends(get_flow)):
    return ok(_titles_view(flow))


@router.put("/titles/{bvid}", response_class=JSONResponse)
async def edit_title(bvid: str, body: TitleEditRequest, flow: UploadFlow = Depends(get_flow)):
    flow.edit_title(bvid, body.title)
    return ok(_titles_view(flow))


# --- Upload ---

@router.post("/upload", response_class=JSONResponse)
async def upload(flow: UploadFlow = Depends(get_flow)):
    task_id = await flow.confirm_upload()
    return ok({"task_id": task_id}, "上传中，请稍等...(๑´ڡ`๑)")


@router.get("/upload", response_class=JSONResponse)
async def upload_status(flow: UploadFlow = Depends(get_flow)):
    return ok(flow.upload_status())


@router.post("/upload/dismiss", response_class=JSONResponse)
async def dismiss_upload(flow: UploadFlow = Depends(get_flow)):
    flow.dismiss_result()
    return ok(flow.upload_status())
