import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse, RedirectResponse

from .callback import OAuthCallbackHandler, resume_url
from .clients.base import ApiClient
from .connection import ChannelConnectionController, ConnectResult
from .deps import get_api, get_guard, get_owner, wants_json
from .exceptions import ApiError, ChannelError
from .pages import callback_page, render
from .schemas import ChannelType
from .session import TOKEN_KEY, local_path

logger = logging.getLogger(__name__)

router = APIRouter()


def _controller(request: Request, api: ApiClient, project_id: str) -> ChannelConnectionController:
    return ChannelConnectionController(
        api, project_id, request.session, guard=get_guard(request), owner=get_owner(request),
    )


def _return_url(request: Request, project_id: str, return_url: Optional[str]) -> str:
    # exact page the user was on, else the project page
    return (
        local_path(return_url)
        or local_path(request.headers.get("referer"))
        or f"/projects/{project_id}"
    )


async def _attempt(request: Request, controller: ChannelConnectionController, back: str, action):
    try:
        result = await action
    except (ApiError, ChannelError) as e:
        if wants_json(request):
            raise
        status = e.status if isinstance(e, ApiError) else 400
        message = e.message if isinstance(e, ApiError) else str(e)
        return render("Channels", "", error=controller.error or message, retry_url=back, status_code=status)
    return _respond(request, result, back)


def _respond(request: Request, result: ConnectResult, back: str):
    if wants_json(request):
        return JSONResponse({
            "redirected": result.redirected,
            "connected": result.connected,
            "redirect_url": result.redirect_url,
            "channel": result.channel.model_dump(mode="json") if result.channel else None,
            "message": result.message,
        })
    if result.redirected:
        return RedirectResponse(result.redirect_url, status_code=303)
    return RedirectResponse(back, status_code=303)


@router.post("/projects/{project_id}/channels")
async def add_channel(
    project_id: str,
    request: Request,
    channel_type: ChannelType = Form(ChannelType.GMAIL),
    return_url: Optional[str] = Form(None),
    api: ApiClient = Depends(get_api),
):
    back = _return_url(request, project_id, return_url)
    controller = _controller(request, api, project_id)
    return await _attempt(request, controller, back, controller.add_channel(channel_type, back))


@router.post("/projects/{project_id}/channels/reauth")
async def reauth_channel(
    project_id: str,
    request: Request,
    return_url: Optional[str] = Form(None),
    api: ApiClient = Depends(get_api),
):
    back = _return_url(request, project_id, return_url)
    controller = _controller(request, api, project_id)
    return await _attempt(request, controller, back, controller.reauthenticate(back))


@router.post("/projects/{project_id}/channels/{channel_id}/connect")
async def connect_channel(
    project_id: str,
    channel_id: str,
    request: Request,
    return_url: Optional[str] = Form(None),
    api: ApiClient = Depends(get_api),
):
    back = _return_url(request, project_id, return_url)
    controller = _controller(request, api, project_id)
    return await _attempt(request, controller, back, controller.connect(channel_id, back))


@router.get("/oauth/callback")
async def oauth_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    api: ApiClient = Depends(get_api),
):
    handler = OAuthCallbackHandler(api, request.session)
    outcome = await handler.handle(code, state, error)
    if wants_json(request):
        return JSONResponse(
            {"status": outcome.status.value, "message": outcome.message, "channel_id": outcome.channel_id},
            status_code=200 if outcome.ok else 400,
        )
    return callback_page(outcome)


@router.get("/oauth/resume")
def oauth_resume(request: Request):
    target = resume_url(request.session)
    logger.info(f"Resuming after OAuth at {target}")
    return RedirectResponse(target, status_code=303)


@router.post("/api/session/token")
async def store_token(request: Request):
    body = await request.json()
    token = (body or {}).get("token")
    if not token:
        return JSONResponse({"detail": "token is required"}, status_code=422)
    request.session[TOKEN_KEY] = token
    return {"stored": True}


@router.delete("/api/session/token")
def clear_token(request: Request):
    request.session.pop(TOKEN_KEY, None)
    return {"stored": False}
