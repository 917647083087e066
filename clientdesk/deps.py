import hashlib
import secrets
from typing import AsyncIterator, Optional

from fastapi import Request

from .clients.base import ApiClient
from .guards import InFlightGuard
from .session import TOKEN_KEY


def get_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
        if token:
            return token
    return request.session.get(TOKEN_KEY)


async def get_api(request: Request) -> AsyncIterator[ApiClient]:
    transport = getattr(request.app.state, "api_transport", None)
    api = ApiClient(get_token(request), transport=transport)
    try:
        yield api
    finally:
        await api.aclose()


def get_guard(request: Request) -> InFlightGuard:
    if not hasattr(request.app.state, "guard"):
        request.app.state.guard = InFlightGuard()
    return request.app.state.guard


def get_owner(request: Request) -> str:
    # one owner per bearer token, so clients without the session cookie still collide
    token = get_token(request)
    if token:
        return "token:" + hashlib.sha256(token.encode()).hexdigest()[:24]
    sid = request.session.get("sid")
    if not sid:
        sid = secrets.token_urlsafe(16)
        request.session["sid"] = sid
    return sid


def wants_json(request: Request) -> bool:
    return "application/json" in request.headers.get("accept", "")
