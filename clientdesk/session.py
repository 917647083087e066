from dataclasses import dataclass
from typing import MutableMapping, Optional
from urllib.parse import urlsplit, urlunsplit

from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from .config import APP_SECRET_KEY

OAUTH_PROJECT_KEY = "oauth_project_id"
OAUTH_RETURN_KEY = "oauth_return_url"
MANAGED_CHANNEL_KEY = "managed_channel_id"
TOKEN_KEY = "token"


def add_session(app: FastAPI):
    app.add_middleware(SessionMiddleware, secret_key=APP_SECRET_KEY, same_site="lax")
    return app


def local_path(url: Optional[str]) -> Optional[str]:
    # Only same-site paths are resumable; scheme and host are dropped.
    if not url:
        return None
    parts = urlsplit(url)
    path = parts.path or "/"
    # browsers read "//host" and "/\host" as another site
    if not path.startswith("/") or path[1:2] in ("/", "\\"):
        return None
    return urlunsplit(("", "", path, parts.query, ""))


@dataclass(frozen=True)
class ResumeContext:
    project_id: Optional[str]
    return_url: Optional[str]


class ResumeStore:
    # written once before the provider redirect, cleared by the read that resumes

    def __init__(self, session: MutableMapping):
        self.session = session

    def stash(self, project_id: Optional[str], return_url: Optional[str]) -> None:
        self.session.pop(OAUTH_PROJECT_KEY, None)
        self.session.pop(OAUTH_RETURN_KEY, None)
        if project_id:
            self.session[OAUTH_PROJECT_KEY] = project_id
        url = local_path(return_url)
        if url:
            self.session[OAUTH_RETURN_KEY] = url

    def consume(self) -> Optional[ResumeContext]:
        project_id = self.session.pop(OAUTH_PROJECT_KEY, None)
        return_url = self.session.pop(OAUTH_RETURN_KEY, None)
        if project_id is None and return_url is None:
            return None
        return ResumeContext(project_id=project_id, return_url=return_url)
