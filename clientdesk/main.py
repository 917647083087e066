import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .auth import router as auth_router
from .config import LOG_LEVEL
from .exceptions import ApiError, ChannelError, OAuthCallbackError
from .guards import InFlightGuard
from .pages import router as pages_router
from .session import add_session
from .views import router as views_router

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title="clientdesk")
    add_session(app)
    app.state.guard = InFlightGuard()
    app.include_router(auth_router)
    app.include_router(views_router)
    app.include_router(pages_router)

    @app.exception_handler(ApiError)
    async def api_error(request: Request, exc: ApiError):
        logger.warning(f"{request.method} {request.url.path} -> {exc.status}: {exc.message}")
        return JSONResponse({"detail": exc.message}, status_code=exc.status)

    @app.exception_handler(ChannelError)
    async def channel_error(request: Request, exc: ChannelError):
        logger.warning(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse({"detail": str(exc)}, status_code=400)

    @app.exception_handler(OAuthCallbackError)
    async def oauth_error(request: Request, exc: OAuthCallbackError):
        return JSONResponse({"detail": str(exc)}, status_code=400)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("clientdesk.main:app", host="0.0.0.0", port=8080, reload=False)
