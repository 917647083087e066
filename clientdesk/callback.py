import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import MutableMapping

from .clients import channels as channels_api
from .clients.base import ApiClient
from .config import DEFAULT_LANDING_URL
from .connection import ChannelState, ChannelStateMachine
from .exceptions import ApiError, OAuthProviderError, OAuthValidationError
from .session import ResumeStore

logger = logging.getLogger(__name__)

MISSING_PARAMS_MESSAGE = "Missing OAuth parameters. Please try connecting your Gmail channel again."
DEFAULT_SUCCESS_MESSAGE = "Gmail channel connected successfully!"


class CallbackStatus(str, Enum):
    LOADING = "loading"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class CallbackOutcome:
    status: CallbackStatus
    message: str
    channel_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == CallbackStatus.SUCCESS


class OneShotLatch:

    def __init__(self):
        self._tripped = False

    def trip(self) -> bool:
        # True only for the first caller
        if self._tripped:
            return False
        self._tripped = True
        return True


def resume_url(session: MutableMapping) -> str:
    # exact return URL, else the project page, else the landing page
    context = ResumeStore(session).consume()
    if context is None:
        return DEFAULT_LANDING_URL
    if context.return_url:
        return context.return_url
    if context.project_id:
        return f"/projects/{context.project_id}"
    return DEFAULT_LANDING_URL


class OAuthCallbackHandler:
    # the code exchange runs at most once per instance; later calls get the first outcome

    def __init__(self, api: ApiClient, session: MutableMapping):
        self.api = api
        self.session = session
        self.latch = OneShotLatch()
        self.states = ChannelStateMachine()
        self.outcome = CallbackOutcome(CallbackStatus.LOADING, "Processing Gmail connection...")
        self._done: asyncio.Event | None = None

    async def handle(
        self, code: str | None, state: str | None, error: str | None = None,
    ) -> CallbackOutcome:
        if not self.latch.trip():
            logger.info("OAuth callback already processed, skipping")
            if self._done is not None:
                await self._done.wait()
            return self.outcome

        self._done = asyncio.Event()
        try:
            self.outcome = await self._process(code, state, error)
        finally:
            self._done.set()
        return self.outcome

    async def _process(self, code: str | None, state: str | None, error: str | None) -> CallbackOutcome:
        try:
            self._validate(code, state, error)
        except (OAuthProviderError, OAuthValidationError) as e:
            logger.warning(f"OAuth callback rejected: {e}")
            return CallbackOutcome(CallbackStatus.FAILED, str(e), channel_id=state)

        self.states.restore(state, ChannelState.AWAITING_REDIRECT)
        self.states.transition(state, ChannelState.OAUTH_CALLBACK)
        logger.info(f"Processing OAuth callback for channel {state}")
        try:
            result = await channels_api.exchange_gmail_code(self.api, code, state)
        except ApiError as e:
            self.states.transition(state, ChannelState.FAILED)
            logger.error(f"OAuth code exchange failed for channel {state}: {e.message}")
            return CallbackOutcome(CallbackStatus.FAILED, e.message or "Failed to connect Gmail channel", channel_id=state)

        self.states.transition(state, ChannelState.CONNECTED)
        return CallbackOutcome(
            CallbackStatus.SUCCESS, result.status_message or DEFAULT_SUCCESS_MESSAGE, channel_id=state,
        )

    @staticmethod
    def _validate(code: str | None, state: str | None, error: str | None) -> None:
        if error:
            raise OAuthProviderError(f"OAuth authorization failed: {error}")
        if not code or not state:
            raise OAuthValidationError(MISSING_PARAMS_MESSAGE)
