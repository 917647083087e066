import logging
from dataclasses import dataclass
from enum import Enum
from typing import Hashable, MutableMapping

from .clients import channels as channels_api
from .clients.base import ApiClient
from .exceptions import ApiError, ChannelStateError
from .guards import InFlightGuard
from .providers import ChannelProvider, get_provider
from .schemas import Channel, ChannelType, OAuthUrlResponse
from .session import MANAGED_CHANNEL_KEY, ResumeStore

logger = logging.getLogger(__name__)


class ChannelState(str, Enum):
    NONE = "none"
    CREATED_UNCONNECTED = "created_unconnected"
    CREATED_CONNECTED = "created_connected"
    AWAITING_REDIRECT = "awaiting_redirect"
    OAUTH_CALLBACK = "oauth_callback"
    CONNECTED = "connected"
    FAILED = "failed"
    DELETED = "deleted"


CONNECTED_STATES = frozenset({ChannelState.CREATED_CONNECTED, ChannelState.CONNECTED})

_TRANSITIONS = {
    ChannelState.NONE: {
        ChannelState.CREATED_UNCONNECTED,
        ChannelState.CREATED_CONNECTED,
        ChannelState.DELETED,
    },
    ChannelState.CREATED_UNCONNECTED: {
        ChannelState.AWAITING_REDIRECT,
        ChannelState.CONNECTED,
        ChannelState.DELETED,
    },
    ChannelState.CREATED_CONNECTED: {ChannelState.CONNECTED, ChannelState.DELETED},
    # Clicking "connect" again after backing out of the provider page restarts the redirect.
    ChannelState.AWAITING_REDIRECT: {
        ChannelState.AWAITING_REDIRECT,
        ChannelState.OAUTH_CALLBACK,
        ChannelState.CONNECTED,
        ChannelState.DELETED,
    },
    ChannelState.OAUTH_CALLBACK: {ChannelState.CONNECTED, ChannelState.FAILED},
    ChannelState.CONNECTED: {ChannelState.DELETED},
    ChannelState.FAILED: {ChannelState.DELETED},
    ChannelState.DELETED: set(),
}


class ChannelStateMachine:

    def __init__(self):
        self._states: dict[str, ChannelState] = {}

    def get(self, channel_id: str) -> ChannelState:
        return self._states.get(channel_id, ChannelState.NONE)

    def restore(self, channel_id: str, state: ChannelState) -> None:
        # no validation; used to pick up a flow started on an earlier request
        self._states[channel_id] = state

    def can_transition(self, channel_id: str, new: ChannelState) -> bool:
        return new in _TRANSITIONS[self.get(channel_id)]

    def transition(self, channel_id: str, new: ChannelState) -> ChannelState:
        current = self.get(channel_id)
        if new not in _TRANSITIONS[current]:
            raise ChannelStateError(
                f"Channel {channel_id}: illegal transition {current.value} -> {new.value}"
            )
        self._states[channel_id] = new
        return new

    def observe(self, channel: Channel) -> ChannelState:
        current = self.get(channel.id)
        if current == ChannelState.NONE:
            initial = ChannelState.CREATED_CONNECTED if channel.is_connected else ChannelState.CREATED_UNCONNECTED
            return self.transition(channel.id, initial)
        if channel.is_connected:
            if current in CONNECTED_STATES:
                return current
            if self.can_transition(channel.id, ChannelState.CONNECTED):
                return self.transition(channel.id, ChannelState.CONNECTED)
            return current
        if current in CONNECTED_STATES:
            logger.warning(f"Channel {channel.id} reported disconnected after connecting; keeping {current.value}")
        return current

    def is_connected(self, channel_id: str) -> bool:
        return self.get(channel_id) in CONNECTED_STATES


@dataclass
class ConnectResult:
    redirected: bool = False
    connected: bool = False
    redirect_url: str | None = None
    channel: Channel | None = None
    message: str = ""


class ChannelConnectionController:
    # one project view; resume context and managed channel live in the session

    def __init__(
        self,
        api: ApiClient,
        project_id: str,
        session: MutableMapping,
        guard: InFlightGuard | None = None,
        owner: Hashable = None,
        providers: dict | None = None,
    ):
        self.api = api
        self.project_id = project_id
        self.session = session
        self.resume = ResumeStore(session)
        self.guard = guard or InFlightGuard()
        self.owner = owner
        self.providers = providers
        self.states = ChannelStateMachine()
        self.channels: list[Channel] = []
        self.error: str | None = None
        self.loading = False
        self.adding = False
        self.connecting: set[str] = set()

    def _provider(self, channel_type: ChannelType | str) -> ChannelProvider:
        return get_provider(channel_type, self.providers)

    def _fail(self, prefix: str, err: ApiError) -> None:
        self.error = f"{prefix}: {err.message}"
        logger.error(f"{self.error} (project {self.project_id}, status {err.status})")

    def get(self, channel_id: str) -> Channel | None:
        for channel in self.channels:
            if channel.id == channel_id:
                return channel
        return None

    # Listing

    async def refresh(self) -> list[Channel]:
        self.loading = True
        self.error = None
        try:
            self.channels = await channels_api.list_project_channels(self.api, self.project_id)
        except ApiError as e:
            self._fail("Failed to load channels", e)
            raise
        finally:
            self.loading = False
        for channel in self.channels:
            self.states.observe(channel)
        if self.managed_channel_id and self.get(self.managed_channel_id) is None:
            self.stop_managing()
        return self.channels

    # Managed channel

    def _managed(self) -> dict:
        # One open channel per project: {project_id: channel_id}.
        return dict(self.session.get(MANAGED_CHANNEL_KEY) or {})

    @property
    def managed_channel_id(self) -> str | None:
        return self._managed().get(self.project_id)

    @property
    def managed_channel(self) -> Channel | None:
        channel_id = self.managed_channel_id
        return self.get(channel_id) if channel_id else None

    def manage(self, channel_id: str) -> Channel:
        channel = self.get(channel_id)
        if channel is None:
            raise ApiError(404, f"Channel {channel_id} not found in this project")
        managed = self._managed()
        managed[self.project_id] = channel_id
        self.session[MANAGED_CHANNEL_KEY] = managed
        return channel

    def stop_managing(self) -> None:
        managed = self._managed()
        managed.pop(self.project_id, None)
        if managed:
            self.session[MANAGED_CHANNEL_KEY] = managed
        else:
            self.session.pop(MANAGED_CHANNEL_KEY, None)

    # Connection flow

    async def initialize(self, channel_type: ChannelType | str = ChannelType.GMAIL) -> Channel:
        provider = self._provider(channel_type)
        try:
            channel = await provider.initialize(self.api, self.project_id)
        except ApiError as e:
            self._fail("Failed to add channel", e)
            raise
        self.states.observe(channel)
        logger.info(f"Initialized {channel.channel_type.value} channel {channel.id} (connected={channel.is_connected})")
        return channel

    async def connect(self, channel_id: str, return_url: str | None = None) -> ConnectResult:
        key = (self.owner, "connect", channel_id)
        async with self.guard.hold(key, "connect channel"):
            self.connecting.add(channel_id)
            self.error = None
            stashed = False
            try:
                channel = self.get(channel_id) or await channels_api.get_channel(self.api, channel_id)
                self.states.observe(channel)
                if self.states.is_connected(channel_id):
                    return ConnectResult(connected=True, channel=channel, message="Channel already connected")

                # stashed before the OAuth URL is requested; the redirect leaves this page
                self.resume.stash(self.project_id, return_url or f"/projects/{self.project_id}")
                stashed = True
                oauth = await self._provider(channel.channel_type).authorize(self.api, channel_id)
                return await self._follow(channel, oauth)
            except ApiError as e:
                if stashed:
                    self.resume.consume()
                self._fail("Failed to connect channel", e)
                raise
            finally:
                self.connecting.discard(channel_id)

    async def _follow(self, channel: Channel, oauth: OAuthUrlResponse) -> ConnectResult:
        if oauth.requires_oauth and oauth.oauth_url:
            self.states.transition(channel.id, ChannelState.AWAITING_REDIRECT)
            logger.info(f"Channel {channel.id} awaiting OAuth redirect")
            return ConnectResult(
                redirected=True, redirect_url=oauth.oauth_url, channel=channel,
                message=oauth.status_message,
            )

        # No redirect: nothing will be consumed by a callback.
        self.resume.consume()
        await self.refresh()
        refreshed = self.get(channel.id) or channel
        if refreshed.is_connected and not self.states.is_connected(channel.id):
            self.states.transition(channel.id, ChannelState.CONNECTED)
        return ConnectResult(
            connected=refreshed.is_connected, channel=refreshed, message=oauth.status_message,
        )

    async def add_channel(
        self, channel_type: ChannelType | str = ChannelType.GMAIL, return_url: str | None = None,
    ) -> ConnectResult:
        key = (self.owner, "add", self.project_id)
        async with self.guard.hold(key, "add channel"):
            self.adding = True
            try:
                channel = await self.initialize(channel_type)
                await self.refresh()
            finally:
                self.adding = False
        if channel.is_connected:
            return ConnectResult(connected=True, channel=channel, message="Channel connected")
        return await self.connect(channel.id, return_url)

    async def reauthenticate(self, return_url: str | None = None) -> ConnectResult:
        key = (self.owner, "reauth", self.project_id)
        async with self.guard.hold(key, "re-authenticate"):
            self.error = None
            self.resume.stash(self.project_id, return_url or f"/projects/{self.project_id}")
            try:
                oauth = await self._provider(ChannelType.GMAIL).reauthorize(self.api)
            except ApiError as e:
                self.resume.consume()
                self._fail("Failed to re-authenticate channel", e)
                raise
            if oauth.requires_oauth and oauth.oauth_url:
                return ConnectResult(redirected=True, redirect_url=oauth.oauth_url, message=oauth.status_message)
            self.resume.consume()
            await self.refresh()
            return ConnectResult(connected=True, message=oauth.status_message)

    async def delete(self, channel_id: str) -> None:
        key = (self.owner, "delete", channel_id)
        async with self.guard.hold(key, "delete channel"):
            self.error = None
            try:
                await channels_api.delete_channel(self.api, channel_id)
            except ApiError as e:
                self._fail("Failed to delete channel", e)
                raise
            self.states.transition(channel_id, ChannelState.DELETED)
            if self.managed_channel_id == channel_id:
                self.stop_managing()
            self.channels = [c for c in self.channels if c.id != channel_id]
            logger.info(f"Deleted channel {channel_id}")
        await self.refresh()
