"""Channel providers behind a common interface.

Gmail connects through the backend's OAuth endpoints. Slack has no OAuth
handshake exposed by the backend yet, so it is created through the generic
channel endpoints and marked connected directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .clients import channels as channels_api
from .clients.base import ApiClient
from .exceptions import UnknownProviderError
from .schemas import Channel, ChannelCreate, ChannelType, ChannelUpdate, OAuthUrlResponse


class ChannelProvider(ABC):
    """Creates channels of one type and starts their authorization."""

    channel_type: ChannelType

    @abstractmethod
    async def initialize(self, api: ApiClient, project_id: str) -> Channel:
        """Create (or reuse) the project's channel record."""

    @abstractmethod
    async def authorize(self, api: ApiClient, channel_id: str) -> OAuthUrlResponse:
        """Ask how the channel gets connected.

        ``requires_oauth=True`` means the browser must visit ``oauth_url``;
        otherwise the channel is already connected when this returns.
        """

    async def reauthorize(self, api: ApiClient) -> OAuthUrlResponse:
        raise UnknownProviderError(f"{self.channel_type.value} channels cannot be re-authorized")


class GmailProvider(ChannelProvider):
    channel_type = ChannelType.GMAIL

    async def initialize(self, api: ApiClient, project_id: str) -> Channel:
        return await channels_api.initialize_gmail_channel(api, project_id)

    async def authorize(self, api: ApiClient, channel_id: str) -> OAuthUrlResponse:
        return await channels_api.get_gmail_oauth_url(api, channel_id)

    async def reauthorize(self, api: ApiClient) -> OAuthUrlResponse:
        return await channels_api.reauthenticate_gmail(api)


class SlackProvider(ChannelProvider):
    channel_type = ChannelType.SLACK

    async def initialize(self, api: ApiClient, project_id: str) -> Channel:
        payload = ChannelCreate(project_id=project_id, channel_type=ChannelType.SLACK)
        return await channels_api.create_channel(api, payload)

    async def authorize(self, api: ApiClient, channel_id: str) -> OAuthUrlResponse:
        await channels_api.update_channel(api, channel_id, ChannelUpdate(is_connected=True))
        return OAuthUrlResponse(requires_oauth=False, status_message="Slack channel connected")


DEFAULT_PROVIDERS = {
    ChannelType.GMAIL: GmailProvider(),
    ChannelType.SLACK: SlackProvider(),
}


def get_provider(channel_type: ChannelType | str, providers: dict | None = None) -> ChannelProvider:
    registry = providers if providers is not None else DEFAULT_PROVIDERS
    try:
        return registry[ChannelType(channel_type)]
    except (KeyError, ValueError):
        raise UnknownProviderError(f"No provider registered for channel type '{channel_type}'")
