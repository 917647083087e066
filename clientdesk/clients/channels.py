from typing import List

from .base import ApiClient
from ..schemas import (
    Channel,
    ChannelCreate,
    ChannelMetrics,
    ChannelUpdate,
    OAuthUrlResponse,
    StatusResponse,
)


async def list_project_channels(api: ApiClient, project_id: str) -> List[Channel]:
    data = await api.get(f"/channels/project/{project_id}")
    return [Channel.model_validate(c) for c in data or []]


async def get_channel(api: ApiClient, channel_id: str) -> Channel:
    return Channel.model_validate(await api.get(f"/channels/{channel_id}"))


async def create_channel(api: ApiClient, payload: ChannelCreate) -> Channel:
    data = await api.post("/channels/", json=payload.model_dump(mode="json"))
    return Channel.model_validate(data)


async def update_channel(api: ApiClient, channel_id: str, payload: ChannelUpdate) -> Channel:
    body = payload.model_dump(mode="json", exclude_unset=True)
    return Channel.model_validate(await api.patch(f"/channels/{channel_id}", json=body))


async def delete_channel(api: ApiClient, channel_id: str) -> StatusResponse:
    data = await api.delete(f"/channels/{channel_id}")
    return StatusResponse.model_validate(data or {"status": "deleted"})


async def get_channel_metrics(api: ApiClient, channel_id: str) -> ChannelMetrics:
    return ChannelMetrics.model_validate(await api.get(f"/channels/{channel_id}/metrics"))


# Gmail

async def initialize_gmail_channel(api: ApiClient, project_id: str) -> Channel:
    """Create the project's Gmail channel, or reuse one with valid credentials."""
    return Channel.model_validate(await api.post(f"/gmail/channel/initialize/{project_id}"))


async def get_gmail_oauth_url(api: ApiClient, channel_id: str) -> OAuthUrlResponse:
    return OAuthUrlResponse.model_validate(await api.post(f"/gmail/channel/oauth/{channel_id}"))


async def reauthenticate_gmail(api: ApiClient) -> OAuthUrlResponse:
    return OAuthUrlResponse.model_validate(await api.post("/gmail/channel/reoauth"))


async def exchange_gmail_code(api: ApiClient, code: str, state: str) -> StatusResponse:
    """Hand the provider's authorization code to the backend.

    The provider redirect carries no bearer token, so this call is sent
    unauthenticated; ``state`` is the channel id.
    """
    data = await api.get(
        "/gmail/channel/callback", params={"code": code, "state": state}, auth=False,
    )
    return StatusResponse.model_validate(data)
