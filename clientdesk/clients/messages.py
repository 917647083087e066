from typing import List

from .base import ApiClient
from ..schemas import Message, MessageFetchRequest, MessageFilter, MessageUpdate, StatusResponse


async def list_messages(api: ApiClient, filters: MessageFilter) -> List[Message]:
    data = await api.get("/messages/", params=filters.to_params())
    return [Message.model_validate(m) for m in data or []]


async def get_message(api: ApiClient, message_id: str) -> Message:
    return Message.model_validate(await api.get(f"/messages/{message_id}"))


async def mark_message_read(api: ApiClient, message_id: str, is_read: bool) -> Message:
    body = MessageUpdate(is_read=is_read).model_dump()
    return Message.model_validate(await api.patch(f"/messages/{message_id}/read", json=body))


async def fetch_gmail_messages(api: ApiClient, payload: MessageFetchRequest) -> StatusResponse:
    """Ask the backend to backfill Gmail history for the given contacts."""
    data = await api.post("/gmail/message/fetch", json=payload.model_dump())
    return StatusResponse.model_validate(data)
