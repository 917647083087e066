from typing import List

from .base import ApiClient
from ..schemas import Contact, ContactCreate, ContactMetrics, ContactUpdate, StatusResponse


async def list_channel_contacts(api: ApiClient, channel_id: str) -> List[Contact]:
    data = await api.get(f"/contacts/channel/{channel_id}")
    return [Contact.model_validate(c) for c in data or []]


async def get_contact(api: ApiClient, contact_id: str) -> Contact:
    return Contact.model_validate(await api.get(f"/contacts/{contact_id}"))


async def create_contact(api: ApiClient, payload: ContactCreate) -> Contact:
    data = await api.post("/contacts/", json=payload.model_dump(mode="json", exclude_none=True))
    return Contact.model_validate(data)


async def update_contact(api: ApiClient, contact_id: str, payload: ContactUpdate) -> Contact:
    data = await api.patch(f"/contacts/{contact_id}", json=payload.model_dump(mode="json"))
    return Contact.model_validate(data)


async def delete_contact(api: ApiClient, contact_id: str) -> StatusResponse:
    data = await api.delete(f"/contacts/{contact_id}")
    return StatusResponse.model_validate(data or {"status": "deleted"})


async def get_contact_metrics(api: ApiClient, contact_id: str) -> ContactMetrics:
    return ContactMetrics.model_validate(await api.get(f"/contacts/{contact_id}/metrics"))
