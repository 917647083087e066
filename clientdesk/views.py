import logging
from datetime import date
from typing import Callable, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from pydantic import BaseModel

from . import todos
from .clients import channels as channels_api
from .clients import contacts as contacts_api
from .clients import documents as documents_api
from .clients import messages as messages_api
from .clients import projects as projects_api
from .clients import timeline as timeline_api
from .clients import todos as todos_api
from .clients.base import ApiClient
from .config import MESSAGE_PAGE_SIZE, METRICS_WAIT
from .connection import ChannelConnectionController
from .deps import get_api, get_guard, get_owner
from .exceptions import ApiError
from .filters import filter_documents, filter_messages, format_file_size, newest_first, truncate_summary
from .metrics import channel_metrics, contact_metrics, project_metrics
from .schemas import (
    ChannelType,
    ContactCreate,
    ContactUpdate,
    DocumentSourceFilter,
    MessageDirection,
    MessageFetchRequest,
    MessageFilter,
    MessageUpdate,
    ProjectCreate,
    ProjectStatus,
    ProjectUpdate,
    ReadStatus,
    TodoList,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


class NewContact(BaseModel):
    account_identifier: str
    name: Optional[str] = None


class TodoRange(BaseModel):
    start_date: str
    end_date: str


class NewTodoItem(BaseModel):
    description: str
    priority: int = 1


class TodoItemChange(BaseModel):
    description: Optional[str] = None
    priority: Optional[int] = None
    is_completed: Optional[bool] = None


def _dump(model) -> dict:
    return model.model_dump(mode="json")


# Projects

@router.get("/dashboard")
async def dashboard(api: ApiClient = Depends(get_api)):
    projects = await projects_api.list_projects(api)
    agg = project_metrics(api)
    await agg.refresh([p.id for p in projects], timeout=METRICS_WAIT)
    out = {"active": [], "archived": []}
    for p in projects:
        card = {"project": _dump(p), "metrics": _dump(agg.get(p.id)), "loading": agg.is_loading(p.id)}
        out["active" if p.is_active else "archived"].append(card)
    return out


@router.get("/projects")
async def list_projects(status: Optional[ProjectStatus] = None, api: ApiClient = Depends(get_api)):
    return [_dump(p) for p in await projects_api.list_projects(api, status)]


@router.post("/projects", status_code=201)
async def create_project(payload: ProjectCreate, request: Request, api: ApiClient = Depends(get_api)):
    async with get_guard(request).hold((get_owner(request), "create-project"), "create project"):
        project = await projects_api.create_project(api, payload)
    try:
        await timeline_api.initialize_timeline_recap(api, project.id)
    except ApiError as e:
        # the recap is initialized again lazily when the timeline is first opened
        logger.warning(f"Timeline recap init failed for project {project.id}: {e.message}")
    return _dump(project)


@router.get("/projects/{project_id}")
async def get_project(project_id: str, api: ApiClient = Depends(get_api)):
    return _dump(await projects_api.get_project(api, project_id))


@router.patch("/projects/{project_id}")
async def update_project(project_id: str, payload: ProjectUpdate, request: Request, api: ApiClient = Depends(get_api)):
    async with get_guard(request).hold((get_owner(request), "update-project", project_id), "update project"):
        return _dump(await projects_api.update_project(api, project_id, payload))


async def _set_status(request: Request, api: ApiClient, project_id: str, status: ProjectStatus) -> dict:
    async with get_guard(request).hold((get_owner(request), "status", project_id), "change project status"):
        project = await projects_api.update_project(api, project_id, ProjectUpdate(status=status))
    logger.info(f"Project {project_id} is now {project.status.value}")
    return _dump(project)


@router.post("/projects/{project_id}/archive")
async def archive_project(project_id: str, request: Request, api: ApiClient = Depends(get_api)):
    return await _set_status(request, api, project_id, ProjectStatus.ARCHIVED)


@router.post("/projects/{project_id}/unarchive")
async def unarchive_project(project_id: str, request: Request, api: ApiClient = Depends(get_api)):
    return await _set_status(request, api, project_id, ProjectStatus.ACTIVE)


@router.get("/projects/{project_id}/metrics")
async def get_project_metrics(project_id: str, api: ApiClient = Depends(get_api)):
    return _dump(await projects_api.get_project_metrics(api, project_id))


# Channels

def _channels(request: Request, api: ApiClient, project_id: str) -> ChannelConnectionController:
    return ChannelConnectionController(
        api, project_id, request.session, guard=get_guard(request), owner=get_owner(request),
    )


async def _channel_view(controller: ChannelConnectionController, api: ApiClient) -> dict:
    agg = channel_metrics(api)
    await agg.refresh([c.id for c in controller.channels], timeout=METRICS_WAIT)
    return {
        "channels": [
            {
                "channel": _dump(c), "metrics": _dump(agg.get(c.id)), "loading": agg.is_loading(c.id),
                "state": controller.states.get(c.id).value,
            }
            for c in controller.channels
        ],
        "managed_channel_id": controller.managed_channel_id,
        "error": controller.error,
    }


@router.get("/projects/{project_id}/channels")
async def list_channels(project_id: str, request: Request, api: ApiClient = Depends(get_api)):
    controller = _channels(request, api, project_id)
    await controller.refresh()
    return await _channel_view(controller, api)


@router.post("/projects/{project_id}/channels/{channel_id}/manage")
async def manage_channel(project_id: str, channel_id: str, request: Request, api: ApiClient = Depends(get_api)):
    controller = _channels(request, api, project_id)
    await controller.refresh()
    controller.manage(channel_id)
    return await _channel_view(controller, api)


@router.delete("/projects/{project_id}/channels/manage")
async def close_managed_channel(project_id: str, request: Request, api: ApiClient = Depends(get_api)):
    controller = _channels(request, api, project_id)
    controller.stop_managing()
    await controller.refresh()
    return await _channel_view(controller, api)


@router.delete("/projects/{project_id}/channels/{channel_id}")
async def delete_channel(project_id: str, channel_id: str, request: Request, api: ApiClient = Depends(get_api)):
    controller = _channels(request, api, project_id)
    await controller.delete(channel_id)
    return await _channel_view(controller, api)


# Contacts

@router.get("/channels/{channel_id}/contacts")
async def list_contacts(channel_id: str, api: ApiClient = Depends(get_api)):
    contacts = await contacts_api.list_channel_contacts(api, channel_id)
    agg = contact_metrics(api)
    await agg.refresh([c.id for c in contacts], timeout=METRICS_WAIT)
    return [
        {"contact": _dump(c), "metrics": _dump(agg.get(c.id)), "loading": agg.is_loading(c.id)}
        for c in contacts
    ]


@router.post("/channels/{channel_id}/contacts", status_code=201)
async def create_contact(channel_id: str, payload: NewContact, request: Request, api: ApiClient = Depends(get_api)):
    try:
        data = ContactCreate(channel_id=channel_id, account_identifier=payload.account_identifier, name=payload.name)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    async with get_guard(request).hold((get_owner(request), "create-contact", channel_id), "create contact"):
        contact = await contacts_api.create_contact(api, data)
        channel = await channels_api.get_channel(api, channel_id)
    backfill = None
    if channel.channel_type == ChannelType.GMAIL:
        fetch = MessageFetchRequest(project_id=channel.project_id, channel_id=channel_id, contact_ids=[contact.id])
        try:
            backfill = _dump(await messages_api.fetch_gmail_messages(api, fetch))
        except ApiError as e:
            logger.warning(f"Gmail backfill for contact {contact.id} failed: {e.message}")
            backfill = {"status": "failed", "status_message": e.message}
    return {"contact": _dump(contact), "backfill": backfill}


@router.patch("/contacts/{contact_id}")
async def update_contact(contact_id: str, payload: ContactUpdate, request: Request, api: ApiClient = Depends(get_api)):
    async with get_guard(request).hold((get_owner(request), "update-contact", contact_id), "update contact"):
        return _dump(await contacts_api.update_contact(api, contact_id, payload))


@router.delete("/contacts/{contact_id}")
async def delete_contact(contact_id: str, request: Request, api: ApiClient = Depends(get_api)):
    async with get_guard(request).hold((get_owner(request), "delete-contact", contact_id), "delete contact"):
        return _dump(await contacts_api.delete_contact(api, contact_id))


# Messages

@router.get("/contacts/{contact_id}/messages")
async def list_messages(
    contact_id: str,
    search: str = "",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    direction: MessageDirection = MessageDirection.ALL,
    read_status: ReadStatus = ReadStatus.ALL,
    api: ApiClient = Depends(get_api),
):
    contact = await contacts_api.get_contact(api, contact_id)
    channel = await channels_api.get_channel(api, contact.channel_id)
    filters = MessageFilter(
        project_id=channel.project_id, channel_id=channel.id, contact_id=contact.id,
        limit=MESSAGE_PAGE_SIZE, offset=0,
    )
    messages = newest_first(await messages_api.list_messages(api, filters), "registered_at")
    shown = filter_messages(messages, search, start_date, end_date, direction, read_status)
    return {
        "contact": _dump(contact),
        "total": len(messages),
        "messages": [dict(_dump(m), preview_text=m.preview_text) for m in shown],
    }


@router.get("/messages/{message_id}")
async def get_message(message_id: str, api: ApiClient = Depends(get_api)):
    message = await messages_api.get_message(api, message_id)
    return dict(_dump(message), preview_text=message.preview_text)


@router.patch("/messages/{message_id}/read")
async def mark_message(message_id: str, payload: MessageUpdate, api: ApiClient = Depends(get_api)):
    return _dump(await messages_api.mark_message_read(api, message_id, payload.is_read))


# Documents

@router.get("/projects/{project_id}/documents")
async def list_documents(
    project_id: str,
    search: str = "",
    source: DocumentSourceFilter = DocumentSourceFilter.ALL,
    api: ApiClient = Depends(get_api),
):
    documents = newest_first(await documents_api.list_project_documents(api, project_id), "created_at")
    shown = filter_documents(documents, search, source)
    return {
        "total": len(documents),
        "documents": [dict(_dump(d), display_name=d.display_name, size_label=format_file_size(d.file_size)) for d in shown],
    }


@router.post("/projects/{project_id}/documents", status_code=201)
async def upload_document(project_id: str, request: Request, file: UploadFile = File(...), api: ApiClient = Depends(get_api)):
    content = await file.read()
    async with get_guard(request).hold((get_owner(request), "upload", project_id), "upload document"):
        document = await documents_api.upload_document(
            api, project_id, file.filename or "upload", content, file.content_type,
        )
    return _dump(document)


@router.delete("/documents/{document_id}")
async def delete_document(document_id: str, request: Request, api: ApiClient = Depends(get_api)):
    async with get_guard(request).hold((get_owner(request), "delete-document", document_id), "delete document"):
        return _dump(await documents_api.delete_document(api, document_id))


@router.get("/documents/{document_id}/download")
async def download_document(document_id: str, api: ApiClient = Depends(get_api)):
    return _dump(await documents_api.get_document_download(api, document_id))


# Todos

@router.get("/projects/{project_id}/todos")
async def get_todos(project_id: str, api: ApiClient = Depends(get_api)):
    todo_list = await todos_api.get_todo_list(api, project_id)
    return _dump(todo_list) if todo_list else None


@router.post("/projects/{project_id}/todos/generate")
async def generate_todos(project_id: str, payload: TodoRange, request: Request, api: ApiClient = Depends(get_api)):
    try:
        body = todos.generate_request(payload.start_date, payload.end_date)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    async with get_guard(request).hold((get_owner(request), "generate-todos", project_id), "generate todos"):
        return _dump(await todos_api.generate_todo_list(api, project_id, body))


async def _edit_todos(request: Request, api: ApiClient, project_id: str, edit: Callable[[TodoList], list]) -> dict:
    async with get_guard(request).hold((get_owner(request), "todos", project_id), "update todos"):
        current = await todos_api.get_todo_list(api, project_id)
        if current is None:
            raise HTTPException(status_code=404, detail="No todo list for this project")
        try:
            items = edit(current)
        except KeyError as e:
            raise HTTPException(status_code=404, detail=f"Todo item {e.args[0]} not found")
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        # nothing is applied locally; a rejected update leaves the stored list as it was
        return _dump(await todos_api.update_todo_list(api, project_id, items))


@router.post("/projects/{project_id}/todos/items")
async def add_todo(project_id: str, payload: NewTodoItem, request: Request, api: ApiClient = Depends(get_api)):
    return await _edit_todos(request, api, project_id, lambda t: todos.add_item(t, payload.description, payload.priority))


@router.patch("/projects/{project_id}/todos/items/{item_id}")
async def change_todo(project_id: str, item_id: str, payload: TodoItemChange, request: Request, api: ApiClient = Depends(get_api)):
    def edit(todo_list: TodoList) -> list:
        items = todo_list
        if payload.description is not None or payload.priority is not None:
            current = next((i for i in todo_list.items if i.id == item_id), None)
            if current is None:
                raise KeyError(item_id)
            items = todo_list.model_copy(update={"items": todos.edit_item(
                todo_list, item_id,
                payload.description if payload.description is not None else current.description,
                payload.priority if payload.priority is not None else current.display_order,
            )})
        if payload.is_completed is not None:
            return todos.toggle_item(items, item_id, payload.is_completed)
        return items.items
    return await _edit_todos(request, api, project_id, edit)


@router.delete("/projects/{project_id}/todos/items/{item_id}")
async def delete_todo(project_id: str, item_id: str, request: Request, api: ApiClient = Depends(get_api)):
    return await _edit_todos(request, api, project_id, lambda t: todos.delete_item(t, item_id))


# Timeline recap

def _recap(recap) -> dict:
    data = _dump(recap)
    for section in ("recent_activity", "past_2_weeks"):
        for summary, raw in zip(getattr(recap, section), data[section]):
            raw["preview"] = truncate_summary(summary.content)
            raw["is_placeholder"] = summary.is_placeholder
    data["has_generatable_content"] = recap.has_generatable_content
    return data


@router.get("/projects/{project_id}/timeline")
async def get_timeline(project_id: str, api: ApiClient = Depends(get_api)):
    try:
        recap = await timeline_api.get_timeline_recap(api, project_id)
    except ApiError as e:
        if e.status != 404 and "not found" not in e.message.lower():
            raise
        logger.info(f"No timeline recap for project {project_id}, initializing")
        recap = await timeline_api.initialize_timeline_recap(api, project_id)
    return _recap(recap)


@router.post("/projects/{project_id}/timeline/generate")
async def generate_timeline(project_id: str, request: Request, api: ApiClient = Depends(get_api)):
    async with get_guard(request).hold((get_owner(request), "recap", project_id), "generate summaries"):
        return _recap(await timeline_api.generate_timeline_summaries(api, project_id))
