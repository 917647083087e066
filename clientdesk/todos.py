"""Todo list edits.

Every edit builds a new item list from the current one; the caller sends it
to the backend and only adopts it once the backend accepts it.
"""

from __future__ import annotations

import time
from datetime import date, datetime, timezone

from .schemas import TodoGenerateRequest, TodoItem, TodoList


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_request(start: str, end: str) -> TodoGenerateRequest:
    """Whole-day range from two ``YYYY-MM-DD`` strings; both are required."""
    if not start or not end:
        raise ValueError("Please select both start and end dates")
    start_day, end_day = date.fromisoformat(start), date.fromisoformat(end)
    if end_day < start_day:
        raise ValueError("End date must not be before start date")
    return TodoGenerateRequest(
        start_date=f"{start_day.isoformat()}T00:00:00Z",
        end_date=f"{end_day.isoformat()}T23:59:59Z",
    )


def _find(todo_list: TodoList, item_id: str) -> TodoItem:
    for item in todo_list.items:
        if item.id == item_id:
            return item
    raise KeyError(item_id)


def toggle_item(todo_list: TodoList, item_id: str, completed: bool) -> list[TodoItem]:
    _find(todo_list, item_id)
    now = _now()
    return [
        item.model_copy(update={
            "is_completed": completed,
            "completed_at": now if completed else None,
            "updated_at": now,
        }) if item.id == item_id else item
        for item in todo_list.items
    ]


def edit_item(todo_list: TodoList, item_id: str, description: str, priority: int) -> list[TodoItem]:
    description = description.strip()
    if not description:
        raise ValueError("Description must not be empty")
    _find(todo_list, item_id)
    now = _now()
    return [
        item.model_copy(update={
            "description": description,
            "display_order": priority,
            "updated_at": now,
        }) if item.id == item_id else item
        for item in todo_list.items
    ]


def delete_item(todo_list: TodoList, item_id: str) -> list[TodoItem]:
    _find(todo_list, item_id)
    return [item for item in todo_list.items if item.id != item_id]


def add_item(todo_list: TodoList, description: str, priority: int = 1) -> list[TodoItem]:
    description = description.strip()
    if not description:
        raise ValueError("Description must not be empty")
    now = _now()
    # temporary id until the backend assigns one
    item = TodoItem(
        id=f"new_{int(time.time() * 1000)}",
        description=description,
        display_order=priority,
        created_at=now,
        updated_at=now,
    )
    return [*todo_list.items, item]
