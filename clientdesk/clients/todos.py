from typing import List, Optional

from .base import ApiClient
from ..schemas import TodoGenerateRequest, TodoItem, TodoList, TodoListUpdate


async def generate_todo_list(api: ApiClient, project_id: str, payload: TodoGenerateRequest) -> TodoList:
    data = await api.post(f"/todo-lists/project/{project_id}", json=payload.model_dump())
    return TodoList.model_validate(data)


async def get_todo_list(api: ApiClient, project_id: str) -> Optional[TodoList]:
    # 404 means the project has no list yet.
    data = await api.get(f"/todo-lists/project/{project_id}", allow_404=True)
    return TodoList.model_validate(data) if data is not None else None


async def update_todo_list(api: ApiClient, project_id: str, items: List[TodoItem]) -> TodoList:
    body = TodoListUpdate(items=items).model_dump(mode="json")
    return TodoList.model_validate(await api.patch(f"/todo-lists/project/{project_id}", json=body))
