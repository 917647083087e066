from typing import List, Optional

from .base import ApiClient
from ..schemas import Project, ProjectCreate, ProjectMetrics, ProjectStatus, ProjectUpdate


async def list_projects(api: ApiClient, status: Optional[ProjectStatus] = None) -> List[Project]:
    params = {"status": status.value} if status else None
    data = await api.get("/projects/", params=params)
    return [Project.model_validate(p) for p in data or []]


async def get_project(api: ApiClient, project_id: str) -> Project:
    return Project.model_validate(await api.get(f"/projects/{project_id}"))


async def create_project(api: ApiClient, payload: ProjectCreate) -> Project:
    data = await api.post("/projects/", json=payload.model_dump(mode="json"))
    return Project.model_validate(data)


async def update_project(api: ApiClient, project_id: str, payload: ProjectUpdate) -> Project:
    # Only fields the caller set go over the wire, so a status toggle touches nothing else.
    body = payload.model_dump(mode="json", exclude_unset=True)
    return Project.model_validate(await api.patch(f"/projects/{project_id}", json=body))


async def get_project_metrics(api: ApiClient, project_id: str) -> ProjectMetrics:
    return ProjectMetrics.model_validate(await api.get(f"/projects/{project_id}/metrics"))

