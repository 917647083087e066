from .base import ApiClient
from ..schemas import TimelineRecap


async def get_timeline_recap(api: ApiClient, project_id: str) -> TimelineRecap:
    return TimelineRecap.model_validate(await api.get(f"/timeline-recap/project/{project_id}"))


async def initialize_timeline_recap(api: ApiClient, project_id: str) -> TimelineRecap:
    data = await api.post(f"/timeline-recap/project/{project_id}/initialize")
    return TimelineRecap.model_validate(data or {})


async def generate_timeline_summaries(api: ApiClient, project_id: str) -> TimelineRecap:
    data = await api.post(f"/timeline-recap/project/{project_id}/generate-summaries")
    return TimelineRecap.model_validate(data)
