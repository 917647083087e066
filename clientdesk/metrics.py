"""Per-entity card counters; a failing entity reads as zero and never affects its siblings."""

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Iterable, Optional, TypeVar

from .clients import channels as channels_api
from .clients import contacts as contacts_api
from .clients import projects as projects_api
from .clients.base import ApiClient
from .schemas import ChannelMetrics, ContactMetrics, ProjectMetrics

logger = logging.getLogger(__name__)

M = TypeVar("M")


class MetricsAggregator(Generic[M]):

    def __init__(self, fetch: Callable[[str], Awaitable[M]], zero: Callable[[], M], name: str = "entity"):
        self._fetch = fetch
        self._zero = zero
        self.name = name
        self.metrics: dict[str, M] = {}
        self.loading: set[str] = set()
        self.failed: set[str] = set()
        self._ids: Optional[tuple] = None

    @property
    def ids(self) -> tuple:
        return self._ids or ()

    def get(self, entity_id: str) -> M:
        return self.metrics.get(entity_id, self._zero())

    def is_loading(self, entity_id: str) -> bool:
        return entity_id in self.loading

    async def _load(self, entity_id: str) -> None:
        try:
            value = await self._fetch(entity_id)
            self.failed.discard(entity_id)
        except Exception as e:
            logger.warning(f"Metrics fetch failed for {self.name} {entity_id}: {e}")
            value = self._zero()
            self.failed.add(entity_id)
        # a cancelled fetch stays in loading
        self.metrics[entity_id] = value
        self.loading.discard(entity_id)

    async def refresh(self, entity_ids: Iterable[str], force: bool = False,
                      timeout: Optional[float] = None) -> dict:
        # fetches still pending after `timeout` are cancelled and stay in loading
        ids = tuple(entity_ids)
        if ids == self._ids and not force:
            return self.metrics
        self._ids = ids
        self.metrics = {}
        self.failed = set()
        unique = list(dict.fromkeys(ids))
        self.loading = set(unique)
        if not unique:
            return self.metrics
        tasks = [asyncio.create_task(self._load(entity_id)) for entity_id in unique]
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.wait(pending)
            logger.info(f"{len(pending)} {self.name} metrics still loading after {timeout}s")
        return self.metrics


def project_metrics(api: ApiClient) -> MetricsAggregator[ProjectMetrics]:
    return MetricsAggregator(lambda pid: projects_api.get_project_metrics(api, pid), ProjectMetrics, "project")


def channel_metrics(api: ApiClient) -> MetricsAggregator[ChannelMetrics]:
    return MetricsAggregator(lambda cid: channels_api.get_channel_metrics(api, cid), ChannelMetrics, "channel")


def contact_metrics(api: ApiClient) -> MetricsAggregator[ContactMetrics]:
    return MetricsAggregator(lambda cid: contacts_api.get_contact_metrics(api, cid), ContactMetrics, "contact")

