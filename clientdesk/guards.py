import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable

from .exceptions import DuplicateSubmissionError

logger = logging.getLogger(__name__)


class InFlightGuard:
    # keys are (owner, action, entity_id)

    def __init__(self):
        self._pending: set[Hashable] = set()

    @asynccontextmanager
    async def hold(self, key: Hashable, action: str = "action") -> AsyncIterator[None]:
        if key in self._pending:
            logger.info(f"Rejected duplicate submission: {key!r}")
            raise DuplicateSubmissionError(action)
        self._pending.add(key)
        try:
            yield
        finally:
            self._pending.discard(key)
