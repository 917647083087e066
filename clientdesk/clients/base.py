"""Async REST wrapper around the backend API with bearer-token forwarding."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import API_BASE_URL, API_TIMEOUT
from ..exceptions import ApiError, MissingTokenError

logger = logging.getLogger(__name__)


def error_message(response: httpx.Response) -> str:
    """Pull the human-readable message out of a FastAPI-style error body."""
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}"
    detail = data.get("detail") if isinstance(data, dict) else None
    if isinstance(detail, list) and detail:
        first = detail[0]
        return first.get("msg", str(first)) if isinstance(first, dict) else str(first)
    if detail:
        return str(detail)
    return response.reason_phrase or f"HTTP {response.status_code}"


class ApiClient:
    """One backend session for one bearer token.

    Args:
        token: Bearer token forwarded on every authenticated call.
        base_url: Backend API root.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        token: str | None,
        base_url: str = API_BASE_URL,
        timeout: float = API_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    def _headers(self, json_body: bool = True, auth: bool = True) -> dict:
        headers = {}
        if json_body:
            headers["Content-Type"] = "application/json"
        if auth:
            if not self.token:
                raise MissingTokenError()
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict | None = None,
        files: dict | None = None,
        auth: bool = True,
        allow_404: bool = False,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Returns ``None`` for a 404 when ``allow_404`` is set, and for empty
        2xx bodies. Raises ApiError for every other non-2xx response.
        """
        headers = self._headers(json_body=files is None, auth=auth)
        try:
            response = await self._client.request(
                method, path, json=json, params=params, files=files, headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError(503, f"Backend unreachable: {e}") from e

        if allow_404 and response.status_code == 404:
            return None
        if response.is_error:
            message = error_message(response)
            logger.warning(f"{method} {path} -> {response.status_code}: {message}")
            raise ApiError(response.status_code, message)
        if not response.content:
            return None
        return response.json()

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    async def patch(self, path: str, **kwargs) -> Any:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)
