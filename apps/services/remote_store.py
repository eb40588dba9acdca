"""Server-side subject list and course records, read over HTTP."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from synapse_core.models import SubjectRecord

from .course_services import CourseServicesConfig, ServiceError

LOGGER = logging.getLogger("synapse.sync")


class RemoteSessionClient:
    """Implements ``RemoteSessionSource`` against ``/api/subjects`` and ``/api/subject-data``."""

    def __init__(
        self,
        config: CourseServicesConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        if client is None:
            self._client = httpx.AsyncClient(base_url=config.base_url, timeout=config.timeout)
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False

    async def fetch_subjects(self) -> List[SubjectRecord]:
        response = await self._client.get("/api/subjects", headers=self._build_headers())
        data = self._decode(response, "/api/subjects")
        subjects: List[SubjectRecord] = []
        for item in data.get("subjects") or []:
            if isinstance(item, dict) and item.get("slug") and item.get("name"):
                subjects.append(SubjectRecord(name=item["name"], slug=item["slug"]))
            else:
                LOGGER.debug("Ignoring malformed server subject", extra={"entry": item})
        return subjects

    async def fetch_record(self, slug: str) -> Optional[Dict[str, Any]]:
        response = await self._client.get(
            "/api/subject-data",
            params={"slug": slug},
            headers=self._build_headers(),
        )
        data = self._decode(response, "/api/subject-data")
        record = data.get("data")
        return record if isinstance(record, dict) else None

    async def push_record(self, slug: str, record: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._client.put(
            "/api/subject-data",
            json={"slug": slug, "data": record},
            headers=self._build_headers(),
        )
        data = self._decode(response, "/api/subject-data")
        data.setdefault("status", "ok")
        return data

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _decode(self, response: httpx.Response, path: str) -> Dict[str, Any]:
        response.raise_for_status()
        try:
            data = response.json()
        except ValueError as exc:
            raise ServiceError(f"{path} returned a non-JSON payload") from exc
        if not isinstance(data, dict):
            raise ServiceError(f"{path} returned {type(data).__name__}, expected an object")
        if data.get("ok") is False:
            raise ServiceError(f"{path} failed: {data.get('error') or 'unknown error'}")
        return data

    def _build_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return headers


__all__ = ["RemoteSessionClient"]
