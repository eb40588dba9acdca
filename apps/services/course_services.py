"""HTTP client for the hosted course services (summaries, naming, uploads, exams)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from synapse_core.core.config import ServicesSettings
from synapse_core.dispatch.orchestrator import CourseFile

LOGGER = logging.getLogger("synapse.services")


class ServiceError(RuntimeError):
    """The service answered, but not with an ``ok`` payload."""


@dataclass
class CourseServicesConfig:
    base_url: str
    api_key: str | None = None
    timeout: float = 60.0

    @classmethod
    def from_settings(cls, settings: ServicesSettings) -> "CourseServicesConfig":
        api_key = os.getenv(settings.api_key_env) if settings.api_key_env else None
        return cls(base_url=settings.api_base, api_key=api_key, timeout=settings.timeout)


class CourseServicesClient:
    """Async client for the orchestrator's ``CourseServices`` contract and exam-snipe history."""

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

    async def course_from_text(self, description: str, course_name: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"description": description}
        if course_name:
            payload["courseName"] = course_name
        return await self._post("/api/course-from-text", payload)

    async def upload_file(self, file: CourseFile) -> List[Dict[str, str]]:
        """Send one file for text extraction; returns ``[{name, text}]`` documents."""

        files = {"files": (file.name, file.data, file.content_type or "application/octet-stream")}
        response = await self._client.post(
            "/api/upload-course-files",
            files=files,
            headers=self._build_headers(),
        )
        data = self._decode(response, "/api/upload-course-files")
        docs = data.get("docs")
        return [doc for doc in docs if isinstance(doc, dict)] if isinstance(docs, list) else []

    async def summarize(
        self,
        *,
        subject: str,
        syllabus: str,
        text: str,
        documents: List[Dict[str, str]],
        language: Optional[str] = None,
    ) -> Optional[str]:
        payload = {
            "subject": subject,
            "syllabus": syllabus,
            "text": text,
            "documents": documents,
        }
        if language:
            payload["preferredLanguage"] = language
        data = await self._post("/api/course-summary", payload)
        return data.get("course_context") or None

    async def detect_name(self, *, context: str, fallback_title: str, language: Optional[str] = None) -> Optional[str]:
        payload = {"context": context, "fallbackTitle": fallback_title}
        if language:
            payload["preferredLanguage"] = language
        data = await self._post("/api/course-detect-name", payload)
        return data.get("name") or None

    async def quick_summary(self, *, context: str, language: Optional[str] = None) -> Optional[str]:
        payload = {"context": context}
        if language:
            payload["preferredLanguage"] = language
        data = await self._post("/api/course-quick-summary", payload)
        return data.get("summary") or None

    async def detect_exam_files(self, snippets: List[Dict[str, str]]) -> List[str]:
        data = await self._post("/api/detect-exam-files", {"fileSnippets": snippets})
        names = data.get("examFiles")
        return [str(name) for name in names] if isinstance(names, list) else []

    async def analyze_exams(self, *, slug: str, course_name: str, exams: List[Dict[str, str]]) -> None:
        payload = {
            "examsText": exams,
            "courseName": course_name,
            "subjectSlug": slug,
            "fileNames": [exam.get("name", "") for exam in exams],
        }
        await self._post("/api/exam-snipe/background", payload)

    async def exam_snipe_history(self) -> List[Dict[str, Any]]:
        path = "/api/exam-snipe/history"
        response = await self._client.get(path, headers=self._build_headers())
        history = self._decode(response, path).get("history")
        return [entry for entry in history if isinstance(entry, dict)] if isinstance(history, list) else []

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._client.post(path, json=payload, headers=self._build_headers())
        return self._decode(response, path)

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
        LOGGER.debug("Service call succeeded", extra={"path": path, "status": response.status_code})
        return data

    def _build_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return headers


__all__ = ["CourseServicesClient", "CourseServicesConfig", "ServiceError"]
