"""FastAPI mock for the hosted course API (subjects, records, chat stream, services)."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx
from fastapi import FastAPI, Header, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field


class ChatPayload(BaseModel):
    messages: List[Dict[str, Any]] = Field(default_factory=list)
    context: str = ""
    path: str = "/"


class RecordPayload(BaseModel):
    slug: str
    data: Dict[str, Any]


class CourseApiMock:
    """In-memory FastAPI app standing in for the course services and the session store."""

    def __init__(
        self,
        *,
        base_url: str = "http://course-api.local",
        token: str = "test-token",
    ) -> None:
        self.base_url = base_url
        self.token = token
        self.app = FastAPI()
        self.subjects: List[Dict[str, Any]] = []
        self.records: Dict[str, Dict[str, Any]] = {}
        self.chat_records: List[Dict[str, Any]] = []
        self.chat_turns: List[List[Dict[str, Any]]] = []
        self.exam_history: List[Dict[str, Any]] = []
        self.requests: List[Dict[str, Any]] = []
        self.summary: Optional[str] = "Generated summary"
        self.detected_name: Optional[str] = None
        self.exam_files: List[str] = []
        self.fail_paths: set[str] = set()
        self._clients: List[httpx.AsyncClient] = []
        self._register_routes()

    def _check(self, path: str, authorization: Optional[str], payload: Any = None) -> None:
        if self.token and authorization != f"Bearer {self.token}":
            raise HTTPException(status_code=401, detail="invalid token")
        self.requests.append({"path": path, "payload": payload, "authorization": authorization})
        if path in self.fail_paths:
            raise HTTPException(status_code=503, detail="unavailable")

    def _register_routes(self) -> None:
        app = self.app

        @app.get("/api/subjects")
        def list_subjects(authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
            self._check("/api/subjects", authorization)
            return {"ok": True, "subjects": self.subjects}

        @app.get("/api/subject-data")
        def get_record(slug: str, authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
            self._check("/api/subject-data", authorization, {"slug": slug})
            return {"ok": True, "data": self.records.get(slug)}

        @app.put("/api/subject-data")
        def put_record(payload: RecordPayload, authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
            self._check("/api/subject-data", authorization, payload.model_dump())
            self.records[payload.slug] = payload.data
            return {"ok": True}

        @app.post("/api/chat/stream")
        def chat_stream(payload: ChatPayload, authorization: Optional[str] = Header(default=None)) -> StreamingResponse:
            self._check("/api/chat/stream", authorization, payload.model_dump())

            records = self.chat_turns.pop(0) if self.chat_turns else self.chat_records

            def _lines():
                for record in records:
                    yield f"data: {json.dumps(record)}\n"

            return StreamingResponse(_lines(), media_type="text/event-stream")

        @app.post("/api/course-summary")
        def course_summary(payload: Dict[str, Any], authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
            self._check("/api/course-summary", authorization, payload)
            return {"ok": True, "course_context": self.summary}

        @app.post("/api/course-detect-name")
        def detect_name(payload: Dict[str, Any], authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
            self._check("/api/course-detect-name", authorization, payload)
            return {"ok": True, "name": self.detected_name}

        @app.post("/api/course-quick-summary")
        def quick_summary(payload: Dict[str, Any], authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
            self._check("/api/course-quick-summary", authorization, payload)
            return {"ok": True, "summary": "Quick take"}

        @app.post("/api/detect-exam-files")
        def detect_exams(payload: Dict[str, Any], authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
            self._check("/api/detect-exam-files", authorization, payload)
            return {"ok": True, "examFiles": self.exam_files}

        @app.get("/api/exam-snipe/history")
        def exam_history(authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
            self._check("/api/exam-snipe/history", authorization)
            return {"ok": True, "history": self.exam_history}

        @app.post("/api/exam-snipe/background")
        def exam_snipe(payload: Dict[str, Any], authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
            self._check("/api/exam-snipe/background", authorization, payload)
            return {"ok": True}

    # ------------------------------------------------------------------

    def calls(self, path: str) -> List[Dict[str, Any]]:
        return [request for request in self.requests if request["path"] == path]

    def build_async_client(self, *, timeout: float = 5.0) -> httpx.AsyncClient:
        client = httpx.AsyncClient(
            base_url=self.base_url,
            transport=httpx.ASGITransport(app=self.app),
            timeout=timeout,
        )
        self._clients.append(client)
        return client

    async def aclose(self) -> None:
        for client in self._clients:
            await client.aclose()
        self._clients.clear()
