"""Decoder and client for the chat endpoint's ``data: <json>`` stream."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import httpx

from apps.services.course_services import CourseServicesConfig

LOGGER = logging.getLogger("synapse.chat")

EVENT_TYPES = frozenset({"text", "name", "done", "error"})


@dataclass(slots=True)
class StreamEvent:
    type: str
    content: str = ""
    error: Optional[str] = None


class SSEDecoder:
    """Incremental line decoder; a record split across chunks is held until its newline arrives."""

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, chunk: str) -> List[StreamEvent]:
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        return [event for event in (self._decode_line(line) for line in lines) if event is not None]

    def flush(self) -> List[StreamEvent]:
        """Decode whatever is left once the stream has closed."""
        remainder, self._buffer = self._buffer, ""
        event = self._decode_line(remainder)
        return [event] if event is not None else []

    @staticmethod
    def _decode_line(line: str) -> Optional[StreamEvent]:
        line = line.rstrip("\r")
        if not line.startswith("data:"):
            return None
        payload = line[len("data:") :].strip()
        if not payload:
            return None
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            LOGGER.debug("Skipping malformed stream record", extra={"record": payload[:200]})
            return None
        if not isinstance(data, dict) or data.get("type") not in EVENT_TYPES:
            return None
        content = data.get("content")
        error = data.get("error")
        return StreamEvent(
            type=data["type"],
            content=content if isinstance(content, str) else "",
            error=str(error) if error else None,
        )


class ChatStreamClient:
    """POSTs the conversation to ``/api/chat/stream`` and yields decoded events."""

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

    async def stream(
        self,
        messages: Sequence[Dict[str, Any]],
        *,
        context: str = "",
        path: str = "/",
    ) -> AsyncIterator[StreamEvent]:
        payload = {"messages": list(messages), "context": context, "path": path}
        decoder = SSEDecoder()
        async with self._client.stream(
            "POST",
            "/api/chat/stream",
            json=payload,
            headers=self._build_headers(),
        ) as response:
            response.raise_for_status()
            async for chunk in response.aiter_text():
                for event in decoder.feed(chunk):
                    yield event
        for event in decoder.flush():
            yield event

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _build_headers(self) -> Dict[str, str]:
        headers = {"Accept": "text/event-stream"}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return headers


__all__ = ["ChatStreamClient", "SSEDecoder", "StreamEvent"]
