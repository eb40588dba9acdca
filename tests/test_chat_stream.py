from __future__ import annotations

import json

import anyio
import httpx
import pytest

from apps.chat.stream import ChatStreamClient, SSEDecoder, StreamEvent
from apps.services.course_services import CourseServicesConfig
from tests.mocks.course_api import CourseApiMock


def test_decoder_holds_partial_records_across_chunks() -> None:
    decoder = SSEDecoder()

    first = decoder.feed('data: {"type": "text", "con')
    second = decoder.feed('tent": "Hel"}\ndata: {"type": "text", "content": "lo"}\n')

    assert first == []
    assert second == [StreamEvent(type="text", content="Hel"), StreamEvent(type="text", content="lo")]


def test_decoder_skips_malformed_and_unknown_records() -> None:
    decoder = SSEDecoder()

    events = decoder.feed(
        "\n".join(
            [
                ": keep-alive",
                "data: not json",
                'data: {"type": "mystery", "content": "?"}',
                "data: [1, 2]",
                "data:",
                'data: {"type": "name", "content": "Chad"}\r',
                'data: {"type": "error", "error": "rate limited"}',
                "",
            ]
        )
    )

    assert events == [
        StreamEvent(type="name", content="Chad"),
        StreamEvent(type="error", content="", error="rate limited"),
    ]


def test_decoder_flush_emits_trailing_record() -> None:
    decoder = SSEDecoder()

    assert decoder.feed('data: {"type": "done"}') == []
    assert decoder.flush() == [StreamEvent(type="done")]
    assert decoder.flush() == []


def test_stream_client_posts_conversation_to_mock_api() -> None:
    mock = CourseApiMock()
    mock.chat_records = [
        {"type": "name", "content": "Chad"},
        {"type": "text", "content": "Opening it now. ACTION:navigate|pa"},
        {"type": "text", "content": "th:/settings"},
        {"type": "done"},
    ]

    async def _run() -> list[StreamEvent]:
        client = ChatStreamClient(
            CourseServicesConfig(base_url=mock.base_url, api_key=mock.token),
            client=mock.build_async_client(),
        )
        try:
            return [
                event
                async for event in client.stream(
                    [{"role": "user", "content": "open settings"}],
                    context="home page",
                    path="/settings",
                )
            ]
        finally:
            await client.aclose()
            await mock.aclose()

    events = anyio.run(_run)

    assert [event.type for event in events] == ["name", "text", "text", "done"]
    assert "".join(event.content for event in events if event.type == "text").endswith("ACTION:navigate|path:/settings")
    [request] = mock.calls("/api/chat/stream")
    assert request["authorization"] == "Bearer test-token"
    assert request["payload"] == {
        "messages": [{"role": "user", "content": "open settings"}],
        "context": "home page",
        "path": "/settings",
    }


def test_stream_client_raises_on_http_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["accept"] == "text/event-stream"
        assert "authorization" not in request.headers
        assert json.loads(request.content)["messages"] == []
        return httpx.Response(502, text="bad gateway")

    async def _run() -> None:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://chat.test")
        client = ChatStreamClient(CourseServicesConfig(base_url="https://chat.test"), client=http_client)
        try:
            async for _ in client.stream([]):
                pass
        finally:
            await http_client.aclose()

    with pytest.raises(httpx.HTTPStatusError):
        anyio.run(_run)
