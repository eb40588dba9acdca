from __future__ import annotations

from typing import Any, Dict, List, Optional

import anyio
import httpx
import pytest

from apps.services.course_services import CourseServicesConfig, ServiceError
from apps.services.remote_store import RemoteSessionClient
from synapse_core.models import SubjectRecord
from synapse_core.store import InMemorySessionStore, list_subjects, load_record, save_record
from synapse_core.sync import SessionSynchronizer
from tests.mocks.course_api import CourseApiMock


def _seed(mock: CourseApiMock) -> None:
    mock.subjects = [
        {"name": "Linear Algebra", "slug": "linear-algebra"},
        {"name": "Organic Chemistry", "slug": "organic-chemistry"},
        {"slug": "nameless"},
    ]
    mock.records = {
        "linear-algebra": {
            "subject": "Linear Algebra",
            "combinedText": "server notes",
            "surgeLog": [
                {"sessionId": "s1", "timestamp": "2024-01-01T09:00:00Z", "summary": "eigenvalues"},
                {"sessionId": "s2", "timestamp": "2024-01-03T09:00:00Z", "summary": "rank"},
            ],
        }
    }


def _sync(mock: CourseApiMock, local: InMemorySessionStore):
    async def _run():
        remote = RemoteSessionClient(
            CourseServicesConfig(base_url=mock.base_url, api_key=mock.token),
            client=mock.build_async_client(),
        )
        try:
            return await SessionSynchronizer(local, remote).sync()
        finally:
            await mock.aclose()

    return anyio.run(_run)


def test_sync_merges_server_records_into_local_cache() -> None:
    mock = CourseApiMock()
    _seed(mock)
    local = InMemorySessionStore()
    save_record(
        local,
        "linear-algebra",
        {
            "course_language_name": "Swedish",
            "surgeLog": [
                {"sessionId": "s1", "timestamp": "2024-01-02T18:30:00Z"},
                {"sessionId": "s3", "timestamp": "2024-01-04T10:00:00Z"},
            ],
        },
    )

    report = _sync(mock, local)

    assert report.ok
    assert report.merged == ["linear-algebra"]
    assert report.missing == ["organic-chemistry"]
    assert list_subjects(local) == [
        SubjectRecord(name="Linear Algebra", slug="linear-algebra"),
        SubjectRecord(name="Organic Chemistry", slug="organic-chemistry"),
    ]
    record = load_record(local, "linear-algebra")
    assert record["combinedText"] == "server notes"
    assert record["course_language_name"] == "Swedish"
    assert record["surgeLog"] == [
        {"sessionId": "s1", "timestamp": "2024-01-02T18:30:00Z", "summary": "eigenvalues"},
        {"sessionId": "s2", "timestamp": "2024-01-03T09:00:00Z", "summary": "rank"},
        {"sessionId": "s3", "timestamp": "2024-01-04T10:00:00Z"},
    ]
    assert all(call["authorization"] == "Bearer test-token" for call in mock.requests)


def test_locally_cleared_surge_log_stays_empty() -> None:
    mock = CourseApiMock()
    _seed(mock)
    local = InMemorySessionStore()
    save_record(local, "linear-algebra", {"surgeLog": []})

    _sync(mock, local)

    assert load_record(local, "linear-algebra")["surgeLog"] == []


def test_subject_list_failure_leaves_local_cache_untouched() -> None:
    mock = CourseApiMock()
    mock.fail_paths.add("/api/subjects")
    local = InMemorySessionStore({"subjects": [{"name": "Calculus", "slug": "calculus"}]})

    report = _sync(mock, local)

    assert report.ok is False
    assert "503" in report.error
    assert list_subjects(local) == [SubjectRecord(name="Calculus", slug="calculus")]


class _FlakyRemote:
    def __init__(self) -> None:
        self.records: Dict[str, Optional[Dict[str, Any]]] = {"algebra": {"subject": "Algebra"}}

    async def fetch_subjects(self) -> List[SubjectRecord]:
        return [SubjectRecord(name="Broken", slug="broken"), SubjectRecord(name="Algebra", slug="algebra")]

    async def fetch_record(self, slug: str) -> Optional[Dict[str, Any]]:
        if slug == "broken":
            raise ServiceError("/api/subject-data failed: corrupt record")
        return self.records.get(slug)


def test_record_failure_skips_only_that_subject() -> None:
    local = InMemorySessionStore()

    report = anyio.run(SessionSynchronizer(local, _FlakyRemote()).sync)

    assert report.failed == ["broken"]
    assert report.merged == ["algebra"]
    assert report.ok is False
    assert load_record(local, "algebra") == {"subject": "Algebra", "surgeLog": []}


def test_push_record_round_trips_through_mock() -> None:
    mock = CourseApiMock()

    async def _run():
        remote = RemoteSessionClient(
            CourseServicesConfig(base_url=mock.base_url, api_key=mock.token),
            client=mock.build_async_client(),
        )
        try:
            pushed = await remote.push_record("algebra", {"subject": "Algebra"})
            fetched = await remote.fetch_record("algebra")
            unknown = await remote.fetch_record("geometry")
        finally:
            await mock.aclose()
        return pushed, fetched, unknown

    pushed, fetched, unknown = anyio.run(_run)

    assert pushed == {"ok": True, "status": "ok"}
    assert fetched == {"subject": "Algebra"}
    assert unknown is None


def test_remote_client_rejects_not_ok_payloads() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": False, "error": "not signed in"})

    async def _run():
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://sync.test")
        remote = RemoteSessionClient(CourseServicesConfig(base_url="https://sync.test"), client=http_client)
        try:
            await remote.fetch_subjects()
        finally:
            await http_client.aclose()

    with pytest.raises(ServiceError, match="not signed in"):
        anyio.run(_run)
