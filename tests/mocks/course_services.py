"""In-process stand-in for the ``CourseServices`` collaborator used by orchestrator tests."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from synapse_core.dispatch.orchestrator import CourseFile


class FakeCourseServices:
    def __init__(
        self,
        *,
        summary: Optional[str] = "Generated summary",
        detected_name: Optional[str] = None,
        exam_files: Optional[List[str]] = None,
        generated: Optional[Dict[str, Any]] = None,
        fail: tuple[str, ...] = (),
    ) -> None:
        self.summary = summary
        self.detected_name = detected_name
        self.exam_files = exam_files or []
        self.generated = generated or {}
        self.fail = set(fail)
        self.calls: List[tuple[str, Dict[str, Any]]] = []

    def _call(self, call: str, /, **payload: Any) -> None:
        self.calls.append((call, payload))
        if call in self.fail:
            raise RuntimeError(f"{call} unavailable")

    def called(self, name: str) -> List[Dict[str, Any]]:
        return [payload for call, payload in self.calls if call == name]

    async def course_from_text(self, description: str, course_name: Optional[str] = None) -> Dict[str, Any]:
        self._call("course_from_text", description=description, course_name=course_name)
        return dict(self.generated)

    async def upload_file(self, file: CourseFile) -> List[Dict[str, str]]:
        self._call("upload_file", name=file.name)
        return [{"name": file.name, "text": file.text()}]

    async def summarize(self, **payload: Any) -> Optional[str]:
        self._call("summarize", **payload)
        return self.summary

    async def detect_name(self, **payload: Any) -> Optional[str]:
        self._call("detect_name", **payload)
        return self.detected_name

    async def quick_summary(self, **payload: Any) -> Optional[str]:
        self._call("quick_summary", **payload)
        return "Quick take"

    async def detect_exam_files(self, snippets: List[Dict[str, str]]) -> List[str]:
        self._call("detect_exam_files", snippets=snippets)
        return list(self.exam_files)

    async def analyze_exams(self, **payload: Any) -> None:
        self._call("analyze_exams", **payload)
