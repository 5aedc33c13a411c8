from typing import List, Optional, Sequence

import pytest

from uirefine.application.ports.ai_provider import ContentPart, ImagePart, TextPart
from uirefine.application.services.analysis_service import INTERRUPTED_MESSAGE, AnalysisService
from uirefine.exceptions import (
    AnalysisInProgressError,
    AuthError,
    ConfigError,
    NetworkError,
    RecordNotFoundError,
    TransitionError,
    ValidationError,
)
from uirefine.infrastructure.ai.gemini_provider import INVALID_KEY_MESSAGE
from uirefine.infrastructure.persistence.local.repositories.analysis_repository_local import LocalAnalysisRepository
from uirefine.infrastructure.storage.memory_storage import InMemoryKeyValueStorage
from uirefine.media_utils import BinaryBlob
from uirefine.schemas.analysis.analysis import AnalyzingRecord, PendingRecord

KEY = "screenAnalyses"


class FakeAI:
    def __init__(self, reports: Optional[List] = None, is_configured: bool = True):
        # each entry is either a report string or an exception to raise
        self.reports = list(reports or ["Looks good"])
        self.is_configured = is_configured
        self.calls: List[Sequence[ContentPart]] = []
        self.on_call = None

    def configured(self) -> bool:
        return self.is_configured

    def generate_report(self, parts: Sequence[ContentPart]) -> str:
        self.calls.append(parts)
        if self.on_call:
            self.on_call()
        outcome = self.reports.pop(0) if len(self.reports) > 1 else self.reports[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class Clock:
    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


def make_service(ai: FakeAI, storage: Optional[InMemoryKeyValueStorage] = None):
    storage = storage or InMemoryKeyValueStorage()
    repo = LocalAnalysisRepository(storage, key=KEY)
    return AnalysisService(analysis_repo=repo, ai_provider=ai, clock=Clock()), repo, storage


SCREENSHOT = BinaryBlob(data=b"fake-png-bytes", mime_type="image/png", filename="login.png")


def test_create_record_is_pending_with_preview_and_default_language():
    svc, repo, _ = make_service(FakeAI())

    record = svc.create_record("Login Page", SCREENSHOT, url="http://localhost:3000/login", code_snippet="<div/>")

    assert isinstance(record, PendingRecord)
    assert record.screenshot_preview.startswith("data:image/png;base64,")
    assert record.code_language == "tsx"
    assert repo.list()[0].id == record.id


def test_create_record_requires_screen_name():
    svc, _, _ = make_service(FakeAI())
    with pytest.raises(ValidationError):
        svc.create_record("   ", SCREENSHOT)


def test_newer_records_list_first():
    svc, _, _ = make_service(FakeAI())
    first = svc.create_record("First", SCREENSHOT)
    second = svc.create_record("Second", SCREENSHOT)

    assert [r.id for r in svc.list_records()] == [second.id, first.id]


@pytest.mark.asyncio
async def test_begin_analysis_completes_with_report():
    ai = FakeAI(["Looks good"])
    svc, _, storage = make_service(ai)
    record = svc.create_record("Dashboard", SCREENSHOT)

    done = await svc.begin_analysis(record.id)

    assert done.status == "completed"
    assert done.analysis_report == "Looks good"
    assert not hasattr(done, "error")
    reloaded = LocalAnalysisRepository(storage, key=KEY).get(record.id)
    assert reloaded.analysis_report == "Looks good"


@pytest.mark.asyncio
async def test_parts_are_instruction_image_code_in_order():
    ai = FakeAI()
    svc, _, _ = make_service(ai)
    record = svc.create_record("Form", SCREENSHOT, code_snippet="<form></form>", code_language="html")

    await svc.begin_analysis(record.id)

    parts = ai.calls[0]
    assert isinstance(parts[0], TextPart)
    assert isinstance(parts[1], ImagePart)
    assert parts[1].mime_type == "image/png"
    assert isinstance(parts[2], TextPart)
    assert "```html\n<form></form>\n```" in parts[2].text


@pytest.mark.asyncio
async def test_missing_screenshot_fails_without_calling_provider():
    ai = FakeAI()
    svc, _, _ = make_service(ai)
    record = svc.create_record("No Shot", None)

    failed = await svc.begin_analysis(record.id)

    assert failed.status == "error"
    assert "Screenshot data is missing or invalid" in failed.error
    assert ai.calls == []


@pytest.mark.asyncio
async def test_corrupt_preview_fails_fast_with_distinct_message():
    ai = FakeAI()
    svc, repo, _ = make_service(ai)
    repo.insert(PendingRecord(id="x", screen_name="Broken", screenshot_preview="data:image/png,nope", timestamp=5))

    failed = await svc.begin_analysis("x")

    assert failed.status == "error"
    assert failed.error.startswith("Screenshot preview is corrupt")
    assert ai.calls == []


@pytest.mark.asyncio
async def test_auth_failure_then_retry_reaches_completed():
    ai = FakeAI([AuthError(INVALID_KEY_MESSAGE), "Fixed report"])
    svc, _, _ = make_service(ai)
    record = svc.create_record("Settings", SCREENSHOT)

    failed = await svc.begin_analysis(record.id)
    assert failed.status == "error"
    assert "invalid" in failed.error.lower()

    done = await svc.begin_analysis(record.id)
    assert done.status == "completed"
    assert done.analysis_report == "Fixed report"
    assert len(ai.calls) == 2


@pytest.mark.asyncio
async def test_repeated_failure_overwrites_error():
    ai = FakeAI([NetworkError("Network error: first"), NetworkError("Network error: second")])
    svc, _, _ = make_service(ai)
    record = svc.create_record("Profile", SCREENSHOT)

    await svc.begin_analysis(record.id)
    again = await svc.begin_analysis(record.id)

    assert again.error == "Network error: second"


@pytest.mark.asyncio
async def test_unexpected_exception_is_stored_as_error():
    ai = FakeAI([RuntimeError("boom")])
    svc, _, _ = make_service(ai)
    record = svc.create_record("Profile", SCREENSHOT)

    failed = await svc.begin_analysis(record.id)

    assert failed.status == "error"
    assert failed.error == "boom"


@pytest.mark.asyncio
async def test_not_configured_refuses_and_keeps_pending():
    ai = FakeAI(is_configured=False)
    svc, repo, _ = make_service(ai)
    record = svc.create_record("Home", SCREENSHOT)

    with pytest.raises(ConfigError):
        await svc.begin_analysis(record.id)

    stored = repo.get(record.id)
    assert stored.status == "pending"
    assert not hasattr(stored, "error")
    assert ai.calls == []


@pytest.mark.asyncio
async def test_record_is_analyzing_while_provider_runs_and_second_trigger_refused():
    ai = FakeAI()
    svc, repo, _ = make_service(ai)
    record = svc.create_record("Checkout", SCREENSHOT)
    seen = []
    ai.on_call = lambda: seen.append(repo.get(record.id).status)

    await svc.begin_analysis(record.id)
    assert seen == ["analyzing"]

    repo.insert(AnalyzingRecord(id="busy", screen_name="Busy", screenshot_preview=record.screenshot_preview, timestamp=1))
    with pytest.raises(AnalysisInProgressError):
        await svc.begin_analysis("busy")
    assert len(ai.calls) == 1


@pytest.mark.asyncio
async def test_completed_record_cannot_be_reanalyzed():
    ai = FakeAI()
    svc, _, _ = make_service(ai)
    record = svc.create_record("Done", SCREENSHOT)
    await svc.begin_analysis(record.id)

    with pytest.raises(TransitionError):
        await svc.begin_analysis(record.id)


@pytest.mark.asyncio
async def test_deleted_while_analyzing_reports_not_found():
    ai = FakeAI()
    svc, repo, _ = make_service(ai)
    record = svc.create_record("Gone", SCREENSHOT)
    ai.on_call = lambda: repo.delete_by_id(record.id)

    with pytest.raises(RecordNotFoundError):
        await svc.begin_analysis(record.id)
    assert repo.list() == []


@pytest.mark.asyncio
async def test_unknown_record_is_not_found():
    svc, _, _ = make_service(FakeAI())
    with pytest.raises(RecordNotFoundError):
        await svc.begin_analysis("missing")


def test_delete_and_clear():
    svc, _, storage = make_service(FakeAI())
    a = svc.create_record("A", SCREENSHOT)
    b = svc.create_record("B", SCREENSHOT)

    svc.delete_record(a.id)
    assert [r.id for r in svc.list_records()] == [b.id]
    with pytest.raises(RecordNotFoundError):
        svc.delete_record(a.id)

    svc.clear_records()
    assert LocalAnalysisRepository(storage, key=KEY).list() == []


def test_recover_interrupted_marks_analyzing_as_error():
    storage = InMemoryKeyValueStorage()
    svc, repo, _ = make_service(FakeAI(), storage)
    repo.insert(AnalyzingRecord(id="stuck", screen_name="Stuck", timestamp=1))
    repo.insert(PendingRecord(id="fine", screen_name="Fine", timestamp=2))

    assert svc.recover_interrupted() == 1

    assert repo.get("stuck").error == INTERRUPTED_MESSAGE
    assert repo.get("fine").status == "pending"


def test_key_status():
    svc, _, _ = make_service(FakeAI(is_configured=False))
    status = svc.key_status()
    assert status.configured is False
    assert "GEMINI_API_KEY" in status.message
