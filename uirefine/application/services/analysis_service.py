import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional
from starlette.concurrency import run_in_threadpool

from ..ports.analysis_repo import AnalysisRepository, RecordMutator
from ..ports.ai_provider import AIProvider
from .request_builder import build_parts
from ...exceptions import (
    ConfigError,
    EncodingError,
    ProviderFailure,
    RecordNotFoundError,
    ValidationError,
)
from ...media_utils import BinaryBlob, encode
from ...schemas.analysis.analysis import (
    AnalysisRecord,
    AnalysisStatus,
    ApiKeyStatus,
    PendingRecord,
)

logger = logging.getLogger(__name__)

NOT_CONFIGURED_NOTICE = "Gemini API Key (GEMINI_API_KEY) is not configured. Cannot perform analysis."
INTERRUPTED_MESSAGE = "Analysis was interrupted before it completed. Please run it again."


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class AnalysisService:
    analysis_repo: AnalysisRepository
    ai_provider: AIProvider
    default_code_language: str = "tsx"
    clock: Callable[[], int] = field(default=_now_ms)

    def key_status(self) -> ApiKeyStatus:
        if self.ai_provider.configured():
            return ApiKeyStatus(configured=True, message="API Key is configured.")
        return ApiKeyStatus(
            configured=False,
            message="Error: Gemini API Key (GEMINI_API_KEY) is not configured. Analysis will not work.",
        )

    def list_records(self) -> List[AnalysisRecord]:
        return self.analysis_repo.list()

    def get_record(self, record_id: str) -> AnalysisRecord:
        record = self.analysis_repo.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Analysis {record_id} not found")
        return record

    def create_record(
        self,
        screen_name: str,
        screenshot: Optional[BinaryBlob] = None,
        url: Optional[str] = None,
        code_snippet: Optional[str] = None,
        code_language: Optional[str] = None,
    ) -> PendingRecord:
        if not screen_name or not screen_name.strip():
            raise ValidationError("Screen Name is required.")

        preview = None
        if screenshot is not None:
            try:
                preview = encode(screenshot)
            except EncodingError as e:
                # The record is still created; analysis will report the missing screenshot
                logger.error(f"Error creating screenshot preview: {e}")

        record = PendingRecord(
            id=uuid.uuid4().hex,
            screen_name=screen_name.strip(),
            url=url or "",
            screenshot_binary=screenshot,
            screenshot_preview=preview,
            code_snippet=code_snippet or None,
            code_language=code_language or self.default_code_language,
            timestamp=self.clock(),
        )
        self.analysis_repo.insert(record)
        logger.info(f"Created analysis {record.id} for screen '{record.screen_name}'")
        return record

    def _transition(self, record_id: str, mutator: RecordMutator) -> AnalysisRecord:
        updated = self.analysis_repo.update_by_id(record_id, mutator)
        if updated is None:
            logger.info(f"Analysis {record_id} was deleted before its result arrived")
            raise RecordNotFoundError(f"Analysis {record_id} not found")
        return updated

    async def begin_analysis(self, record_id: str) -> AnalysisRecord:
        """Run one analysis for a PENDING or ERROR record.

        Refused without touching the record when the provider is not configured,
        the record is already analyzing, or it has completed. Any failure after
        that point is stored on the record as ERROR and returned, not raised.
        """
        record = self.get_record(record_id)
        if not self.ai_provider.configured():
            logger.warning(f"Analysis {record_id} requested but the Gemini API key is not configured")
            raise ConfigError(NOT_CONFIGURED_NOTICE)
        record.ensure_can_start()

        try:
            parts = build_parts(record)
        except ValidationError as e:
            logger.error(f"Error during analysis {record_id}: {e.message}")
            return self._transition(record_id, lambda r: r.fail(e.message))

        self._transition(record_id, lambda r: r.start_analysis())
        logger.info(f"Analyzing screen '{record.screen_name}' ({record_id})")

        try:
            report = await run_in_threadpool(self.ai_provider.generate_report, parts)
        except ProviderFailure as e:
            logger.error(f"Error during analysis {record_id}: {e.message}")
            return self._transition(record_id, lambda r: r.fail(e.message))
        except Exception as e:
            logger.exception(f"Unexpected error during analysis {record_id}")
            return self._transition(record_id, lambda r: r.fail(str(e) or "Unknown error occurred"))

        logger.info(f"Analysis {record_id} completed")
        return self._transition(record_id, lambda r: r.complete(report))

    def delete_record(self, record_id: str) -> None:
        if not self.analysis_repo.delete_by_id(record_id):
            raise RecordNotFoundError(f"Analysis {record_id} not found")
        logger.info(f"Deleted analysis {record_id}")

    def clear_records(self) -> None:
        self.analysis_repo.clear_all()
        logger.info("Cleared all analyses")

    def recover_interrupted(self) -> int:
        """Move records left ANALYZING by a previous process to ERROR."""
        stuck = [r.id for r in self.analysis_repo.list() if r.status == AnalysisStatus.ANALYZING]
        for record_id in stuck:
            self.analysis_repo.update_by_id(record_id, lambda r: r.fail(INTERRUPTED_MESSAGE))
        if stuck:
            logger.warning(f"Marked {len(stuck)} interrupted analyses as failed")
        return len(stuck)
