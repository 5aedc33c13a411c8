# uirefine/schemas/analysis/analysis.py
"""Analysis records and their status lifecycle.

A record is one of four models sharing the same base fields, discriminated on
``status``. Transitions return a new record; records themselves are immutable.

    PENDING ──start──> ANALYZING ──complete──> COMPLETED
       │                   │
       └──fail──> ERROR <──┘
                    │
                    └──start──> ANALYZING
"""
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from enum import Enum

from ...exceptions import AnalysisInProgressError, TransitionError
from ...media_utils import BinaryBlob


class AnalysisStatus(str, Enum):
    PENDING = "pending"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    ERROR = "error"


class RecordBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    screen_name: str
    url: str = ""
    # In-memory only; never serialized
    screenshot_binary: Optional[BinaryBlob] = Field(default=None, exclude=True, repr=False)
    screenshot_preview: Optional[str] = Field(default=None, repr=False)
    code_snippet: Optional[str] = None
    code_language: Optional[str] = None
    timestamp: int

    def _common_fields(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in RecordBase.model_fields}

    @property
    def can_start(self) -> bool:
        return self.status in (AnalysisStatus.PENDING, AnalysisStatus.ERROR)

    def ensure_can_start(self) -> None:
        if self.status == AnalysisStatus.ANALYZING:
            raise AnalysisInProgressError(f"Analysis for '{self.screen_name}' is already in progress.")
        if not self.can_start:
            raise TransitionError(
                f"Analysis for '{self.screen_name}' is already completed. Create a new record to analyze again."
            )

    def start_analysis(self) -> "AnalyzingRecord":
        self.ensure_can_start()
        return AnalyzingRecord(**self._common_fields())

    def complete(self, report: str) -> "CompletedRecord":
        if self.status != AnalysisStatus.ANALYZING:
            raise TransitionError(f"Cannot complete a record that is {self.status}.")
        return CompletedRecord(**self._common_fields(), analysis_report=report)

    def fail(self, message: str) -> "ErrorRecord":
        if self.status == AnalysisStatus.COMPLETED:
            raise TransitionError("Cannot fail a completed record.")
        return ErrorRecord(**self._common_fields(), error=message or "Unknown error occurred")


class PendingRecord(RecordBase):
    status: Literal["pending"] = "pending"


class AnalyzingRecord(RecordBase):
    status: Literal["analyzing"] = "analyzing"


class CompletedRecord(RecordBase):
    status: Literal["completed"] = "completed"
    analysis_report: str


class ErrorRecord(RecordBase):
    status: Literal["error"] = "error"
    error: str


AnalysisRecord = Annotated[
    Union[PendingRecord, AnalyzingRecord, CompletedRecord, ErrorRecord],
    Field(discriminator="status"),
]

record_list_adapter: TypeAdapter = TypeAdapter(List[AnalysisRecord])


def record_to_dict(record: RecordBase) -> Dict[str, Any]:
    return record.model_dump(mode="json", by_alias=True, exclude_none=True)


class ApiKeyStatus(BaseModel):
    configured: bool
    message: str
