from typing import Callable, List, Optional, Sequence, Protocol

from ...schemas.analysis.analysis import AnalysisRecord


RecordMutator = Callable[[AnalysisRecord], AnalysisRecord]


class AnalysisRepository(Protocol):
    def load_all(self) -> List[AnalysisRecord]:
        ...

    def save_all(self, records: Sequence[AnalysisRecord]) -> None:
        ...

    def list(self) -> List[AnalysisRecord]:
        ...

    def get(self, record_id: str) -> Optional[AnalysisRecord]:
        ...

    def insert(self, record: AnalysisRecord) -> AnalysisRecord:
        ...

    def update_by_id(self, record_id: str, mutator: RecordMutator) -> Optional[AnalysisRecord]:
        ...

    def delete_by_id(self, record_id: str) -> bool:
        ...

    def clear_all(self) -> None:
        ...
