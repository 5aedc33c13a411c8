import logging
from typing import List, Optional, Sequence
from pydantic import ValidationError as SchemaValidationError

from .....exceptions import PersistenceCorruption
from .....application.ports.analysis_repo import AnalysisRepository, RecordMutator
from .....application.ports.local_storage import KeyValueStorage
from .....schemas.analysis.analysis import AnalysisRecord, record_list_adapter

logger = logging.getLogger(__name__)


def _sorted_newest_first(records: Sequence[AnalysisRecord]) -> List[AnalysisRecord]:
    return sorted(records, key=lambda r: r.timestamp, reverse=True)


class LocalAnalysisRepository(AnalysisRepository):
    """Ordered record collection mirrored, as a whole, into one storage entry.

    Every mutating call writes the full collection back before returning, so
    the storage entry always matches memory. An empty collection removes the
    entry instead of storing an empty array.
    """

    def __init__(self, storage: KeyValueStorage, key: str = "screenAnalyses"):
        self.storage = storage
        self.key = key
        self._records: List[AnalysisRecord] = []
        self.load_all()

    def _decode(self, raw: str) -> List[AnalysisRecord]:
        try:
            return record_list_adapter.validate_json(raw)
        except (SchemaValidationError, ValueError) as e:
            raise PersistenceCorruption(f"Stored analyses under '{self.key}' could not be decoded: {e}") from e

    def load_all(self) -> List[AnalysisRecord]:
        try:
            raw = self.storage.get_item(self.key)
            records = self._decode(raw) if raw is not None else []
        except (PersistenceCorruption, ValueError) as e:
            logger.warning(f"Failed to load analyses from local storage, discarding them: {e}")
            self.storage.remove_item(self.key)
            records = []
        except OSError as e:
            # Unreadable entry; start empty and leave it in place
            logger.error(f"Could not read analyses from local storage, starting empty: {e}")
            records = []
        self._records = _sorted_newest_first(records)
        return list(self._records)

    def save_all(self, records: Sequence[AnalysisRecord]) -> None:
        ordered = _sorted_newest_first(records)
        # Memory only follows a successful write
        if not ordered:
            self.storage.remove_item(self.key)
        else:
            payload = record_list_adapter.dump_json(ordered, by_alias=True, exclude_none=True)
            self.storage.set_item(self.key, payload.decode("utf-8"))
        self._records = ordered

    def list(self) -> List[AnalysisRecord]:
        return list(self._records)

    def get(self, record_id: str) -> Optional[AnalysisRecord]:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def insert(self, record: AnalysisRecord) -> AnalysisRecord:
        if self.get(record.id) is not None:
            raise ValueError(f"Analysis with id {record.id} already exists")
        self.save_all([record] + self._records)
        return record

    def update_by_id(self, record_id: str, mutator: RecordMutator) -> Optional[AnalysisRecord]:
        updated: Optional[AnalysisRecord] = None
        records = []
        for record in self._records:
            if record.id == record_id:
                updated = mutator(record)
                records.append(updated)
            else:
                records.append(record)
        if updated is None:
            return None
        self.save_all(records)
        return updated

    def delete_by_id(self, record_id: str) -> bool:
        remaining = [r for r in self._records if r.id != record_id]
        if len(remaining) == len(self._records):
            return False
        self.save_all(remaining)
        return True

    def clear_all(self) -> None:
        self.save_all([])
