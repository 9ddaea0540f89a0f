import json
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from request_pipeline.errors import StatusConflictError
from request_pipeline.records import Submission, SubmissionStatus, utcnow
from request_pipeline.schema import RequestPayload
from request_pipeline.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex[:20]


class SubmissionStore(ABC):
    """Durable submission records keyed by id.

    Only the orchestrator writes through this interface. `update` merges the
    given top-level fields into the stored record and stamps `last_modified`.
    With `expected_status`, the write only happens if the stored record is
    still in that status; otherwise `StatusConflictError` is raised.
    """

    @abstractmethod
    def create(self, payload: RequestPayload) -> Submission: ...

    @abstractmethod
    def update(
        self,
        submission_id: str,
        *,
        expected_status: Optional[SubmissionStatus] = None,
        **fields: Any,
    ) -> Submission: ...

    @abstractmethod
    def get(self, submission_id: str) -> Optional[Submission]: ...

    @abstractmethod
    def list(self, status: Optional[SubmissionStatus] = None, limit: int = 100) -> list[Submission]: ...

    @staticmethod
    def _merge(
        current: Submission,
        fields: dict[str, Any],
        expected_status: Optional[SubmissionStatus] = None,
    ) -> Submission:
        if expected_status is not None and current.status != expected_status:
            raise StatusConflictError(current.id, expected_status, current.status)
        unknown = set(fields) - set(Submission.model_fields)
        if unknown:
            raise KeyError(f"Unknown submission fields: {sorted(unknown)}")
        if "id" in fields or "payload" in fields:
            raise ValueError("Submission id and payload are immutable")
        data = current.model_dump()
        data.update(fields)
        data["last_modified"] = utcnow()
        return Submission.model_validate(data)


class InMemorySubmissionStore(SubmissionStore):
    def __init__(self) -> None:
        self._records: dict[str, Submission] = {}
        self._lock = threading.Lock()

    def create(self, payload: RequestPayload) -> Submission:
        record = Submission(id=_new_id(), payload=payload)
        with self._lock:
            self._records[record.id] = record
        return record.model_copy(deep=True)

    def update(
        self,
        submission_id: str,
        *,
        expected_status: Optional[SubmissionStatus] = None,
        **fields: Any,
    ) -> Submission:
        with self._lock:
            current = self._records.get(submission_id)
            if current is None:
                raise KeyError(submission_id)
            updated = self._merge(current, fields, expected_status)
            self._records[submission_id] = updated
        return updated.model_copy(deep=True)

    def get(self, submission_id: str) -> Optional[Submission]:
        record = self._records.get(submission_id)
        return record.model_copy(deep=True) if record else None

    def list(self, status: Optional[SubmissionStatus] = None, limit: int = 100) -> list[Submission]:
        records = [r for r in self._records.values() if status is None or r.status == status]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in records[:limit]]


class JsonFileSubmissionStore(SubmissionStore):
    """One JSON document per submission, written atomically.

    Read-modify-write is serialized per process; other processes writing the
    same directory are not coordinated.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, submission_id: str) -> Path:
        if not submission_id or not submission_id.isalnum():
            raise KeyError(submission_id)
        return self.root / f"submission_{submission_id}.json"

    def _write(self, record: Submission) -> None:
        path = self._path(record.id)
        data = json.dumps(record.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False)

        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(data, encoding="utf-8")
        tmp_path.replace(path)  # atomic on same filesystem

    def _read(self, path: Path) -> Submission:
        return Submission.model_validate(json.loads(path.read_text(encoding="utf-8")))

    def create(self, payload: RequestPayload) -> Submission:
        record = Submission(id=_new_id(), payload=payload)
        self._write(record)
        logger.info("Created submission record %s", record.id)
        return record

    def update(
        self,
        submission_id: str,
        *,
        expected_status: Optional[SubmissionStatus] = None,
        **fields: Any,
    ) -> Submission:
        path = self._path(submission_id)
        with self._lock:
            if not path.exists():
                raise KeyError(submission_id)
            updated = self._merge(self._read(path), fields, expected_status)
            self._write(updated)
        return updated

    def get(self, submission_id: str) -> Optional[Submission]:
        try:
            path = self._path(submission_id)
        except KeyError:
            return None
        if not path.exists():
            return None
        return self._read(path)

    def list(self, status: Optional[SubmissionStatus] = None, limit: int = 100) -> list[Submission]:
        records = [self._read(p) for p in self.root.glob("submission_*.json")]
        records = [r for r in records if status is None or r.status == status]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]


def get_store(settings: Optional[Settings] = None) -> SubmissionStore:
    s = settings or get_settings()
    if s.store_backend == "memory":
        return InMemorySubmissionStore()
    if s.store_backend == "json":
        return JsonFileSubmissionStore(s.data_dir)
    raise ValueError(f"Unsupported STORE_BACKEND: {s.store_backend}")
