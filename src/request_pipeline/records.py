from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import Field

from request_pipeline.schema import IntakeModel, RequestPayload

SubmissionStatus = Literal["processing", "complete", "error"]

SCHEMA_VERSION = "1.0"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UploadedFile(IntakeModel):
    id: str
    name: str
    url: str


class ErrorDetail(IntakeModel):
    step: str
    timestamp: datetime = Field(default_factory=utcnow)
    retry_count: int = Field(default=0, ge=0)
    last_error: str = ""


class StepOutputs(IntakeModel):
    folder_id: Optional[str] = None
    folder_url: Optional[str] = None
    uploaded_files: List[UploadedFile] = []
    task_id: Optional[str] = None
    task_url: Optional[str] = None

    @property
    def has_folder(self) -> bool:
        return bool(self.folder_id and self.folder_url)

    @property
    def has_task(self) -> bool:
        return bool(self.task_id and self.task_url)


class Submission(IntakeModel):
    id: str
    payload: RequestPayload
    status: SubmissionStatus = "processing"
    outputs: StepOutputs = Field(default_factory=StepOutputs)
    error_detail: Optional[ErrorDetail] = None
    # cumulative; survives a successful retry, unlike error_detail
    retry_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    last_modified: datetime = Field(default_factory=utcnow)
    version: str = SCHEMA_VERSION
