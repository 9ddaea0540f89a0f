from pydantic import BaseModel
from typing import Any, List, Literal, Optional

from request_pipeline.records import UploadedFile


class StepOutcome(BaseModel):
    """Tagged result of one pipeline step: ok with output, or failed with the step name."""

    status: Literal["ok", "failed"]
    step: str
    output: Optional[Any] = None
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, step: str, output: Any) -> "StepOutcome":
        return cls(status="ok", step=step, output=output)

    @classmethod
    def failed(cls, step: str, error: Exception) -> "StepOutcome":
        return cls(status="failed", step=step, error_message=str(error))


class SubmissionResult(BaseModel):
    status: Literal["complete", "error"]
    submission_id: Optional[str] = None
    task_url: Optional[str] = None
    folder_url: Optional[str] = None
    uploaded_files: List[UploadedFile] = []
    retry_count: int = 0

    # failure fields
    failed_step: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "complete"
