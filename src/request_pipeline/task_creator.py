import logging
from typing import Optional

from pydantic import BaseModel

from request_pipeline import constants
from request_pipeline.errors import ServiceError, StepIntegrationError
from request_pipeline.formatters import build_task_description, format_custom_fields
from request_pipeline.records import UploadedFile
from request_pipeline.schema import RequestPayload
from request_pipeline.tracker_client import TaskService, TaskSpec

logger = logging.getLogger(__name__)

UNTITLED = "Untitled Art Request"


class TaskOutput(BaseModel):
    task_id: str
    task_url: str


class TaskCreator:
    """Creates the tracker task. Creation is all-or-nothing; follow-ups are best-effort."""

    step = constants.STEP_ASANA_CREATE

    def __init__(self, service: TaskService, project_id: str):
        if not project_id:
            raise ValueError("ASANA_PROJECT_ID environment variable not set")
        self.service = service
        self.project_id = project_id

    def build_spec(
        self,
        payload: RequestPayload,
        folder_url: Optional[str],
        uploaded_files: list[UploadedFile],
    ) -> TaskSpec:
        return TaskSpec(
            title=payload.request_title or UNTITLED,
            html_description=build_task_description(payload, folder_url, uploaded_files),
            project_id=self.project_id,
            due_date=payload.due_date,
            custom_fields=format_custom_fields(payload, folder_url),
        )

    def create_task(
        self,
        payload: RequestPayload,
        folder_url: Optional[str],
        uploaded_files: list[UploadedFile],
    ) -> TaskOutput:
        spec = self.build_spec(payload, folder_url, uploaded_files)
        try:
            ref = self.service.create_task(spec)
        except ServiceError as e:
            raise StepIntegrationError(self.step, f"Asana integration failed: {e}") from e

        self._attach_files(ref.id, uploaded_files)
        if payload.add_collaborators and payload.collaborators:
            self._note_collaborators(ref.id, payload.collaborators)

        return TaskOutput(task_id=ref.id, task_url=ref.url)

    def _attach_files(self, task_id: str, uploaded_files: list[UploadedFile]) -> None:
        for f in uploaded_files:
            try:
                self.service.attach_external_link(task_id, f.url, f.name)
            except ServiceError as e:
                logger.warning("Could not attach %s to task %s: %s", f.name, task_id, e)

    def _note_collaborators(self, task_id: str, emails: list[str]) -> None:
        # Tracker followers need user ids, not emails; leave a comment instead.
        try:
            self.service.add_comment(task_id, f"Collaborators to notify: {', '.join(emails)}")
        except ServiceError as e:
            logger.warning("Could not add collaborator comment to task %s: %s", task_id, e)
