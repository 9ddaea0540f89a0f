import logging
from abc import ABC, abstractmethod
from typing import Optional

from request_pipeline import constants
from request_pipeline.chat_client import InMemoryChannel, MessageChannel, SlackWebhookChannel
from request_pipeline.errors import (
    RetryRejectedError,
    StatusConflictError,
    StepIntegrationError,
    SubmissionCreateError,
    SubmissionNotFoundError,
)
from request_pipeline.notify import Notifier
from request_pipeline.persist import SubmissionStore, get_store
from request_pipeline.provision import FolderProvisioner
from request_pipeline.records import ErrorDetail, StepOutputs, Submission, SubmissionStatus, utcnow
from request_pipeline.results import StepOutcome, SubmissionResult
from request_pipeline.schema import RequestPayload
from request_pipeline.settings import Settings, get_settings
from request_pipeline.storage_client import GoogleDriveFolderService, InMemoryFolderService
from request_pipeline.task_creator import TaskCreator
from request_pipeline.tracker_client import AsanaTaskService, InMemoryTaskService

logger = logging.getLogger(__name__)


class PipelineStep(ABC):
    """A named saga stage. `run` returns the record's outputs with this step's results merged in."""

    name: str

    @abstractmethod
    def is_done(self, outputs: StepOutputs) -> bool: ...

    @abstractmethod
    def run(self, record: Submission) -> StepOutputs: ...


class FolderStep(PipelineStep):
    name = constants.STEP_DRIVE_FOLDER

    def __init__(self, provisioner: FolderProvisioner):
        self.provisioner = provisioner

    def is_done(self, outputs: StepOutputs) -> bool:
        return outputs.has_folder

    def run(self, record: Submission) -> StepOutputs:
        result = self.provisioner.provision(record.payload, submitted_at=record.created_at)
        return record.outputs.model_copy(
            update={
                "folder_id": result.folder_id,
                "folder_url": result.folder_url,
                "uploaded_files": result.uploaded_files,
            }
        )


class TaskStep(PipelineStep):
    name = constants.STEP_ASANA_CREATE

    def __init__(self, creator: TaskCreator):
        self.creator = creator

    def is_done(self, outputs: StepOutputs) -> bool:
        return outputs.has_task

    def run(self, record: Submission) -> StepOutputs:
        outputs = record.outputs
        result = self.creator.create_task(record.payload, outputs.folder_url, outputs.uploaded_files)
        return outputs.model_copy(update={"task_id": result.task_id, "task_url": result.task_url})


class Orchestrator:
    """
    Drives one submission through the ordered steps, writing progress to the
    store after every transition.

    - run(): new record -> steps -> complete (or error at the first failing step)
    - retry(): error record -> processing -> steps with no recorded output
    No compensation: outputs recorded before a failure stay and are reused.
    """

    def __init__(self, store: SubmissionStore, steps: list[PipelineStep], notifier: Notifier):
        self.store = store
        self.steps = steps
        self.notifier = notifier

    def run(self, payload: RequestPayload) -> SubmissionResult:
        try:
            record = self._create_record(payload)
        except SubmissionCreateError as e:
            return SubmissionResult(status="error", failed_step=e.step, error_message=str(e))

        logger.info("Submission %s started (client=%r)", record.id, payload.client_name)
        return self._run_steps(record)

    def _create_record(self, payload: RequestPayload) -> Submission:
        try:
            return self.store.create(payload)
        except Exception as e:
            logger.exception("Could not create submission record")
            raise SubmissionCreateError(f"Could not create submission record: {e}") from e

    def retry(self, submission_id: str) -> SubmissionResult:
        record = self.store.get(submission_id)
        if record is None:
            raise SubmissionNotFoundError(submission_id)
        if record.status != "error":
            raise RetryRejectedError(submission_id, "Only failed submissions can be retried")
        if record.error_detail is None:
            raise RetryRejectedError(submission_id, "Submission has no error detail to retry")

        count = max(record.retry_count, record.error_detail.retry_count) + 1
        try:
            record = self.store.update(
                submission_id,
                expected_status="error",
                status="processing",
                retry_count=count,
                error_detail=record.error_detail.model_copy(update={"retry_count": count}),
            )
        except StatusConflictError as e:
            # another retry claimed the record between the read and this write
            raise RetryRejectedError(submission_id, f"Submission is already {e.actual}") from e
        logger.info("Retrying submission %s (attempt %d, failed step=%s)", submission_id, count, record.error_detail.step)
        return self._run_steps(record)

    def get(self, submission_id: str) -> Optional[Submission]:
        return self.store.get(submission_id)

    def list(self, status: Optional[SubmissionStatus] = None, limit: int = 100) -> list[Submission]:
        return self.store.list(status=status, limit=limit)

    def _run_steps(self, record: Submission) -> SubmissionResult:
        for step in self.steps:
            if step.is_done(record.outputs):
                logger.info("Submission %s: %s already recorded, skipping", record.id, step.name)
                continue

            outcome = self._execute(step, record)
            if outcome.status == "failed":
                return self._fail(record, outcome)
            try:
                record = self.store.update(record.id, outputs=outcome.output)
            except Exception as e:
                logger.exception("Submission %s: could not record %s outputs", record.id, step.name)
                return self._fail(record, StepOutcome.failed(step.name, e))

        return self._complete(record)

    def _execute(self, step: PipelineStep, record: Submission) -> StepOutcome:
        try:
            return StepOutcome.ok(step.name, step.run(record))
        except StepIntegrationError as e:
            logger.error("Submission %s: step %s failed: %s", record.id, e.step, e)
            return StepOutcome.failed(step.name, e)
        except Exception as e:
            logger.exception("Submission %s: step %s raised unexpectedly", record.id, step.name)
            return StepOutcome.failed(step.name, e)

    def _fail(self, record: Submission, outcome: StepOutcome) -> SubmissionResult:
        detail = ErrorDetail(
            step=outcome.step,
            timestamp=utcnow(),
            retry_count=record.retry_count,
            last_error=outcome.error_message or "Unknown error",
        )
        try:
            record = self.store.update(record.id, status="error", error_detail=detail)
        except Exception:
            # record may stay in processing; the alert still carries its id
            logger.exception("Submission %s: could not record failure of %s", record.id, outcome.step)
            record = record.model_copy(update={"status": "error", "error_detail": detail})

        step_label = outcome.step if record.retry_count == 0 else f"retry_{outcome.step}"
        self.notifier.notify_failure(step_label, record.payload, detail.last_error, record.id)

        return self._result(record, failed_step=outcome.step, error_message=detail.last_error)

    def _complete(self, record: Submission) -> SubmissionResult:
        try:
            record = self.store.update(
                record.id,
                status="complete",
                completed_at=utcnow(),
                error_detail=None,
            )
        except Exception as e:
            logger.exception("Submission %s: could not mark complete", record.id)
            return self._fail(record, StepOutcome.failed(constants.STEP_COMPLETE_RECORD, e))
        logger.info("Submission %s complete", record.id)

        outputs = record.outputs
        if outputs.task_url and outputs.folder_url:
            self.notifier.notify_success(record.payload, outputs.task_url, outputs.folder_url)
        return self._result(record)

    @staticmethod
    def _result(record: Submission, **extra) -> SubmissionResult:
        return SubmissionResult(
            status="complete" if record.status == "complete" else "error",
            submission_id=record.id,
            task_url=record.outputs.task_url,
            folder_url=record.outputs.folder_url,
            uploaded_files=record.outputs.uploaded_files,
            retry_count=record.retry_count,
            **extra,
        )


def build_orchestrator(
    store: SubmissionStore,
    provisioner: FolderProvisioner,
    creator: TaskCreator,
    notifier: Notifier,
) -> Orchestrator:
    return Orchestrator(store, [FolderStep(provisioner), TaskStep(creator)], notifier)


def get_orchestrator(settings: Optional[Settings] = None) -> Orchestrator:
    s = settings or get_settings()
    store = get_store(s)
    roots = {
        constants.PARTITION_A_L: s.google_drive_al_shared_drive_id,
        constants.PARTITION_M_Z: s.google_drive_mz_shared_drive_id,
    }

    if s.integrations_provider == "mock":
        roots = {key: value or f"mock-{key.lower()}-root" for key, value in roots.items()}
        failure_channel: Optional[MessageChannel] = InMemoryChannel()
        success_channel: Optional[MessageChannel] = InMemoryChannel() if s.slack_success_webhook else None
        return build_orchestrator(
            store,
            FolderProvisioner(InMemoryFolderService(), roots),
            TaskCreator(InMemoryTaskService(), s.asana_project_id),
            Notifier(failure_channel, success_channel, app_url=s.app_url),
        )

    if s.integrations_provider == "live":
        timeout = s.http_timeout_seconds
        failure_channel = (
            SlackWebhookChannel(s.slack_tech_alert_webhook, timeout=timeout) if s.slack_tech_alert_webhook else None
        )
        success_channel = (
            SlackWebhookChannel(s.slack_success_webhook, timeout=timeout) if s.slack_success_webhook else None
        )
        return build_orchestrator(
            store,
            FolderProvisioner(GoogleDriveFolderService(s.google_drive_access_token or "", timeout=timeout), roots),
            TaskCreator(AsanaTaskService(s.asana_access_token or "", timeout=timeout), s.asana_project_id),
            Notifier(failure_channel, success_channel, app_url=s.app_url),
        )

    raise ValueError(f"Unsupported INTEGRATIONS_PROVIDER: {s.integrations_provider}")
