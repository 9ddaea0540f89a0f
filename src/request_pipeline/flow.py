from functools import lru_cache
from typing import Any

from prefect import flow, task, get_run_logger

from request_pipeline.errors import PayloadValidationError
from request_pipeline.orchestrator import Orchestrator, get_orchestrator
from request_pipeline.results import SubmissionResult
from request_pipeline.validate import validate_payload


@lru_cache
def _pipeline() -> Orchestrator:
    # one set of clients per worker process, shared by every mapped task
    return get_orchestrator()


@task(retries=0)  # IMPORTANT: no Prefect retries; retry is an explicit operator call
def t_submit(payload_data: dict[str, Any]) -> SubmissionResult:
    logger = get_run_logger()

    try:
        payload = validate_payload(payload_data)
    except PayloadValidationError as e:
        logger.warning(f"Payload rejected: {e.issues}")
        return SubmissionResult(status="error", failed_step="validation", error_message=str(e))

    result = _pipeline().run(payload)
    if result.ok:
        logger.info(f"Submission {result.submission_id} complete. task={result.task_url}")
    else:
        logger.error(f"Submission {result.submission_id} failed at {result.failed_step}: {result.error_message}")
    return result


@task(retries=0)
def t_retry(submission_id: str) -> SubmissionResult:
    logger = get_run_logger()
    logger.info(f"Retrying submission {submission_id}")
    return _pipeline().retry(submission_id)


@flow(name="request-submission", retries=0)
def submission_flow(payload_data: dict[str, Any]) -> SubmissionResult:
    return t_submit(payload_data)


@flow(name="request-retry", retries=0)
def retry_flow(submission_id: str) -> SubmissionResult:
    return t_retry(submission_id)


@flow(name="request-submission-batch")
def submission_batch_flow(payloads: list[dict[str, Any]]) -> list[SubmissionResult]:
    logger = get_run_logger()
    logger.info(f"Starting batch submission flow. count={len(payloads)}")

    futures = t_submit.map(payloads)
    # Resolve to actual values (not State objects)
    results: list[SubmissionResult] = []
    for f in futures:
        value = f.result(raise_on_failure=False)
        if isinstance(value, SubmissionResult):
            results.append(value)
        else:
            results.append(SubmissionResult(status="error", error_message=str(value)))

    ok = sum(1 for r in results if r.ok)
    logger.info(f"Batch complete. ok={ok} failed={len(results) - ok}")
    return results
