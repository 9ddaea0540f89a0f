from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Literal, Optional

from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from request_pipeline.errors import PayloadValidationError, RetryRejectedError, SubmissionNotFoundError
from request_pipeline.orchestrator import Orchestrator, get_orchestrator
from request_pipeline.ratelimit import FixedWindowRateLimiter
from request_pipeline.records import Submission
from request_pipeline.results import SubmissionResult
from request_pipeline.settings import get_settings
from request_pipeline.validate import validate_payload

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Art Request Provisioning",
    version="0.1.0",
    description="Submits art requests to Drive + Asana and exposes status and retry for operators.",
)

# attachment bodies stay in the store for retries but are not echoed back
RECORD_EXCLUDE = {"payload": {"attachments": {"__all__": {"base64_data"}}}}


@lru_cache
def get_pipeline() -> Orchestrator:
    return get_orchestrator()


@lru_cache
def get_submit_limiter() -> FixedWindowRateLimiter:
    s = get_settings()
    return FixedWindowRateLimiter(s.submit_rate_limit, s.rate_limit_window_seconds)


@lru_cache
def get_read_limiter() -> FixedWindowRateLimiter:
    s = get_settings()
    return FixedWindowRateLimiter(s.read_rate_limit, s.rate_limit_window_seconds)


def _client_id(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def _rate_limited(request: Request, limiter: FixedWindowRateLimiter) -> Optional[JSONResponse]:
    decision = limiter.hit(f"{_client_id(request)}:{request.url.path}")
    if decision.allowed:
        return None
    return JSONResponse(
        status_code=429,
        content={"success": False, "error": "Rate limit exceeded", "retryAfter": decision.retry_after},
        headers={
            "Retry-After": str(decision.retry_after),
            "X-RateLimit-Limit": str(decision.limit),
            "X-RateLimit-Remaining": "0",
        },
    )


def _result_body(result: SubmissionResult) -> dict[str, Any]:
    body: dict[str, Any] = {
        "success": result.ok,
        "submissionId": result.submission_id,
        "status": result.status,
        "taskUrl": result.task_url,
        "folderUrl": result.folder_url,
        "uploadedFiles": [f.model_dump(mode="json") for f in result.uploaded_files],
        "retryCount": result.retry_count,
    }
    if not result.ok:
        body["step"] = result.failed_step
        body["error"] = result.error_message
    return body


def _record_body(record: Submission) -> dict[str, Any]:
    return record.model_dump(mode="json", by_alias=True, exclude=RECORD_EXCLUDE)


@app.get("/health")
def health() -> dict:
    s = get_settings()
    return {
        "status": "ok",
        "provider": s.integrations_provider,
        "integrations": {
            "drive": bool(s.google_drive_access_token and s.google_drive_al_shared_drive_id and s.google_drive_mz_shared_drive_id),
            "asana": bool(s.asana_access_token and s.asana_project_id),
            "slackAlerts": bool(s.slack_tech_alert_webhook),
            "slackSuccess": bool(s.slack_success_webhook),
        },
    }


@app.post("/api/submit")
def api_submit(
    request: Request,
    body: dict = Body(...),
    pipeline: Orchestrator = Depends(get_pipeline),
    limiter: FixedWindowRateLimiter = Depends(get_submit_limiter),
) -> JSONResponse:
    limited = _rate_limited(request, limiter)
    if limited is not None:
        return limited

    try:
        payload = validate_payload(body)
    except PayloadValidationError as e:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": str(e), "details": e.issues},
        )

    try:
        result = pipeline.run(payload)
    except Exception as e:
        logger.exception("Submission failed unexpectedly")
        return JSONResponse(status_code=500, content={"success": False, "error": f"Unexpected error: {e}"})

    return JSONResponse(status_code=200 if result.ok else 500, content=_result_body(result))


@app.post("/api/submissions/{submission_id}/retry")
def api_retry(submission_id: str, pipeline: Orchestrator = Depends(get_pipeline)) -> JSONResponse:
    try:
        result = pipeline.retry(submission_id)
    except SubmissionNotFoundError as e:
        return JSONResponse(status_code=404, content={"success": False, "error": str(e)})
    except RetryRejectedError as e:
        return JSONResponse(status_code=400, content={"success": False, "error": str(e)})
    except Exception as e:
        logger.exception("Retry of %s failed unexpectedly", submission_id)
        return JSONResponse(status_code=500, content={"success": False, "error": f"Unexpected error: {e}"})

    return JSONResponse(status_code=200 if result.ok else 500, content=_result_body(result))


@app.get("/api/submissions/{submission_id}")
def api_get_submission(
    submission_id: str,
    request: Request,
    pipeline: Orchestrator = Depends(get_pipeline),
    limiter: FixedWindowRateLimiter = Depends(get_read_limiter),
) -> JSONResponse:
    limited = _rate_limited(request, limiter)
    if limited is not None:
        return limited

    record = pipeline.get(submission_id)
    if record is None:
        return JSONResponse(status_code=404, content={"success": False, "error": "Submission not found"})
    return JSONResponse(content={"success": True, "submission": _record_body(record)})


@app.get("/api/submissions")
def api_list_submissions(
    request: Request,
    status: Optional[Literal["processing", "complete", "error"]] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    pipeline: Orchestrator = Depends(get_pipeline),
    limiter: FixedWindowRateLimiter = Depends(get_read_limiter),
) -> JSONResponse:
    limited = _rate_limited(request, limiter)
    if limited is not None:
        return limited

    records = pipeline.list(status=status, limit=limit)
    return JSONResponse(
        content={"success": True, "submissions": [_record_body(r) for r in records]}
    )
