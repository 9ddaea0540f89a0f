from typing import Any

from pydantic import ValidationError

from request_pipeline.errors import PayloadValidationError
from request_pipeline.schema import RequestPayload

SLIDE_REQUEST_TYPES = {"PPTX", "Rise & Shine"}


def _issue(path: str, message: str) -> dict:
    return {"path": [path], "message": message}


def enforce_business_rules(payload: RequestPayload) -> list[dict]:
    """Cross-field rules the per-field schema cannot express."""
    issues: list[dict] = []

    if payload.add_collaborators and not payload.collaborators:
        issues.append(_issue("collaborators", "At least one collaborator email is required"))

    if payload.request_type == "Mockup" and not payload.products:
        issues.append(_issue("products", "At least one product is required for Mockup requests"))

    if payload.request_type in SLIDE_REQUEST_TYPES and not payload.number_of_slides:
        issues.append(
            _issue(
                "numberOfSlides",
                "Number of slides is required for PPTX and Rise & Shine requests",
            )
        )

    if payload.request_type == "Rise & Shine" and payload.rise_and_shine_level is None:
        issues.append(
            _issue(
                "riseAndShineLevel",
                "Rise & Shine level is required for Rise & Shine requests",
            )
        )

    return issues


def validate_payload(data: Any) -> RequestPayload:
    if isinstance(data, RequestPayload):
        payload = data
    else:
        try:
            payload = RequestPayload.model_validate(data)
        except ValidationError as e:
            issues = [
                {"path": [str(p) for p in err["loc"]], "message": err["msg"]}
                for err in e.errors()
            ]
            raise PayloadValidationError("Validation failed", issues=issues) from e

    issues = enforce_business_rules(payload)
    if issues:
        raise PayloadValidationError("Validation failed", issues=issues)
    return payload
