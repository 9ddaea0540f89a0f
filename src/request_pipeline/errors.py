from request_pipeline import constants


class PayloadValidationError(ValueError):
    """Payload failed shape or cross-field rules. Never persisted."""

    def __init__(self, message: str, *, issues: list[dict] | None = None):
        super().__init__(message)
        self.issues = issues or []


class ServiceError(RuntimeError):
    """An external service call failed (transport or API error)."""

    def __init__(self, message: str, *, service: str, status_code: int | None = None):
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class StepIntegrationError(RuntimeError):
    """A pipeline step failed against its external service."""

    def __init__(self, step: str, message: str):
        super().__init__(message)
        self.step = step


class PartialUploadError(RuntimeError):
    def __init__(self, filename: str, message: str):
        super().__init__(f"{filename}: {message}")
        self.filename = filename


class NotificationDeliveryError(RuntimeError):
    pass


class SubmissionCreateError(RuntimeError):
    """The submission record could not be written. Nothing downstream ran."""

    step = constants.STEP_CREATE_RECORD


class SubmissionNotFoundError(LookupError):
    def __init__(self, submission_id: str):
        super().__init__(f"Submission not found: {submission_id}")
        self.submission_id = submission_id


class RetryRejectedError(ValueError):
    def __init__(self, submission_id: str, reason: str):
        super().__init__(reason)
        self.submission_id = submission_id


class StatusConflictError(RuntimeError):
    """A conditional update found the record in a different status."""

    def __init__(self, submission_id: str, expected: str, actual: str):
        super().__init__(f"Submission {submission_id} is {actual!r}, expected {expected!r}")
        self.submission_id = submission_id
        self.expected = expected
        self.actual = actual
