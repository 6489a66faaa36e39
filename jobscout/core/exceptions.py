"""Custom exceptions for the application."""

import math

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse


class ApplicationError(Exception):
    """Base exception for application errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class AutomationNotFoundError(ApplicationError):
    """Raised when an automation does not exist or belongs to another user."""

    def __init__(self, automation_id: int):
        self.automation_id = automation_id
        super().__init__(f"Automation {automation_id} not found")


class ResumeMissingError(ApplicationError):
    """Raised when the resume linked to an automation no longer exists."""

    def __init__(self, automation_id: int, resume_id: int | None = None):
        self.automation_id = automation_id
        self.resume_id = resume_id
        super().__init__(
            f"Resume {resume_id} linked to automation {automation_id} is missing"
        )


class DiscoveredJobNotFoundError(ApplicationError):
    """Raised when a discovered job does not exist or belongs to another user."""

    def __init__(self, job_id: int):
        self.job_id = job_id
        super().__init__(f"Discovered job {job_id} not found")


class AutomationBusyError(ApplicationError):
    """Raised when a run is requested for an automation that is mid-run."""

    def __init__(self, automation_id: int):
        self.automation_id = automation_id
        super().__init__(f"Automation {automation_id} is already running")


class RateLimitExceededError(ApplicationError):
    """Raised when a per-user rate limit rejects a request."""

    def __init__(self, message: str, retry_after: float):
        self.retry_after = retry_after
        super().__init__(message)

    @property
    def retry_after_seconds(self) -> int:
        """Whole seconds the caller should wait, never less than one."""
        return max(1, math.ceil(self.retry_after))


class RunStateError(ApplicationError):
    """Raised on an illegal automation run status transition."""


class AIUnavailableError(ApplicationError):
    """Raised when the LLM provider cannot be reached."""


class LLMRequestError(ApplicationError):
    """Raised when the LLM provider rejects or fails a single request."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class MalformedResponseError(ApplicationError):
    """Raised when an LLM response is not valid JSON for the expected schema."""

    def __init__(self, message: str, raw: str | None = None):
        self.raw = raw
        super().__init__(message)


class StageError(ApplicationError):
    """Raised when a pipeline stage fails after exhausting its retries."""

    def __init__(self, stage: str, detail: str):
        self.stage = stage
        self.detail = detail
        super().__init__(f"Stage {stage} failed: {detail}")


def unauthorized_exception(detail: str = "Not authenticated") -> HTTPException:
    """Return a 401 Unauthorized exception."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def not_found_exception(detail: str = "Resource not found") -> HTTPException:
    """Return a 404 Not Found exception."""
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail,
    )


def too_many_requests_response(message: str, retry_after: int) -> JSONResponse:
    """Return a 429 Too Many Requests response with a Retry-After header."""
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"message": message, "retry_after": retry_after},
        headers={"Retry-After": str(retry_after)},
    )
