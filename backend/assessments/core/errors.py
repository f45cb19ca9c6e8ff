from __future__ import annotations


class AssessmentError(Exception):
    """Base class for failures surfaced to the caller of one operation."""

    status_code: int = 500
    error_code: str = "assessment_error"

    def __init__(self, message: str = "", *, question_id: str | None = None):
        super().__init__(message or self.error_code)
        self.message = message or self.error_code
        self.question_id = question_id


class ValidationError(AssessmentError):
    """Malformed input to a submission or generation call. Nothing is applied."""

    status_code = 400
    error_code = "validation_error"


class SessionStateError(AssessmentError):
    """Operation attempted against a session that is not in the expected status."""

    status_code = 409
    error_code = "session_state_error"

    def __init__(self, message: str = "session already completed", **kwargs):
        super().__init__(message, **kwargs)


class SessionNotFound(AssessmentError):
    status_code = 404
    error_code = "session_not_found"


class GenerationError(AssessmentError):
    """The generative provider could not produce an answer at all."""

    status_code = 502
    error_code = "generation_failed"


class GenerationContractViolation(GenerationError):
    """Generator output failed schema validation, including after the stricter retry."""

    status_code = 502
    error_code = "generation_contract_violation"


class GenerationTimeout(GenerationError):
    """One generation call exceeded its allotted time. Callers may retry the operation."""

    status_code = 504
    error_code = "generation_timeout"
