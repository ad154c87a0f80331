"""
Workflow error taxonomy.

Service functions raise these; the exception handler in ``mrms.main`` turns
them into ``{"error": {"code": ..., "message": ...}}`` responses. The message
is always human readable and is shown to the user as-is.
"""

from fastapi import status


class WorkflowError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "WORKFLOW_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": {"code": self.code, "message": self.message}}


class Unauthenticated(WorkflowError):
    """No resolvable session, or the session's user does not exist."""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "NOT_AUTHENTICATED"


class Unauthorized(WorkflowError):
    """Session resolved but the role or ownership check failed."""
    status_code = status.HTTP_403_FORBIDDEN
    code = "UNAUTHORIZED"


class NotFound(WorkflowError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ValidationError(WorkflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class InvalidTransition(WorkflowError):
    status_code = status.HTTP_409_CONFLICT
    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str):
        super().__init__(f"Invalid status transition from {from_status} to {to_status}")
        self.from_status = from_status
        self.to_status = to_status


class BusinessRuleViolation(WorkflowError):
    status_code = 422
    code = "BUSINESS_RULE_VIOLATION"
