"""Coordinator error taxonomy.

Services raise these directly; ``app.main`` turns the structured ``detail``
into the response envelope's ``error`` object.
"""

from __future__ import annotations

from fastapi import HTTPException


class CoordinatorError(HTTPException):
    status_code: int = 500
    code: str = "COORDINATOR_ERROR"

    def __init__(self, message: str):
        self.message = str(message)
        super().__init__(status_code=self.status_code, detail={"code": self.code, "message": self.message})


class NoActiveMissionError(CoordinatorError):
    status_code = 503
    code = "NO_ACTIVE_MISSION"


class NoWorkAvailableError(CoordinatorError):
    status_code = 503
    code = "NO_WORK_AVAILABLE"


class ValidationFailedError(CoordinatorError):
    status_code = 400
    code = "VALIDATION_FAILED"


class NotFoundError(CoordinatorError):
    status_code = 404
    code = "NOT_FOUND"


class AgentCompletedError(CoordinatorError):
    status_code = 409
    code = "AGENT_COMPLETED"


class ClaimContentionError(CoordinatorError):
    status_code = 503
    code = "CLAIM_CONTENTION"


class ForbiddenError(CoordinatorError):
    status_code = 403
    code = "FORBIDDEN"
