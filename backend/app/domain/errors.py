# backend/app/domain/errors.py
from __future__ import annotations

from typing import Optional


class WorkflowError(Exception):
    """
    Base for every failure the workflow engine reports to its callers.

    Routers never catch these; the handler in main.py renders them as
    {"ok": false, "error": code, "detail": detail} with `status_code`.
    """

    status_code: int = 500
    code: str = "workflow_error"

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail or self.code
        super().__init__(self.detail)


class AuthzDenied(WorkflowError):
    status_code = 403
    code = "authz_denied"


class NotFound(WorkflowError):
    status_code = 404
    code = "not_found"


class Conflict(WorkflowError):
    status_code = 409
    code = "conflict"


class InvalidState(WorkflowError):
    status_code = 409
    code = "invalid_state"


class ValidationError(WorkflowError):
    status_code = 422
    code = "validation_error"


class StorageError(WorkflowError):
    status_code = 503
    code = "storage_error"
