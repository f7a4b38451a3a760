"""
Error taxonomy raised by the workflow services.

Each error carries a ``kind`` and a human message so the HTTP layer can pick
a status code without inspecting exception classes. Messages must not embed
identity fields or document references.
"""
from typing import Dict, Optional


class WorkflowError(Exception):
    kind = "WORKFLOW_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(WorkflowError):
    kind = "NOT_FOUND"


class InvalidStatus(WorkflowError):
    kind = "INVALID_STATUS"


class InvalidActor(WorkflowError):
    kind = "INVALID_ACTOR"


class InvalidQuery(WorkflowError):
    kind = "INVALID_QUERY"


class ValidationFailed(WorkflowError):
    kind = "VALIDATION_FAILED"

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.errors = errors or {}


class AggregationError(WorkflowError):
    kind = "AGGREGATION_ERROR"


class PersistenceError(WorkflowError):
    kind = "PERSISTENCE_ERROR"
