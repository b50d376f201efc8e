"""Workflow error taxonomy.

Every error is a local, recoverable condition. The HTTP layer renders them
as ``{"detail": ..., "code": ...}`` using ``status_code``.
"""


class WorkflowError(Exception):
    """Base class for all request-lifecycle failures."""

    status_code = 400
    code = "workflow_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(WorkflowError):
    status_code = 404
    code = "not_found"


class Unauthorized(WorkflowError):
    """Actor lacks the capability for the attempted transition."""

    status_code = 403
    code = "unauthorized"


class InvalidTransition(WorkflowError):
    status_code = 409
    code = "invalid_transition"


class ValidationError(WorkflowError):
    status_code = 422
    code = "validation_error"


class RoutingError(WorkflowError):
    """No assignee can be resolved for the next approval step."""

    status_code = 422
    code = "routing_error"


class NoManagerAssigned(RoutingError):
    code = "no_manager_assigned"


class NoRoleHolder(RoutingError):
    code = "no_role_holder"


class ConcurrencyConflict(WorkflowError):
    """Lost an optimistic-concurrency race on the same request."""

    status_code = 409
    code = "concurrency_conflict"
