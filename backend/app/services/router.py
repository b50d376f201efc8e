"""Approval routing: who acts on the next step of a request.

Pure resolution over Directory reads. The caller passes its own Session so
the employee records consulted here (including delegations) are read inside
the same transaction that commits the transition.
"""
import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy.orm import Session

from app.core.exceptions import NoManagerAssigned, NoRoleHolder, NotFound, RoutingError
from app.models.employee import Employee
from app.models.service_definition import ApprovalStepType
from app.schemas.catalog import ApprovalStep
from app.services import directory

logger = logging.getLogger(__name__)

# Passing FIRST_STEP as the current index resolves the assignee of step 0
FIRST_STEP = -1


def resolve_next_assignee(
    db: Session,
    requester_id: str,
    approval_steps: Sequence[ApprovalStep],
    current_step_index: int,
    now: datetime | None = None,
) -> str | None:
    """Return the employee id responsible for step ``current_step_index + 1``.

    Returns None when the chain is exhausted (the request is fully approved).

    Raises:
        NoManagerAssigned: REPORTS_TO step and the requester has no manager.
        NoRoleHolder: SYSTEM_ROLE step and nobody holds the role.
        RoutingError: the resolved manager is not in the directory.
    """
    next_index = current_step_index + 1
    if next_index >= len(approval_steps):
        return None

    step = approval_steps[next_index]
    if step.kind == ApprovalStepType.REPORTS_TO:
        candidate = _resolve_manager(db, requester_id)
    elif step.kind == ApprovalStepType.SYSTEM_ROLE:
        candidate = _resolve_role_holder(db, step)
    else:
        raise RoutingError(f"Unknown approval step kind {step.kind!r}.")

    return _apply_delegation(db, candidate, now)


def _resolve_manager(db: Session, requester_id: str) -> Employee:
    requester = directory.get_employee(db, requester_id)
    if not requester.reports_to:
        raise NoManagerAssigned(f"No direct manager is assigned to employee {requester_id}.")
    try:
        return directory.get_employee(db, requester.reports_to)
    except NotFound as exc:
        raise RoutingError(
            f"Manager {requester.reports_to} of employee {requester_id} is not in the directory."
        ) from exc


def _resolve_role_holder(db: Session, step: ApprovalStep) -> Employee:
    holders = directory.find_employees_by_role(db, step.role_value)
    if not holders:
        raise NoRoleHolder(f"No employee holds the role {step.role_value.value}.")
    return holders[0]


def _apply_delegation(db: Session, candidate: Employee, now: datetime | None) -> str:
    """Swap in the candidate's delegate when a delegation is in force.

    Exactly one hop: a delegate's own delegation is not followed.
    """
    delegate_id = directory.active_delegate(candidate, now)
    if delegate_id is None:
        return candidate.id

    delegate = db.get(Employee, delegate_id)
    if delegate is None or not delegate.is_active:
        logger.warning(
            "Delegate %s of %s is not an active employee; routing to %s.",
            delegate_id, candidate.id, candidate.id,
        )
        return candidate.id

    logger.info("Routing %s -> delegate %s", candidate.id, delegate_id)
    return delegate_id
