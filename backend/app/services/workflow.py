"""Request lifecycle state machine.

States: DRAFT, PENDING, RETURNED, APPROVED, REJECTED (the last two terminal).

    DRAFT, RETURNED --submit--> PENDING
    PENDING --approve--> PENDING (next step) or APPROVED (last step)
    PENDING --reject--> REJECTED
    PENDING --return_for_edit--> RETURNED

All transitions share one read-validate-route-write closure executed by
``RequestStore.write_request``; the authorization check runs against the same
snapshot that is committed. A lost race is retried once against fresh state.
"""
import enum
import logging
from functools import partial
from typing import Any

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    ConcurrencyConflict,
    InvalidTransition,
    RoutingError,
    Unauthorized,
    ValidationError,
)
from app.models.employee import Employee
from app.models.request import Request, RequestHistory, RequestStatus
from app.schemas.catalog import ApprovalStep
from app.services import directory, router
from app.services.catalog import ServiceCatalog, catalog as default_catalog
from app.services.payload import validate_payload
from app.services.request_store import Mutation, RequestStore

logger = logging.getLogger(__name__)


class TransitionKind(str, enum.Enum):
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    RETURN = "RETURN"


# History action labels
ACTION_CREATED_DRAFT = "created as draft"
ACTION_SUBMITTED = "submitted"
ACTION_APPROVED = "approved"
ACTION_REJECTED = "rejected"
ACTION_RETURNED = "returned for edit"

EDITABLE_STATUSES = (RequestStatus.DRAFT.value, RequestStatus.RETURNED.value)

ACTION_FOR_KIND = {
    TransitionKind.SUBMIT: ACTION_SUBMITTED,
    TransitionKind.APPROVE: ACTION_APPROVED,
    TransitionKind.REJECT: ACTION_REJECTED,
    TransitionKind.RETURN: ACTION_RETURNED,
}

# Decisions act on one specific step; a retry must find the request where it was
DECISION_KINDS = (TransitionKind.APPROVE, TransitionKind.REJECT, TransitionKind.RETURN)


class WorkflowEngine:
    """The only write path for request lifecycle transitions."""

    def __init__(
        self,
        db: Session,
        service_catalog: ServiceCatalog | None = None,
        conflict_retries: int | None = None,
    ):
        self.db = db
        self.catalog = service_catalog or default_catalog
        self.store = RequestStore(db)
        self.conflict_retries = (
            settings.WORKFLOW_CONFLICT_RETRIES if conflict_retries is None else conflict_retries
        )

    # ─── Create ───

    def create(
        self,
        requester_id: str,
        service_id: str,
        payload: dict[str, Any],
        as_draft: bool = False,
    ) -> Request:
        """Create a request as a draft or submit it straight into the chain.

        Routing failures raise before anything is written.
        """
        requester = directory.get_employee(self.db, requester_id)
        service = self.catalog.get_service_definition(self.db, service_id)
        if not service.is_active:
            raise ValidationError(f"Service {service_id} is not accepting requests.")

        request = Request(
            employee_id=requester.id,
            employee_name=requester.name,
            department=requester.department,
            service_id=service.id,
            service_title=service.title,
            payload=validate_payload(service, payload, partial=as_draft),
            current_step_index=0,
        )
        if as_draft:
            request.status = RequestStatus.DRAFT.value
            request.assigned_to = requester.id
            request.approval_steps = []
            action = ACTION_CREATED_DRAFT
        else:
            request.status = RequestStatus.PENDING.value
            request.assigned_to = self._first_assignee(requester.id, service.id, service.approval_steps)
            request.approval_steps = _pin_steps(service.approval_steps)
            action = ACTION_SUBMITTED

        return self.store.add_request(request, requester, action)

    # ─── Transitions ───

    def submit(self, request_id: str, actor_id: str, idempotency_key: str | None = None) -> Request:
        return self._apply_transition(TransitionKind.SUBMIT, request_id, actor_id, None, idempotency_key)

    def approve(
        self,
        request_id: str,
        actor_id: str,
        note: str | None = None,
        idempotency_key: str | None = None,
    ) -> Request:
        return self._apply_transition(TransitionKind.APPROVE, request_id, actor_id, note, idempotency_key)

    def reject(
        self,
        request_id: str,
        actor_id: str,
        note: str | None,
        idempotency_key: str | None = None,
    ) -> Request:
        return self._apply_transition(TransitionKind.REJECT, request_id, actor_id, note, idempotency_key)

    def return_for_edit(
        self,
        request_id: str,
        actor_id: str,
        note: str | None,
        idempotency_key: str | None = None,
    ) -> Request:
        return self._apply_transition(TransitionKind.RETURN, request_id, actor_id, note, idempotency_key)

    def update_payload(self, request_id: str, actor_id: str, payload: dict[str, Any]) -> Request:
        """Owner edit of a DRAFT or RETURNED request. Not a transition: no history entry."""
        return self._write_with_retry(request_id, partial(self._edit_payload, actor_id, payload))

    # ─── Internals ───

    def _apply_transition(
        self,
        kind: TransitionKind,
        request_id: str,
        actor_id: str,
        note: str | None,
        idempotency_key: str | None,
    ) -> Request:
        actor = directory.get_employee(self.db, actor_id)
        # (status, step) seen by the first attempt, shared across retries
        seen: dict[str, tuple[str, int]] = {}
        mutate = partial(self._transition, kind, actor, _clean_note(note), idempotency_key, seen)
        request = self._write_with_retry(request_id, mutate)
        logger.info(
            "Transition applied: request=%s action=%s actor=%s status=%s step=%s assigned_to=%s",
            request_id, kind.value, actor_id, request.status,
            request.current_step_index, request.assigned_to or "-",
        )
        return request

    def _write_with_retry(self, request_id: str, mutate: Mutation) -> Request:
        """Run ``mutate`` transactionally, retrying a lost race against fresh state.

        On the retry every precondition is checked again, and a decision must
        find the request at the status and step the first attempt saw. If the
        competing write made the action illegal or moved the request on, the
        caller gets ConcurrencyConflict.
        """
        attempt = 0
        while True:
            try:
                return self.store.write_request(request_id, mutate)
            except ConcurrencyConflict:
                if attempt >= self.conflict_retries:
                    raise
                attempt += 1
                logger.warning("Concurrent write on request %s, retry %d", request_id, attempt)
            except (Unauthorized, InvalidTransition) as exc:
                if attempt == 0:
                    raise
                raise ConcurrencyConflict(
                    f"Request {request_id} was changed by another action: {exc.message}"
                ) from exc

    def _transition(
        self,
        kind: TransitionKind,
        actor: Employee,
        note: str | None,
        idempotency_key: str | None,
        seen: dict[str, tuple[str, int]],
        request: Request,
    ) -> Request | None:
        used = _entry_with_key(request, idempotency_key)
        if used is not None and used.actor_id == actor.id and used.action == ACTION_FOR_KIND[kind]:
            logger.info("Replayed idempotency key %s on request %s", idempotency_key, request.id)
            return None

        if kind in DECISION_KINDS:
            position = (request.status, request.current_step_index)
            if seen.setdefault("position", position) != position:
                raise InvalidTransition(
                    f"Request {request.id} moved to {request.status} at step "
                    f"{request.current_step_index} while this action was in flight."
                )

        if kind == TransitionKind.SUBMIT:
            self._check_owner_can_edit(request, actor.id, "submitted")
            service = self.catalog.get_service_definition(self.db, request.service_id)
            payload = validate_payload(service, request.payload)
            assignee = self._first_assignee(request.employee_id, service.id, service.approval_steps)

            request.payload = payload
            request.approval_steps = _pin_steps(service.approval_steps)
            request.status = RequestStatus.PENDING.value
            request.current_step_index = 0
            request.assigned_to = assignee
            action = ACTION_SUBMITTED

        elif kind == TransitionKind.APPROVE:
            self._check_assignee_can_act(request, actor.id)
            next_assignee = router.resolve_next_assignee(
                self.db, request.employee_id, self._pinned_steps(request), request.current_step_index
            )
            if next_assignee is None:
                request.status = RequestStatus.APPROVED.value
                request.assigned_to = ""
            else:
                request.assigned_to = next_assignee
                request.current_step_index += 1
            action = ACTION_APPROVED

        elif kind == TransitionKind.REJECT:
            self._check_assignee_can_act(request, actor.id)
            _require_note(note, "rejecting")
            request.status = RequestStatus.REJECTED.value
            request.assigned_to = ""
            action = ACTION_REJECTED

        elif kind == TransitionKind.RETURN:
            self._check_assignee_can_act(request, actor.id)
            _require_note(note, "returning for edit")
            # current_step_index is kept; resubmission restarts from step 0
            request.status = RequestStatus.RETURNED.value
            request.assigned_to = request.employee_id
            action = ACTION_RETURNED

        else:
            raise InvalidTransition(f"Unknown transition {kind!r}.")

        if used is not None:
            raise ValidationError(
                f"Idempotency key {idempotency_key} was already used for another action on request {request.id}."
            )
        self.store.append_history(request, actor, action, note, idempotency_key)
        return request

    def _edit_payload(self, actor_id: str, payload: dict[str, Any], request: Request) -> Request:
        self._check_owner_can_edit(request, actor_id, "edited")
        service = self.catalog.get_service_definition(self.db, request.service_id)
        request.payload = validate_payload(service, payload, partial=True)
        return request

    def _first_assignee(self, requester_id: str, service_id: str, steps: list[ApprovalStep]) -> str:
        assignee = router.resolve_next_assignee(self.db, requester_id, steps, router.FIRST_STEP)
        if assignee is None:
            raise RoutingError(f"Service {service_id} has no approval steps.")
        return assignee

    def _pinned_steps(self, request: Request) -> list[ApprovalStep]:
        if request.approval_steps:
            return [ApprovalStep.model_validate(s) for s in request.approval_steps]
        # Rows written before steps were pinned follow the live definition
        return list(self.catalog.get_service_definition(self.db, request.service_id).approval_steps)

    @staticmethod
    def _check_owner_can_edit(request: Request, actor_id: str, verb: str) -> None:
        if request.status not in EDITABLE_STATUSES:
            raise InvalidTransition(
                f"Request {request.id} cannot be {verb} while {request.status}."
            )
        if actor_id != request.employee_id:
            raise Unauthorized(f"Only the owner of request {request.id} can do this.")

    @staticmethod
    def _check_assignee_can_act(request: Request, actor_id: str) -> None:
        if request.status != RequestStatus.PENDING.value:
            raise InvalidTransition(
                f"Request {request.id} is {request.status}; only PENDING requests can be decided."
            )
        if actor_id != request.assigned_to:
            raise Unauthorized(f"Request {request.id} is not assigned to {actor_id}.")


def _entry_with_key(request: Request, idempotency_key: str | None) -> RequestHistory | None:
    if not idempotency_key:
        return None
    return next((h for h in request.history if h.idempotency_key == idempotency_key), None)


def _pin_steps(steps: list[ApprovalStep]) -> list[dict]:
    return [s.model_dump(mode="json", by_alias=True) for s in steps]


def _clean_note(note: str | None) -> str | None:
    if note is None:
        return None
    return note.strip() or None


def _require_note(note: str | None, doing: str) -> None:
    if not note:
        raise ValidationError(f"A note is required when {doing} a request.")
