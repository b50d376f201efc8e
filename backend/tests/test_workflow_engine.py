"""Tests for the request lifecycle state machine.

Runs the engine against a real SQLite database: create, submit, approve,
reject, return-for-edit, payload edits, policy pinning and idempotency.
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from app.core.exceptions import (
    InvalidTransition,
    NoManagerAssigned,
    NoRoleHolder,
    NotFound,
    RoutingError,
    Unauthorized,
    ValidationError,
)
from app.models.request import Request, RequestStatus
from app.schemas.catalog import ServiceDefinition, ServiceDefinitionIn
from app.services import directory
from app.services.request_store import RequestStore
from app.services.workflow import WorkflowEngine

from conftest import LEAVE_SERVICE, LEAVE_SERVICE_ID, OVERTIME_SERVICE_ID, VALID_PAYLOAD


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _submit(workflow, org, payload=None):
    return workflow.create(org.employee, LEAVE_SERVICE_ID, payload or VALID_PAYLOAD)


def _snapshot(db, request_id):
    request = RequestStore(db).read_request(request_id)
    return (
        request.status,
        request.current_step_index,
        request.assigned_to,
        request.version,
        len(request.history),
    )


def _request_count(db) -> int:
    return db.execute(select(func.count()).select_from(Request)).scalar_one()


# ─── Create ───────────────────────────────────────────────────────────────────

def test_create_submitted_routes_to_manager(workflow, org, leave_service):
    request = _submit(workflow, org)

    assert request.status == RequestStatus.PENDING
    assert request.assigned_to == org.manager
    assert request.current_step_index == 0
    assert request.employee_name == "Eli Employee"
    assert request.service_title == "Leave Request"
    assert [h.action for h in request.history] == ["submitted"]
    assert request.history[0].actor_id == org.employee


def test_create_draft_assigns_owner(workflow, org, leave_service):
    request = workflow.create(org.employee, LEAVE_SERVICE_ID, {"reason": "not sure yet"}, as_draft=True)

    assert request.status == RequestStatus.DRAFT
    assert request.assigned_to == org.employee
    assert request.current_step_index == 0
    assert [h.action for h in request.history] == ["created as draft"]


def test_create_rejects_invalid_payload(workflow, org, leave_service, db):
    with pytest.raises(ValidationError, match="date"):
        workflow.create(org.employee, LEAVE_SERVICE_ID, {"reason": "missing date"})
    with pytest.raises(ValidationError, match="unknown"):
        workflow.create(org.employee, LEAVE_SERVICE_ID, {**VALID_PAYLOAD, "unknown": 1}, as_draft=True)

    assert _request_count(db) == 0


def test_create_with_routing_error_persists_nothing(workflow, org, leave_service, db):
    with pytest.raises(NoManagerAssigned):
        workflow.create(org.ceo, LEAVE_SERVICE_ID, VALID_PAYLOAD)

    assert _request_count(db) == 0


def test_create_for_service_without_steps_is_routing_error(db, org):
    class StubCatalog:
        def get_service_definition(self, db, service_id):
            return ServiceDefinition(
                id=service_id, title="Broken", icon="", color="", fields=[],
                approval_steps=[], is_active=True,
            )

    engine = WorkflowEngine(db, StubCatalog())
    with pytest.raises(RoutingError, match="no approval steps"):
        engine.create(org.employee, "broken", {})
    assert _request_count(db) == 0


def test_create_unknown_service_or_employee(workflow, org, leave_service):
    with pytest.raises(NotFound):
        workflow.create(org.employee, "no-such-service", {})
    with pytest.raises(NotFound):
        workflow.create("ghost", LEAVE_SERVICE_ID, VALID_PAYLOAD)


# ─── Approve ──────────────────────────────────────────────────────────────────

def test_two_step_chain_reaches_approved(workflow, org, leave_service):
    request = _submit(workflow, org)

    request = workflow.approve(request.id, org.manager)
    assert request.status == RequestStatus.PENDING
    assert request.assigned_to == org.hr
    assert request.current_step_index == 1

    request = workflow.approve(request.id, org.hr, note="enjoy")
    assert request.status == RequestStatus.APPROVED
    assert request.assigned_to == ""
    assert request.current_step_index == 1
    assert [h.action for h in request.history] == ["submitted", "approved", "approved"]
    assert request.history[-1].note == "enjoy"


def test_draft_submit_approve_round_trip(workflow, org, leave_service):
    steps = len(leave_service.approval_steps)
    request = workflow.create(org.employee, LEAVE_SERVICE_ID, VALID_PAYLOAD, as_draft=True)
    request = workflow.submit(request.id, org.employee)

    for approver in (org.manager, org.hr):
        request = workflow.approve(request.id, approver)

    assert request.status == RequestStatus.APPROVED
    assert len(request.history) == 2 + steps


def test_history_grows_by_one_and_is_time_ordered(workflow, org, leave_service):
    request = _submit(workflow, org)
    lengths = [len(request.history)]
    request = workflow.return_for_edit(request.id, org.manager, "add dates")
    lengths.append(len(request.history))
    request = workflow.submit(request.id, org.employee)
    lengths.append(len(request.history))
    request = workflow.approve(request.id, org.manager)
    lengths.append(len(request.history))

    assert lengths == [1, 2, 3, 4]
    times = [h.time for h in request.history]
    assert times == sorted(times)
    assert [h.seq for h in request.history] == [1, 2, 3, 4]


def test_approve_by_non_assignee_is_unauthorized(workflow, org, leave_service, db):
    request = _submit(workflow, org)
    before = _snapshot(db, request.id)

    with pytest.raises(Unauthorized):
        workflow.approve(request.id, org.hr)
    with pytest.raises(Unauthorized):
        workflow.approve(request.id, org.employee)

    assert _snapshot(db, request.id) == before


def test_approve_missing_request(workflow, org, leave_service):
    with pytest.raises(NotFound):
        workflow.approve("does-not-exist", org.manager)


def test_approve_routing_failure_leaves_request_unchanged(workflow, org, leave_service, db):
    request = _submit(workflow, org)
    directory.update_admin_fields(db, org.hr, system_role="EMPLOYEE")
    before = _snapshot(db, request.id)

    with pytest.raises(NoRoleHolder):
        workflow.approve(request.id, org.manager)

    assert _snapshot(db, request.id) == before


def test_delegate_receives_request_and_can_approve(workflow, org, leave_service, db):
    directory.set_delegation(db, org.manager, org.delegate, datetime.now(timezone.utc) + timedelta(days=2))

    request = _submit(workflow, org)
    assert request.assigned_to == org.delegate

    with pytest.raises(Unauthorized):
        workflow.approve(request.id, org.manager)
    request = workflow.approve(request.id, org.delegate)
    assert request.assigned_to == org.hr
    assert request.history[-1].actor_name == "Dan Delegate"


# ─── Reject / return ──────────────────────────────────────────────────────────

def test_reject_is_terminal(workflow, org, leave_service):
    request = _submit(workflow, org)

    request = workflow.reject(request.id, org.manager, "insufficient justification")
    assert request.status == RequestStatus.REJECTED
    assert request.assigned_to == ""
    assert request.history[-1].action == "rejected"
    assert request.history[-1].note == "insufficient justification"

    with pytest.raises(InvalidTransition):
        workflow.approve(request.id, org.manager)
    with pytest.raises(InvalidTransition):
        workflow.submit(request.id, org.employee)


@pytest.mark.parametrize("note", [None, "", "   "])
def test_reject_and_return_require_note(workflow, org, leave_service, db, note):
    request = _submit(workflow, org)
    before = _snapshot(db, request.id)

    with pytest.raises(ValidationError):
        workflow.reject(request.id, org.manager, note)
    with pytest.raises(ValidationError):
        workflow.return_for_edit(request.id, org.manager, note)

    assert _snapshot(db, request.id) == before


def test_return_then_edit_and_resubmit(workflow, org, leave_service):
    request = _submit(workflow, org)

    request = workflow.return_for_edit(request.id, org.manager, "add dates")
    assert request.status == RequestStatus.RETURNED
    assert request.assigned_to == org.employee
    assert request.history[-1].action == "returned for edit"

    request = workflow.update_payload(request.id, org.employee, {"date": "2026-11-09", "reason": "Moved"})
    assert request.payload == {"date": "2026-11-09", "reason": "Moved"}
    assert len(request.history) == 2

    request = workflow.submit(request.id, org.employee)
    assert request.status == RequestStatus.PENDING
    assert request.assigned_to == org.manager
    assert request.current_step_index == 0


def test_resubmission_restarts_from_first_step(workflow, org, leave_service):
    request = _submit(workflow, org)
    request = workflow.approve(request.id, org.manager)
    request = workflow.return_for_edit(request.id, org.hr, "wrong date")
    assert request.current_step_index == 1

    request = workflow.submit(request.id, org.employee)
    assert request.current_step_index == 0
    assert request.assigned_to == org.manager


# ─── Submit / payload edits ───────────────────────────────────────────────────

def test_submit_rules(workflow, org, leave_service):
    draft = workflow.create(org.employee, LEAVE_SERVICE_ID, {"reason": "tbd"}, as_draft=True)

    with pytest.raises(Unauthorized):
        workflow.submit(draft.id, org.manager)
    with pytest.raises(ValidationError, match="date"):
        workflow.submit(draft.id, org.employee)

    workflow.update_payload(draft.id, org.employee, VALID_PAYLOAD)
    submitted = workflow.submit(draft.id, org.employee)
    assert submitted.status == RequestStatus.PENDING

    with pytest.raises(InvalidTransition):
        workflow.submit(draft.id, org.employee)


def test_payload_edit_rules(workflow, org, leave_service):
    request = _submit(workflow, org)
    with pytest.raises(InvalidTransition):
        workflow.update_payload(request.id, org.employee, VALID_PAYLOAD)

    draft = workflow.create(org.employee, LEAVE_SERVICE_ID, {}, as_draft=True)
    with pytest.raises(Unauthorized):
        workflow.update_payload(draft.id, org.manager, VALID_PAYLOAD)
    with pytest.raises(ValidationError):
        workflow.update_payload(draft.id, org.employee, {"hours": "many"})


def test_submit_with_no_manager_keeps_draft(workflow, org, leave_service, db):
    draft = workflow.create(org.employee, LEAVE_SERVICE_ID, VALID_PAYLOAD, as_draft=True)
    directory.update_admin_fields(db, org.employee, clear_manager=True)
    before = _snapshot(db, draft.id)

    with pytest.raises(NoManagerAssigned):
        workflow.submit(draft.id, org.employee)

    assert _snapshot(db, draft.id) == before


# ─── Policy pinning and idempotency ───────────────────────────────────────────

def test_in_flight_request_keeps_pinned_chain(workflow, org, leave_service, service_catalog, db):
    request = _submit(workflow, org)

    one_step = ServiceDefinitionIn.model_validate({**LEAVE_SERVICE, "approval_steps": LEAVE_SERVICE["approval_steps"][:1]})
    service_catalog.save_service(db, LEAVE_SERVICE_ID, one_step)

    request = workflow.approve(request.id, org.manager)
    assert request.status == RequestStatus.PENDING
    assert request.assigned_to == org.hr

    fresh = _submit(workflow, org)
    fresh = workflow.approve(fresh.id, org.manager)
    assert fresh.status == RequestStatus.APPROVED


def test_idempotency_key_replay_is_a_no_op(workflow, org, leave_service):
    request = _submit(workflow, org)

    first = workflow.approve(request.id, org.manager, idempotency_key="approve-1")
    replay = workflow.approve(request.id, org.manager, idempotency_key="approve-1")

    assert replay.current_step_index == first.current_step_index == 1
    assert replay.assigned_to == org.hr
    assert len(replay.history) == 2


@pytest.mark.parametrize("outsider", ["ceo", "employee"])
def test_someone_elses_key_does_not_bypass_authorization(workflow, org, leave_service, db, outsider):
    request = _submit(workflow, org)
    workflow.approve(request.id, org.manager, idempotency_key="k1")
    before = _snapshot(db, request.id)

    with pytest.raises(Unauthorized):
        workflow.reject(request.id, outsider, "x", idempotency_key="k1")
    with pytest.raises(Unauthorized):
        workflow.approve(request.id, outsider, idempotency_key="k1")

    assert _snapshot(db, request.id) == before


def test_assignee_cannot_reuse_previous_approvers_key(workflow, org, leave_service, db):
    request = _submit(workflow, org)
    workflow.approve(request.id, org.manager, idempotency_key="k1")
    before = _snapshot(db, request.id)

    with pytest.raises(ValidationError, match="k1"):
        workflow.approve(request.id, org.hr, idempotency_key="k1")

    assert _snapshot(db, request.id) == before


def test_key_reused_for_another_action_is_rejected(workflow, org, overtime_service, db):
    request = workflow.create(org.employee, OVERTIME_SERVICE_ID, {"date": "2026-11-07"})
    request = workflow.approve(request.id, org.manager, idempotency_key="k1")
    assert request.assigned_to == org.manager
    before = _snapshot(db, request.id)

    with pytest.raises(ValidationError, match="already used"):
        workflow.reject(request.id, org.manager, "changed my mind", idempotency_key="k1")

    assert _snapshot(db, request.id) == before


def test_unknown_actor_is_not_found(workflow, org, leave_service, db):
    request = _submit(workflow, org)
    before = _snapshot(db, request.id)

    with pytest.raises(NotFound):
        workflow.approve(request.id, "nobody")

    assert _snapshot(db, request.id) == before
