"""Request lifecycle API endpoints.

  POST  /requests                    create (draft or submit)
  GET   /requests                    my requests
  GET   /requests/inbox              PENDING requests assigned to me
  GET   /requests/{request_id}
  PATCH /requests/{request_id}/payload
  POST  /requests/{request_id}/submit
  POST  /requests/{request_id}/approve
  POST  /requests/{request_id}/reject
  POST  /requests/{request_id}/return
"""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_current_employee
from app.core.exceptions import Unauthorized
from app.core.limiter import limiter
from app.db.session import get_session
from app.models.employee import Employee, SystemRole
from app.models.request import RequestStatus
from app.schemas.request import (
    PayloadUpdate,
    RequestCreate,
    RequestListResponse,
    RequestOut,
    TransitionRequest,
)
from app.services.request_store import RequestStore
from app.services.workflow import WorkflowEngine

logger = logging.getLogger(__name__)

router = APIRouter()

# Roles that may read any request (audit / HR follow-up)
READ_ALL_ROLES = (SystemRole.HR_ADMIN.value, SystemRole.HR_MANAGER.value)


def get_workflow_engine(db: Annotated[Session, Depends(get_session)]) -> WorkflowEngine:
    return WorkflowEngine(db)


# ─── Reads ───

@router.get("", response_model=RequestListResponse, summary="List my requests")
def list_my_requests(
    current: Annotated[Employee, Depends(get_current_employee)],
    db: Annotated[Session, Depends(get_session)],
    status_filter: RequestStatus | None = Query(None, alias="status"),
):
    items = RequestStore(db).list_requests_for_employee(current.id, status_filter)
    return RequestListResponse(items=[RequestOut.model_validate(r) for r in items], total=len(items))


@router.get("/inbox", response_model=RequestListResponse, summary="List requests waiting on me")
def list_inbox(
    current: Annotated[Employee, Depends(get_current_employee)],
    db: Annotated[Session, Depends(get_session)],
):
    items = RequestStore(db).list_assigned_requests(current.id)
    return RequestListResponse(items=[RequestOut.model_validate(r) for r in items], total=len(items))


@router.get("/{request_id}", response_model=RequestOut, summary="Get request detail with history")
def get_request(
    request_id: str,
    current: Annotated[Employee, Depends(get_current_employee)],
    db: Annotated[Session, Depends(get_session)],
):
    portal_request = RequestStore(db).read_request(request_id)
    participants = {portal_request.employee_id, portal_request.assigned_to}
    participants.update(h.actor_id for h in portal_request.history)
    if current.id not in participants and current.system_role not in READ_ALL_ROLES:
        raise Unauthorized(f"Employee {current.id} cannot view request {request_id}.")
    return RequestOut.model_validate(portal_request)


# ─── Writes ───

@router.post(
    "",
    response_model=RequestOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a request as a draft or submit it for approval",
)
@limiter.limit(settings.WRITE_RATE_LIMIT)
def create_request(
    request: Request,
    body: RequestCreate,
    current: Annotated[Employee, Depends(get_current_employee)],
    engine: Annotated[WorkflowEngine, Depends(get_workflow_engine)],
):
    portal_request = engine.create(current.id, body.service_id, body.payload, as_draft=body.as_draft)
    return RequestOut.model_validate(portal_request)


@router.patch("/{request_id}/payload", response_model=RequestOut, summary="Edit a draft or returned request")
@limiter.limit(settings.WRITE_RATE_LIMIT)
def update_payload(
    request: Request,
    request_id: str,
    body: PayloadUpdate,
    current: Annotated[Employee, Depends(get_current_employee)],
    engine: Annotated[WorkflowEngine, Depends(get_workflow_engine)],
):
    return RequestOut.model_validate(engine.update_payload(request_id, current.id, body.payload))


@router.post("/{request_id}/submit", response_model=RequestOut, summary="Submit a draft or returned request")
@limiter.limit(settings.WRITE_RATE_LIMIT)
def submit_request(
    request: Request,
    request_id: str,
    current: Annotated[Employee, Depends(get_current_employee)],
    engine: Annotated[WorkflowEngine, Depends(get_workflow_engine)],
    body: TransitionRequest | None = None,
):
    key = body.idempotency_key if body else None
    return RequestOut.model_validate(engine.submit(request_id, current.id, idempotency_key=key))


@router.post("/{request_id}/approve", response_model=RequestOut, summary="Approve the current step")
@limiter.limit(settings.WRITE_RATE_LIMIT)
def approve_request(
    request: Request,
    request_id: str,
    body: TransitionRequest,
    current: Annotated[Employee, Depends(get_current_employee)],
    engine: Annotated[WorkflowEngine, Depends(get_workflow_engine)],
):
    portal_request = engine.approve(request_id, current.id, body.note, idempotency_key=body.idempotency_key)
    return RequestOut.model_validate(portal_request)


@router.post("/{request_id}/reject", response_model=RequestOut, summary="Reject a request (note required)")
@limiter.limit(settings.WRITE_RATE_LIMIT)
def reject_request(
    request: Request,
    request_id: str,
    body: TransitionRequest,
    current: Annotated[Employee, Depends(get_current_employee)],
    engine: Annotated[WorkflowEngine, Depends(get_workflow_engine)],
):
    portal_request = engine.reject(request_id, current.id, body.note, idempotency_key=body.idempotency_key)
    return RequestOut.model_validate(portal_request)


@router.post("/{request_id}/return", response_model=RequestOut, summary="Return a request to its owner for edits")
@limiter.limit(settings.WRITE_RATE_LIMIT)
def return_request(
    request: Request,
    request_id: str,
    body: TransitionRequest,
    current: Annotated[Employee, Depends(get_current_employee)],
    engine: Annotated[WorkflowEngine, Depends(get_workflow_engine)],
):
    portal_request = engine.return_for_edit(
        request_id, current.id, body.note, idempotency_key=body.idempotency_key
    )
    return RequestOut.model_validate(portal_request)
