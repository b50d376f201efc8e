"""Service catalog API endpoints (request types and their approval chains)."""
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_current_employee, require_role
from app.db.session import get_session
from app.models.employee import Employee, SystemRole
from app.schemas.catalog import ServiceDefinition, ServiceDefinitionIn
from app.services.catalog import catalog

router = APIRouter()


@router.get("", response_model=list[ServiceDefinition], summary="List available services")
def list_services(
    db: Annotated[Session, Depends(get_session)],
    current: Annotated[Employee, Depends(get_current_employee)],
    include_inactive: bool = Query(False),
):
    admin = current.system_role == SystemRole.HR_ADMIN.value
    return catalog.list_services(db, include_inactive=include_inactive and admin)


@router.get("/{service_id}", response_model=ServiceDefinition, summary="Get a service definition")
def get_service(
    service_id: str,
    db: Annotated[Session, Depends(get_session)],
    current: Annotated[Employee, Depends(get_current_employee)],
):
    return catalog.get_service_definition(db, service_id)


@router.put(
    "/{service_id}",
    response_model=ServiceDefinition,
    summary="Create or replace a service definition (HR_ADMIN)",
)
def save_service(
    service_id: str,
    body: ServiceDefinitionIn,
    db: Annotated[Session, Depends(get_session)],
    current: Annotated[Employee, Depends(require_role(SystemRole.HR_ADMIN.value))],
):
    return catalog.save_service(db, service_id, body)
