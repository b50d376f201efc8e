"""Employee directory API endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.deps import get_current_employee, require_role
from app.db.session import get_session
from app.models.employee import Employee, SystemRole
from app.schemas.employee import DelegationIn, EmployeeAdminUpdate, EmployeeIn, EmployeeOut
from app.services import directory

router = APIRouter()


# ─── Self-service ───

@router.get("/me", response_model=EmployeeOut, summary="Get current employee profile")
def get_me(current: Annotated[Employee, Depends(get_current_employee)]):
    return EmployeeOut.model_validate(current)


@router.put("/me/delegation", response_model=EmployeeOut, summary="Delegate my approvals until a given time")
def set_my_delegation(
    body: DelegationIn,
    db: Annotated[Session, Depends(get_session)],
    current: Annotated[Employee, Depends(get_current_employee)],
):
    return EmployeeOut.model_validate(directory.set_delegation(db, current.id, body.delegate_id, body.until))


@router.delete("/me/delegation", status_code=status.HTTP_204_NO_CONTENT, summary="End my delegation")
def clear_my_delegation(
    db: Annotated[Session, Depends(get_session)],
    current: Annotated[Employee, Depends(get_current_employee)],
):
    directory.clear_delegation(db, current.id)


# ─── Administration (HR_ADMIN) ───

@router.get("", response_model=list[EmployeeOut], summary="List employees (HR_ADMIN)")
def list_employees(
    db: Annotated[Session, Depends(get_session)],
    current: Annotated[Employee, Depends(require_role(SystemRole.HR_ADMIN.value))],
):
    return [EmployeeOut.model_validate(e) for e in directory.list_employees(db)]


@router.post(
    "",
    response_model=EmployeeOut,
    status_code=status.HTTP_201_CREATED,
    summary="Register an employee (HR_ADMIN)",
)
def create_employee(
    body: EmployeeIn,
    db: Annotated[Session, Depends(get_session)],
    current: Annotated[Employee, Depends(require_role(SystemRole.HR_ADMIN.value))],
):
    employee = directory.create_employee(
        db,
        employee_id=body.id,
        name=body.name,
        email=body.email,
        department=body.department,
        job_title=body.job_title,
        reports_to=body.reports_to,
        system_role=body.system_role,
    )
    return EmployeeOut.model_validate(employee)


@router.patch("/{employee_id}", response_model=EmployeeOut, summary="Edit role, manager or balances (HR_ADMIN)")
def update_employee(
    employee_id: str,
    body: EmployeeAdminUpdate,
    db: Annotated[Session, Depends(get_session)],
    current: Annotated[Employee, Depends(require_role(SystemRole.HR_ADMIN.value))],
):
    employee = directory.update_admin_fields(
        db,
        employee_id,
        system_role=body.system_role,
        reports_to=body.reports_to,
        balances=body.balances.model_dump() if body.balances else None,
        # an explicit "reports_to": null detaches the manager
        clear_manager="reports_to" in body.model_fields_set and body.reports_to is None,
    )
    return EmployeeOut.model_validate(employee)
