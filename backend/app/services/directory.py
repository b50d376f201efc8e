"""Employee directory: identity, reporting lines, roles and delegations.

All functions take the caller's sync SQLAlchemy Session so routing reads
happen inside the same transaction as the workflow write.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import NotFound, ValidationError
from app.models.employee import DEFAULT_BALANCES, Employee, SystemRole

logger = logging.getLogger(__name__)


# ─── Reads ───

def get_employee(db: Session, employee_id: str) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFound(f"Employee {employee_id} not found.")
    return employee


def find_employees_by_role(db: Session, role: SystemRole | str) -> list[Employee]:
    """Return active holders of ``role``, ordered by id.

    The ordering makes "first found" deterministic for a given directory state.
    """
    role_value = role.value if isinstance(role, SystemRole) else role
    stmt = (
        select(Employee)
        .where(Employee.system_role == role_value, Employee.is_active.is_(True))
        .order_by(Employee.id)
    )
    return list(db.execute(stmt).scalars().all())


def list_employees(db: Session) -> list[Employee]:
    return list(db.execute(select(Employee).order_by(Employee.name)).scalars().all())


def active_delegate(employee: Employee, now: datetime | None = None) -> str | None:
    """Return the delegate id if ``employee`` has a delegation still in force."""
    if not employee.delegate_id or employee.delegation_until is None:
        return None
    now = now or datetime.now(timezone.utc)
    if employee.delegation_until > now:
        return employee.delegate_id
    return None


# ─── Administrative writes ───

def create_employee(
    db: Session,
    employee_id: str,
    name: str,
    email: str,
    department: str = "",
    job_title: str = "",
    reports_to: str | None = None,
    system_role: SystemRole = SystemRole.EMPLOYEE,
) -> Employee:
    if db.get(Employee, employee_id) is not None:
        raise ValidationError(f"Employee {employee_id} already exists.")
    if reports_to is not None:
        _check_manager_link(db, employee_id, reports_to)

    employee = Employee(
        id=employee_id,
        name=name,
        email=email,
        department=department,
        job_title=job_title,
        reports_to=reports_to,
        system_role=SystemRole(system_role).value,
        balances=dict(DEFAULT_BALANCES),
    )
    db.add(employee)
    db.commit()
    logger.info("Employee created: id=%s role=%s reports_to=%s", employee_id, employee.system_role, reports_to)
    return employee


def update_admin_fields(
    db: Session,
    employee_id: str,
    system_role: SystemRole | None = None,
    reports_to: str | None = None,
    balances: dict | None = None,
    clear_manager: bool = False,
) -> Employee:
    """Apply an administrator's edit of role, manager link and leave balances."""
    employee = get_employee(db, employee_id)

    if system_role is not None:
        employee.system_role = SystemRole(system_role).value
    if clear_manager:
        employee.reports_to = None
    elif reports_to is not None:
        _check_manager_link(db, employee_id, reports_to)
        employee.reports_to = reports_to
    if balances is not None:
        employee.balances = {**DEFAULT_BALANCES, **(employee.balances or {}), **balances}

    db.commit()
    logger.info(
        "Employee updated: id=%s role=%s reports_to=%s",
        employee_id, employee.system_role, employee.reports_to,
    )
    return employee


def set_delegation(db: Session, employee_id: str, delegate_id: str, until: datetime) -> Employee:
    """Redirect ``employee_id``'s approvals to ``delegate_id`` until ``until``."""
    employee = get_employee(db, employee_id)
    if delegate_id == employee_id:
        raise ValidationError("An employee cannot delegate to themselves.")
    if until.tzinfo is None:
        until = until.replace(tzinfo=timezone.utc)
    if until <= datetime.now(timezone.utc):
        raise ValidationError("Delegation end time must be in the future.")
    delegate = get_employee(db, delegate_id)
    if not delegate.is_active:
        raise ValidationError(f"Delegate {delegate_id} is not an active employee.")

    employee.delegate_id = delegate.id
    employee.delegate_name = delegate.name
    employee.delegation_until = until
    db.commit()
    logger.info("Delegation set: %s -> %s until %s", employee_id, delegate_id, until.isoformat())
    return employee


def clear_delegation(db: Session, employee_id: str) -> Employee:
    employee = get_employee(db, employee_id)
    if employee.delegate_id is None:
        raise NotFound(f"Employee {employee_id} has no delegation.")
    employee.delegate_id = None
    employee.delegate_name = None
    employee.delegation_until = None
    db.commit()
    logger.info("Delegation cleared: %s", employee_id)
    return employee


# ─── Internal helper ───

def _check_manager_link(db: Session, employee_id: str, manager_id: str) -> None:
    if manager_id == employee_id:
        raise ValidationError("An employee cannot report to themselves.")
    if db.get(Employee, manager_id) is None:
        raise ValidationError(f"Manager {manager_id} does not exist.")
