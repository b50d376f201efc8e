"""Pydantic schemas for the employee directory."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.employee import SystemRole


class Balances(BaseModel):
    annual: float = 0
    sick: float = 0
    casual: float = 0
    permissions_used: float = 0


class EmployeeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    department: str
    job_title: str
    reports_to: str | None
    system_role: SystemRole
    balances: Balances
    is_active: bool
    delegate_id: str | None
    delegate_name: str | None
    delegation_until: datetime | None


class EmployeeIn(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1)
    email: EmailStr
    department: str = ""
    job_title: str = ""
    reports_to: str | None = None
    system_role: SystemRole = SystemRole.EMPLOYEE


class EmployeeAdminUpdate(BaseModel):
    system_role: SystemRole | None = None
    reports_to: str | None = None
    balances: Balances | None = None


class DelegationIn(BaseModel):
    delegate_id: str
    until: datetime
