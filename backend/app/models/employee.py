import enum
from datetime import datetime

from sqlalchemy import JSON, Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin, UTCDateTime


class SystemRole(str, enum.Enum):
    """Capability tag, not a position in the reporting hierarchy."""

    EMPLOYEE = "EMPLOYEE"
    HOD = "HOD"  # head of department
    HR_SPECIALIST = "HR_SPECIALIST"
    HR_MANAGER = "HR_MANAGER"
    HR_ADMIN = "HR_ADMIN"
    ACCOUNTANT = "ACCOUNTANT"
    FINANCE_MANAGER = "FINANCE_MANAGER"
    CFO = "CFO"
    CEO = "CEO"


DEFAULT_BALANCES = {"annual": 0, "sick": 0, "casual": 0, "permissions_used": 0}


class Employee(Base, TimestampMixin):
    __tablename__ = "employees"

    # Employee ids are issued by the identity provider
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    department: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    job_title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    reports_to: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("employees.id"), nullable=True, index=True
    )
    system_role: Mapped[str] = mapped_column(
        String(50), nullable=False, default=SystemRole.EMPLOYEE.value, index=True
    )
    balances: Mapped[dict] = mapped_column(JSON, nullable=False, default=lambda: dict(DEFAULT_BALANCES))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Active delegation: who acts on this employee's behalf, and until when
    delegate_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("employees.id"), nullable=True)
    delegate_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    delegation_until: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
