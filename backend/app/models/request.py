import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, TimestampMixin, UTCDateTime, utcnow


class RequestStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    RETURNED = "RETURNED"


TERMINAL_STATUSES = (RequestStatus.APPROVED.value, RequestStatus.REJECTED.value)


class Request(Base, TimestampMixin):
    """An employee's service request and its position in the approval chain."""

    __tablename__ = "requests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    employee_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("employees.id"), nullable=False, index=True
    )
    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)  # snapshot
    department: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    service_id: Mapped[str] = mapped_column(
        String(100), ForeignKey("service_definitions.id"), nullable=False, index=True
    )
    service_title: Mapped[str] = mapped_column(String(255), nullable=False)  # snapshot
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    current_step_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    assigned_to: Mapped[str] = mapped_column(String(64), nullable=False, default="", index=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    # Approval chain pinned at submission; empty while a draft was never submitted
    approval_steps: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    history: Mapped[list["RequestHistory"]] = relationship(
        "RequestHistory",
        back_populates="request",
        order_by="RequestHistory.seq",
        cascade="all",
    )

    __mapper_args__ = {"version_id_col": version}


class RequestHistory(Base):
    """Append-only audit entry, one per lifecycle transition."""

    __tablename__ = "request_history"
    __table_args__ = (
        UniqueConstraint("request_id", "seq", name="uq_request_history_seq"),
        UniqueConstraint("request_id", "idempotency_key", name="uq_request_history_idempotency_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("requests.id"), nullable=False, index=True
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_name: Mapped[str] = mapped_column(String(255), nullable=False)  # denormalized
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    idempotency_key: Mapped[str | None] = mapped_column(String(128), nullable=True)

    request: Mapped["Request"] = relationship("Request", back_populates="history")
