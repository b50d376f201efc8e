import enum

from sqlalchemy import JSON, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin


class ApprovalStepType(str, enum.Enum):
    REPORTS_TO = "REPORTS_TO"
    SYSTEM_ROLE = "SYSTEM_ROLE"


class FieldType(str, enum.Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    TIME = "time"
    FILE = "file"
    SELECT = "select"
    TEXTAREA = "textarea"


class ServiceDefinition(Base, TimestampMixin):
    """A request type: form fields plus an ordered approval chain.

    ``fields`` and ``approval_steps`` hold JSON lists validated through
    ``app.schemas.catalog`` before they are written.
    """

    __tablename__ = "service_definitions"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    icon: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    color: Mapped[str] = mapped_column(String(50), nullable=False, default="blue-500")
    fields: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    approval_steps: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
