"""Pydantic schemas for service definitions (the request-type catalog)."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.employee import SystemRole
from app.models.service_definition import ApprovalStepType, FieldType


# ─── Form fields ───

class FormField(BaseModel):
    id: str = Field(pattern=r"^[A-Za-z][A-Za-z0-9_]*$", max_length=100)
    label: str
    type: FieldType
    required: bool = True
    options: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _select_needs_options(self) -> "FormField":
        if self.type == FieldType.SELECT and not self.options:
            raise ValueError(f"Select field '{self.id}' must define options.")
        return self


# ─── Approval steps ───

class ApprovalStep(BaseModel):
    # populate_by_name so both API clients (roleValue) and stored JSON work
    model_config = ConfigDict(populate_by_name=True)

    order: int = Field(ge=1)
    kind: ApprovalStepType
    role_value: SystemRole | None = Field(default=None, alias="roleValue")

    @model_validator(mode="after")
    def _role_matches_kind(self) -> "ApprovalStep":
        if self.kind == ApprovalStepType.SYSTEM_ROLE and self.role_value is None:
            raise ValueError("SYSTEM_ROLE steps require a roleValue.")
        if self.kind == ApprovalStepType.REPORTS_TO and self.role_value is not None:
            raise ValueError("REPORTS_TO steps must not carry a roleValue.")
        return self


# ─── Service definitions ───

class ServiceDefinitionIn(BaseModel):
    title: str = Field(min_length=1)
    icon: str = ""
    color: str = "blue-500"
    fields: list[FormField] = Field(min_length=1)
    approval_steps: list[ApprovalStep] = Field(min_length=1)
    is_active: bool = True

    @model_validator(mode="after")
    def _unique_field_ids(self) -> "ServiceDefinitionIn":
        ids = [f.id for f in self.fields]
        if len(ids) != len(set(ids)):
            raise ValueError("Field ids must be unique within a service.")
        return self


class ServiceDefinition(BaseModel):
    """Immutable snapshot of a catalog entry, as read by the router."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    title: str
    icon: str
    color: str
    fields: list[FormField]
    approval_steps: list[ApprovalStep]
    is_active: bool
    updated_at: datetime | None = None
