"""Pydantic schemas for request lifecycle endpoints."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.models.request import RequestStatus


class HistoryEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    actor_id: str
    actor_name: str
    action: str
    note: str | None
    time: datetime


class RequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    employee_id: str
    employee_name: str
    department: str
    service_id: str
    service_title: str
    status: RequestStatus
    current_step_index: int
    assigned_to: str
    payload: dict[str, Any]
    history: list[HistoryEntryOut]
    created_at: datetime
    updated_at: datetime


class RequestListResponse(BaseModel):
    items: list[RequestOut]
    total: int


class RequestCreate(BaseModel):
    service_id: str
    payload: dict[str, Any] = Field(default_factory=dict)
    as_draft: bool = False


class PayloadUpdate(BaseModel):
    payload: dict[str, Any]


class TransitionRequest(BaseModel):
    note: str | None = None
    idempotency_key: str | None = Field(default=None, max_length=128)
