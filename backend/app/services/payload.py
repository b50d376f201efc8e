"""Request payload validation against a service's form fields.

A pydantic model is built per service definition, so the open key/value
payload is checked at write time without hardcoding any request type.
"""
import logging
from datetime import date, time
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, create_model
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import ValidationError
from app.models.service_definition import FieldType
from app.schemas.catalog import FormField, ServiceDefinition

logger = logging.getLogger(__name__)

# Upload collaborator output: an opaque URL, never file bytes
FILE_URL_PATTERN = r"^https?://\S+$"


class _PayloadBase(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


def _annotation_for(field: FormField) -> Any:
    if field.type in (FieldType.TEXT, FieldType.TEXTAREA):
        return str
    if field.type == FieldType.NUMBER:
        return float
    if field.type == FieldType.DATE:
        return date
    if field.type == FieldType.TIME:
        return time
    if field.type == FieldType.SELECT:
        return Literal[tuple(field.options)]
    if field.type == FieldType.FILE:
        return str
    raise ValueError(f"Unsupported field type {field.type!r}")


def _field_info(field: FormField, partial: bool):
    kwargs: dict[str, Any] = {"title": field.label}
    if field.type == FieldType.FILE:
        kwargs["pattern"] = FILE_URL_PATTERN
    if field.type in (FieldType.TEXT, FieldType.TEXTAREA) and field.required and not partial:
        kwargs["min_length"] = 1
    if field.required and not partial:
        return _annotation_for(field), Field(..., **kwargs)
    return Optional[_annotation_for(field)], Field(None, **kwargs)


def _payload_model(service: ServiceDefinition, partial: bool) -> type[BaseModel]:
    definitions = {f.id: _field_info(f, partial) for f in service.fields}
    suffix = "Draft" if partial else "Submission"
    return create_model(f"{service.id}_{suffix}", __base__=_PayloadBase, **definitions)


def validate_payload(service: ServiceDefinition, payload: dict[str, Any], partial: bool = False) -> dict[str, Any]:
    """Validate ``payload`` against ``service``'s fields and return it JSON-ready.

    With ``partial=True`` (drafts) required fields may be missing; submission
    validates the full form. Unknown keys are always rejected.
    """
    model = _payload_model(service, partial)
    try:
        validated = model.model_validate(payload or {})
    except PydanticValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ValidationError(f"Invalid payload for {service.id}: {problems}") from exc
    return validated.model_dump(mode="json", exclude_none=True)
