"""Service catalog: request-type definitions behind a read-through cache.

The catalog is injected into the workflow engine instead of being read as
ambient global state, so tests can hand in a catalog with their own TTL.
Cached entries are immutable pydantic snapshots.
"""
import logging
from datetime import datetime, timedelta, timezone
from threading import Lock

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import NotFound
from app.models.employee import SystemRole
from app.models.service_definition import ApprovalStepType, FieldType
from app.models.service_definition import ServiceDefinition as ServiceDefinitionRow
from app.schemas.catalog import ServiceDefinition, ServiceDefinitionIn

logger = logging.getLogger(__name__)


PERMISSION_REQUEST_ID = "permission_request"

# Default catalog: the time-off permission request
DEFAULT_SERVICES: dict[str, dict] = {
    PERMISSION_REQUEST_ID: {
        "title": "Permission Request",
        "icon": "clock",
        "color": "teal-500",
        "fields": [
            {"id": "date", "label": "Date", "type": FieldType.DATE, "required": True},
            {"id": "start_time", "label": "From", "type": FieldType.TIME, "required": True},
            {"id": "end_time", "label": "To", "type": FieldType.TIME, "required": True},
            {
                "id": "permission_type",
                "label": "Type",
                "type": FieldType.SELECT,
                "required": True,
                "options": ["personal", "official", "medical"],
            },
            {"id": "reason", "label": "Reason", "type": FieldType.TEXTAREA, "required": False},
            {"id": "attachment", "label": "Attachment", "type": FieldType.FILE, "required": False},
        ],
        "approval_steps": [
            {"order": 1, "kind": ApprovalStepType.REPORTS_TO, "roleValue": None},
            {"order": 2, "kind": ApprovalStepType.SYSTEM_ROLE, "roleValue": SystemRole.HR_ADMIN},
        ],
    },
}


class ServiceCatalog:
    """Read-through TTL cache over the ``service_definitions`` table."""

    def __init__(self, ttl_seconds: int | None = None):
        self.ttl_seconds = settings.CATALOG_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._memory: dict[str, dict] = {}  # service_id → {definition, expires_at}
        self._lock = Lock()

    def get_service_definition(self, db: Session, service_id: str) -> ServiceDefinition:
        """Return the definition for ``service_id`` or raise NotFound."""
        now = datetime.now(timezone.utc)
        with self._lock:
            entry = self._memory.get(service_id)
            if entry and entry["expires_at"] > now:
                return entry["definition"]
            elif entry:
                del self._memory[service_id]

        row = db.get(ServiceDefinitionRow, service_id)
        if row is None:
            raise NotFound(f"Service {service_id} not found.")

        definition = ServiceDefinition.model_validate(row)
        if self.ttl_seconds > 0:
            with self._lock:
                self._memory[service_id] = {
                    "definition": definition,
                    "expires_at": now + timedelta(seconds=self.ttl_seconds),
                }
        return definition

    def list_services(self, db: Session, include_inactive: bool = False) -> list[ServiceDefinition]:
        stmt = select(ServiceDefinitionRow).order_by(ServiceDefinitionRow.title)
        if not include_inactive:
            stmt = stmt.where(ServiceDefinitionRow.is_active.is_(True))
        return [ServiceDefinition.model_validate(r) for r in db.execute(stmt).scalars().all()]

    def save_service(self, db: Session, service_id: str, body: ServiceDefinitionIn) -> ServiceDefinition:
        """Create or replace a service definition.

        Steps are renumbered 1..n in list order. Requests already submitted
        keep the approval chain pinned at their submission.
        """
        steps = [
            step.model_copy(update={"order": i}).model_dump(mode="json", by_alias=True)
            for i, step in enumerate(body.approval_steps, start=1)
        ]
        values = {
            "title": body.title,
            "icon": body.icon,
            "color": body.color,
            "fields": [f.model_dump(mode="json") for f in body.fields],
            "approval_steps": steps,
            "is_active": body.is_active,
        }

        row = db.get(ServiceDefinitionRow, service_id)
        if row is None:
            row = ServiceDefinitionRow(id=service_id, **values)
            db.add(row)
        else:
            for field, value in values.items():
                setattr(row, field, value)
        db.commit()
        self.invalidate(service_id)

        logger.info("Service saved: id=%s steps=%d fields=%d", service_id, len(steps), len(values["fields"]))
        return ServiceDefinition.model_validate(row)

    def invalidate(self, service_id: str | None = None) -> None:
        with self._lock:
            if service_id is None:
                self._memory.clear()
            else:
                self._memory.pop(service_id, None)


def seed_default_services(db: Session, service_catalog: ServiceCatalog) -> None:
    """Insert the default services that do not exist yet."""
    for service_id, definition in DEFAULT_SERVICES.items():
        if db.get(ServiceDefinitionRow, service_id) is not None:
            logger.info("Service already exists: %s, skipping", service_id)
            continue
        service_catalog.save_service(db, service_id, ServiceDefinitionIn.model_validate(definition))
        logger.info("Seeded service: %s", service_id)


catalog = ServiceCatalog()
