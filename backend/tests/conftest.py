"""Shared pytest fixtures.

Provides:
    - session_factory: sessionmaker over a fresh file-backed SQLite database
    - db: one Session from that factory
    - service_catalog: catalog with caching disabled
    - org: a small org chart (employee -> manager, HR admin, delegate)
    - leave_service: two-step service [REPORTS_TO, SYSTEM_ROLE(HR_ADMIN)]
    - overtime_service: two steps that both resolve to the manager
    - workflow: WorkflowEngine wired to the above
"""
import os

# Settings are read at import time
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

import app.models  # noqa: E402,F401
from app.db.base import Base  # noqa: E402
from app.models.employee import SystemRole  # noqa: E402
from app.schemas.catalog import ServiceDefinitionIn  # noqa: E402
from app.services import directory  # noqa: E402
from app.services.catalog import ServiceCatalog, catalog as global_catalog  # noqa: E402
from app.services.workflow import WorkflowEngine  # noqa: E402


LEAVE_SERVICE_ID = "leave"

LEAVE_SERVICE = {
    "title": "Leave Request",
    "fields": [
        {"id": "date", "label": "Date", "type": "date", "required": True},
        {"id": "hours", "label": "Hours", "type": "number", "required": False},
        {"id": "reason", "label": "Reason", "type": "textarea", "required": False},
    ],
    "approval_steps": [
        {"order": 1, "kind": "REPORTS_TO"},
        {"order": 2, "kind": "SYSTEM_ROLE", "roleValue": "HR_ADMIN"},
    ],
}

VALID_PAYLOAD = {"date": "2026-11-02", "hours": 2, "reason": "Dentist"}

# Manager then HOD: in the org fixture the manager is the only HOD, so both
# steps land on the same approver
OVERTIME_SERVICE_ID = "overtime"

OVERTIME_SERVICE = {
    "title": "Overtime Claim",
    "fields": [{"id": "date", "label": "Date", "type": "date", "required": True}],
    "approval_steps": [
        {"order": 1, "kind": "REPORTS_TO"},
        {"order": 2, "kind": "SYSTEM_ROLE", "roleValue": "HOD"},
    ],
}


# ── DB fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def session_factory(tmp_path):
    """File-backed so separate sessions use separate connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'portal.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(engine, expire_on_commit=False, autoflush=False)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def _clear_global_catalog():
    # The app-wide catalog caches by service id across test databases
    global_catalog.invalidate()
    yield
    global_catalog.invalidate()


# ── Domain fixtures ──────────────────────────────────────────────────────


@pytest.fixture
def service_catalog():
    return ServiceCatalog(ttl_seconds=0)


@pytest.fixture
def org(db):
    """ceo <- manager <- employee; hr-admin and delegate report to ceo."""
    directory.create_employee(db, "ceo", "Chief", "ceo@example.com", system_role=SystemRole.CEO)
    directory.create_employee(
        db, "manager", "Maya Manager", "manager@example.com",
        department="Engineering", reports_to="ceo", system_role=SystemRole.HOD,
    )
    directory.create_employee(
        db, "employee", "Eli Employee", "employee@example.com",
        department="Engineering", reports_to="manager",
    )
    directory.create_employee(
        db, "hr-admin", "Hana HR", "hr@example.com",
        department="Human Resources", reports_to="ceo", system_role=SystemRole.HR_ADMIN,
    )
    directory.create_employee(db, "delegate", "Dan Delegate", "delegate@example.com", reports_to="ceo")
    return SimpleNamespace(
        ceo="ceo", manager="manager", employee="employee", hr="hr-admin", delegate="delegate"
    )


@pytest.fixture
def leave_service(db, service_catalog):
    return service_catalog.save_service(db, LEAVE_SERVICE_ID, ServiceDefinitionIn.model_validate(LEAVE_SERVICE))


@pytest.fixture
def overtime_service(db, service_catalog):
    return service_catalog.save_service(
        db, OVERTIME_SERVICE_ID, ServiceDefinitionIn.model_validate(OVERTIME_SERVICE)
    )


@pytest.fixture
def workflow(db, service_catalog):
    return WorkflowEngine(db, service_catalog)
