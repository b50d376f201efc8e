"""Seed default data into the database."""
import logging

from sqlalchemy.orm import Session

import app.models  # noqa: F401  register tables on Base.metadata
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.models.employee import Employee, SystemRole
from app.services import directory
from app.services.catalog import catalog, seed_default_services

logger = logging.getLogger(__name__)

# Demo org chart: (id, name, email, department, job_title, reports_to, role)
DEMO_EMPLOYEES = [
    ("ceo", "Nadia Haddad", "ceo@example.com", "Executive", "Chief Executive", None, SystemRole.CEO),
    ("hr-admin", "Omar Saleh", "hr@example.com", "Human Resources", "HR Administrator", "ceo", SystemRole.HR_ADMIN),
    ("eng-lead", "Lina Aziz", "lina@example.com", "Engineering", "Engineering Lead", "ceo", SystemRole.HOD),
    ("dev-1", "Karim Nasser", "karim@example.com", "Engineering", "Developer", "eng-lead", SystemRole.EMPLOYEE),
]


def seed_demo_employees(db: Session) -> None:
    """Insert demo employees in hierarchy order, skipping existing ids."""
    for employee_id, name, email, department, job_title, reports_to, role in DEMO_EMPLOYEES:
        if db.get(Employee, employee_id) is not None:
            logger.info("Employee already exists: %s, skipping", employee_id)
            continue
        directory.create_employee(
            db,
            employee_id=employee_id,
            name=name,
            email=email,
            department=department,
            job_title=job_title,
            reports_to=reports_to,
            system_role=role,
        )


def run_seed(with_demo_employees: bool = True) -> None:
    Base.metadata.create_all(engine)
    with SessionLocal() as db:
        seed_default_services(db, catalog)
        if with_demo_employees:
            seed_demo_employees(db)
    logger.info("Seeding complete.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_seed()
