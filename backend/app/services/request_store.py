"""Durable request records and their append-only history.

Every lifecycle write goes through ``RequestStore.write_request``: the
mutation runs against a fresh read of the row inside one transaction, and the
commit is guarded by the row's version column. A competing commit on the same
request makes the loser fail with ConcurrencyConflict and leaves it unchanged.
"""
import logging
from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConcurrencyConflict, NotFound
from app.db.base import utcnow
from app.models.employee import Employee
from app.models.request import Request, RequestHistory, RequestStatus

logger = logging.getLogger(__name__)

Mutation = Callable[[Request], "Request | None"]


class RequestStore:
    def __init__(self, db: Session):
        self.db = db

    # ─── Reads ───

    def read_request(self, request_id: str) -> Request:
        """Load the latest committed state of a request, history included."""
        stmt = (
            select(Request)
            .where(Request.id == request_id)
            .options(selectinload(Request.history))
            .execution_options(populate_existing=True)
        )
        request = self.db.execute(stmt).scalars().first()
        if request is None:
            raise NotFound(f"Request {request_id} not found.")
        return request

    def list_requests_for_employee(self, employee_id: str, status: RequestStatus | None = None) -> list[Request]:
        """Requests owned by ``employee_id``, newest first."""
        stmt = (
            select(Request)
            .where(Request.employee_id == employee_id)
            .options(selectinload(Request.history))
            .order_by(Request.created_at.desc())
        )
        if status is not None:
            stmt = stmt.where(Request.status == RequestStatus(status).value)
        return list(self.db.execute(stmt).scalars().all())

    def list_assigned_requests(self, assignee_id: str) -> list[Request]:
        """PENDING requests waiting on ``assignee_id``, newest first."""
        stmt = (
            select(Request)
            .where(
                Request.assigned_to == assignee_id,
                Request.status == RequestStatus.PENDING.value,
            )
            .options(selectinload(Request.history))
            .order_by(Request.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    # ─── Writes ───

    def add_request(self, request: Request, actor: Employee, action: str) -> Request:
        """Insert a new request together with its first history entry."""
        try:
            self.db.add(request)
            self.append_history(request, actor, action)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(
            "Request created: id=%s service=%s status=%s assigned_to=%s",
            request.id, request.service_id, request.status, request.assigned_to,
        )
        return request

    def write_request(self, request_id: str, mutate: Mutation) -> Request:
        """Apply ``mutate`` to the latest snapshot of a request atomically.

        ``mutate`` edits the request in place and returns it, or returns None
        to leave the request untouched. Any exception it raises aborts the
        transaction with no partial change.

        Raises:
            NotFound: no such request.
            ConcurrencyConflict: another transaction committed first.
        """
        try:
            request = self.read_request(request_id)
            if mutate(request) is None:
                self.db.rollback()
                return self.read_request(request_id)
            # Always issue the versioned UPDATE, even if only history changed
            request.updated_at = utcnow()
            self.db.commit()
        except (StaleDataError, IntegrityError) as exc:
            self.db.rollback()
            logger.info("Request %s lost a concurrent write: %s", request_id, exc)
            raise ConcurrencyConflict(
                f"Request {request_id} was modified by another action. Reload and try again."
            ) from exc
        except Exception:
            self.db.rollback()
            raise
        return request

    def append_history(
        self,
        request: Request,
        actor: Employee,
        action: str,
        note: str | None = None,
        idempotency_key: str | None = None,
    ) -> RequestHistory:
        """Append one audit entry; entries are never edited or removed."""
        now = utcnow()
        if request.history and request.history[-1].time > now:
            # keep the log ordered by time even if clocks step backwards
            now = request.history[-1].time
        entry = RequestHistory(
            seq=len(request.history) + 1,
            actor_id=actor.id,
            actor_name=actor.name,
            action=action,
            note=note,
            time=now,
            idempotency_key=idempotency_key,
        )
        request.history.append(entry)
        return entry
