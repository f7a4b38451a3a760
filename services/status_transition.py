import logging
from typing import Dict, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.crud import append_status_history, find_application, load_status_history, to_application_record
from db.models import utcnow
from services.errors import InvalidActor, InvalidStatus, NotFound, PersistenceError
from services.schemas.applications import ApplicationRecord, ApplicationSource, ApplicationStatus
from services.workflow_policy import VariantPolicy, default_policies

logger = logging.getLogger(__name__)


class StatusTransitionEngine:
    """
    Only writer of ``status`` and ``statusHistory``.

    Each call re-fetches the record by id, validates the requested status
    against the record's variant policy and commits the status change and the
    history entry together. Concurrent writers on the same record are
    detected by the row version and surface as PersistenceError.
    """

    def __init__(self, db: Session, policies: Optional[Dict[ApplicationSource, VariantPolicy]] = None):
        self.db = db
        self.policies = policies or default_policies()

    def _parse_status(self, new_status: Union[str, ApplicationStatus], policy: VariantPolicy) -> ApplicationStatus:
        try:
            status = ApplicationStatus(new_status)
        except ValueError:
            raise InvalidStatus("Invalid status value") from None
        if status not in policy.allowed_statuses:
            raise InvalidStatus(f"Status {status.value} is not allowed for {policy.source.value} applications")
        return status

    def transition(
        self,
        record_id: str,
        new_status: Union[str, ApplicationStatus],
        actor_id: str,
        notes: Optional[str] = None,
    ) -> ApplicationRecord:
        if actor_id is None or str(actor_id).strip() == "":
            raise InvalidActor("An authenticated actor is required to change status")

        try:
            found = find_application(self.db, record_id, refresh=True)
            if found is not None:
                history = load_status_history(self.db, found[0], record_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to load application %s for status change", record_id)
            raise PersistenceError("Could not load application") from exc

        if found is None:
            raise NotFound("Application not found")
        source, row = found

        policy = self.policies[source]
        target = self._parse_status(new_status, policy)
        current = ApplicationStatus(row.status)
        if not policy.can_transition(current, target):
            raise InvalidStatus(f"Cannot move application from {current.value} to {target.value}")

        now = utcnow()
        try:
            row.status = target.value
            row.updated_at = now
            if notes is not None:
                row.notes = notes
            entry = append_status_history(self.db, source, row.id, target, str(actor_id), now)
            self.db.commit()
        except SQLAlchemyError as exc:
            # rollback expires the row so later reads see the stored state
            self.db.rollback()
            logger.exception("Failed to persist status change for application %s", record_id)
            raise PersistenceError("Could not update application status") from exc

        logger.info(
            "Application %s status %s -> %s by %s", record_id, current.value, target.value, actor_id
        )
        return to_application_record(row, source, list(history) + [entry])
