import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.schemas.applications import ApplicationRequest
from db.crud import db_create_application
from services.errors import PersistenceError, ValidationFailed
from services.schemas.applications import ApplicationRecord, ApplicationSource
from services.workflow_policy import VariantPolicy, default_policies

logger = logging.getLogger(__name__)


def funding_bound_errors(policy: VariantPolicy, amount: Decimal) -> Dict[str, str]:
    errors = {}
    if amount <= 0:
        errors["fundingAmount"] = "Funding amount must be greater than zero"
    elif policy.min_funding_amount is not None and amount < policy.min_funding_amount:
        errors["fundingAmount"] = f"Funding amount must be at least ${policy.min_funding_amount:,.0f}"
    elif policy.max_funding_amount is not None and amount > policy.max_funding_amount:
        errors["fundingAmount"] = f"Funding amount cannot exceed ${policy.max_funding_amount:,.0f}"
    return errors


class SubmissionService:
    """Creates PENDING applications in the collection chosen by the caller."""

    def __init__(self, db: Session, policies: Optional[Dict[ApplicationSource, VariantPolicy]] = None):
        self.db = db
        self.policies = policies or default_policies()

    def submit(
        self,
        app_req: ApplicationRequest,
        source: ApplicationSource,
        submitted_by: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> ApplicationRecord:
        policy = self.policies[ApplicationSource(source)]
        errors = funding_bound_errors(policy, app_req.funding_info.funding_amount)
        if errors:
            raise ValidationFailed("Validation failed", errors)

        try:
            record = db_create_application(
                self.db,
                app_req,
                source,
                submitted_by=submitted_by,
                seed_history=policy.seed_status_history,
                created_at=created_at,
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to store %s application", policy.source.value)
            raise PersistenceError("Error submitting application") from exc

        logger.info("Stored %s application %s", record.source.value, record.id)
        return record
