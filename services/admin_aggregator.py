import logging
from collections import Counter
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import Config
from db.crud import APPLICATION_MODELS, to_application_record
from services.errors import AggregationError
from services.schemas.applications import (
    ApplicationSource,
    ApplicationStatus,
    ApplicationSummary,
    DashboardSummary,
    FundingStats,
    FundingTypeCount,
    StatusCounts,
)
from services.workflow_policy import VariantPolicy, default_policies, tracks_under_review

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def _to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


class AdminAggregator:
    """
    Point-in-time dashboard over every application collection.

    Every figure is computed per collection and then combined: counts are
    summed, the approved average is weighted by the combined approved count,
    and funding types with the same label are merged.
    """

    def __init__(self, db: Session, policies: Optional[Dict[ApplicationSource, VariantPolicy]] = None):
        self.db = db
        self.policies = policies or default_policies()

    def _status_counts(self, model) -> Counter:
        rows = self.db.query(model.status, func.count(model.id)).group_by(model.status).all()
        return Counter({status: int(count) for status, count in rows})

    def _approved_funding(self, model):
        count, total, maximum = (
            self.db.query(func.count(model.id), func.sum(model.funding_amount), func.max(model.funding_amount))
            .filter(model.status == ApplicationStatus.APPROVED.value)
            .one()
        )
        return int(count or 0), _to_decimal(total), _to_decimal(maximum)

    def _funding_types(self, model) -> Counter:
        rows = self.db.query(model.funding_type, func.count(model.id)).group_by(model.funding_type).all()
        return Counter({funding_type: int(count) for funding_type, count in rows})

    def _recent(self, source: ApplicationSource, model, limit: int) -> List[ApplicationSummary]:
        rows = self.db.query(model).order_by(model.created_at.desc(), model.id.asc()).limit(limit).all()
        # summaries carry no history
        return [ApplicationSummary.from_record(to_application_record(row, source, [])) for row in rows]

    def compute_dashboard(self, recent_limit: Optional[int] = None) -> DashboardSummary:
        limit = recent_limit if recent_limit is not None else Config.RECENT_APPLICATIONS_LIMIT

        status_counts: Counter = Counter()
        type_counts: Counter = Counter()
        approved_count = 0
        approved_total = Decimal("0")
        approved_max = Decimal("0")
        recent: List[ApplicationSummary] = []

        try:
            for source, model in APPLICATION_MODELS.items():
                status_counts.update(self._status_counts(model))
                type_counts.update(self._funding_types(model))
                count, total, maximum = self._approved_funding(model)
                approved_count += count
                approved_total += total
                if count and maximum > approved_max:
                    approved_max = maximum
                recent.extend(self._recent(source, model, limit))
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Dashboard aggregation failed")
            raise AggregationError("Error retrieving dashboard statistics") from exc

        counts = StatusCounts(
            total=sum(status_counts.values()),
            pending=status_counts.get(ApplicationStatus.PENDING.value, 0),
            approved=status_counts.get(ApplicationStatus.APPROVED.value, 0),
            rejected=status_counts.get(ApplicationStatus.REJECTED.value, 0),
        )
        if tracks_under_review(self.policies):
            counts.under_review = status_counts.get(ApplicationStatus.UNDER_REVIEW.value, 0)

        # newest first; equal timestamps fall back to id order
        recent.sort(key=lambda item: item.id)
        recent.sort(key=lambda item: item.created_at, reverse=True)

        average = Decimal("0")
        if approved_count:
            average = (approved_total / approved_count).quantize(CENTS, rounding=ROUND_HALF_UP)

        distribution = sorted(type_counts.items(), key=lambda pair: (-pair[1], pair[0]))

        return DashboardSummary(
            counts=counts,
            recent_applications=recent[:limit],
            funding_stats=FundingStats(
                total_approved=approved_total,
                avg_amount=average,
                max_amount=approved_max,
                approved_count=approved_count,
            ),
            funding_type_distribution=[
                FundingTypeCount(funding_type=label, count=count) for label, count in distribution
            ],
        )
