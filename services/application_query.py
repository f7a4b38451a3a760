import logging
import math
from typing import List, Optional, Tuple

from sqlalchemy import String, func, literal, or_, select, union_all
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import Config
from db.crud import APPLICATION_MODELS, get_application_by_id, load_status_histories, to_application_record
from services.errors import InvalidQuery, NotFound, PersistenceError
from services.schemas.applications import (
    ApplicantApplication,
    ApplicationFilter,
    ApplicationPage,
    ApplicationRecord,
    ApplicationSource,
    SortSpec,
    StatusSummary,
)

logger = logging.getLogger(__name__)

# public sort keys -> column attribute
SORT_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "status": "status",
    "fundingAmount": "funding_amount",
    "fundingInfo.fundingAmount": "funding_amount",
    "fundingType": "funding_type",
    "fundingInfo.fundingType": "funding_type",
    "firstName": "first_name",
    "personalInfo.firstName": "first_name",
    "lastName": "last_name",
    "personalInfo.lastName": "last_name",
    "email": "email",
    "personalInfo.email": "email",
}

SEARCH_COLUMNS = ("first_name", "last_name", "email", "city", "funding_purpose")


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def page_count(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if total else 0


def sort_rows(items: list, key, descending: bool, tiebreak) -> list:
    """
    Stable two-pass sort: tiebreak ascending first, then the sort key in the
    requested direction, so equal keys stay in tiebreak order.
    """
    ordered = sorted(items, key=tiebreak)
    ordered.sort(key=key, reverse=descending)
    return ordered


class ApplicationQueryService:
    """Filtered, sorted and paginated reads across both application collections."""

    def __init__(self, db: Session, max_page_size: Optional[int] = None):
        self.db = db
        self.max_page_size = max_page_size or Config.MAX_PAGE_SIZE

    def _validate(self, sort: SortSpec, page: int, page_size: int) -> Tuple[str, bool]:
        if sort.field not in SORT_FIELDS:
            raise InvalidQuery(f"Cannot sort by '{sort.field}'")
        direction = (sort.direction or "").lower()
        if direction not in ("asc", "desc"):
            raise InvalidQuery("Sort direction must be 'asc' or 'desc'")
        if page < 1:
            raise InvalidQuery("Page must be 1 or greater")
        if page_size < 1 or page_size > self.max_page_size:
            raise InvalidQuery(f"Page size must be between 1 and {self.max_page_size}")
        return SORT_FIELDS[sort.field], direction == "desc"

    def _filtered(self, model, source: ApplicationSource, column: str, filters: ApplicationFilter):
        """Select (id, source, sort_key) for the rows of one collection matching ``filters``."""
        stmt = select(
            model.id.label("id"),
            literal(source.value, type_=String).label("source"),
            getattr(model, column).label("sort_key"),
        )
        if filters.status is not None:
            stmt = stmt.where(model.status == filters.status.value)
        if filters.funding_type:
            stmt = stmt.where(model.funding_type == filters.funding_type)
        if filters.search:
            pattern = f"%{escape_like(filters.search)}%"
            stmt = stmt.where(
                or_(*[getattr(model, column_name).ilike(pattern, escape="\\") for column_name in SEARCH_COLUMNS])
            )
        return stmt

    def list(
        self,
        filters: Optional[ApplicationFilter] = None,
        sort: Optional[SortSpec] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> ApplicationPage:
        filters = filters or ApplicationFilter()
        sort = sort or SortSpec()
        column, descending = self._validate(sort, page, page_size)

        sources = [filters.source] if filters.source is not None else list(APPLICATION_MODELS)
        selects = [self._filtered(APPLICATION_MODELS[source], source, column, filters) for source in sources]
        # one ordering for both collections, decided by the database collation
        matches = (selects[0] if len(selects) == 1 else union_all(*selects)).subquery()
        try:
            total = self.db.execute(select(func.count()).select_from(matches)).scalar_one()
            window = self.db.execute(
                select(matches.c.id, matches.c.source)
                .order_by(
                    matches.c.sort_key.desc() if descending else matches.c.sort_key.asc(),
                    matches.c.id.asc(),
                )
                .offset((page - 1) * page_size)
                .limit(page_size)
            ).all()

            rows = {}
            histories = {}
            for source in sources:
                ids = [row_id for row_id, row_source in window if row_source == source.value]
                if not ids:
                    continue
                model = APPLICATION_MODELS[source]
                rows.update({(source.value, row.id): row for row in self.db.query(model).filter(model.id.in_(ids))})
                histories[source.value] = load_status_histories(self.db, source, ids)

            items: List[ApplicationRecord] = [
                to_application_record(
                    rows[(row_source, row_id)], ApplicationSource(row_source), histories[row_source][row_id]
                )
                for row_id, row_source in window
            ]
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Application listing failed")
            raise PersistenceError("Error retrieving applications") from exc

        return ApplicationPage(
            items=items,
            total_count=total,
            page_count=page_count(total, page_size),
            page=page,
            page_size=page_size,
        )

    def get(self, record_id: str) -> ApplicationRecord:
        try:
            record = get_application_by_id(self.db, record_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to load application %s", record_id)
            raise PersistenceError("Error retrieving application") from exc
        if record is None:
            raise NotFound("Application not found")
        return record

    def status_summary(self, record_id: str) -> StatusSummary:
        record = self.get(record_id)
        return StatusSummary(
            application_id=record.id,
            status=record.status,
            funding_type=record.funding_info.funding_type,
            funding_amount=record.funding_info.funding_amount,
            submission_date=record.created_at,
            first_name=record.personal_info.first_name,
            last_name=record.personal_info.last_name,
        )

    def _owned(self, predicate) -> List[ApplicantApplication]:
        results = []
        try:
            for source, model in APPLICATION_MODELS.items():
                rows = self.db.query(model).filter(predicate(model)).all()
                results.extend(
                    ApplicantApplication(
                        id=row.id,
                        source=source,
                        status=row.status,
                        funding_type=row.funding_type,
                        funding_amount=row.funding_amount,
                        created_at=row.created_at,
                    )
                    for row in rows
                )
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Applicant application lookup failed")
            raise PersistenceError("Error retrieving user applications") from exc
        return sort_rows(results, key=lambda item: item.created_at, descending=True, tiebreak=lambda item: item.id)

    def list_for_applicant(self, email: str) -> List[ApplicantApplication]:
        """Applications whose contact email matches, case-insensitively."""
        normalized = email.strip().lower()
        return self._owned(lambda model: func.lower(model.email) == normalized)

    def list_for_submitter(self, user_id: str) -> List[ApplicantApplication]:
        return self._owned(lambda model: model.submitted_by == user_id)
