import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.schemas.grants import GrantCreateRequest, GrantUpdateRequest
from config import Config
from db.crud import db_create_grant, db_delete_grant, db_update_grant, get_grant_by_id, to_grant_record
from db.models import GrantListing
from services.application_query import escape_like, page_count
from services.errors import InvalidQuery, NotFound, PersistenceError
from services.schemas.grants import GrantListingRecord, GrantPage, GrantStatus

logger = logging.getLogger(__name__)


class GrantListingService:
    """
    Browse, search and administer published grant opportunities.
    Listings are ordered featured first, then newest, then by id.
    """

    def __init__(self, db: Session, max_page_size: Optional[int] = None):
        self.db = db
        self.max_page_size = max_page_size or Config.MAX_PAGE_SIZE

    def list_grants(
        self,
        page: int = 1,
        page_size: int = 10,
        category: Optional[str] = None,
        search: Optional[str] = None,
        status: Optional[str] = None,
    ) -> GrantPage:
        if page < 1:
            raise InvalidQuery("Page must be 1 or greater")
        if page_size < 1 or page_size > self.max_page_size:
            raise InvalidQuery(f"Page size must be between 1 and {self.max_page_size}")

        query = self.db.query(GrantListing)
        if category:
            query = query.filter(GrantListing.category.ilike(f"%{escape_like(category)}%", escape="\\"))
        if search:
            pattern = f"%{escape_like(search)}%"
            query = query.filter(
                or_(
                    GrantListing.title.ilike(pattern, escape="\\"),
                    GrantListing.description.ilike(pattern, escape="\\"),
                    GrantListing.category.ilike(pattern, escape="\\"),
                )
            )
        if status:
            try:
                query = query.filter(GrantListing.status == GrantStatus(status.upper()).value)
            except ValueError:
                raise InvalidQuery("Status must be one of OPEN, CLOSED, UPCOMING") from None

        try:
            total = query.count()
            rows = (
                query.order_by(GrantListing.featured.desc(), GrantListing.created_at.desc(), GrantListing.id.asc())
                .offset((page - 1) * page_size)
                .limit(page_size)
                .all()
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Grant listing query failed")
            raise PersistenceError("Error fetching grants") from exc

        return GrantPage(
            items=[to_grant_record(row) for row in rows],
            total_count=total,
            page_count=page_count(total, page_size),
            page=page,
            page_size=page_size,
        )

    def _load(self, grant_id: str) -> GrantListing:
        try:
            row = get_grant_by_id(self.db, grant_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to load grant %s", grant_id)
            raise PersistenceError("Error fetching grant") from exc
        if row is None:
            raise NotFound("Grant not found")
        return row

    def get_grant(self, grant_id: str) -> GrantListingRecord:
        return to_grant_record(self._load(grant_id))

    def create_grant(self, grant_req: GrantCreateRequest) -> GrantListingRecord:
        try:
            row = db_create_grant(self.db, grant_req)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to create grant")
            raise PersistenceError("Error creating grant") from exc
        logger.info("Created grant %s", row.id)
        return to_grant_record(row)

    def update_grant(self, grant_id: str, grant_req: GrantUpdateRequest) -> GrantListingRecord:
        row = self._load(grant_id)
        try:
            row = db_update_grant(self.db, row, grant_req)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to update grant %s", grant_id)
            raise PersistenceError("Error updating grant") from exc
        logger.info("Updated grant %s", grant_id)
        return to_grant_record(row)

    def delete_grant(self, grant_id: str) -> str:
        row = self._load(grant_id)
        try:
            db_delete_grant(self.db, row)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to delete grant %s", grant_id)
            raise PersistenceError("Error deleting grant") from exc
        logger.info("Deleted grant %s", grant_id)
        return grant_id
