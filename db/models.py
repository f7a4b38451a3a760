from datetime import datetime, timezone
import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, JSON, Numeric, String, Text
from sqlalchemy.types import TypeDecorator
from .database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timestamps are stored in UTC and always read back timezone-aware, also on
    backends such as SQLite that drop the offset.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class ApplicationColumns:
    """
    Columns shared by both application collections. Nested groups of the
    public shape (personalInfo, addressInfo, ...) are flattened here and
    rebuilt by db.crud.
    """
    id = Column(String(36), primary_key=True, default=_new_id)

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone_number = Column(String(32), nullable=False)
    ssn = Column(String(11), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String(50))
    ethnicity = Column(String(100))

    employment_status = Column(String(100))
    income_level = Column(String(100))
    education_level = Column(String(100))
    citizenship_status = Column(String(100))

    street_address = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    zip = Column(String(10), nullable=False)

    funding_type = Column(String(100), nullable=False, index=True)
    funding_amount = Column(Numeric(12, 2), nullable=False)
    funding_purpose = Column(Text, nullable=False)
    timeframe = Column(String(100))

    id_card_front = Column(String(500), nullable=False)
    id_card_back = Column(String(500), nullable=False)

    status = Column(String(20), nullable=False, default="PENDING", index=True)
    notes = Column(Text)
    submitted_by = Column(String(64), nullable=True)
    agree_to_communication = Column(Boolean, nullable=False, default=False)
    terms_accepted = Column(Boolean, nullable=False)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)


class GeneralApplication(ApplicationColumns, Base):
    __tablename__ = "applications"

    version = Column(Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version}


class GrantApplication(ApplicationColumns, Base):
    __tablename__ = "grant_applications"

    version = Column(Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version}


class StatusHistoryEntry(Base):
    """
    Append-only audit row. The autoincrement id is the insertion order,
    which is also the chronological order of the entries for a record.
    """
    __tablename__ = "application_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(16), nullable=False)
    application_id = Column(String(36), nullable=False, index=True)
    status = Column(String(20), nullable=False)
    changed_by = Column(String(64), nullable=False)
    changed_at = Column(UTCDateTime, nullable=False, default=utcnow)


class GrantListing(Base):
    __tablename__ = "grants"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    deadline = Column(UTCDateTime)
    eligibility = Column(JSON, nullable=False, default=dict)
    requirements = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default="OPEN")
    featured = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)
