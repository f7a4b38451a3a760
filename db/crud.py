from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
import uuid

from sqlalchemy.orm import Session

from .models import GeneralApplication, GrantApplication, GrantListing, StatusHistoryEntry, utcnow
from api.schemas.applications import ApplicationRequest
from api.schemas.grants import GrantCreateRequest, GrantUpdateRequest
from services.schemas.applications import (
    AddressInfo,
    ApplicationRecord,
    ApplicationSource,
    ApplicationStatus,
    Documents,
    EmploymentInfo,
    FundingInfo,
    PersonalInfo,
    StatusHistoryItem,
)
from services.schemas.grants import GrantListingRecord


APPLICATION_MODELS = {
    ApplicationSource.GENERAL: GeneralApplication,
    ApplicationSource.GRANT: GrantApplication,
}


def application_model(source: ApplicationSource):
    return APPLICATION_MODELS[ApplicationSource(source)]


def db_create_application(
    db: Session,
    app_req: ApplicationRequest,
    source: ApplicationSource,
    submitted_by: Optional[str] = None,
    seed_history: bool = False,
    created_at: Optional[datetime] = None,
) -> ApplicationRecord:
    """
    Persist a new PENDING application in the collection for ``source``.
    When ``seed_history`` is set the initial PENDING entry is written in the
    same commit so the history invariant holds from the first read.
    """
    model = application_model(source)
    now = created_at or utcnow()
    personal = app_req.personal_info
    employment = app_req.employment_info
    address = app_req.address_info
    funding = app_req.funding_info
    db_obj = model(
        id=str(uuid.uuid4()),
        first_name=personal.first_name,
        last_name=personal.last_name,
        email=personal.email,
        phone_number=personal.phone_number,
        ssn=personal.ssn,
        date_of_birth=personal.date_of_birth,
        gender=personal.gender,
        ethnicity=personal.ethnicity,
        employment_status=employment.employment_status,
        income_level=employment.income_level,
        education_level=employment.education_level,
        citizenship_status=employment.citizenship_status,
        street_address=address.street_address,
        city=address.city,
        state=address.state,
        zip=address.zip,
        funding_type=funding.funding_type,
        funding_amount=funding.funding_amount,
        funding_purpose=funding.funding_purpose,
        timeframe=funding.timeframe,
        id_card_front=app_req.documents.id_card_front,
        id_card_back=app_req.documents.id_card_back,
        status=ApplicationStatus.PENDING.value,
        submitted_by=submitted_by,
        agree_to_communication=app_req.agree_to_communication,
        terms_accepted=app_req.terms_accepted,
        created_at=now,
        updated_at=now,
    )
    db.add(db_obj)
    if seed_history:
        db.add(
            StatusHistoryEntry(
                source=ApplicationSource(source).value,
                application_id=db_obj.id,
                status=ApplicationStatus.PENDING.value,
                changed_by=submitted_by or "system",
                changed_at=now,
            )
        )
    db.commit()
    db.refresh(db_obj)
    return to_application_record(db_obj, source, load_status_history(db, source, db_obj.id))


def find_application(
    db: Session, application_id: str, refresh: bool = False
) -> Optional[Tuple[ApplicationSource, object]]:
    """
    Look the id up in both collections.
    Returns (source, row) or None if neither collection holds it.
    With ``refresh`` an already loaded row is overwritten with the stored values.
    """
    for source, model in APPLICATION_MODELS.items():
        query = db.query(model).filter(model.id == application_id)
        if refresh:
            query = query.populate_existing()
        row = query.first()
        if row is not None:
            return source, row
    return None


def get_application_by_id(db: Session, application_id: str) -> Optional[ApplicationRecord]:
    found = find_application(db, application_id)
    if found is None:
        return None
    source, row = found
    return to_application_record(row, source, load_status_history(db, source, row.id))


def load_status_history(db: Session, source: ApplicationSource, application_id: str) -> List[StatusHistoryEntry]:
    return (
        db.query(StatusHistoryEntry)
        .filter(
            StatusHistoryEntry.source == ApplicationSource(source).value,
            StatusHistoryEntry.application_id == application_id,
        )
        .order_by(StatusHistoryEntry.id.asc())
        .all()
    )


def load_status_histories(
    db: Session, source: ApplicationSource, application_ids: Iterable[str]
) -> Dict[str, List[StatusHistoryEntry]]:
    ids = list(application_ids)
    histories: Dict[str, List[StatusHistoryEntry]] = {app_id: [] for app_id in ids}
    if not ids:
        return histories
    rows = (
        db.query(StatusHistoryEntry)
        .filter(
            StatusHistoryEntry.source == ApplicationSource(source).value,
            StatusHistoryEntry.application_id.in_(ids),
        )
        .order_by(StatusHistoryEntry.id.asc())
        .all()
    )
    for row in rows:
        histories[row.application_id].append(row)
    return histories


def append_status_history(
    db: Session,
    source: ApplicationSource,
    application_id: str,
    status: ApplicationStatus,
    changed_by: str,
    changed_at: datetime,
) -> StatusHistoryEntry:
    """Stage a history row; the caller owns the commit."""
    entry = StatusHistoryEntry(
        source=ApplicationSource(source).value,
        application_id=application_id,
        status=ApplicationStatus(status).value,
        changed_by=changed_by,
        changed_at=changed_at,
    )
    db.add(entry)
    return entry


def ssn_last4(ssn: str) -> str:
    return "".join(ch for ch in ssn if ch.isdigit())[-4:]


def to_application_record(row, source: ApplicationSource, history: Iterable[StatusHistoryEntry]) -> ApplicationRecord:
    """Normalize a row from either collection into the canonical record."""
    return ApplicationRecord(
        id=row.id,
        source=ApplicationSource(source),
        personal_info=PersonalInfo(
            first_name=row.first_name,
            last_name=row.last_name,
            email=row.email,
            phone_number=row.phone_number,
            date_of_birth=row.date_of_birth,
            ssn_last4=ssn_last4(row.ssn),
            gender=row.gender,
            ethnicity=row.ethnicity,
        ),
        employment_info=EmploymentInfo(
            employment_status=row.employment_status,
            income_level=row.income_level,
            education_level=row.education_level,
            citizenship_status=row.citizenship_status,
        ),
        address_info=AddressInfo(
            street_address=row.street_address,
            city=row.city,
            state=row.state,
            zip=row.zip,
        ),
        funding_info=FundingInfo(
            funding_type=row.funding_type,
            funding_amount=row.funding_amount,
            funding_purpose=row.funding_purpose,
            timeframe=row.timeframe,
        ),
        documents=Documents(id_card_front=row.id_card_front, id_card_back=row.id_card_back),
        status=ApplicationStatus(row.status),
        status_history=[
            StatusHistoryItem(status=entry.status, changed_by=entry.changed_by, changed_at=entry.changed_at)
            for entry in history
        ],
        notes=row.notes,
        submitted_by=row.submitted_by,
        agree_to_communication=bool(row.agree_to_communication),
        terms_accepted=bool(row.terms_accepted),
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version,
    )


# Grant listings

def db_create_grant(db: Session, grant_req: GrantCreateRequest, created_at: Optional[datetime] = None) -> GrantListing:
    now = created_at or utcnow()
    db_obj = GrantListing(
        id=str(uuid.uuid4()),
        title=grant_req.title,
        description=grant_req.description,
        category=grant_req.category,
        amount=grant_req.amount,
        deadline=grant_req.deadline,
        eligibility=dict(grant_req.eligibility),
        requirements=list(grant_req.requirements),
        status=grant_req.status.value,
        featured=grant_req.featured,
        created_at=now,
        updated_at=now,
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def get_grant_by_id(db: Session, grant_id: str) -> Optional[GrantListing]:
    return db.query(GrantListing).filter(GrantListing.id == grant_id).first()


def db_update_grant(db: Session, db_obj: GrantListing, grant_req: GrantUpdateRequest) -> GrantListing:
    changes = grant_req.model_dump(exclude_unset=True)
    for field, value in changes.items():
        # only deadline may be cleared; null elsewhere means "leave as is"
        if value is None and field != "deadline":
            continue
        if field == "status":
            value = value.value if hasattr(value, "value") else str(value)
        setattr(db_obj, field, value)
    db_obj.updated_at = utcnow()
    db.commit()
    db.refresh(db_obj)
    return db_obj


def db_delete_grant(db: Session, db_obj: GrantListing) -> None:
    db.delete(db_obj)
    db.commit()


def to_grant_record(row: GrantListing) -> GrantListingRecord:
    return GrantListingRecord(
        id=row.id,
        title=row.title,
        description=row.description,
        category=row.category,
        amount=row.amount,
        deadline=row.deadline,
        eligibility=row.eligibility or {},
        requirements=row.requirements or [],
        status=row.status,
        featured=bool(row.featured),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
