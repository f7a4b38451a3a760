from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApplicationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    UNDER_REVIEW = "UNDER_REVIEW"


class ApplicationSource(str, Enum):
    """Which collection a record is stored in."""
    GENERAL = "GENERAL"
    GRANT = "GRANT"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PersonalInfo(CamelModel):
    first_name: str
    last_name: str
    email: str
    phone_number: str
    date_of_birth: date
    # the full national identifier stays in the store
    ssn_last4: str
    gender: Optional[str] = None
    ethnicity: Optional[str] = None


class EmploymentInfo(CamelModel):
    employment_status: Optional[str] = None
    income_level: Optional[str] = None
    education_level: Optional[str] = None
    citizenship_status: Optional[str] = None


class AddressInfo(CamelModel):
    street_address: str
    city: str
    state: str
    zip: str


class FundingInfo(CamelModel):
    funding_type: str
    funding_amount: Decimal
    funding_purpose: str
    timeframe: Optional[str] = None


class Documents(CamelModel):
    id_card_front: str
    id_card_back: str


class StatusHistoryItem(CamelModel):
    status: ApplicationStatus
    changed_by: str
    changed_at: datetime


class ApplicationRecord(CamelModel):
    """
    Canonical shape of an application, whichever collection it came from.
    """
    id: str
    source: ApplicationSource
    personal_info: PersonalInfo
    employment_info: EmploymentInfo = Field(default_factory=EmploymentInfo)
    address_info: AddressInfo
    funding_info: FundingInfo
    documents: Documents
    status: ApplicationStatus
    status_history: List[StatusHistoryItem] = Field(default_factory=list)
    notes: Optional[str] = None
    submitted_by: Optional[str] = None
    agree_to_communication: bool = False
    terms_accepted: bool
    created_at: datetime
    updated_at: datetime
    version: int = 1


class ApplicationSummary(CamelModel):
    """Listing/dashboard view: no identity or document fields."""
    id: str
    source: ApplicationSource
    first_name: str
    last_name: str
    email: str
    funding_type: str
    funding_amount: Decimal
    status: ApplicationStatus
    created_at: datetime

    @classmethod
    def from_record(cls, record: ApplicationRecord) -> "ApplicationSummary":
        return cls(
            id=record.id,
            source=record.source,
            first_name=record.personal_info.first_name,
            last_name=record.personal_info.last_name,
            email=record.personal_info.email,
            funding_type=record.funding_info.funding_type,
            funding_amount=record.funding_info.funding_amount,
            status=record.status,
            created_at=record.created_at,
        )


class StatusCounts(CamelModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    under_review: Optional[int] = None


class FundingStats(CamelModel):
    total_approved: Decimal = Decimal("0")
    avg_amount: Decimal = Decimal("0")
    max_amount: Decimal = Decimal("0")
    approved_count: int = 0


class FundingTypeCount(CamelModel):
    funding_type: str
    count: int


class DashboardSummary(CamelModel):
    counts: StatusCounts
    recent_applications: List[ApplicationSummary]
    funding_stats: FundingStats
    funding_type_distribution: List[FundingTypeCount]


class ApplicationFilter(CamelModel):
    status: Optional[ApplicationStatus] = None
    funding_type: Optional[str] = None
    search: Optional[str] = None
    source: Optional[ApplicationSource] = None


class SortSpec(CamelModel):
    field: str = "createdAt"
    direction: str = "desc"


class ApplicationPage(CamelModel):
    items: List[ApplicationRecord]
    total_count: int
    page_count: int
    page: int
    page_size: int


class StatusSummary(CamelModel):
    application_id: str
    status: ApplicationStatus
    funding_type: str
    funding_amount: Decimal
    submission_date: datetime
    first_name: str
    last_name: str


class ApplicantApplication(CamelModel):
    id: str
    source: ApplicationSource
    status: ApplicationStatus
    funding_type: str
    funding_amount: Decimal
    created_at: datetime


