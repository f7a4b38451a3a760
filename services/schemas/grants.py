from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from services.schemas.applications import CamelModel


class GrantStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    UPCOMING = "UPCOMING"


class GrantListingRecord(CamelModel):
    id: str
    title: str
    description: str
    category: str
    amount: Decimal
    deadline: Optional[datetime] = None
    eligibility: Dict[str, str] = Field(default_factory=dict)
    requirements: List[str] = Field(default_factory=list)
    status: GrantStatus
    featured: bool
    created_at: datetime
    updated_at: datetime


class GrantPage(CamelModel):
    items: List[GrantListingRecord]
    total_count: int
    page_count: int
    page: int
    page_size: int
