from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import ConfigDict, Field

from config import FundingConfig
from services.schemas.applications import CamelModel
from services.schemas.grants import GrantListingRecord, GrantStatus


class GrantCreateRequest(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=FundingConfig.GRANT_LISTING_MIN_AMOUNT)
    deadline: Optional[datetime] = None
    eligibility: Dict[str, str] = Field(default_factory=dict)
    requirements: List[str] = Field(default_factory=list)
    status: GrantStatus = GrantStatus.OPEN
    featured: bool = False


class GrantUpdateRequest(CamelModel):
    """Partial update: only fields present in the body are applied."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    amount: Optional[Decimal] = Field(None, ge=FundingConfig.GRANT_LISTING_MIN_AMOUNT)
    deadline: Optional[datetime] = None
    eligibility: Optional[Dict[str, str]] = None
    requirements: Optional[List[str]] = None
    status: Optional[GrantStatus] = None
    featured: Optional[bool] = None


class GrantMutationResponse(CamelModel):
    message: str
    grant: GrantListingRecord


class GrantDeleteResponse(CamelModel):
    message: str
    grant_id: str
