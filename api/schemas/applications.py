import re
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import ConfigDict, Field, field_validator, model_validator

from services.schemas.applications import (
    ApplicationRecord,
    ApplicationSource,
    ApplicationStatus,
    CamelModel,
)


EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[+]?[(]?[0-9]{3}[)]?[-\s.]?[0-9]{3}[-\s.]?[0-9]{4,6}$")
SSN_RE = re.compile(r"^\d{3}-?\d{2}-?\d{4}$")
ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")


class RequestModel(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class PersonalInfoRequest(RequestModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1)
    date_of_birth: date
    ssn: str = Field(..., min_length=1)
    gender: Optional[str] = None
    ethnicity: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        if not EMAIL_RE.match(value):
            raise ValueError("Invalid email format")
        return value.lower()

    @field_validator("phone_number")
    @classmethod
    def check_phone(cls, value: str) -> str:
        if not PHONE_RE.match(value):
            raise ValueError("Invalid phone number format")
        return value

    @field_validator("ssn")
    @classmethod
    def check_ssn(cls, value: str) -> str:
        if not SSN_RE.match(value):
            raise ValueError("Invalid SSN format")
        return value


class EmploymentInfoRequest(RequestModel):
    employment_status: Optional[str] = None
    income_level: Optional[str] = None
    education_level: Optional[str] = None
    citizenship_status: Optional[str] = None


class AddressInfoRequest(RequestModel):
    street_address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip: str = Field(..., min_length=1)

    @field_validator("zip")
    @classmethod
    def check_zip(cls, value: str) -> str:
        if not ZIP_RE.match(value):
            raise ValueError("Invalid ZIP code format (must be 5 digits)")
        return value


class FundingInfoRequest(RequestModel):
    funding_type: str = Field(..., min_length=1)
    funding_amount: Decimal = Field(..., gt=0)
    funding_purpose: str = Field(..., min_length=1)
    timeframe: Optional[str] = None


class DocumentsRequest(RequestModel):
    id_card_front: str = Field(..., min_length=1)
    id_card_back: str = Field(..., min_length=1)


class ApplicationRequest(RequestModel):
    personal_info: PersonalInfoRequest
    employment_info: EmploymentInfoRequest = Field(default_factory=EmploymentInfoRequest)
    address_info: AddressInfoRequest
    funding_info: FundingInfoRequest
    documents: Optional[DocumentsRequest] = None
    agree_to_communication: bool = False
    terms_accepted: bool = False

    @model_validator(mode="after")
    def check_submission_rules(self):
        """
        Both identity documents and terms acceptance are required on submission;
        raising ValueError surfaces as a 422 from FastAPI.
        """
        problems = []
        if self.documents is None:
            problems.append("Both front and back ID card images are required")
        if not self.terms_accepted:
            problems.append("You must accept the terms and conditions")
        if problems:
            raise ValueError("; ".join(problems))
        return self


class SubmissionResponse(CamelModel):
    application_id: str
    source: ApplicationSource
    status: ApplicationStatus


class StatusUpdateRequest(RequestModel):
    status: str = Field(..., min_length=1)
    notes: Optional[str] = None


class StatusUpdateResponse(CamelModel):
    message: str
    application: ApplicationRecord
