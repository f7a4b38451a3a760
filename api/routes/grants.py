from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_grant_service, get_submission_service, limit_submissions
from api.schemas.applications import ApplicationRequest, SubmissionResponse
from services.grant_listings import GrantListingService
from services.kafka_producer import publish_application_submitted
from services.schemas.applications import ApplicationSource
from services.schemas.grants import GrantListingRecord, GrantPage
from services.submission import SubmissionService

router = APIRouter(prefix="/grants", tags=["grants"])


@router.post(
    "/applications",
    status_code=201,
    response_model=SubmissionResponse,
    dependencies=[Depends(limit_submissions)],
)
def submit_grant_application(
    payload: ApplicationRequest,
    service: SubmissionService = Depends(get_submission_service),
):
    record = service.submit(payload, ApplicationSource.GRANT)
    publish_application_submitted(record)
    return SubmissionResponse(application_id=record.id, source=record.source, status=record.status)


@router.get("", response_model=GrantPage)
def list_grants(
    page: int = Query(1),
    limit: int = Query(10),
    category: Optional[str] = None,
    q: Optional[str] = None,
    status: Optional[str] = None,
    service: GrantListingService = Depends(get_grant_service),
):
    return service.list_grants(page=page, page_size=limit, category=category, search=q, status=status)


@router.get("/{grant_id}", response_model=GrantListingRecord)
def get_grant(grant_id: str, service: GrantListingService = Depends(get_grant_service)):
    return service.get_grant(grant_id)
