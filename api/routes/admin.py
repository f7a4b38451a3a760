from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.auth import Actor, require_admin
from api.deps import get_aggregator, get_grant_service, get_query_service, get_transition_engine
from api.schemas.applications import StatusUpdateRequest, StatusUpdateResponse
from api.schemas.grants import GrantCreateRequest, GrantDeleteResponse, GrantMutationResponse, GrantUpdateRequest
from services.admin_aggregator import AdminAggregator
from services.application_query import ApplicationQueryService
from services.grant_listings import GrantListingService
from services.kafka_producer import publish_status_changed
from services.schemas.applications import (
    ApplicationFilter,
    ApplicationPage,
    ApplicationRecord,
    ApplicationSource,
    ApplicationStatus,
    DashboardSummary,
    SortSpec,
)
from services.status_transition import StatusTransitionEngine

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/dashboard", response_model=DashboardSummary, response_model_exclude_none=True)
def get_dashboard(aggregator: AdminAggregator = Depends(get_aggregator)):
    return aggregator.compute_dashboard()


@router.get("/applications", response_model=ApplicationPage)
def list_applications(
    status: Optional[ApplicationStatus] = None,
    funding_type: Optional[str] = Query(None, alias="fundingType"),
    search: Optional[str] = None,
    source: Optional[ApplicationSource] = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_dir: str = Query("desc", alias="sortDir"),
    page: int = Query(1),
    limit: int = Query(10),
    service: ApplicationQueryService = Depends(get_query_service),
):
    filters = ApplicationFilter(status=status, funding_type=funding_type, search=search, source=source)
    return service.list(filters, SortSpec(field=sort_by, direction=sort_dir), page=page, page_size=limit)


@router.get("/applications/{application_id}", response_model=ApplicationRecord)
def get_application(application_id: str, service: ApplicationQueryService = Depends(get_query_service)):
    return service.get(application_id)


@router.patch("/applications/{application_id}/status", response_model=StatusUpdateResponse)
def update_application_status(
    application_id: str,
    payload: StatusUpdateRequest,
    actor: Actor = Depends(require_admin),
    engine: StatusTransitionEngine = Depends(get_transition_engine),
):
    record = engine.transition(application_id, payload.status, actor.id, notes=payload.notes)
    publish_status_changed(record, actor.id)
    return StatusUpdateResponse(message="Application status updated successfully", application=record)


@router.post("/grants", status_code=201, response_model=GrantMutationResponse)
def create_grant(payload: GrantCreateRequest, service: GrantListingService = Depends(get_grant_service)):
    grant = service.create_grant(payload)
    return GrantMutationResponse(message="Grant created successfully", grant=grant)


@router.put("/grants/{grant_id}", response_model=GrantMutationResponse)
def update_grant(
    grant_id: str,
    payload: GrantUpdateRequest,
    service: GrantListingService = Depends(get_grant_service),
):
    grant = service.update_grant(grant_id, payload)
    return GrantMutationResponse(message="Grant updated successfully", grant=grant)


@router.delete("/grants/{grant_id}", response_model=GrantDeleteResponse)
def delete_grant(grant_id: str, service: GrantListingService = Depends(get_grant_service)):
    deleted_id = service.delete_grant(grant_id)
    return GrantDeleteResponse(message="Grant deleted successfully", grant_id=deleted_id)
