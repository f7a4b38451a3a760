from typing import List, Optional

from fastapi import Depends, FastAPI, Query

from api.auth import Actor, get_current_actor, get_optional_actor
from api.deps import (
    get_query_service,
    get_submission_service,
    limit_submissions,
    workflow_error_handler,
)
from api.routes import admin, grants
from api.schemas.applications import ApplicationRequest, SubmissionResponse
from services.application_query import ApplicationQueryService
from services.errors import WorkflowError
from services.kafka_producer import publish_application_submitted
from services.schemas.applications import ApplicantApplication, ApplicationSource, StatusSummary
from services.submission import SubmissionService

app = FastAPI(title="Grant Portal API")
app.add_exception_handler(WorkflowError, workflow_error_handler)
app.include_router(grants.router)
app.include_router(admin.router)


@app.get("/health-check/")
async def health_check():
    return {"applications": "Health Check OK"}


@app.post(
    "/applications",
    status_code=202,
    response_model=SubmissionResponse,
    dependencies=[Depends(limit_submissions)],
)
def create_application(
    payload: ApplicationRequest,
    actor: Optional[Actor] = Depends(get_optional_actor),
    service: SubmissionService = Depends(get_submission_service),
):
    record = service.submit(payload, ApplicationSource.GENERAL, submitted_by=actor.id if actor else None)
    publish_application_submitted(record)
    return SubmissionResponse(application_id=record.id, source=record.source, status=record.status)


@app.get("/applications", response_model=List[ApplicantApplication])
def get_user_applications(
    email: str = Query(..., min_length=1),
    service: ApplicationQueryService = Depends(get_query_service),
):
    return service.list_for_applicant(email)


@app.get("/applications/my-applications", response_model=List[ApplicantApplication])
def get_my_applications(
    actor: Actor = Depends(get_current_actor),
    service: ApplicationQueryService = Depends(get_query_service),
):
    return service.list_for_submitter(actor.id)


@app.get("/applications/{application_id}/status", response_model=StatusSummary)
def get_application_status(
    application_id: str,
    service: ApplicationQueryService = Depends(get_query_service),
):
    return service.status_summary(application_id)

