"""
Shared FastAPI dependencies: service factories bound to the request's
session, the app-scoped rate limiter, and the mapping from service errors to
HTTP responses.
"""
import logging
from typing import Dict

from fastapi import Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from config import RateLimitConfig
from db.database import get_db
from services.admin_aggregator import AdminAggregator
from services.application_query import ApplicationQueryService
from services.errors import (
    AggregationError,
    InvalidActor,
    InvalidQuery,
    InvalidStatus,
    NotFound,
    PersistenceError,
    ValidationFailed,
    WorkflowError,
)
from services.grant_listings import GrantListingService
from services.rate_limiter import RateLimiter
from services.schemas.applications import ApplicationSource
from services.status_transition import StatusTransitionEngine
from services.submission import SubmissionService
from services.workflow_policy import VariantPolicy, default_policies

logger = logging.getLogger(__name__)

_policies = default_policies()
_rate_limiter = RateLimiter()

ERROR_STATUS_CODES = {
    NotFound: 404,
    InvalidStatus: 400,
    InvalidActor: 400,
    InvalidQuery: 400,
    ValidationFailed: 400,
    AggregationError: 500,
    PersistenceError: 500,
}


def get_policies() -> Dict[ApplicationSource, VariantPolicy]:
    return _policies


def get_rate_limiter() -> RateLimiter:
    return _rate_limiter


def get_transition_engine(db: Session = Depends(get_db), policies=Depends(get_policies)) -> StatusTransitionEngine:
    return StatusTransitionEngine(db, policies)


def get_aggregator(db: Session = Depends(get_db), policies=Depends(get_policies)) -> AdminAggregator:
    return AdminAggregator(db, policies)


def get_query_service(db: Session = Depends(get_db)) -> ApplicationQueryService:
    return ApplicationQueryService(db)


def get_submission_service(db: Session = Depends(get_db), policies=Depends(get_policies)) -> SubmissionService:
    return SubmissionService(db, policies)


def get_grant_service(db: Session = Depends(get_db)) -> GrantListingService:
    return GrantListingService(db)


def limit_submissions(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> None:
    client = get_remote_address(request)
    if not limiter.allow(f"submit:{client}", RateLimitConfig.SUBMISSION_WINDOW_MS, RateLimitConfig.SUBMISSION_MAX):
        logger.warning("Submission rate limit hit for %s", client)
        raise HTTPException(status_code=429, detail="Too many submissions, please try again later")


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    body = {"detail": exc.message, "kind": exc.kind}
    if isinstance(exc, ValidationFailed) and exc.errors:
        body["errors"] = exc.errors
    if status_code >= 500:
        logger.error("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=body)
