import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["KAFKA_ENABLED"] = "false"

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.auth import get_auth_provider
from api.deps import get_rate_limiter
from api.routes import admin as admin_module
from api.routes import applications as applications_module
from api.routes import grants as grants_module
from api.routes.applications import app
from api.schemas.applications import ApplicationRequest
from db.database import Base, get_db
import db.models  # noqa: F401
from services.rate_limiter import RateLimiter
from services.schemas.applications import ApplicationSource
from services.submission import SubmissionService

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def published(monkeypatch):
    """Capture events instead of sending them to Kafka."""
    events = []
    monkeypatch.setattr(applications_module, "publish_application_submitted", lambda record: events.append(("submitted", record.id)))
    monkeypatch.setattr(grants_module, "publish_application_submitted", lambda record: events.append(("submitted", record.id)))
    monkeypatch.setattr(admin_module, "publish_status_changed", lambda record, actor_id: events.append(("status_changed", record.id, actor_id)))
    return events


@pytest.fixture
def client(db_session, published):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_limiter] = lambda: RateLimiter()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _bearer(actor_id: str, role: str) -> dict:
    token = get_auth_provider().issue(actor_id, role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return _bearer("admin-1", "ADMIN")


@pytest.fixture
def user_headers():
    return _bearer("user-1", "USER")


def application_payload(**overrides):
    payload = {
        "personalInfo": {
            "firstName": "Jane",
            "lastName": "Doe",
            "email": "jane.doe@example.com",
            "phoneNumber": "555-123-4567",
            "dateOfBirth": "1985-04-12",
            "ssn": "123-45-6789",
        },
        "employmentInfo": {"employmentStatus": "Employed"},
        "addressInfo": {
            "streetAddress": "1 Main St",
            "city": "Springfield",
            "state": "IL",
            "zip": "62701",
        },
        "fundingInfo": {
            "fundingType": "Business",
            "fundingAmount": 100000,
            "fundingPurpose": "Expand the bakery",
            "timeframe": "6 months",
        },
        "documents": {"idCardFront": "uploads/front.png", "idCardBack": "uploads/back.png"},
        "agreeToCommunication": True,
        "termsAccepted": True,
    }
    for section, values in overrides.items():
        if isinstance(values, dict) and isinstance(payload.get(section), dict):
            payload[section] = {**payload[section], **values}
        else:
            payload[section] = values
    return payload


@pytest.fixture
def make_application(db_session):
    """
    Store an application directly through the submission service.
    ``minutes`` offsets createdAt from a fixed base time so ordering is explicit.
    """
    def _make(source=ApplicationSource.GRANT, minutes=0, amount=100000, submitted_by=None, policies=None, **overrides):
        overrides.setdefault("fundingInfo", {})
        overrides["fundingInfo"] = {"fundingAmount": amount, **overrides["fundingInfo"]}
        request = ApplicationRequest.model_validate(application_payload(**overrides))
        service = SubmissionService(db_session, policies)
        return service.submit(
            request,
            source,
            submitted_by=submitted_by,
            created_at=BASE_TIME + timedelta(minutes=minutes),
        )

    return _make


def as_decimal(value) -> Decimal:
    return Decimal(str(value))
