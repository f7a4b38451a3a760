from decimal import Decimal
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict

from config import Config, FundingConfig
from services.schemas.applications import ApplicationSource, ApplicationStatus


BASE_STATUSES = frozenset(
    {ApplicationStatus.PENDING, ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}
)
GRANT_STATUSES = BASE_STATUSES | {ApplicationStatus.UNDER_REVIEW}


def permissive_transitions(statuses: FrozenSet[ApplicationStatus]) -> Dict[ApplicationStatus, FrozenSet[ApplicationStatus]]:
    """Every status may move to every status, including itself."""
    return {status: frozenset(statuses) for status in statuses}


class VariantPolicy(BaseModel):
    """
    Per-collection business rules: which statuses exist, which moves are
    allowed between them, and the funding amount range accepted at submission.
    """
    model_config = ConfigDict(frozen=True)

    source: ApplicationSource
    allowed_statuses: FrozenSet[ApplicationStatus]
    transitions: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]]
    min_funding_amount: Optional[Decimal] = None
    max_funding_amount: Optional[Decimal] = None
    seed_status_history: bool = False

    def can_transition(self, current: ApplicationStatus, target: ApplicationStatus) -> bool:
        if target not in self.allowed_statuses:
            return False
        return target in self.transitions.get(current, frozenset())


def _amount(value) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None


def default_policies() -> Dict[ApplicationSource, VariantPolicy]:
    """Policies built from environment configuration."""
    return {
        ApplicationSource.GENERAL: VariantPolicy(
            source=ApplicationSource.GENERAL,
            allowed_statuses=BASE_STATUSES,
            transitions=permissive_transitions(BASE_STATUSES),
            min_funding_amount=_amount(FundingConfig.GENERAL_MIN_AMOUNT),
            max_funding_amount=_amount(FundingConfig.GENERAL_MAX_AMOUNT),
            seed_status_history=Config.SEED_STATUS_HISTORY,
        ),
        ApplicationSource.GRANT: VariantPolicy(
            source=ApplicationSource.GRANT,
            allowed_statuses=GRANT_STATUSES,
            transitions=permissive_transitions(GRANT_STATUSES),
            min_funding_amount=_amount(FundingConfig.GRANT_MIN_AMOUNT),
            max_funding_amount=_amount(FundingConfig.GRANT_MAX_AMOUNT),
            seed_status_history=Config.SEED_STATUS_HISTORY,
        ),
    }


def tracks_under_review(policies: Dict[ApplicationSource, VariantPolicy]) -> bool:
    return any(ApplicationStatus.UNDER_REVIEW in p.allowed_statuses for p in policies.values())
