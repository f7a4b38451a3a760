from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from services.admin_aggregator import AdminAggregator
from services.errors import AggregationError
from services.schemas.applications import ApplicationSource
from services.status_transition import StatusTransitionEngine
from services.workflow_policy import BASE_STATUSES, default_policies, permissive_transitions


def test_empty_store_dashboard(db_session):
    summary = AdminAggregator(db_session).compute_dashboard()

    assert summary.counts.total == 0
    assert summary.counts.under_review == 0
    assert summary.recent_applications == []
    assert summary.funding_stats.total_approved == Decimal("0")
    assert summary.funding_stats.avg_amount == Decimal("0")
    assert summary.funding_type_distribution == []


def test_counts_are_summed_across_collections(db_session, make_application):
    engine = StatusTransitionEngine(db_session)
    general = [make_application(source=ApplicationSource.GENERAL, minutes=i) for i in range(3)]
    grant = [make_application(source=ApplicationSource.GRANT, minutes=10 + i) for i in range(4)]
    engine.transition(general[0].id, "APPROVED", "admin-1")
    engine.transition(general[1].id, "REJECTED", "admin-1")
    engine.transition(grant[0].id, "APPROVED", "admin-1")
    engine.transition(grant[1].id, "UNDER_REVIEW", "admin-1")

    counts = AdminAggregator(db_session).compute_dashboard().counts

    assert counts.total == 7
    assert counts.approved == 2
    assert counts.rejected == 1
    assert counts.under_review == 1
    assert counts.pending == 3
    assert counts.total == counts.pending + counts.approved + counts.rejected + counts.under_review


def test_under_review_omitted_when_no_variant_tracks_it(db_session, make_application):
    policies = default_policies()
    policies[ApplicationSource.GRANT] = policies[ApplicationSource.GRANT].model_copy(
        update={"allowed_statuses": BASE_STATUSES, "transitions": permissive_transitions(BASE_STATUSES)}
    )
    make_application()

    counts = AdminAggregator(db_session, policies).compute_dashboard().counts

    assert counts.under_review is None
    assert counts.total == counts.pending + counts.approved + counts.rejected


def test_funding_stats_use_weighted_average(db_session, make_application):
    engine = StatusTransitionEngine(db_session)
    approved = [
        make_application(source=ApplicationSource.GENERAL, amount=10000),
        make_application(source=ApplicationSource.GRANT, amount=100000),
        make_application(source=ApplicationSource.GRANT, amount=200000),
        make_application(source=ApplicationSource.GRANT, amount=300000),
    ]
    for record in approved:
        engine.transition(record.id, "APPROVED", "admin-1")
    # pending amounts never count
    make_application(source=ApplicationSource.GRANT, amount=750000)

    stats = AdminAggregator(db_session).compute_dashboard().funding_stats

    assert stats.approved_count == 4
    assert stats.total_approved == Decimal("610000")
    # weighted: 610000 / 4, not (10000 + 200000) / 2
    assert stats.avg_amount == Decimal("152500.00")
    assert stats.max_amount == Decimal("300000")


def test_review_then_approve_is_reflected_in_dashboard(db_session, make_application):
    record = make_application(amount=100000)
    engine = StatusTransitionEngine(db_session)
    engine.transition(record.id, "UNDER_REVIEW", "admin-1")
    engine.transition(record.id, "APPROVED", "admin-1")

    summary = AdminAggregator(db_session).compute_dashboard()

    assert summary.counts.approved == 1
    assert summary.funding_stats.total_approved >= Decimal("100000")


def test_recent_applications_merge_both_collections(db_session, make_application):
    older = make_application(source=ApplicationSource.GRANT, minutes=1)
    newest = make_application(source=ApplicationSource.GENERAL, minutes=9)
    tied_a = make_application(source=ApplicationSource.GRANT, minutes=5)
    tied_b = make_application(source=ApplicationSource.GENERAL, minutes=5)
    make_application(source=ApplicationSource.GENERAL, minutes=0)

    recent = AdminAggregator(db_session).compute_dashboard(recent_limit=4).recent_applications

    tied = sorted([tied_a.id, tied_b.id])
    assert [item.id for item in recent] == [newest.id, tied[0], tied[1], older.id]


def test_funding_type_distribution_merges_labels(db_session, make_application):
    make_application(source=ApplicationSource.GENERAL, fundingInfo={"fundingType": "Education"})
    make_application(source=ApplicationSource.GRANT, fundingInfo={"fundingType": "Education"})
    make_application(source=ApplicationSource.GRANT, fundingInfo={"fundingType": "Housing"})
    make_application(source=ApplicationSource.GENERAL, fundingInfo={"fundingType": "Business"})
    make_application(source=ApplicationSource.GRANT, fundingInfo={"fundingType": "Business"})
    make_application(source=ApplicationSource.GRANT, fundingInfo={"fundingType": "Business"})

    distribution = AdminAggregator(db_session).compute_dashboard().funding_type_distribution

    assert [(d.funding_type, d.count) for d in distribution] == [
        ("Business", 3),
        ("Education", 2),
        ("Housing", 1),
    ]


def test_store_failure_raises_aggregation_error(db_session, make_application):
    make_application()
    aggregator = AdminAggregator(db_session)

    with patch.object(aggregator, "_approved_funding", side_effect=OperationalError("SELECT", {}, Exception("db down"))):
        with pytest.raises(AggregationError):
            aggregator.compute_dashboard()
