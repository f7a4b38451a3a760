import json
from unittest.mock import Mock, patch

from services import kafka_producer
from services.schemas.applications import ApplicationSource


def test_status_event_has_no_identity_fields(make_application):
    record = make_application(source=ApplicationSource.GRANT, amount=120000)

    event = kafka_producer.application_event("application_status_changed", record, "admin-1")

    assert event["application_id"] == record.id
    assert event["source"] == "GRANT"
    assert event["status"] == "PENDING"
    assert event["funding_amount"] == str(record.funding_info.funding_amount)
    assert event["changed_by"] == "admin-1"
    serialized = json.dumps(event)
    for secret in ("123-45-6789", "jane.doe@example.com", "uploads/front.png"):
        assert secret not in serialized


def test_publish_is_skipped_when_disabled():
    with patch.object(kafka_producer.KafkaConfig, "ENABLED", False), \
         patch.object(kafka_producer, "Producer") as mock_producer_cls:
        kafka_producer.publish_event({"event": "application_submitted", "application_id": "app-1"})

    mock_producer_cls.assert_not_called()


def test_publish_produces_and_flushes():
    producer = Mock()
    with patch.object(kafka_producer.KafkaConfig, "ENABLED", True), \
         patch.object(kafka_producer, "_producer", producer):
        kafka_producer.publish_event({"event": "application_submitted", "application_id": "app-1"}, topic="events")

    args, kwargs = producer.produce.call_args
    assert args == ("events",)
    assert kwargs["key"] == "app-1"
    assert json.loads(kwargs["value"].decode("utf-8"))["event"] == "application_submitted"
    producer.flush.assert_called_once()


def test_publish_swallows_broker_errors():
    producer = Mock()
    producer.produce.side_effect = RuntimeError("broker down")
    with patch.object(kafka_producer.KafkaConfig, "ENABLED", True), \
         patch.object(kafka_producer, "_producer", producer):
        kafka_producer.publish_event({"event": "application_submitted", "application_id": "app-1"})

    producer.flush.assert_not_called()
