import json
import logging
from typing import Optional

from confluent_kafka import Producer

from config import KafkaConfig
from services.schemas.applications import ApplicationRecord

logger = logging.getLogger(__name__)

KAFKA_TOPIC = KafkaConfig.APPLICATION_EVENTS_TOPIC

# created on first publish and reused across calls
_producer: Optional[Producer] = None


def _get_producer() -> Producer:
    global _producer
    if _producer is None:
        _producer = Producer({"bootstrap.servers": KafkaConfig.BOOTSTRAP_SERVERS})
    return _producer


def _delivery_report(err, msg):
    if err:
        logger.error("Delivery failed for message: %s", err)
    else:
        logger.info("Message delivered to %s [%d] at offset %s", msg.topic(), msg.partition(), msg.offset())


def application_event(event_type: str, record: ApplicationRecord, actor_id: Optional[str] = None) -> dict:
    """
    Build the event body consumed by the notification service.
    Identity fields and document references are never included.
    """
    payload = {
        "event": event_type,
        "application_id": record.id,
        "source": record.source.value,
        "status": record.status.value,
        "funding_type": record.funding_info.funding_type,
        "funding_amount": str(record.funding_info.funding_amount),
        "occurred_at": record.updated_at.isoformat(),
    }
    if actor_id is not None:
        payload["changed_by"] = actor_id
    return payload


def publish_event(payload: dict, topic: str = KAFKA_TOPIC, timeout: float = 1.0) -> None:
    """
    Publish the given payload (dict) to the configured Kafka topic.
    This is fire-and-forget but will flush for a short timeout to improve delivery reliability.
    """
    if not KafkaConfig.ENABLED:
        logger.debug("Kafka disabled; dropping %s event", payload.get("event"))
        return
    try:
        producer = _get_producer()
        producer.produce(topic, key=payload.get("application_id"), value=json.dumps(payload).encode("utf-8"), callback=_delivery_report)
        # serve delivery callbacks and attempt to send outstanding messages
        producer.poll(0)
        producer.flush(timeout)
    except Exception as exc:
        logger.exception("Failed to publish %s event: %s", payload.get("event"), exc)


def publish_application_submitted(record: ApplicationRecord) -> None:
    publish_event(application_event("application_submitted", record))


def publish_status_changed(record: ApplicationRecord, actor_id: str) -> None:
    publish_event(application_event("application_status_changed", record, actor_id))
