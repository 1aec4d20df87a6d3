# jgpnr/utils/kafka_helpers.py
"""
Job queue helpers. Email jobs are published to Kafka and picked up by
run_email_consumer.py.
"""
import logging
from typing import Any, Dict

from jgpnr.core.kafka_producer import get_kafka_singleton

logger = logging.getLogger(__name__)

# Kafka Topics
TOPIC_TICKETING_EMAILS = "ticketing.emails.v1"

# Job names
JOB_ORDER_CONFIRMATION = "order-confirmation"
JOB_PAYMENT_RECEIPT = "payment-receipt"


def enqueue(event_name: str, payload: Dict[str, Any]) -> bool:
    """
    Publish a background job.

    Args:
        event_name: Job name, e.g. "order-confirmation"
        payload: JSON-serialisable job data

    Returns:
        bool: True if the broker acknowledged the job, False otherwise
    """
    try:
        producer = get_kafka_singleton()

        if producer is None:
            logger.warning(f"Kafka unavailable, skipping job {event_name}")
            return False

        future = producer.send(
            TOPIC_TICKETING_EMAILS, value={"type": event_name, **payload}
        )
        future.get(timeout=5)

        logger.info(f"Enqueued job {event_name}")
        return True

    except Exception as e:
        logger.error(f"Failed to enqueue job {event_name}: {e}", exc_info=True)
        return False
