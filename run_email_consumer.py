#!/usr/bin/env python3
"""
Email Consumer Service

Listens for ticketing email jobs on Kafka and sends them via Resend.
"""
import json
import logging

from kafka import KafkaConsumer

from jgpnr.core.config import settings
from jgpnr.core.email import send_order_confirmation, send_payment_receipt
from jgpnr.utils.kafka_helpers import (
    JOB_ORDER_CONFIRMATION,
    JOB_PAYMENT_RECEIPT,
    TOPIC_TICKETING_EMAILS,
)

logger = logging.getLogger("email_consumer")


def process_email_job(job: dict) -> None:
    """
    Dispatch one email job to the matching sender.
    """
    job_type = job.get("type")
    recipient = job.get("customerEmail")

    if job_type not in (JOB_ORDER_CONFIRMATION, JOB_PAYMENT_RECEIPT):
        logger.info(f"Ignoring job type: {job_type}")
        return

    if not recipient:
        logger.warning(f"No recipient email for order {job.get('orderNumber')}")
        return

    if not settings.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not configured. Skipping email.")
        return

    if job_type == JOB_ORDER_CONFIRMATION:
        result = send_order_confirmation(
            to_email=recipient,
            customer_name=job.get("customerName", "Customer"),
            order_number=job.get("orderNumber", ""),
            quantity=int(job.get("quantity", 0)),
            amount=int(job.get("amount", 0)),
        )
    else:
        result = send_payment_receipt(
            to_email=recipient,
            order_number=job.get("orderNumber", ""),
            payment_reference=job.get("paymentReference", ""),
            paid_amount=job.get("paidAmount"),
        )

    if result.get("success"):
        logger.info(f"Email sent successfully: {result.get('id')}")
    else:
        logger.error(f"Email failed: {result.get('error')}")


def run_consumer():
    """
    Consumer loop for ticketing email jobs.
    """
    logging.basicConfig(level=settings.LOG_LEVEL)
    logger.info("Email Consumer Service Starting...")
    logger.info(f"Kafka Bootstrap Servers: {settings.KAFKA_BOOTSTRAP_SERVERS}")
    logger.info(f"Resend API Key: {'configured' if settings.RESEND_API_KEY else 'NOT CONFIGURED'}")

    consumer = KafkaConsumer(
        TOPIC_TICKETING_EMAILS,
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        value_deserializer=lambda v: json.loads(v.decode("utf-8")),
        group_id="jgpnr-email-consumer-group",
        auto_offset_reset="earliest",
    )
    logger.info(f"Listening for messages on topic: {TOPIC_TICKETING_EMAILS}")

    try:
        for message in consumer:
            try:
                process_email_job(message.value)
            except Exception as e:
                logger.error(f"Failed to process email job: {e}", exc_info=True)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        consumer.close()


if __name__ == "__main__":
    run_consumer()
