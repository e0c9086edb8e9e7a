import json
import logging

import pika
from pika.exceptions import AMQPError

logger = logging.getLogger(__name__)

EXCHANGE = "ums_events"
ROUTING_KEY = "enrollment.events"


def publish_event(rabbitmq_url: str, routing_key: str, event: dict):
    """Publish ``event`` to the topic exchange; an empty url disables publishing."""
    if not rabbitmq_url:
        logger.debug("Event publishing disabled, dropping %s", event.get("type"))
        return
    try:
        params = pika.URLParameters(rabbitmq_url)
        connection = pika.BlockingConnection(params)
        try:
            channel = connection.channel()
            channel.exchange_declare(exchange=EXCHANGE, exchange_type="topic", durable=True)
            body = json.dumps(event, default=str)
            channel.basic_publish(exchange=EXCHANGE, routing_key=routing_key, body=body)
        finally:
            connection.close()
    except AMQPError:
        logger.exception("Failed to publish %s event", event.get("type"))


def enrollment_created(enrollment) -> dict:
    return {
        "type": "EnrollmentCreated",
        "payload": {
            "enrollment_id": enrollment.id,
            "student_id": enrollment.student_id,
            "course_id": enrollment.course_id,
            "batch_number": enrollment.batch_number,
        }
    }


def enrollment_status_changed(before, after, student_status) -> dict:
    return {
        "type": "EnrollmentStatusChanged",
        "payload": {
            "enrollment_id": after.id,
            "student_id": after.student_id,
            "course_id": after.course_id,
            "old_status": before.status.value,
            "new_status": after.status.value,
            "student_status": student_status.value,
        }
    }


def certificate_issued(result) -> dict:
    return {
        "type": "CertificateIssued",
        "payload": {
            "certificate_id": result.certificate.id,
            "code": result.certificate.code,
            "student_id": result.student.id,
            "course_id": result.certificate.course_id,
            "issued_by": result.certificate.issued_by,
        }
    }


def certificate_revoked(result) -> dict:
    return {
        "type": "CertificateRevoked",
        "payload": {
            "certificate_id": result.certificate.id,
            "student_id": result.student.id,
            "course_id": result.certificate.course_id,
            "reason": result.certificate.revocation_reason.value,
            "notes": result.certificate.revocation_notes,
            "revoked_by": result.certificate.revoked_by,
            "enrollment_status": result.enrollment.status.value,
            "student_status": result.student.status.value,
        }
    }
