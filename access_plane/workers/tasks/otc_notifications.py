from __future__ import annotations

import asyncio

import structlog

from access_plane.core.catalog import course_display_name
from access_plane.core.config import get_settings
from access_plane.services.otc_delivery import OtcDeliveryGateway
from access_plane.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)


def _course_url(*, base_url: str, course_id: str) -> str:
    return f"{base_url.rstrip('/')}/{course_id}"


async def send_otc_welcome_email_async(
    *,
    email: str,
    recipient_name: str,
    course_id: str,
    gateway: OtcDeliveryGateway | None = None,
) -> dict[str, object]:
    settings = get_settings()
    delivery = gateway or OtcDeliveryGateway(settings=settings)
    sent = await delivery.send_welcome(
        email=email,
        recipient_name=recipient_name,
        course_name=course_display_name(course_id),
        course_url=_course_url(base_url=settings.public_base_url, course_id=course_id),
    )
    result: dict[str, object] = {"course_id": course_id, "email_sent": sent}
    if sent:
        logger.info("otc_welcome_email_sent", course_id=course_id)
    else:
        logger.warning("otc_welcome_email_failed", course_id=course_id)
    return result


@celery_app.task(name="access_plane.workers.tasks.otc_notifications.send_otc_welcome_email")
def send_otc_welcome_email(*, email: str, recipient_name: str, course_id: str) -> dict[str, object]:
    return asyncio.run(
        send_otc_welcome_email_async(
            email=email,
            recipient_name=recipient_name,
            course_id=course_id,
        )
    )
