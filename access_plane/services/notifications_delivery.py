from __future__ import annotations

from typing import Any

import httpx
import structlog

from access_plane.core.config import Settings
from access_plane.core.logging import mask_phone
from access_plane.services.otc_messages import EmailMessage

logger = structlog.get_logger(__name__)

VONAGE_SUCCESS_STATUS = "0"


def _vonage_accepted(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    messages = payload.get("messages")
    if not isinstance(messages, list) or not messages:
        return False
    first = messages[0]
    return isinstance(first, dict) and str(first.get("status")) == VONAGE_SUCCESS_STATUS


async def send_sms(
    *,
    client: httpx.AsyncClient,
    settings: Settings,
    phone: str,
    text: str,
    event: str,
) -> bool:
    if not settings.vonage_api_key or not settings.vonage_api_secret:
        logger.warning("notification_channel_not_configured", channel="sms", notification_event=event)
        return False

    try:
        response = await client.post(
            settings.vonage_sms_url,
            data={
                "api_key": settings.vonage_api_key,
                "api_secret": settings.vonage_api_secret,
                "from": settings.vonage_from,
                "to": phone.lstrip("+"),
                "text": text,
            },
        )
        response.raise_for_status()
        payload = response.json()
    except Exception:
        logger.exception(
            "notification_delivery_failed",
            channel="sms",
            notification_event=event,
            phone=mask_phone(phone),
        )
        return False

    if not _vonage_accepted(payload):
        logger.warning(
            "notification_delivery_rejected",
            channel="sms",
            notification_event=event,
            phone=mask_phone(phone),
        )
        return False
    return True


async def send_email(
    *,
    client: httpx.AsyncClient,
    settings: Settings,
    to_email: str,
    to_name: str | None,
    message: EmailMessage,
    event: str,
) -> bool:
    if not settings.sendgrid_api_key:
        logger.warning("notification_channel_not_configured", channel="email", notification_event=event)
        return False

    recipient: dict[str, str] = {"email": to_email}
    if to_name:
        recipient["name"] = to_name
    body: dict[str, Any] = {
        "personalizations": [{"to": [recipient]}],
        "from": {"email": settings.sendgrid_from_email, "name": settings.sendgrid_from_name},
        "subject": message.subject,
        "content": [
            {"type": "text/plain", "value": message.text},
            {"type": "text/html", "value": message.html},
        ],
    }
    try:
        response = await client.post(
            settings.sendgrid_api_url,
            json=body,
            headers={"Authorization": f"Bearer {settings.sendgrid_api_key}"},
        )
        response.raise_for_status()
        return True
    except Exception:
        logger.exception(
            "notification_delivery_failed",
            channel="email",
            notification_event=event,
        )
        return False
