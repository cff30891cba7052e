from __future__ import annotations

from dataclasses import dataclass

import httpx

from access_plane.core.config import Settings
from access_plane.services.notifications_delivery import send_email, send_sms
from access_plane.services.otc_messages import (
    build_otc_email,
    build_otc_sms_text,
    build_welcome_email,
)

CHANNEL_SMS = "sms"
CHANNEL_EMAIL = "email"


@dataclass(frozen=True, slots=True)
class OtcDeliveryReport:
    sms_sent: bool
    email_sent: bool
    channels: tuple[str, ...]


class OtcDeliveryGateway:
    def __init__(
        self,
        *,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._settings.delivery_timeout_seconds),
            transport=self._transport,
        )

    async def deliver_code(
        self,
        *,
        code: str,
        course_name: str,
        recipient_name: str,
        phone: str,
        email: str | None,
    ) -> OtcDeliveryReport:
        channels = [CHANNEL_SMS]
        email_sent = False
        async with self._client() as client:
            sms_sent = await send_sms(
                client=client,
                settings=self._settings,
                phone=phone,
                text=build_otc_sms_text(code=code, course_name=course_name),
                event="otc_code",
            )
            if email:
                channels.append(CHANNEL_EMAIL)
                email_sent = await send_email(
                    client=client,
                    settings=self._settings,
                    to_email=email,
                    to_name=recipient_name,
                    message=build_otc_email(
                        code=code,
                        course_name=course_name,
                        recipient_name=recipient_name,
                    ),
                    event="otc_code",
                )
        return OtcDeliveryReport(sms_sent=sms_sent, email_sent=email_sent, channels=tuple(channels))

    async def send_welcome(
        self,
        *,
        email: str,
        recipient_name: str,
        course_name: str,
        course_url: str,
    ) -> bool:
        async with self._client() as client:
            return await send_email(
                client=client,
                settings=self._settings,
                to_email=email,
                to_name=recipient_name,
                message=build_welcome_email(
                    recipient_name=recipient_name,
                    course_name=course_name,
                    course_url=course_url,
                ),
                event="otc_welcome",
            )
