from __future__ import annotations

from dataclasses import dataclass
from html import escape

OTC_VALIDITY_MINUTES = 10


@dataclass(frozen=True, slots=True)
class EmailMessage:
    subject: str
    text: str
    html: str


def build_otc_sms_text(*, code: str, course_name: str) -> str:
    return (
        f"Your access code for {course_name} is {code}. "
        f"It is valid for {OTC_VALIDITY_MINUTES} minutes and can be used once."
    )


def build_otc_email(*, code: str, course_name: str, recipient_name: str) -> EmailMessage:
    greeting = f"Hello {recipient_name}," if recipient_name else "Hello,"
    text = (
        f"{greeting}\n\n"
        f"Your one-time access code for {course_name} is: {code}\n\n"
        f"The code is valid for {OTC_VALIDITY_MINUTES} minutes and can be used only once.\n"
        "If you did not expect this message you can ignore it."
    )
    html = (
        f"<p>{escape(greeting)}</p>"
        f"<p>Your one-time access code for <strong>{escape(course_name)}</strong> is:</p>"
        f'<p style="font-size:24px;letter-spacing:4px"><strong>{escape(code)}</strong></p>'
        f"<p>The code is valid for {OTC_VALIDITY_MINUTES} minutes and can be used only once.</p>"
        "<p>If you did not expect this message you can ignore it.</p>"
    )
    return EmailMessage(subject=f"Your access code for {course_name}", text=text, html=html)


def build_welcome_email(*, recipient_name: str, course_name: str, course_url: str) -> EmailMessage:
    greeting = f"Hello {recipient_name}," if recipient_name else "Hello,"
    text = (
        f"{greeting}\n\n"
        f"Your access to {course_name} is now active.\n"
        f"Start learning: {course_url}\n"
    )
    html = (
        f"<p>{escape(greeting)}</p>"
        f"<p>Your access to <strong>{escape(course_name)}</strong> is now active.</p>"
        f'<p><a href="{escape(course_url, quote=True)}">Start learning</a></p>'
    )
    return EmailMessage(subject=f"Welcome to {course_name}", text=text, html=html)
