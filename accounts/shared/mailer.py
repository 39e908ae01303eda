# accounts/shared/mailer.py
"""
Out-of-band delivery of password reset links over SMTP.

When SMTP_HOST is not configured the link is not sent anywhere; only the
fact that delivery was skipped is logged (never the link itself, since it
carries the reset secret).
"""
import logging
import smtplib
from email.message import EmailMessage
from typing import Callable

from accounts.shared.config import settings

log = logging.getLogger(__name__)

# (recipient email, reset link) -> None
ResetLinkSender = Callable[[str, str], None]


def _create_smtp_client() -> smtplib.SMTP:
    if settings.SMTP_USE_SSL:
        client: smtplib.SMTP = smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10)
    else:
        client = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10)
        client.starttls()
    if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
        client.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
    return client


def build_reset_message(to_email: str, reset_link: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = "Reset your password"
    msg["From"] = settings.SMTP_FROM_EMAIL
    msg["To"] = to_email
    msg.set_content(
        "We received a request to reset your password.\n\n"
        f"Open this link to choose a new one:\n{reset_link}\n\n"
        f"The link expires in {settings.RESET_TOKEN_TTL_MIN} minutes and can be used once.\n"
        "If you did not ask for this, you can ignore this email."
    )
    return msg


def send_reset_link(to_email: str, reset_link: str) -> None:
    if not settings.SMTP_HOST:
        log.warning("SMTP_HOST not configured; reset link not delivered")
        return
    with _create_smtp_client() as client:
        client.send_message(build_reset_message(to_email, reset_link))
    log.info("reset link delivered")


# FastAPI dep
def get_reset_sender() -> ResetLinkSender:
    return send_reset_link
