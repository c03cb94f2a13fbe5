"""
auth/notifier.py -- Out-of-band delivery of email verification tokens.

The signup workflow only knows the VerificationNotifier protocol. Two
implementations are provided:

  LogNotifier    -- writes the verification link to the log. Default for local
                    development and for deployments without a mail provider.
  ResendNotifier -- posts an email through the Resend HTTP API with httpx.

build_notifier() picks one from settings; api/main.py stores the result on
app.state.notifier so tests can swap in a recording implementation.
"""

from __future__ import annotations

import html
import logging
from typing import Protocol
from urllib.parse import urlencode

import httpx

from core.config import Settings

logger = logging.getLogger("campusid.notify")

_RESEND_URL = "https://api.resend.com/emails"


def verify_link(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/verify-email?{urlencode({'token': token})}"


class VerificationNotifier(Protocol):
    async def send_verification(self, email: str, name: str, token: str) -> None: ...


class LogNotifier:
    """Logs the verification link instead of sending it. Development only."""

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url

    async def send_verification(self, email: str, name: str, token: str) -> None:
        logger.info("Verification link for %s: %s", email, verify_link(self.base_url, token))


class ResendNotifier:
    """Sends the verification email through the Resend HTTP API."""

    def __init__(
        self,
        api_key: str,
        sender: str,
        base_url: str,
        expire_hours: int = 24,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.expire_hours = expire_hours
        self.sender = sender
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    async def send_verification(self, email: str, name: str, token: str) -> None:
        link = html.escape(verify_link(self.base_url, token))
        body = (
            f"<p>Hi {html.escape(name)},</p>"
            "<p>Please verify your email address by clicking the link below:</p>"
            f"<p><a href=\"{link}\">{link}</a></p>"
            f"<p>This link expires in {self.expire_hours} hours.</p>"
        )
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            resp = await client.post(
                _RESEND_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"from": self.sender, "to": [email], "subject": "Verify your email", "html": body},
            )
            resp.raise_for_status()
        logger.info("Verification email sent to %s", email)


def build_notifier(settings: Settings) -> VerificationNotifier:
    if settings.resend_api_key:
        return ResendNotifier(
            settings.resend_api_key,
            settings.mail_from,
            settings.app_base_url,
            expire_hours=settings.verification_token_expire_hours,
        )
    logger.warning("RESEND_API_KEY not set -- verification links will be written to the log")
    return LogNotifier(settings.app_base_url)
