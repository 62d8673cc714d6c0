"""
Resend email transport (POST RESEND_API_URL).
Timeout EMAIL_TIMEOUT_SECONDS, retry EMAIL_MAX_RETRIES on network errors, 429 and 5xx.
Other 4xx answers are final.

Every attempt of one send carries the same Idempotency-Key, so Resend delivers a
retried request at most once. When an attempt may have reached Resend (anything but a
failed connect) and the send still ends in an error, EmailDeliveryUnknown is raised.
"""
from typing import Optional

import httpx

from post_scheduler.config import Settings
from post_scheduler.logging_config import get_logger

logger = get_logger(__name__)

HEADER_IDEMPOTENCY_KEY = "Idempotency-Key"


class EmailSendError(Exception):
    """Send failed; str(e) is a human-readable reason."""


class EmailDeliveryUnknown(EmailSendError):
    """Send failed after a request that Resend may already have accepted."""


def _retryable(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def _never_sent(e: httpx.HTTPError) -> bool:
    return isinstance(e, (httpx.ConnectError, httpx.ConnectTimeout))


class ResendEmailTransport:
    """Send one HTML email through the Resend API and return its delivery id."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = settings.resend_api_key
        self.url = settings.resend_api_url
        self.from_email = settings.from_email
        self.timeout = settings.email_timeout_seconds
        self.max_retries = settings.email_max_retries
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    async def send(self, to: str, subject: str, html: str, idempotency_key: Optional[str] = None) -> str:
        if not self.is_configured:
            raise EmailSendError("RESEND_API_KEY not set")
        body = {"from": self.from_email, "to": [to], "subject": subject, "html": html}
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if idempotency_key:
            headers[HEADER_IDEMPOTENCY_KEY] = idempotency_key
        last_error = "no attempt made"
        maybe_delivered = False
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for attempt in range(self.max_retries + 1):
                try:
                    resp = await client.post(self.url, json=body, headers=headers)
                except httpx.HTTPError as e:
                    last_error = f"{type(e).__name__}: {e}"
                    maybe_delivered = maybe_delivered or not _never_sent(e)
                    logger.warning("email.error", attempt=attempt + 1, error=last_error)
                    continue
                if resp.status_code >= 400:
                    last_error = f"status={resp.status_code} body={resp.text[:300]}"
                    logger.warning(
                        "email.failed",
                        attempt=attempt + 1,
                        status=resp.status_code,
                        body=resp.text[:500],
                    )
                    if _retryable(resp.status_code):
                        continue
                    break
                try:
                    delivery_id = str(resp.json().get("id") or "")
                except ValueError:
                    delivery_id = ""
                if not delivery_id:
                    raise EmailDeliveryUnknown("response carried no delivery id")
                logger.info("email.sent", status=resp.status_code, delivery_id=delivery_id)
                return delivery_id
        if maybe_delivered:
            raise EmailDeliveryUnknown(last_error)
        raise EmailSendError(last_error)
