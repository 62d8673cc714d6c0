"""
Dispatch client: the only path from the reminder scheduler to the outside world.
Wraps content generation and email transport and maps every failure into

    DispatchError
      DispatchConfigurationError   missing key; fatal for the call path
      TransientDispatchError       isolated per post, retried by a later run
        GenerationError
        DeliveryError
      DeliveryUnknownError         the email may be out; never retried
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol
from uuid import UUID

from post_scheduler.config import Settings, get_settings
from post_scheduler.logging_config import get_logger
from post_scheduler.services import reminder_email
from post_scheduler.services.content_generation import ContentGenerator, GenerationRequest
from post_scheduler.services.email_transport import EmailDeliveryUnknown, ResendEmailTransport

logger = get_logger(__name__)


class DispatchError(Exception):
    """Base of dispatch failures. str(e) is the human-readable reason."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class DispatchConfigurationError(DispatchError):
    pass


class TransientDispatchError(DispatchError):
    pass


class GenerationError(TransientDispatchError):
    pass


class DeliveryError(TransientDispatchError):
    pass


class DeliveryUnknownError(DispatchError):
    pass


class Generator(Protocol):
    is_configured: bool

    async def generate_post(self, request: GenerationRequest) -> str: ...


class EmailTransport(Protocol):
    is_configured: bool

    async def send(self, to: str, subject: str, html: str, idempotency_key: Optional[str] = None) -> str: ...


@dataclass(frozen=True)
class ReminderMessage:
    """Everything the reminder email needs about one post."""

    post_id: UUID
    recipient: Optional[str]
    full_name: Optional[str]
    group_name: Optional[str]
    group_url: Optional[str]
    scheduled_for: datetime
    content: str


def reminder_idempotency_key(post_id: UUID) -> str:
    """One key per post: a post gets one reminder, ever."""
    return f"post-reminder/{post_id}"


def _reason(e: BaseException) -> str:
    text = str(e).strip()
    return f"{type(e).__name__}: {text}" if text else type(e).__name__


class DispatchClient:
    """Content generation + reminder delivery with a single error taxonomy."""

    def __init__(
        self,
        settings: Settings,
        generator: Optional[Generator] = None,
        transport: Optional[EmailTransport] = None,
    ) -> None:
        self.settings = settings
        self.generator = generator if generator is not None else ContentGenerator(settings)
        self.transport = transport if transport is not None else ResendEmailTransport(settings)

    def ensure_configured(self, need_generation: bool) -> None:
        """Raise DispatchConfigurationError before any post is claimed."""
        if not self.transport.is_configured:
            raise DispatchConfigurationError("RESEND_API_KEY not set")
        if need_generation and not self.generator.is_configured:
            raise DispatchConfigurationError("OPENAI_API_KEY not set")

    async def prepare_content(self, request: GenerationRequest) -> str:
        if not self.generator.is_configured:
            raise DispatchConfigurationError("OPENAI_API_KEY not set")
        try:
            text = await self.generator.generate_post(request)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise GenerationError(_reason(e)) from e
        if not text or not text.strip():
            raise GenerationError("generation returned no text")
        return text.strip()

    async def send_reminder(self, message: ReminderMessage, now: Optional[datetime] = None) -> str:
        """Render and send the reminder email; returns the transport's delivery id."""
        if not self.transport.is_configured:
            raise DispatchConfigurationError("RESEND_API_KEY not set")
        if not message.recipient:
            raise DeliveryError("author has no email address")
        now = now or datetime.now(timezone.utc)
        subject = reminder_email.render_subject(message.group_name)
        html = reminder_email.render_html(
            full_name=message.full_name,
            group_name=message.group_name,
            group_url=message.group_url,
            content=message.content,
            scheduled_for=message.scheduled_for,
            now=now,
            app_url=self.settings.app_url,
            timezone_name=self.settings.display_timezone,
            post_id=str(message.post_id),
        )
        try:
            delivery_id = await self.transport.send(
                message.recipient,
                subject,
                html,
                idempotency_key=reminder_idempotency_key(message.post_id),
            )
        except asyncio.CancelledError:
            raise
        except EmailDeliveryUnknown as e:
            raise DeliveryUnknownError(_reason(e)) from e
        except Exception as e:
            raise DeliveryError(_reason(e)) from e
        if not delivery_id:
            raise DeliveryUnknownError("transport returned no delivery id")
        logger.info("dispatch.reminder_sent", post_id=str(message.post_id), delivery_id=delivery_id)
        return delivery_id


def get_dispatch_client() -> DispatchClient:
    """Dependency: dispatch client built from current settings."""
    return DispatchClient(get_settings())
