"""Notifier collaborators: the boundary where the core hands off delivery."""
from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field

from clinflow.core.exceptions import DispatchError

logger = structlog.get_logger(__name__)


class Channel(StrEnum):
    IN_APP = "in_app"
    EMAIL = "email"
    SMS = "sms"


class Notification(BaseModel):
    """A single message addressed to a user."""

    user_id: str | None = None
    title: str = ""
    message: str = ""
    type: str = "info"
    channel: Channel = Channel.IN_APP
    recipient: str | None = None
    """Email address or phone number for the email/SMS channels."""
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_data(cls, data: dict[str, Any], **overrides: Any) -> Notification:
        """Build a notification from loose action data.

        Keys that are not notification fields (``priority``, ``subject``...)
        are folded into ``metadata``.
        """
        known = set(cls.model_fields)
        fields: dict[str, Any] = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        metadata = dict(fields.get("metadata") or {})
        metadata.update(extra)
        fields["metadata"] = metadata
        fields.update(overrides)
        return cls(**fields)


class Notifier(ABC):
    """Delivers notifications.  Fire-and-forget from the core's perspective.

    Subclasses implement :meth:`deliver`; the channel-specific helpers
    stamp the channel and delegate.
    """

    @abstractmethod
    async def deliver(self, notification: Notification) -> None:
        """Deliver *notification*.  Raise :class:`DispatchError` on failure."""

    async def send(self, notification: Notification) -> None:
        await self.deliver(notification)

    async def send_email(self, notification: Notification) -> None:
        await self.deliver(notification.model_copy(update={"channel": Channel.EMAIL}))

    async def send_sms(self, notification: Notification) -> None:
        await self.deliver(notification.model_copy(update={"channel": Channel.SMS}))


class LogNotifier(Notifier):
    """Logs notifications via structlog.  No external dependencies."""

    async def deliver(self, notification: Notification) -> None:
        logger.info(
            "notification_sent",
            channel=notification.channel.value,
            user_id=notification.user_id,
            title=notification.title,
            type=notification.type,
        )


class InMemoryNotifier(Notifier):
    """Records every delivered notification.  Useful in tests."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def deliver(self, notification: Notification) -> None:
        self.sent.append(notification)

    def of_type(self, type_: str) -> list[Notification]:
        return [n for n in self.sent if n.type == type_]


class WebhookNotifier(Notifier):
    """POSTs each notification as JSON to a delivery service using httpx."""

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._url = url
        self._headers = headers or {}
        self._timeout = timeout

    async def deliver(self, notification: Notification) -> None:
        payload = notification.model_dump(mode="json")
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    self._url,
                    json=payload,
                    headers=self._headers,
                    timeout=self._timeout,
                )
        except httpx.HTTPError as exc:
            raise DispatchError(
                f"Notification delivery failed: {exc}",
                details={"url": self._url},
            ) from exc
        if resp.status_code >= 400:  # noqa: PLR2004
            raise DispatchError(
                f"Notification delivery failed with HTTP {resp.status_code}",
                details={"url": self._url, "status_code": resp.status_code},
            )
