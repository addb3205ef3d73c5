"""Notifier collaborators — in-app, email and SMS delivery."""
from clinflow.notify.base import (
    Channel,
    InMemoryNotifier,
    LogNotifier,
    Notification,
    Notifier,
    WebhookNotifier,
)

__all__ = [
    "Channel",
    "InMemoryNotifier",
    "LogNotifier",
    "Notification",
    "Notifier",
    "WebhookNotifier",
]
