"""Collaborator adapters and the outbox dispatcher."""

from certification.services.collaborators import (
    LoggingCollaborator,
    NotificationCollaborator,
    WebhookCollaborator,
    build_collaborators,
)
from certification.services.dispatcher import DispatchReport, OutboxDispatcher

__all__ = [
    "LoggingCollaborator",
    "NotificationCollaborator",
    "WebhookCollaborator",
    "build_collaborators",
    "DispatchReport",
    "OutboxDispatcher",
]
