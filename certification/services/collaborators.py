"""Adapters delivering outbound messages to external collaborators.

Handles:
- Payment milestone creation, assessment scheduling and certificate
  issuance through JSON webhooks
- Applicant notifications rendered from per-status templates
- A log-only fallback for collaborators without a configured URL

Every request carries the outbound message id as ``Idempotency-Key`` so
collaborators can drop redeliveries.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from jinja2 import Template

from certification.core.config import Settings
from certification.core.workflow.models import OutboundKind, OutboundMessage
from certification.core.workflow.ports import Collaborator
from certification.core.workflow.statuses import ApplicationStatus

logger = logging.getLogger(__name__)


# Notification templates, keyed by the status the application entered
NOTIFICATION_TEMPLATES = {
    ApplicationStatus.SUBMITTED: {
        "subject": "Application {{ application_id }} submitted",
        "body": "Your certification application was received and is awaiting review.",
    },
    ApplicationStatus.PAYMENT_PENDING_REVIEW: {
        "subject": "Payment required: document review",
        "body": "Please pay the document review fee so we can start reviewing your documents.",
    },
    ApplicationStatus.REVISION_REQUESTED: {
        "subject": "Revision requested",
        "body": """
The reviewer asked for changes to your documents.
{% if reason %}Reason: {{ reason }}
{% endif %}Revisions used: {{ revision_count }}
        """,
    },
    ApplicationStatus.REJECTED_PAYMENT_REQUIRED: {
        "subject": "Payment required: revision fee",
        "body": """
Your free revisions are used up. Pay the revision fee to continue.
{% if reason %}Reason: {{ reason }}{% endif %}
        """,
    },
    ApplicationStatus.PAYMENT_PENDING_ASSESSMENT: {
        "subject": "Payment required: assessment",
        "body": "Your documents were approved. Pay the assessment fee to schedule the assessment.",
    },
    ApplicationStatus.ONLINE_ASSESSMENT_SCHEDULED: {
        "subject": "Online assessment scheduled",
        "body": "Your online assessment has been scheduled. Watch for the meeting invitation.",
    },
    ApplicationStatus.ONSITE_ASSESSMENT_SCHEDULED: {
        "subject": "On-site assessment scheduled",
        "body": "An auditor will visit for the on-site assessment.",
    },
    ApplicationStatus.ONSITE_ASSESSMENT_COMPLETED: {
        "subject": "Assessment completed",
        "body": "The assessment is complete. Pay the certificate issuance fee to receive your certificate.",
    },
    ApplicationStatus.CERTIFIED: {
        "subject": "Certificate issued",
        "body": "Congratulations, your application {{ application_id }} is certified.",
    },
    ApplicationStatus.REJECTED: {
        "subject": "Application rejected",
        "body": "Your application was rejected.{% if reason %} Reason: {{ reason }}{% endif %}",
    },
}

DEFAULT_NOTIFICATION_TEMPLATE = {
    "subject": "Application {{ application_id }} is now {{ status }}",
    "body": "The status of your certification application changed to {{ status }}.",
}


class WebhookCollaborator:
    """
    Posts the message payload as JSON to a collaborator endpoint.

    Non-2xx responses raise ``httpx.HTTPStatusError`` so the dispatcher
    counts the attempt as failed.
    """

    def __init__(
        self,
        url: str,
        *,
        token: Optional[str] = None,
        timeout: float = 30,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self.token = token
        self.client = client or httpx.Client(timeout=timeout)

    def headers(self, message: OutboundMessage) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Idempotency-Key": str(message.id),
            "X-Certification-Event": message.kind.value,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def build_payload(self, message: OutboundMessage) -> Dict[str, Any]:
        return dict(message.payload)

    def deliver(self, message: OutboundMessage) -> None:
        response = self.client.post(
            self.url,
            json=self.build_payload(message),
            headers=self.headers(message),
        )
        response.raise_for_status()
        logger.debug(f"Delivered {message.kind.value} message {message.id} to {self.url}")


class NotificationCollaborator(WebhookCollaborator):
    """Renders an applicant notification and posts it to the notification service."""

    def render(self, message: OutboundMessage) -> Dict[str, str]:
        template = NOTIFICATION_TEMPLATES.get(message.status, DEFAULT_NOTIFICATION_TEMPLATE)
        context = dict(message.payload)
        return {
            "subject": Template(template["subject"]).render(**context).strip(),
            "body": Template(template["body"]).render(**context).strip(),
        }

    def build_payload(self, message: OutboundMessage) -> Dict[str, Any]:
        rendered = self.render(message)
        return {
            "application_id": str(message.application_id),
            "recipient": message.payload.get("applicant_id"),
            "status": message.status.value,
            "subject": rendered["subject"],
            "body": rendered["body"],
        }


class LoggingCollaborator:
    """Development stand-in that only logs what would have been sent."""

    def __init__(self, name: str):
        self.name = name

    def deliver(self, message: OutboundMessage) -> None:
        logger.info(
            f"[{self.name}] {message.kind.value} for application {message.application_id}: "
            f"{message.payload}"
        )


def build_collaborators(
    settings: Settings, client: Optional[httpx.Client] = None
) -> Dict[OutboundKind, Collaborator]:
    """Collaborator per outbound kind, from configured webhook URLs."""
    if client is None:
        client = httpx.Client(timeout=settings.webhook_timeout)

    def webhook(url: Optional[str], name: str, cls=WebhookCollaborator) -> Collaborator:
        if not url:
            return LoggingCollaborator(name)
        return cls(url, token=settings.collaborator_token, client=client)

    return {
        OutboundKind.CREATE_PAYMENT_MILESTONE: webhook(settings.payment_webhook_url, "payments"),
        OutboundKind.SCHEDULE_ASSESSMENT: webhook(settings.scheduling_webhook_url, "scheduling"),
        OutboundKind.ISSUE_CERTIFICATE: webhook(settings.certificate_webhook_url, "certificates"),
        OutboundKind.NOTIFY_USER: webhook(
            settings.notification_webhook_url, "notifications", NotificationCollaborator
        ),
    }
