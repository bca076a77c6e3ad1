"""Webhook handlers for Gitee events."""

import base64
import hashlib
import hmac
import logging
from enum import Enum

from fastapi import HTTPException, Request

from defect_manager.issue.events import IssueEvent, NoteEvent
from defect_manager.server.context import AppContext


logger = logging.getLogger(__name__)


class WebhookEvent(str, Enum):
    """Supported webhook events."""

    ISSUE = "Issue Hook"
    NOTE = "Note Hook"


def gitee_signature(secret: str, timestamp: str) -> str:
    """Signature Gitee sends in ``X-Gitee-Token`` when signing is enabled."""
    digest = hmac.new(
        secret.encode(),
        f"{timestamp}\n{secret}".encode(),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode()


def verify_webhook_token(request: Request, secret: str) -> bool:
    """Verify the webhook token from Gitee.

    Gitee either sends the configured password as is, or an HMAC signature
    of ``X-Gitee-Timestamp`` keyed with it.

    Raises:
        HTTPException: If the token is missing or invalid
    """
    if not secret:
        logger.warning("Webhook secret not configured, skipping verification")
        return True

    token = request.headers.get("X-Gitee-Token", "")
    if not token:
        raise HTTPException(status_code=401, detail="Missing X-Gitee-Token header")

    if hmac.compare_digest(token.encode(), secret.encode()):
        return True

    timestamp = request.headers.get("X-Gitee-Timestamp", "")
    if timestamp and hmac.compare_digest(token.encode(), gitee_signature(secret, timestamp).encode()):
        return True

    raise HTTPException(status_code=401, detail="Invalid token")


def handle_webhook(context: AppContext, event_type: str, payload: dict) -> dict:
    """Route a webhook event to the issue workflow.

    Returns:
        Processing result
    """
    if event_type == WebhookEvent.ISSUE:
        event = IssueEvent.from_payload(payload)
        logger.info(
            f"Issue event {event.action} on {event.project.path_with_namespace} "
            f"{event.issue.number} ({event.issue.state_name})"
        )
        context.handler.handle_issue_event(event)
        return {"status": "processed", "event": event_type, "issue": event.issue.number}

    if event_type == WebhookEvent.NOTE:
        event = NoteEvent.from_payload(payload)
        logger.info(f"Note event on {event.project.path_with_namespace} {event.issue.number}")
        context.handler.handle_note_event(event)
        return {"status": "processed", "event": event_type, "issue": event.issue.number}

    logger.debug(f"Ignoring event: {event_type}")
    return {"status": "ignored", "event": event_type}
