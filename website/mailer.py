"""
Transactional email through the Resend HTTP API.

Senders never raise: every outcome is an ``EmailResult``. A missing
precondition is reported through ``reason``; a provider or transport failure
through ``error``.
"""
import base64
import enum
import logging
from dataclasses import dataclass
from typing import Optional

import requests
from django.conf import settings
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)


class EmailReason(str, enum.Enum):
    DISABLED = 'disabled'
    NO_RECIPIENT = 'no_recipient'
    NO_API_KEY = 'no_api_key'


@dataclass(frozen=True)
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    reason: Optional[EmailReason] = None

    @classmethod
    def sent(cls, message_id):
        return cls(success=True, message_id=message_id)

    @classmethod
    def skipped(cls, reason, error=None):
        return cls(success=False, reason=EmailReason(reason), error=error)

    @classmethod
    def failed(cls, error):
        return cls(success=False, error=error)

    def as_dict(self):
        data = {'success': self.success}
        if self.message_id:
            data['messageId'] = self.message_id
        if self.error:
            data['error'] = self.error
        if self.reason:
            data['reason'] = self.reason.value
        return data


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    content_type: str = 'application/octet-stream'

    def as_payload(self):
        return {
            'filename': self.filename,
            'content': base64.b64encode(self.content).decode('ascii'),
            'content_type': self.content_type,
        }


def api_key():
    return getattr(settings, 'RESEND_API_KEY', '') or ''


def default_sender():
    return getattr(settings, 'EMAIL_FROM', '')


def render_email(template_name, context):
    """Render an HTML body. Templates autoescape every interpolated value."""
    return render_to_string(template_name, context).strip()


def deliver(to, subject, html, reply_to=None, attachments=None):
    """POST one message to Resend. Callers check their preconditions first."""
    payload = {
        'from': default_sender(),
        'to': [to],
        'subject': subject,
        'html': html,
    }
    if reply_to:
        payload['reply_to'] = reply_to
    if attachments:
        payload['attachments'] = [a.as_payload() for a in attachments]

    headers = {
        'Authorization': f"Bearer {api_key()}",
        'Content-Type': 'application/json',
    }
    try:
        response = requests.post(
            settings.RESEND_API_URL,
            json=payload,
            headers=headers,
            timeout=settings.RESEND_TIMEOUT,
        )
    except requests.RequestException as exc:
        logger.error("Email transport error sending %r to %s: %s", subject, to, exc)
        return EmailResult.failed(str(exc))

    try:
        body = response.json()
    except ValueError:
        body = {}

    if response.status_code >= 400:
        message = body.get('message') or f"HTTP {response.status_code}"
        logger.error("Resend API rejected %r to %s: %s", subject, to, message)
        return EmailResult.failed(message)

    message_id = body.get('id')
    logger.info("Email %r sent to %s (id=%s)", subject, to, message_id)
    return EmailResult.sent(message_id)


def send_test_email(to) -> EmailResult:
    """Send a fixed message to check the Resend configuration."""
    if not api_key():
        return EmailResult.skipped(EmailReason.NO_API_KEY)
    to = (to or '').strip()
    if not to:
        return EmailResult.skipped(EmailReason.NO_RECIPIENT)
    return deliver(
        to,
        'Test Email from Yayasan Insan Prihatin',
        render_email('website/emails/test_email.html', {}),
    )
