"""
Admin notifications: dashboard feed entries and notification emails.

Contact-form and form-submission emails go through the notification gate
(``emailNotificationsEnabled`` / ``notificationEmail`` settings). The donor
receipt email is not sent from here and is never gated.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from django.utils import timezone

from . import mailer
from .mailer import EmailReason, EmailResult
from .models import AdminNotification, ContactMessage
from .organization import get_organization_config
from .settings_store import default_store, notification_email, notifications_enabled

logger = logging.getLogger(__name__)


@dataclass
class FormNotification:
    form_title: str
    fields: List[dict]
    data: dict
    source_url: str = ''
    source_content_title: str = ''
    notification_email: Optional[str] = None


def create_notification(type, title, message, priority=AdminNotification.Priority.NORMAL,
                        related_type='', related_id='', related_url='', metadata=None,
                        expires_at=None):
    return AdminNotification.objects.create(
        type=type,
        priority=priority,
        title=title,
        message=message,
        related_type=related_type,
        related_id=str(related_id or ''),
        related_url=related_url,
        metadata=metadata or {},
        expires_at=expires_at,
    )


def notify_contact_message(contact):
    return create_notification(
        AdminNotification.Type.CONTACT_MESSAGE,
        title='New contact message',
        message=f"{contact.name} sent a message: {contact.get_subject_display()}",
        related_type='messages',
        related_id=contact.pk,
        related_url='/admin/dashboard/messages',
        metadata={'senderName': contact.name, 'senderEmail': contact.email},
    )


def notify_form_submission(submission):
    return create_notification(
        AdminNotification.Type.FORM_SUBMISSION,
        title='New form submission',
        message=f"New response to \"{submission.form.title}\"",
        related_type='forms',
        related_id=submission.form_id,
        related_url=f"/admin/dashboard/forms/{submission.form_id}/responses",
        metadata={'submissionId': submission.pk},
    )


def notify_donation_received(donation, amount_display, project_title=None):
    donor = 'Anonymous' if donation.is_anonymous else (donation.donor_name or 'Anonymous')
    purpose = f" for {project_title}" if project_title else ''
    return create_notification(
        AdminNotification.Type.DONATION_RECEIVED,
        title='Donation received',
        message=f"{donor} donated {amount_display}{purpose}",
        priority=AdminNotification.Priority.HIGH,
        related_type='donations',
        related_id=donation.pk,
        related_url='/admin/dashboard/donations',
        metadata={'paymentReference': donation.payment_reference, 'amount': amount_display},
    )


def _gate(store, recipient_override=None):
    """Return (recipient, skipped_result). Order: disabled, recipient, api key."""
    if not notifications_enabled(store):
        logger.info("Email notifications are disabled")
        return None, EmailResult.skipped(EmailReason.DISABLED)
    recipient = recipient_override or notification_email(store)
    if not recipient:
        logger.info("No notification email configured")
        return None, EmailResult.skipped(EmailReason.NO_RECIPIENT)
    if not mailer.api_key():
        logger.error("RESEND_API_KEY is not configured")
        return None, EmailResult.skipped(EmailReason.NO_API_KEY)
    return recipient, None


def _submitted_at():
    return timezone.localtime().strftime('%A, %d %B %Y %I:%M %p')


def send_contact_notification_email(contact: ContactMessage, store=None) -> EmailResult:
    store = store or default_store()
    recipient, skipped = _gate(store)
    if skipped:
        return skipped

    subject_label = contact.get_subject_display()
    html = mailer.render_email('website/emails/contact_notification.html', {
        'contact': contact,
        'subject_label': subject_label,
        'first_name': (contact.name.split() or [contact.name])[0],
        'submitted_at': _submitted_at(),
        'organization': get_organization_config(store),
    })
    return mailer.deliver(
        recipient,
        f"New Contact Form Submission: {subject_label}",
        html,
        reply_to=contact.email,
    )


def form_rows(notification: FormNotification):
    """Label/value pairs for a submission, checkbox options joined."""
    rows = []
    for fld in notification.fields:
        field_id = fld.get('id')
        value = notification.data.get(field_id)
        options = fld.get('options') or []
        if fld.get('type') == 'checkbox' and options:
            selected = [opt for i, opt in enumerate(options) if notification.data.get(f"{field_id}_{i}")]
            value = ', '.join(selected) if selected else 'None selected'
        if value is None or value == '':
            value = '-'
        rows.append((fld.get('label') or field_id, str(value)))
    return rows


def send_form_notification_email(notification: FormNotification, store=None) -> EmailResult:
    store = store or default_store()
    recipient, skipped = _gate(store, recipient_override=notification.notification_email)
    if skipped:
        return skipped

    html = mailer.render_email('website/emails/form_notification.html', {
        'notification': notification,
        'rows': form_rows(notification),
        'submitted_at': _submitted_at(),
        'organization': get_organization_config(store),
    })
    return mailer.deliver(recipient, f"New Form Submission: {notification.form_title}", html)


def dismiss_all_notifications():
    """Hide every notification from the feed; returns how many changed."""
    return AdminNotification.objects.filter(is_dismissed=False).update(is_dismissed=True)


def cleanup_expired_notifications():
    """Delete notifications past ``expires_at``; returns how many were removed."""
    deleted, _ = AdminNotification.objects.filter(expires_at__lt=timezone.now()).delete()
    if deleted:
        logger.info("Removed %s expired notifications", deleted)
    return deleted
