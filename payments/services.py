"""
payments/services.py
────────────────────
Receipt lifecycle for a single donation:

    completed (no receipt) -> number assigned -> PDF rendered -> email sent

Nothing here retries. A PDF failure is logged and the email goes out without
the attachment; an email failure leaves the donation with its number but no
``receipt_sent_at``, and an operator re-triggers through the resend endpoint
or the admin action.
"""
import logging

from django.db.models import F
from django.utils import timezone

from website.models import Project
from website.notifications import notify_donation_received

from .emails import send_donation_receipt_email
from .models import Donation
from .money import format_amount, to_major
from .receipt_pdf import render_receipt_pdf
from .receipts import assign_receipt_number, get_receipt_data, log_event

logger = logging.getLogger(__name__)


def send_receipt(donation: Donation, request=None, store=None):
    """
    Render and email the receipt of a donation that already has its number.
    Returns the ``EmailResult``, or ``None`` when there is nothing to send yet.
    """
    data = get_receipt_data(donation.payment_reference, store=store)
    if data is None or data.is_pending:
        return None

    pdf = None
    try:
        pdf = render_receipt_pdf(data)
    except Exception:
        logger.exception("Failed to render receipt PDF for %s", data.receipt_number)

    result = send_donation_receipt_email(data, pdf)
    if result.success:
        donation.receipt_sent_at = timezone.now()
        donation.save(update_fields=['receipt_sent_at', 'updated_at'])
        log_event(donation, 'receipt_email_sent', request,
                  messageId=result.message_id, email=data.donor_email)
    else:
        error = result.error or result.reason.value
        logger.error("Receipt email for %s not sent: %s", data.receipt_number, error)
        log_event(donation, 'receipt_email_failed', request, error=error)
    return result


def issue_receipt(donation: Donation, request=None, store=None):
    if assign_receipt_number(donation) is None:
        return None
    return send_receipt(donation, request=request, store=store)


def complete_donation(donation: Donation, transaction_id='', request=None, store=None):
    """Mark a donation paid and run everything that follows a payment."""
    donation.payment_status = Donation.Status.COMPLETED
    donation.completed_at = timezone.now()
    update_fields = ['payment_status', 'completed_at', 'updated_at']
    if transaction_id:
        donation.transaction_id = transaction_id
        update_fields.append('transaction_id')
    donation.save(update_fields=update_fields)

    project_title = None
    if donation.project_id:
        Project.objects.filter(pk=donation.project_id).update(
            donation_raised=F('donation_raised') + donation.amount
        )
        project_title = donation.project.title

    try:
        notify_donation_received(
            donation,
            format_amount(to_major(donation.amount), donation.currency),
            project_title=project_title,
        )
    except Exception:
        logger.exception("Failed to create notification for donation %s", donation.payment_reference)

    if not donation.donor_email:
        assign_receipt_number(donation)
        logger.info("Donation %s has no email address, receipt not sent", donation.payment_reference)
        return None
    return issue_receipt(donation, request=request, store=store)


def fail_donation(donation: Donation, reason='', transaction_id=''):
    donation.payment_status = Donation.Status.FAILED
    donation.failure_reason = (reason or 'Payment was not completed')[:255]
    update_fields = ['payment_status', 'failure_reason', 'updated_at']
    if transaction_id:
        donation.transaction_id = transaction_id
        update_fields.append('transaction_id')
    donation.save(update_fields=update_fields)


EXPIRED_REASON = 'Marked as expired by admin - payment not received'


def expire_donation(donation: Donation, reason='', marked_by='admin', request=None):
    """Close a stale pending donation; returns the status it had before."""
    previous = donation.payment_status
    donation.payment_status = Donation.Status.EXPIRED
    donation.failure_reason = (reason or EXPIRED_REASON)[:255]
    donation.save(update_fields=['payment_status', 'failure_reason', 'updated_at'])
    log_event(donation, 'admin_marked_expired', request,
              previousStatus=previous, reason=reason or 'Payment not received', markedBy=marked_by)
    logger.info("Donation %s marked expired by %s (was %s)", donation.payment_reference, marked_by, previous)
    return previous
