import logging
from datetime import date

from website import mailer
from website.mailer import Attachment, EmailReason, EmailResult

from .money import format_amount, format_receipt_day, format_receipt_time
from .receipts import ReceiptData, receipt_filename

logger = logging.getLogger(__name__)

TEMPLATE = 'payments/emails/donation_receipt.html'


def receipt_subject(data: ReceiptData):
    return f"Thank You for Your Donation - Receipt {data.receipt_number}"


def render_receipt_email(data: ReceiptData):
    org = data.organization
    return mailer.render_email(TEMPLATE, {
        'data': data,
        'org': org,
        'formatted_amount': format_amount(data.amount, data.currency),
        'completed_date': format_receipt_day(data.completed_at),
        'completed_time': format_receipt_time(data.completed_at),
        'website_url': org.website_url,
        'phone_link': org.phone.replace(' ', ''),
        'address_line': ' • '.join(org.address),
        'year': date.today().year,
    })


def send_donation_receipt_email(data: ReceiptData, pdf=None) -> EmailResult:
    """Email the receipt to the donor, attaching the PDF when one is given."""
    if not mailer.api_key():
        logger.error("RESEND_API_KEY is not configured, receipt %s not sent", data.receipt_number)
        return EmailResult.skipped(EmailReason.NO_API_KEY, error='RESEND_API_KEY is not configured')

    if not (data.donor_email or '').strip():
        logger.error("No donor email for receipt %s", data.receipt_number)
        return EmailResult.skipped(EmailReason.NO_RECIPIENT, error='No donor email address provided')

    if '@resend.dev' in mailer.default_sender():
        logger.warning("Sending from the Resend test domain; only the account owner will receive it")

    attachments = None
    if pdf:
        attachments = [Attachment(receipt_filename(data.receipt_number), pdf, 'application/pdf')]

    return mailer.deliver(
        data.donor_email.strip(),
        receipt_subject(data),
        render_receipt_email(data),
        attachments=attachments,
    )
