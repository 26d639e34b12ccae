"""
Donation receipts: numbering and data assembly.

Receipt numbers look like ``YIP-2026-000001``: prefix, calendar year, then a
six digit sequence that restarts every year. The sequence is read from the
highest number already issued this year; there is no lock around the
read-increment-write, so two completions racing for the same year can compute
the same number. The unique constraint on ``Donation.receipt_number`` makes
the second save fail instead of issuing a duplicate, and the assignment then
moves past the highest numeric sequence already issued.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from website.organization import OrganizationConfig, get_organization_config

from .models import Donation, DonationLog
from .money import to_major

logger = logging.getLogger(__name__)

PENDING_RECEIPT = 'Pending'
SEQUENCE_DIGITS = 6
ASSIGN_ATTEMPTS = 5


@dataclass(frozen=True)
class ReceiptData:
    receipt_number: str
    donor_name: str
    donor_email: str
    amount: Decimal  # major units
    currency: str
    payment_reference: str
    payment_method: str
    completed_at: datetime
    created_at: datetime
    organization: OrganizationConfig
    donor_phone: Optional[str] = None
    project_title: Optional[str] = None
    transaction_id: Optional[str] = None
    message: Optional[str] = None

    @property
    def is_pending(self):
        return self.receipt_number == PENDING_RECEIPT


def receipt_prefix():
    return getattr(settings, 'RECEIPT_PREFIX', 'YIP')


def receipt_filename(receipt_number):
    return f"{receipt_prefix()}-Receipt-{receipt_number}.pdf"


def _year_prefix(now=None):
    now = now or timezone.localtime()
    return f"{receipt_prefix()}-{now.year}-"


def _next_sequence(prefix):
    last = (
        Donation.objects.filter(receipt_number__startswith=prefix)
        .order_by('-receipt_number')
        .values_list('receipt_number', flat=True)
        .first()
    )
    if not last:
        return 1
    try:
        return int(last[len(prefix):]) + 1
    except ValueError:
        logger.warning("Unparseable receipt number %r, restarting sequence at 1", last)
        return 1


def _highest_parsed_sequence(prefix):
    highest = 0
    for number in Donation.objects.filter(receipt_number__startswith=prefix).values_list('receipt_number', flat=True):
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest


def generate_receipt_number(now=None) -> str:
    prefix = _year_prefix(now)
    return f"{prefix}{_next_sequence(prefix):0{SEQUENCE_DIGITS}d}"


def assign_receipt_number(donation: Donation, now=None) -> Optional[str]:
    """
    Give a completed donation its receipt number, once.

    A number taken by another donation (concurrent completion, or a restarted
    sequence after an unparseable number) is skipped by trying the following
    ones. Returns ``None`` when no number could be saved; the donation stays
    completed and an operator can issue the receipt later.
    """
    if not donation.is_completed:
        return None
    if donation.receipt_number:
        return donation.receipt_number

    prefix = _year_prefix(now)
    sequence = _next_sequence(prefix)
    for _ in range(ASSIGN_ATTEMPTS):
        candidate = f"{prefix}{sequence:0{SEQUENCE_DIGITS}d}"
        donation.receipt_number = candidate
        try:
            with transaction.atomic():
                donation.save(update_fields=['receipt_number', 'updated_at'])
        except IntegrityError:
            logger.warning("Receipt number %s already taken, trying the next one", candidate)
            sequence = max(sequence + 1, _highest_parsed_sequence(prefix) + 1)
            continue
        log_event(donation, 'receipt_number_assigned', receiptNumber=candidate)
        logger.info("Assigned receipt %s to donation %s", candidate, donation.payment_reference)
        return candidate

    donation.receipt_number = None
    logger.error("Could not assign a receipt number to donation %s", donation.payment_reference)
    log_event(donation, 'receipt_number_failed', lastTried=candidate)
    return None


def get_receipt_data(payment_reference, store=None, locale='en') -> Optional[ReceiptData]:
    donation = (
        Donation.objects.select_related('project')
        .filter(payment_reference=payment_reference)
        .first()
    )
    if donation is None or not donation.is_completed:
        return None

    project_title = donation.project.localized_title(locale) if donation.project else None

    return ReceiptData(
        receipt_number=donation.receipt_number or PENDING_RECEIPT,
        donor_name=donation.donor_name or 'Anonymous',
        donor_email=donation.donor_email or '',
        donor_phone=donation.donor_phone or None,
        amount=to_major(donation.amount),
        currency=donation.currency or 'MYR',
        project_title=project_title,
        payment_reference=donation.payment_reference,
        payment_method=donation.payment_method or 'FPX',
        transaction_id=donation.transaction_id or None,
        completed_at=donation.completed_at or donation.created_at,
        created_at=donation.created_at,
        message=donation.message or None,
        organization=get_organization_config(store),
    )


def log_event(donation, event_type, request=None, **data):
    ip_address = ''
    user_agent = ''
    if request is not None:
        forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
        ip_address = forwarded.split(',')[0].strip() or request.META.get('REMOTE_ADDR', '')
        user_agent = request.META.get('HTTP_USER_AGENT', '')[:255]
    try:
        return DonationLog.objects.create(
            donation=donation,
            event_type=event_type,
            event_data=data,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    except Exception:
        logger.exception("Failed to log %s for donation %s", event_type, donation.pk)
        return None
