import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.utils import timezone

CURRENCY_SYMBOLS = {
    'MYR': 'RM',
    'USD': 'US$',
    'SGD': 'S$',
    'EUR': '€',
    'GBP': '£',
}

CENT = Decimal('0.01')
_NUMBER = re.compile(r'-?\d[\d,]*(?:\.\d+)?')


def to_major(minor_units) -> Decimal:
    """Stored sen -> ringgit. Exact, no float."""
    return (Decimal(int(minor_units)) / 100).quantize(CENT)


def to_minor(amount) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def format_amount(amount, currency='MYR') -> str:
    """``Decimal('100') , 'MYR'`` -> ``'RM 100.00'``."""
    code = (currency or 'MYR').upper()
    symbol = CURRENCY_SYMBOLS.get(code, code)
    value = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    return f"{symbol} {value:,.2f}"


def parse_amount(text) -> Decimal:
    """Inverse of ``format_amount``; also accepts bare numbers like ``"50"``."""
    if isinstance(text, (int, Decimal)):
        return Decimal(text).quantize(CENT, rounding=ROUND_HALF_UP)
    match = _NUMBER.search(str(text or ''))
    if not match:
        raise ValueError(f"No amount in {text!r}")
    try:
        value = Decimal(match.group(0).replace(',', ''))
    except InvalidOperation:
        raise ValueError(f"Invalid amount {text!r}")
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_receipt_date(value) -> str:
    """``18 October 2026, 03:45 PM`` in the site time zone."""
    if timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.strftime('%d %B %Y, %I:%M %p')


def format_receipt_day(value) -> str:
    if timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.strftime('%d %B %Y')


def format_receipt_time(value) -> str:
    if timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.strftime('%I:%M %p')
