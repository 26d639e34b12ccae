"""
Organization profile used on receipts, emails and contact pages.

Resolution order for each field: the ``organizationConfig`` setting, then the
individual legacy settings (``siteName``, ``siteTagline``, ``contactEmail``,
``contactPhone``, ``address``), then the defaults below (taken from the Trust
Deed).
"""
import logging
from dataclasses import asdict, dataclass, field, replace
from typing import List, Optional

from .settings_store import ORGANIZATION_CONFIG, default_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrganizationConfig:
    name: str
    tagline: str
    registration_number: str
    tax_exemption_ref: str
    address: List[str] = field(default_factory=list)
    phone: str = ''
    email: str = ''
    website: str = ''
    logo_url: str = ''
    legal_name: str = ''
    slogan: str = ''

    @property
    def website_url(self):
        if not self.website:
            return ''
        if self.website.startswith(('http://', 'https://')):
            return self.website
        return f"https://{self.website}"

    def to_settings_value(self):
        """camelCase mapping as stored under ``organizationConfig``."""
        data = asdict(self)
        return {
            'name': data['name'],
            'legalName': data['legal_name'],
            'tagline': data['tagline'],
            'slogan': data['slogan'],
            'registrationNumber': data['registration_number'],
            'taxExemptionRef': data['tax_exemption_ref'],
            'address': list(data['address']),
            'phone': data['phone'],
            'email': data['email'],
            'website': data['website'],
            'logoUrl': data['logo_url'],
        }


DEFAULT_ORGANIZATION = OrganizationConfig(
    name='Yayasan Insan Prihatin',
    legal_name='Pemegang Amanah Yayasan Insan Prihatin',
    tagline='Ihsan untuk Insan',
    slogan='Ini Rumah Kita',
    registration_number='PPAB-23/2025',
    tax_exemption_ref='',  # not yet tax deductible
    address=[
        'D-G-05 Jalan PKAK 2',
        'Pusat Komersil Ayer Keroh',
        '75450 Ayer Keroh',
        'Melaka, Malaysia',
    ],
    phone='+60 12-345 6789',
    email='info@insanprihatin.org',
    website='www.insanprihatin.org',
    logo_url='/YIP-main-logo-transparent.png',
)

_FIELD_KEYS = {
    'name': 'name',
    'legal_name': 'legalName',
    'tagline': 'tagline',
    'slogan': 'slogan',
    'registration_number': 'registrationNumber',
    'tax_exemption_ref': 'taxExemptionRef',
    'phone': 'phone',
    'email': 'email',
    'website': 'website',
    'logo_url': 'logoUrl',
}

_LEGACY_KEYS = {
    'name': 'siteName',
    'tagline': 'siteTagline',
    'email': 'contactEmail',
    'phone': 'contactPhone',
}


def parse_address(value) -> Optional[List[str]]:
    """Accept a list of lines or a newline separated string."""
    if not value:
        return None
    if isinstance(value, (list, tuple)):
        lines = [str(line).strip() for line in value if str(line).strip()]
        return lines or None
    text = str(value)
    if '\n' in text:
        return [line.strip() for line in text.split('\n') if line.strip()]
    return [text.strip()]


def _text(value):
    return value.strip() if isinstance(value, str) and value.strip() else None


def get_organization_config(store=None) -> OrganizationConfig:
    store = store or default_store()
    try:
        raw = store.get(ORGANIZATION_CONFIG)
        configured = raw if isinstance(raw, dict) else {}
        overrides = {}
        for attr, key in _FIELD_KEYS.items():
            value = _text(configured.get(key))
            if value is None and attr in _LEGACY_KEYS:
                value = _text(store.get(_LEGACY_KEYS[attr]))
            if value is not None:
                overrides[attr] = value
        address = parse_address(configured.get('address')) or parse_address(store.get('address'))
        if address:
            overrides['address'] = address
    except Exception:
        logger.exception("Failed to load organization config, using defaults")
        return DEFAULT_ORGANIZATION
    return replace(DEFAULT_ORGANIZATION, **overrides)


def save_organization_config(config: OrganizationConfig, store=None):
    store = store or default_store()
    store.set(ORGANIZATION_CONFIG, config.to_settings_value())
