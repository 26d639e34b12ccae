"""
Site settings providers.

Everything that reads site-wide configuration takes a provider exposing
``get(key)`` (returns the stored JSON value or ``None``) instead of querying
the table directly, so callers can pass a ``StaticSettings`` in tests.
Values are read per call; nothing is cached.
"""
import logging

from .models import SiteSetting

logger = logging.getLogger(__name__)

NOTIFICATION_EMAIL = 'notificationEmail'
EMAIL_NOTIFICATIONS_ENABLED = 'emailNotificationsEnabled'
ORGANIZATION_CONFIG = 'organizationConfig'


class DatabaseSettings:
    """Provider backed by the ``SiteSetting`` table."""

    def get(self, key):
        return (
            SiteSetting.objects.filter(key=key)
            .values_list('value', flat=True)
            .first()
        )

    def set(self, key, value):
        SiteSetting.objects.update_or_create(key=key, defaults={'value': value})


class StaticSettings:
    """In-memory provider."""

    def __init__(self, values=None):
        self.values = dict(values or {})

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value):
        self.values[key] = value


def default_store():
    return DatabaseSettings()


def safe_get(store, key):
    """Read ``key`` and log (rather than raise) when the backing store fails."""
    try:
        return store.get(key)
    except Exception:
        logger.exception("Failed to read setting %s", key)
        return None


def notifications_enabled(store):
    # Only an explicit false disables; unset means enabled.
    return safe_get(store, EMAIL_NOTIFICATIONS_ENABLED) is not False


def notification_email(store):
    value = safe_get(store, NOTIFICATION_EMAIL)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
