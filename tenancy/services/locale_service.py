"""Currency and date formatting for notification texts and bill descriptions.

The LOCALE setting (default en_PH) picks both the language of month names
and the currency, which is the first official currency of the locale's
territory:

    >>> format_amount(9500)
    '₱9,500.00'
    >>> format_month_year(date(2025, 6, 1))
    'June 2025'
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from functools import lru_cache

from babel import Locale, UnknownLocaleError
from babel.dates import format_date, format_datetime
from babel.numbers import format_currency, get_territory_currencies

from tenancy.services.config import get_settings

logger = logging.getLogger(__name__)

FALLBACK_LOCALE = "en_PH"
FALLBACK_CURRENCY = "PHP"


@lru_cache(maxsize=1)
def active_locale() -> tuple[str, str]:
    """(locale, currency code) for the configured LOCALE, resolved once."""
    name = get_settings().locale
    try:
        parsed = Locale.parse(name)
    except (UnknownLocaleError, ValueError) as e:
        logger.warning("Unusable LOCALE %r (%s), using %s", name, e, FALLBACK_LOCALE)
        name, parsed = FALLBACK_LOCALE, Locale.parse(FALLBACK_LOCALE)

    currencies = get_territory_currencies(parsed.territory) if parsed.territory else []
    return name, currencies[0] if currencies else FALLBACK_CURRENCY


def format_amount(amount: float | Decimal | int) -> str:
    locale, currency = active_locale()
    return format_currency(Decimal(str(amount)), currency, locale=locale)


def format_month_year(day: date) -> str:
    """'June 2025'"""
    return format_date(day, format="MMMM yyyy", locale=active_locale()[0])


def format_day(day: date) -> str:
    """'Jun 10, 2025'"""
    return format_date(day, format="medium", locale=active_locale()[0])


def format_appointment(moment: datetime) -> str:
    """Naive local appointment time: 'Jun 10, 2025 8:30 AM'."""
    return format_datetime(moment, format="MMM d, yyyy h:mm a", locale=active_locale()[0])


__all__ = [
    "active_locale",
    "format_amount",
    "format_appointment",
    "format_day",
    "format_month_year",
]
