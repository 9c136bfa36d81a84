"""
Module for formatting amounts and day labels using Babel.

The currency symbol is a free-form display string chosen by the user, so amounts are
formatted as plain decimals and prefixed with the symbol rather than going through
Babel's currency-code based formatting.
"""
import datetime
import logging

from babel import Locale, UnknownLocaleError, numbers
from babel.dates import format_date

DEFAULT_LOCALE = 'en_US'


def _parse_locale(locale: str) -> Locale:
    try:
        return Locale.parse(locale)
    except (ValueError, TypeError, UnknownLocaleError) as ex:
        logging.debug(f'Unknown locale "{locale}", falling back to {DEFAULT_LOCALE}: {ex}')
        return Locale.parse(DEFAULT_LOCALE)


def format_float(value: float, locale: str = DEFAULT_LOCALE) -> str:
    """
    Format a float with two decimals according to the locale conventions.

    Args:
        value (float): The numeric value to be formatted.
        locale (str): Locale string, e.g. 'en_US'.

    Returns:
        str: The formatted decimal string.
    """
    return numbers.format_decimal(value, format='#,##0.00', locale=_parse_locale(locale))


def format_amount(value: float, currency: str, locale: str = DEFAULT_LOCALE) -> str:
    """
    Format an amount prefixed with the user's currency symbol.

    Negative values put the minus sign before the symbol, e.g. ``-$12.50``.

    Args:
        value (float): The amount.
        currency (str): Display symbol such as '$' or 'C$'.
        locale (str): Locale used for grouping and decimal separators.

    Returns:
        str: The formatted amount.
    """
    sign = '-' if value < 0 else ''
    return f'{sign}{currency}{format_float(abs(value), locale)}'


def format_weekday(value: datetime.date, locale: str = DEFAULT_LOCALE) -> str:
    """
    Return the abbreviated weekday name for a date, e.g. 'Mon'.
    """
    return format_date(value, 'EEE', locale=_parse_locale(locale))
