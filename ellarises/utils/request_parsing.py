"""
Centralized Request Parameter Parsing Utilities
Form and query-string values arrive as strings; every numeric or date field
goes through these helpers so a bad value becomes a default, None or a
ValidationError, and never NaN.
"""

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Optional

from flask import request

from ellarises.services.search import SearchQuery
from ellarises.utils.errors import ValidationError

from ellarises.config.improved_logging_config import get_smart_logger
logger = get_smart_logger(__name__)

TWO_PLACES = Decimal('0.01')

# Largest value a signed 32-bit INTEGER column holds
MAX_DB_INT = 2 ** 31 - 1
# Numeric(12, 2) money columns
MAX_MONEY = Decimal('9999999999.99')
MAX_PAGE = 100000


def parse_int(value, default: Optional[int] = None, minimum: Optional[int] = None,
              maximum: Optional[int] = None) -> Optional[int]:
    """Parse an integer form value. Values outside [minimum, maximum] count as invalid."""
    if value is None:
        return default
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    if (minimum is not None and parsed < minimum) or (maximum is not None and parsed > maximum):
        return default
    return parsed


def parse_id(value) -> Optional[int]:
    """Parse a primary key picked in a form select."""
    return parse_int(value, minimum=1, maximum=MAX_DB_INT)


def parse_decimal(value, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """Parse a decimal form value. NaN and infinities count as invalid."""
    if value is None:
        return default
    text = str(value).strip()
    if not text:
        return default
    try:
        parsed = Decimal(text)
    except (InvalidOperation, ValueError):
        return default
    if not parsed.is_finite():
        return default
    return parsed


def _to_money(parsed: Decimal) -> Optional[Decimal]:
    if abs(parsed) > MAX_MONEY:
        return None
    try:
        return parsed.quantize(TWO_PLACES)
    except InvalidOperation:
        return None


def parse_money(value, default: Decimal = Decimal('0.00')) -> Decimal:
    parsed = parse_decimal(value)
    if parsed is None:
        return default
    money = _to_money(parsed)
    return default if money is None else money


def parse_donation_amount(value) -> Decimal:
    """A donation must be a positive amount of money that fits the amount column."""
    parsed = parse_decimal(value)
    if parsed is None or parsed <= 0:
        raise ValidationError('Donation amount must be greater than $0.')
    money = _to_money(parsed)
    if money is None:
        raise ValidationError('Donation amount is too large.')
    return money


def parse_date(value) -> Optional[date]:
    """Parse an HTML date input (YYYY-MM-DD); timestamps keep only the date."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        logger.debug(f"Ignoring unparseable date value: {text!r}")
        return None


def parse_time(value) -> Optional[time]:
    """Parse an HTML time input (HH:MM or HH:MM:SS)."""
    if not value:
        return None
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(str(value).strip())
    except ValueError:
        return None


def require_date(value, label: str) -> date:
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(f'{label} is required.')
    return parsed


def require_text(form, *names: str, message: str = 'All fields are required.') -> None:
    for name in names:
        if not (form.get(name) or '').strip():
            raise ValidationError(message)


def parse_page(value) -> int:
    """Page numbers below 1 or unparseable fall back to 1; huge ones are capped."""
    page = parse_int(value, 1)
    if page is None or page < 1:
        return 1
    return min(page, MAX_PAGE)


def parse_search_query(search_arg: str = 'search', page_arg: str = 'page') -> SearchQuery:
    return SearchQuery(
        raw=(request.args.get(search_arg) or '').strip(),
        page=parse_page(request.args.get(page_arg)),
    )


def format_date_input(value) -> str:
    """Format a stored date for an HTML date input."""
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else ''
