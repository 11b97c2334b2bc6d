"""
T-SQL literal formatting for values read from SQL Server.

A column's formatter is resolved once per table from its native type name
(as reported by the catalog) and, failing that, from the Python type the
driver materializes for it:

1. ignored native types are excluded from the dump;
2. native types whose exact format cannot be told from the Python value;
3. Python value types;
4. a generic fallback rendering ``str(value)``.
"""

import datetime
import decimal
import uuid
from typing import Any, Callable, Optional

from .models import PreciseTime

Formatter = Callable[[Any], str]

NULL = 'NULL'

# Engine-managed row version columns can never be inserted explicitly.
IGNORED_TYPES = frozenset({'timestamp', 'rowversion'})

# Read through their text conversion, their binary form has no literal syntax.
SPECIAL_TYPES = frozenset({'geometry', 'geography', 'hierarchyid'})

DEFAULT_PRECISION = 7
LEGACY_DATETIME_PRECISION = 3
TICKS_PER_MICROSECOND = 10


def is_special_type(type_name: str) -> bool:
    return type_name in SPECIAL_TYPES


def is_ignored_type(type_name: str) -> bool:
    return type_name in IGNORED_TYPES


def format_string(value: str) -> str:
    """Quote a string, doubling embedded quotes.

    Strings holding any character beyond ASCII get the ``N`` prefix so the
    target keeps them intact.
    """
    prefix = 'N' if any(ord(c) > 127 for c in value) else ''
    escaped = value.replace("'", "''")
    return f"{prefix}'{escaped}'"


def _split_ticks(value: Any) -> tuple[Any, int]:
    """Unwrap a value into its date-time part and its 100-nanosecond fraction."""
    if isinstance(value, PreciseTime):
        return value.value, value.ticks
    return value, value.microsecond * TICKS_PER_MICROSECOND


def _format_fraction(ticks: int, precision: int) -> str:
    return f"{ticks:07d}"[:precision]


def format_datetime(
    value: datetime.datetime | datetime.time | PreciseTime,
    quote: bool = True,
    date: bool = True,
    precision: int = DEFAULT_PRECISION
) -> str:
    """Format a date-time (or time when ``date`` is False).

    The fraction is written at ``precision`` digits and left out entirely
    when all of them are zero.
    """
    value, ticks = _split_ticks(value)
    result = f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    if date:
        result = f"{value.year:04d}-{value.month:02d}-{value.day:02d}T{result}"

    fraction = _format_fraction(ticks, precision)
    if fraction.strip('0'):
        result += '.' + fraction

    return f"'{result}'" if quote else result


def format_date(value: datetime.date) -> str:
    return f"'{value.year:04d}-{value.month:02d}-{value.day:02d}'"


def format_offset(offset: datetime.timedelta) -> str:
    """Format a UTC offset as a signed ``HH:MM`` suffix."""
    minutes = int(offset.total_seconds()) // 60
    sign = '-' if minutes < 0 else '+'
    hours, minutes = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def format_datetime_value(value: datetime.datetime | PreciseTime) -> str:
    offset = _split_ticks(value)[0].utcoffset()
    if offset is None:
        return format_datetime(value)
    return f"'{format_datetime(value, quote=False)}{format_offset(offset)}'"


def format_time(value: datetime.time | PreciseTime) -> str:
    return format_datetime(value, date=False)


def format_precise_time(value: PreciseTime) -> str:
    if isinstance(value.value, datetime.datetime):
        return format_datetime_value(value)
    return format_time(value)


def format_timedelta(value: datetime.timedelta) -> str:
    """Format a duration as the time of day it reaches from midnight."""
    ticks = value // datetime.timedelta(microseconds=1)
    time_of_day = (datetime.datetime.min + datetime.timedelta(microseconds=ticks % 86_400_000_000)).time()
    return format_time(time_of_day)


def format_decimal(value: Any) -> str:
    if isinstance(value, decimal.Decimal):
        return format(value, 'f')
    return str(value)


def format_binary(value: bytes | bytearray | memoryview) -> str:
    return '0x' + bytes(value).hex().upper()


def format_bool(value: bool) -> str:
    return '1' if value else '0'


def format_uuid(value: uuid.UUID) -> str:
    return f"'{value}'"


NATIVE_TYPE_FORMATTERS: dict[str, Formatter] = {
    'date': format_date,
    'datetime': lambda v: format_datetime(v, precision=LEGACY_DATETIME_PRECISION),
    'datetimeoffset': format_datetime_value,
    'decimal': format_decimal,
    'numeric': format_decimal,
    'xml': lambda v: format_string(str(v)),
}

VALUE_TYPE_FORMATTERS: dict[type, Formatter] = {
    str: format_string,
    datetime.datetime: format_datetime_value,
    datetime.date: format_date,
    datetime.time: format_time,
    datetime.timedelta: format_timedelta,
    PreciseTime: format_precise_time,
    bool: format_bool,
    bytes: format_binary,
    bytearray: format_binary,
    memoryview: format_binary,
    uuid.UUID: format_uuid,
    decimal.Decimal: format_decimal,
}


def lookup_value_formatter(value_type: Optional[type]) -> Optional[Formatter]:
    """Find the formatter for a Python type, honouring subclasses."""
    if value_type is None:
        return None
    for klass in value_type.__mro__:
        formatter = VALUE_TYPE_FORMATTERS.get(klass)
        if formatter is not None:
            return formatter
    return None


def format_value(value: Any) -> str:
    """Format any value, dispatching on its runtime type."""
    if value is None:
        return NULL
    formatter = lookup_value_formatter(type(value))
    if formatter is not None:
        return formatter(value)
    return str(value)


def _null_guard(formatter: Formatter) -> Formatter:
    def format_or_null(value: Any) -> str:
        if value is None:
            return NULL
        return formatter(value)
    return format_or_null


def get_formatter(native_type_name: str, value_type: Optional[type] = None) -> Optional[Formatter]:
    """
    Resolve the formatter for a column.

    Args:
        native_type_name: Type name reported by the catalog (e.g. ``datetime2``).
        value_type: Python type the driver reports for the result column.

    Returns:
        A function rendering one cell as a T-SQL literal, or None when the
        column must be left out of the dump.
    """
    if is_ignored_type(native_type_name):
        return None

    formatter = NATIVE_TYPE_FORMATTERS.get(native_type_name)
    if formatter is None:
        formatter = lookup_value_formatter(value_type)
    if formatter is None:
        return format_value

    return _null_guard(formatter)
