"""Type converters — ``str -> T`` functions keyed by destination type.

A converter registered for a type wins over every structural rule in the
binder, struct types included. The registry is handed to the binder
explicitly; populate it before the first bind call and treat it as
read-only afterwards.

Built-ins:
- :class:`~datetime.timedelta` from duration text (``300ms``, ``1h30m``).
- :class:`~datetime.datetime` from ISO 8601, unix timestamps, and the
  common RFC / C-library layouts.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from pydantic import TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

Converter = Callable[[str], Any]

# --- Durations ---------------------------------------------------------------

DURATION_UNITS_NS: dict[str, float] = {
    "ns": 1,
    "us": 1e3,
    "µs": 1e3,  # U+00B5 micro sign
    "μs": 1e3,  # U+03BC greek mu
    "ms": 1e6,
    "s": 1e9,
    "m": 60e9,
    "h": 3600e9,
}

_DURATION_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_UNIT_CHARS = frozenset("nsuµμmh")


def parse_duration(text: str) -> timedelta:
    """Parse duration text such as ``1.5s``, ``-2m``, or ``1h30m``.

    Text without any unit is read as nanoseconds. Sub-microsecond
    precision is truncated since :class:`timedelta` cannot hold it.

    Examples:
        >>> parse_duration("1h30m")
        datetime.timedelta(seconds=5400)
        >>> parse_duration("250ms")
        datetime.timedelta(microseconds=250000)
    """
    s = text.strip()
    if not any(c in _UNIT_CHARS for c in s):
        s += "ns"

    sign = 1
    if s[:1] in ("+", "-"):
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    if s == "0":
        return timedelta(0)
    if not s:
        msg = f"invalid duration {text!r}"
        raise ValueError(msg)

    total_ns = 0.0
    pos = 0
    while pos < len(s):
        m = _DURATION_COMPONENT.match(s, pos)
        if m is None:
            msg = f"invalid duration {text!r}"
            raise ValueError(msg)
        total_ns += float(m.group(1)) * DURATION_UNITS_NS[m.group(2)]
        pos = m.end()
    try:
        return sign * timedelta(microseconds=total_ns / 1000)
    except OverflowError as exc:
        msg = f"invalid duration {text!r}: out of range"
        raise ValueError(msg) from exc


# --- Timestamps --------------------------------------------------------------

TIMESTAMP_LAYOUTS: list[str] = [
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S",
    "%a, %d %b %Y %H:%M:%S %z",  # RFC 1123 with numeric zone
    "%a, %d %b %Y %H:%M:%S %Z",  # RFC 1123
    "%d %b %y %H:%M %z",  # RFC 822 with numeric zone
    "%d %b %y %H:%M %Z",  # RFC 822
    "%A, %d-%b-%y %H:%M:%S %Z",  # RFC 850
    "%a %b %d %H:%M:%S %Y",  # ANSI C
    "%a %b %d %H:%M:%S %Z %Y",  # Unix date
    "%a %b %d %H:%M:%S %z %Y",  # Ruby date
    "%Y-%m-%d %H:%M:%S.%f %z",
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%d %b %Y",
    "%I:%M%p",  # kitchen
    "%b %d %H:%M:%S",  # stamp
]

_datetime_adapter: TypeAdapter[datetime] = TypeAdapter(datetime)


def parse_timestamp(text: str) -> datetime:
    """Parse a timestamp in any of the supported textual layouts."""
    s = text.strip()
    try:
        return _datetime_adapter.validate_python(s)
    except ValidationError:
        pass
    for layout in TIMESTAMP_LAYOUTS:
        try:
            return datetime.strptime(s, layout)
        except ValueError:
            continue
    msg = f"unable to parse timestamp {text!r}"
    raise ValueError(msg)


# --- Registry ----------------------------------------------------------------


class ConverterRegistry:
    """Destination type -> converter, at most one converter per type."""

    def __init__(self, converters: dict[type, Converter] | None = None) -> None:
        self._converters: dict[type, Converter] = dict(converters or {})

    def register(self, destination_type: type, fn: Converter) -> None:
        """Register *fn* for *destination_type*, replacing any existing converter."""
        if destination_type in self._converters:
            logger.debug("Replacing converter for %s", destination_type.__qualname__)
        self._converters[destination_type] = fn

    def lookup(self, destination_type: Any) -> Converter | None:
        try:
            return self._converters.get(destination_type)
        except TypeError:
            # unhashable annotations never have converters
            return None

    def __contains__(self, destination_type: object) -> bool:
        return self.lookup(destination_type) is not None

    def types(self) -> list[type]:
        return list(self._converters)


def default_registry() -> ConverterRegistry:
    """A fresh registry seeded with the built-in converters."""
    return ConverterRegistry(
        {
            timedelta: parse_duration,
            datetime: parse_timestamp,
        }
    )
