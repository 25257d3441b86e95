"""Property store — a flat, case-insensitive map of dotted keys.

INVARIANT: keys are lower-cased on every write and every lookup.
Two keys differing only in case are the same key; the last write wins.

Values are :mod:`propbind.domain.values` property values. Anything else
handed to :meth:`Properties.set` is normalised first.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter, ValidationError

from propbind.domain.converters import parse_duration, parse_timestamp
from propbind.domain.errors import ShapeMismatch
from propbind.domain.values import Mapping, PropertyValue, Scalar, Sequence, flatten, to_value

if TYPE_CHECKING:
    from propbind.domain.converters import ConverterRegistry

logger = logging.getLogger(__name__)

_int_adapter: TypeAdapter[int] = TypeAdapter(int)
_float_adapter: TypeAdapter[float] = TypeAdapter(float)
_bool_adapter: TypeAdapter[bool] = TypeAdapter(bool)


class Properties:
    """Case-insensitive property store.

    Populated once (from config sources, or through :meth:`set`), then
    read many times. There is no deletion API.
    """

    def __init__(self, entries: dict[str, Any] | None = None) -> None:
        self._entries: dict[str, PropertyValue] = {}
        if entries:
            self.update(entries)

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | Mapping) -> Properties:
        """Build a store from nested data, flattening tables into dotted keys."""
        props = cls()
        props.update(flatten(to_value(data)))  # type: ignore[arg-type]
        return props

    # --- Core operations ---

    def get(self, key: str) -> PropertyValue | None:
        return self._entries.get(key.lower())

    def get_default(self, key: str, fallback: Any = None) -> tuple[Any, bool]:
        """Return ``(value, True)`` if stored, otherwise ``(fallback, False)``."""
        k = key.lower()
        if k in self._entries:
            return self._entries[k], True
        return fallback, False

    def get_prefix(self, prefix: str) -> dict[str, PropertyValue]:
        """All entries equal to *prefix* or nested below ``prefix.``."""
        p = prefix.lower()
        nested = p + "."
        return {k: v for k, v in self._entries.items() if k == p or k.startswith(nested)}

    def get_indexed(self, prefix: str) -> Sequence | None:
        """Reassemble ``prefix[0]``, ``prefix[1].name``... entries into a list.

        Flat formats such as ``.properties`` spell lists this way. Items are
        read from index 0 upward and collection stops at the first missing
        index; an item with nested keys becomes a mapping. Returns None when
        ``prefix[0]`` is absent.

        Raises:
            ShapeMismatch: An index is set both as a value (``xs[0]``) and
                as a table (``xs[0].name``).
        """
        p = prefix.lower()
        pattern = re.compile(rf"^{re.escape(p)}\[(\d+)\](?:\.(.+))?$")
        scalars: dict[int, PropertyValue] = {}
        tables: dict[int, dict[str, PropertyValue]] = {}
        for key, val in self._entries.items():
            m = pattern.match(key)
            if m is None:
                continue
            index, rest = int(m.group(1)), m.group(2)
            if rest is None:
                scalars[index] = val
            else:
                tables.setdefault(index, {})[rest] = val

        items: list[PropertyValue] = []
        i = 0
        while i in scalars or i in tables:
            if i in scalars and i in tables:
                name = f"{p}[{i}]"
                msg = f'property "{name}" is set both as a value and as a table'
                raise ShapeMismatch(msg, property_name=name)
            items.append(scalars[i] if i in scalars else Mapping(tables[i]))
            i += 1
        if not items:
            return None
        return Sequence(tuple(items))

    def set(self, key: str, value: Any) -> None:
        self._entries[key.lower()] = to_value(value)

    def update(self, entries: dict[str, Any]) -> None:
        for key, val in entries.items():
            self.set(key, val)

    # --- Collection protocol ---

    def keys(self) -> list[str]:
        return list(self._entries)

    def items(self) -> Iterator[tuple[str, PropertyValue]]:
        return iter(self._entries.items())

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Properties({len(self._entries)} entries)"

    # --- Lenient typed getters (zero value when absent or unparsable) ---

    def _text(self, key: str) -> str | None:
        val = self.get(key)
        return val.text if isinstance(val, Scalar) else None

    def get_str(self, key: str) -> str:
        return self._text(key) or ""

    def get_bool(self, key: str) -> bool:
        return _lenient(_bool_adapter.validate_python, self._text(key), False)

    def get_int(self, key: str) -> int:
        return _lenient(_int_adapter.validate_python, self._text(key), 0)

    def get_float(self, key: str) -> float:
        return _lenient(_float_adapter.validate_python, self._text(key), 0.0)

    def get_duration(self, key: str) -> timedelta:
        return _lenient(parse_duration, self._text(key), timedelta(0))

    def get_time(self, key: str) -> datetime | None:
        return _lenient(parse_timestamp, self._text(key), None)

    # --- Binding ---

    def bind(
        self,
        key: str,
        target: Any,
        *,
        allow_private: bool = False,
        converters: ConverterRegistry | None = None,
    ) -> None:
        """Bind the properties under *key* into *target*.

        See :func:`propbind.domain.binding.bind_into`.
        """
        from propbind.domain.binding import bind_into

        bind_into(self, key, target, allow_private, converters=converters)


def _lenient(parse: Any, text: str | None, zero: Any) -> Any:
    if text is None:
        return zero
    try:
        return parse(text)
    except (ValueError, ValidationError):
        logger.debug("Could not parse %r, using %r", text, zero)
        return zero
