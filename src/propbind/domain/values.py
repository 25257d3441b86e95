"""Property values — a small closed algebra over config data.

Every value held by the property store is one of three shapes:

- :class:`Scalar` wraps the textual form of a leaf value.
- :class:`Sequence` holds an ordered tuple of values.
- :class:`Mapping` holds string-keyed values (nested tables, list items).

Parsers hand us plain Python data; :func:`to_value` normalises it so that
the binder only ever has to reason about these three shapes.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any


@dataclass(frozen=True)
class Scalar:
    """A leaf value, always kept as text and cast lazily by the binder."""

    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class Sequence:
    """An ordered list of property values."""

    items: tuple[PropertyValue, ...] = ()

    def __iter__(self) -> Iterator[PropertyValue]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class Mapping:
    """String-keyed property values, in insertion order."""

    entries: dict[str, PropertyValue] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)

    def items(self) -> Iterator[tuple[str, PropertyValue]]:
        return iter(self.entries.items())


PropertyValue = Scalar | Sequence | Mapping


def scalar_text(raw: Any) -> str:
    """Textual form of a leaf value as parsers produce it.

    Booleans become ``true``/``false`` and temporal values use ISO 8601,
    so that every later cast sees one canonical spelling.
    """
    if isinstance(raw, bool):
        return "true" if raw else "false"
    if isinstance(raw, (datetime, date, time)):
        return raw.isoformat()
    return str(raw)


def to_value(raw: Any) -> PropertyValue:
    """Normalise plain Python data (as parsed from a config source)."""
    if isinstance(raw, (Scalar, Sequence, Mapping)):
        return raw
    if raw is None:
        return Scalar("")
    if isinstance(raw, dict):
        return Mapping({str(k): to_value(v) for k, v in raw.items()})
    if isinstance(raw, (list, tuple)):
        return Sequence(tuple(to_value(v) for v in raw))
    return Scalar(scalar_text(raw))


def to_python(value: PropertyValue) -> Any:
    """Plain Python data for display and JSON output."""
    if isinstance(value, Scalar):
        return value.text
    if isinstance(value, Sequence):
        return [to_python(v) for v in value.items]
    return {k: to_python(v) for k, v in value.entries.items()}


def flatten(value: Mapping, prefix: str = "") -> dict[str, Scalar | Sequence]:
    """Flatten nested mappings into dotted keys.

    Sequences are leaves: their items are kept as-is, which is how lists of
    tables survive flattening.

    Examples:
        >>> flatten(to_value({"a": {"x": 1}, "b": [1, 2]}))
        {'a.x': Scalar(text='1'), 'b': Sequence(items=(Scalar(text='1'), Scalar(text='2')))}
    """
    result: dict[str, Scalar | Sequence] = {}
    for key, item in value.entries.items():
        dotted = f"{prefix}.{key}" if prefix else key
        if isinstance(item, Mapping):
            result.update(flatten(item, dotted))
        else:
            result[dotted] = item
    return result
