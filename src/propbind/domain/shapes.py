"""Destination shapes — what kind of thing a binding writes into.

The binder never inspects values to decide what to do; it classifies the
*declared* type once into a closed set of :class:`Shape` categories and
dispatches on that. Structs are dataclasses or pydantic models; their fields
are read through :func:`struct_fields` so both flavours look the same.

:class:`Ref` plays the part of an addressable location for destinations
that are not struct instances (a ``list[Item]``, a single ``int``...).
"""

from __future__ import annotations

import dataclasses
import functools
import types
import typing
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Generic, TypeVar, get_args, get_origin

from pydantic import BaseModel

from propbind.domain.tags import EMBEDDED_KEY, TAG_KEY

if TYPE_CHECKING:
    from propbind.domain.converters import ConverterRegistry

T = TypeVar("T")


class Shape(StrEnum):
    """Destination categories, checked in this order."""

    CONVERTED = "converted"
    REFERENCE = "reference"
    STRUCT = "struct"
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    UNSUPPORTED = "unsupported"


SCALAR_TYPES: tuple[type, ...] = (bool, int, float, str)


class Ref(Generic[T]):
    """Holder for a bound value of a declared type.

    Usage::

        items = Ref(list[Item])
        bind_into(props, "items", items)
        items.value  # -> [Item(...), ...]
    """

    def __init__(self, type_: Any, value: T | None = None) -> None:
        self.type = type_
        self.value = value

    def __repr__(self) -> str:
        return f"Ref({type_label(self.type)}, value={self.value!r})"


@dataclass(frozen=True)
class BindContext:
    """Scope of one recursive bind step. Derive, never mutate.

    Attributes:
        prefix: Dotted path prepended to relative property names.
        full_name: Human-readable property name, for diagnostics only.
        field_path: Destination field chain, for diagnostics only.
        allow_private: Whether ``_``-prefixed fields take part in binding.
    """

    prefix: str = ""
    full_name: str = ""
    field_path: str = ""
    allow_private: bool = False

    def derive(self, **changes: Any) -> BindContext:
        return dataclasses.replace(self, **changes)

    def for_field(self, name: str) -> BindContext:
        path = f"{self.field_path}.{name}" if self.field_path else name
        return dataclasses.replace(self, field_path=path)


@dataclass(frozen=True)
class StructField:
    """One field of a struct type, normalised across dataclasses and pydantic."""

    name: str
    annotation: Any
    tag: str | None = None
    embedded: bool = False

    @property
    def private(self) -> bool:
        return self.name.startswith("_")


# --- Classification ----------------------------------------------------------


def is_struct(tp: Any) -> bool:
    if not isinstance(tp, type) or get_origin(tp) is not None:
        return False
    return dataclasses.is_dataclass(tp) or issubclass(tp, BaseModel)


def is_reference(tp: Any) -> bool:
    """``Ref[...]`` or an optional ``X | None``: not a concrete value."""
    if tp is Ref or get_origin(tp) is Ref:
        return True
    if get_origin(tp) in (typing.Union, types.UnionType):
        return type(None) in get_args(tp)
    return False


def embedded_type(tp: Any) -> Any:
    """Struct type behind ``X`` or ``X | None``; None for anything else."""
    if is_struct(tp):
        return tp
    if get_origin(tp) in (typing.Union, types.UnionType):
        args = [a for a in get_args(tp) if a is not type(None)]
        if len(args) == 1 and is_struct(args[0]):
            return args[0]
    return None


def classify(tp: Any, converters: ConverterRegistry) -> Shape:
    if tp in converters:
        return Shape.CONVERTED
    if is_reference(tp):
        return Shape.REFERENCE
    if is_struct(tp):
        return Shape.STRUCT
    if tp in SCALAR_TYPES:
        return Shape.SCALAR
    origin = get_origin(tp) or tp
    if origin is list:
        return Shape.SEQUENCE
    if origin is dict:
        return Shape.MAPPING
    return Shape.UNSUPPORTED


def element_type(tp: Any) -> Any:
    """Element type of ``list[E]``, or value type of ``dict[K, E]``."""
    args = get_args(tp)
    return args[-1] if args else Any


def key_type(tp: Any) -> Any:
    args = get_args(tp)
    return args[0] if args else Any


def type_label(tp: Any) -> str:
    """Short display name; collections are named after their elements."""
    if isinstance(tp, type) and get_origin(tp) is None:
        return tp.__name__
    args = get_args(tp)
    if args and get_origin(tp) in (list, dict):
        return type_label(args[-1])
    return str(tp)


# --- Struct introspection ----------------------------------------------------


@functools.cache
def struct_fields(cls: type) -> tuple[StructField, ...]:
    """Fields of a struct type in declaration order (inherited ones first)."""
    if isinstance(cls, type) and issubclass(cls, BaseModel):
        result = []
        for name, info in cls.model_fields.items():
            extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
            tag = extra.get(TAG_KEY)
            result.append(
                StructField(
                    name=name,
                    annotation=info.annotation,
                    tag=str(tag) if tag is not None else None,
                    embedded=bool(extra.get(EMBEDDED_KEY, False)),
                )
            )
        return tuple(result)

    hints = typing.get_type_hints(cls)
    return tuple(
        StructField(
            name=f.name,
            annotation=hints.get(f.name, f.type),
            tag=f.metadata.get(TAG_KEY),
            embedded=bool(f.metadata.get(EMBEDDED_KEY, False)),
        )
        for f in dataclasses.fields(cls)
    )


def zero_value(tp: Any) -> Any:
    """The value a freshly created struct holds before binding."""
    if is_reference(tp):
        return None
    if is_struct(tp):
        return new_instance(tp)
    origin = get_origin(tp) or tp
    if origin is list:
        return []
    if origin is dict:
        return {}
    if isinstance(tp, type):
        try:
            return tp()
        except TypeError:
            return None
    return None


def new_instance(cls: type[T]) -> T:
    """Create a struct instance, zero-filling fields that have no default."""
    if issubclass(cls, BaseModel):
        required = {
            name: zero_value(info.annotation)
            for name, info in cls.model_fields.items()
            if info.is_required()
        }
        return cls.model_construct(**required)  # type: ignore[return-value]

    hints = typing.get_type_hints(cls)
    kwargs = {
        f.name: zero_value(hints.get(f.name, f.type))
        for f in dataclasses.fields(cls)  # type: ignore[arg-type]
        if f.init
        and f.default is dataclasses.MISSING
        and f.default_factory is dataclasses.MISSING
    }
    return cls(**kwargs)
