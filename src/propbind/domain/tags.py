"""Binding tags — the ``${name:=default}`` directive attached to a field.

Dataclass fields carry the tag in their metadata under ``"value"``::

    @dataclass
    class Server:
        host: str = value("${host:=localhost}")
        port: int = value("${port:=8080}", default=0)

Pydantic models use ``Field(json_schema_extra={"value": "${port}"})``.

An empty name (``${}`` or ``${:=x}``) means "use the enclosing prefix
verbatim", which lets a field stand for the whole scope it is bound under.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from propbind.domain.errors import TagSyntaxError

if TYPE_CHECKING:
    from propbind.domain.shapes import BindContext

TAG_KEY = "value"
EMBEDDED_KEY = "embedded"

_TAG_OPEN = "${"
_TAG_CLOSE = "}"
_DEFAULT_SEPARATOR = ":="


@dataclass(frozen=True)
class BindingDirective:
    """Parsed form of a binding tag.

    Attributes:
        property_name: Relative property name; empty means "inherit".
        default: Raw default literal, converted lazily, or None.
    """

    property_name: str
    default: str | None = None


def parse_binding_tag(tag: str, field_path: str = "") -> BindingDirective:
    """Parse ``${name}`` or ``${name:=default}``.

    Only the first ``:=`` separates name from default, so defaults may
    themselves contain ``:=``.

    Examples:
        >>> parse_binding_tag("${server.port:=8080}")
        BindingDirective(property_name='server.port', default='8080')
        >>> parse_binding_tag("${}")
        BindingDirective(property_name='', default=None)
    """
    if not (tag.startswith(_TAG_OPEN) and tag.endswith(_TAG_CLOSE)):
        msg = f"{field_path}: invalid binding tag syntax {tag!r}"
        raise TagSyntaxError(msg, field_path=field_path)
    body = tag[len(_TAG_OPEN) : -len(_TAG_CLOSE)]
    name, sep, default = body.partition(_DEFAULT_SEPARATOR)
    return BindingDirective(property_name=name, default=default if sep else None)


def compose_names(directive: BindingDirective, ctx: BindContext) -> tuple[str, str]:
    """Return ``(lookup_key, full_name)`` for *directive* under *ctx*.

    The full name is the shortest human-readable name and only grows with
    ``.``; the lookup key additionally carries the active prefix.
    """
    name = directive.property_name
    if not ctx.full_name:
        full_name = name
    elif name:
        full_name = f"{ctx.full_name}.{name}"
    else:
        full_name = ctx.full_name

    if not ctx.prefix:
        lookup_key = name
    elif name:
        lookup_key = f"{ctx.prefix}.{name}"
    else:
        lookup_key = ctx.prefix
    return lookup_key, full_name


def value(tag: str, **field_kwargs: Any) -> Any:
    """Dataclass field carrying a binding tag.

    Extra keyword arguments go to :func:`dataclasses.field` (``default``,
    ``default_factory``, ``repr``...). Without a default the binder fills the
    field with the zero value of its type when it creates instances itself.
    """
    metadata = dict(field_kwargs.pop("metadata", None) or {})
    metadata[TAG_KEY] = tag
    return dataclasses.field(metadata=metadata, **field_kwargs)


def embedded(**field_kwargs: Any) -> Any:
    """Untagged dataclass field whose struct shares the enclosing scope.

    The field's own fields are looked up under the same prefix as its
    siblings. An optional ``X | None`` annotation is filled with a fresh
    ``X`` when unset. Pydantic models mark the field with
    ``Field(json_schema_extra={"embedded": True})``.
    """
    metadata = dict(field_kwargs.pop("metadata", None) or {})
    metadata[EMBEDDED_KEY] = True
    return dataclasses.field(metadata=metadata, **field_kwargs)
