"""Recursive value binder — populates typed structures from a property store.

Resolution order for a destination of declared type ``T`` (first match wins):

1. A converter registered for ``T`` (struct types included).
2. Struct: bind field by field under ``prefix = property key``.
3. Scalar (``bool``, ``int``, ``float``, ``str``): lax cast of the text.
4. ``list[E]``: scalars, converted strings, or one struct per table.
5. ``dict[str, E]``: strings, converted strings, or one struct per subkey.
6. Anything else is unsupported.

The *effective property value* for a key is: the stored value, else the
tag's default literal, else a list reassembled from ``key[i]`` entries
(lists only), else every entry nested below ``key.``, else an error.

Assignment happens as resolution proceeds. When a later field fails the
whole call aborts, but fields assigned before it keep their new values.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pydantic import TypeAdapter, ValidationError

from propbind.domain.converters import Converter, ConverterRegistry, default_registry
from propbind.domain.errors import (
    BindingError,
    ConversionFailure,
    InvalidBindTarget,
    PropertyNotConfigured,
    ShapeMismatch,
    StructDefaultNotAllowed,
    UnsupportedDestinationType,
    UnsupportedElementType,
)
from propbind.domain.properties import Properties
from propbind.domain.shapes import (
    BindContext,
    Ref,
    Shape,
    StructField,
    classify,
    element_type,
    embedded_type,
    is_reference,
    is_struct,
    key_type,
    new_instance,
    struct_fields,
    type_label,
)
from propbind.domain.tags import compose_names, parse_binding_tag
from propbind.domain.values import Mapping, PropertyValue, Scalar, Sequence, flatten

logger = logging.getLogger(__name__)

_ADAPTERS: dict[type, TypeAdapter[Any]] = {
    bool: TypeAdapter(bool),
    int: TypeAdapter(int),
    float: TypeAdapter(float),
}

# Element kinds that lists and dicts cast directly.
_LIST_SCALARS = (bool, int, str)
# Element kinds not handled inside collections (known gap).
_LIST_UNSUPPORTED = (float,)
_DICT_UNSUPPORTED = (bool, int, float)

_Handler = Callable[[Properties, Any, Any, str, str | None, BindContext], Any]


class Binder:
    """Binds property stores into dataclasses, pydantic models and :class:`Ref` holders.

    Args:
        converters: Converter registry consulted during binding. Defaults to
            a fresh :func:`~propbind.domain.converters.default_registry`.
    """

    def __init__(self, converters: ConverterRegistry | None = None) -> None:
        self.converters = converters if converters is not None else default_registry()
        self._handlers: dict[Shape, _Handler] = {
            Shape.CONVERTED: self._bind_converted,
            Shape.REFERENCE: self._bind_reference,
            Shape.STRUCT: self._bind_struct,
            Shape.SCALAR: self._bind_scalar,
            Shape.SEQUENCE: self._bind_sequence,
            Shape.MAPPING: self._bind_mapping,
            Shape.UNSUPPORTED: self._bind_unsupported,
        }

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def bind(
        self,
        properties: Properties,
        key: str,
        target: Any,
        allow_private: bool = False,
    ) -> None:
        """Bind the properties under *key* into *target*.

        *target* is either a struct instance (bound in place) or a
        :class:`Ref` whose ``value`` receives the result.

        Raises:
            InvalidBindTarget: *target* is neither, checked before any lookup.
            BindingError: Any other binding failure.
        """
        if isinstance(target, Ref):
            tp, current = target.type, target.value
        elif is_struct(type(target)):
            tp, current = type(target), target
        else:
            msg = f"bind target must be a struct instance or a Ref, got {type(target).__name__}"
            raise InvalidBindTarget(msg, property_name=key)

        ctx = BindContext(full_name=key, field_path=type_label(tp), allow_private=allow_private)
        logger.debug("Binding %r into %s", key, ctx.field_path)
        result = self.bind_value(properties, current, tp, key, None, ctx)

        if isinstance(target, Ref):
            target.value = result
        elif result is not target:
            # a converter produced a new instance for the struct type
            for fld in struct_fields(tp):
                _assign(target, fld.name, getattr(result, fld.name), ctx)

    def bind_value(
        self,
        properties: Properties,
        current: Any,
        tp: Any,
        key: str,
        default: str | None,
        ctx: BindContext,
    ) -> Any:
        """Resolve *key* for declared type *tp* and return the bound value.

        *current* is the destination's present value; struct instances are
        updated in place and returned.
        """
        shape = classify(tp, self.converters)
        return self._handlers[shape](properties, current, tp, key, default, ctx)

    # ------------------------------------------------------------------
    # Struct fields
    # ------------------------------------------------------------------

    def bind_fields(self, properties: Properties, instance: Any, ctx: BindContext) -> None:
        """Bind every participating field of *instance* in declaration order."""
        for fld in struct_fields(type(instance)):
            sub = ctx.for_field(fld.name)
            if fld.private and not ctx.allow_private:
                if fld.tag is None:
                    continue
                msg = f"{sub.field_path}: private field cannot be bound without allow_private"
                raise InvalidBindTarget(msg, field_path=sub.field_path, property_name=ctx.full_name)

            if fld.tag is not None:
                self._bind_field(properties, instance, fld, sub)
            elif fld.embedded or is_struct(fld.annotation):
                self._bind_embedded(properties, instance, fld, sub)

    def _bind_embedded(
        self, properties: Properties, instance: Any, fld: StructField, ctx: BindContext
    ) -> None:
        """Bind an untagged struct field in the enclosing scope."""
        struct_type = embedded_type(fld.annotation)
        if struct_type is None:
            msg = f"{ctx.field_path}: embedded field must be a dataclass or pydantic model"
            raise InvalidBindTarget(msg, field_path=ctx.field_path, property_name=ctx.full_name)
        nested = getattr(instance, fld.name, None)
        if not isinstance(nested, struct_type):
            nested = new_instance(struct_type)
        self.bind_fields(properties, nested, ctx)
        _assign(instance, fld.name, nested, ctx)

    def _bind_field(
        self, properties: Properties, instance: Any, fld: StructField, ctx: BindContext
    ) -> None:
        assert fld.tag is not None
        directive = parse_binding_tag(fld.tag, ctx.field_path)
        if is_reference(fld.annotation):
            msg = f"{ctx.field_path}: binding target cannot be a reference or optional"
            raise InvalidBindTarget(msg, field_path=ctx.field_path, property_name=ctx.full_name)

        lookup_key, full_name = compose_names(directive, ctx)
        sub = ctx.derive(full_name=full_name)
        current = getattr(instance, fld.name, None)
        result = self.bind_value(
            properties, current, fld.annotation, lookup_key, directive.default, sub
        )
        _assign(instance, fld.name, result, sub)

    # ------------------------------------------------------------------
    # Shape handlers
    # ------------------------------------------------------------------

    def _bind_converted(
        self,
        properties: Properties,
        current: Any,
        tp: Any,
        key: str,
        default: str | None,
        ctx: BindContext,
    ) -> Any:
        fn = self.converters.lookup(tp)
        assert fn is not None
        value = self._effective(properties, key, default, ctx)
        return self._convert(fn, _text(value, ctx), tp, ctx)

    def _bind_reference(
        self,
        properties: Properties,
        current: Any,
        tp: Any,
        key: str,
        default: str | None,
        ctx: BindContext,
    ) -> Any:
        msg = f"{ctx.field_path}: binding target cannot be a reference or optional ({tp})"
        raise InvalidBindTarget(msg, field_path=ctx.field_path, property_name=ctx.full_name)

    def _bind_struct(
        self,
        properties: Properties,
        current: Any,
        tp: Any,
        key: str,
        default: str | None,
        ctx: BindContext,
    ) -> Any:
        if default is not None:
            msg = f"{ctx.field_path}: struct fields cannot declare a default"
            raise StructDefaultNotAllowed(
                msg, field_path=ctx.field_path, property_name=ctx.full_name
            )
        instance = current if isinstance(current, tp) else new_instance(tp)
        self.bind_fields(properties, instance, ctx.derive(prefix=key))
        return instance

    def _bind_scalar(
        self,
        properties: Properties,
        current: Any,
        tp: Any,
        key: str,
        default: str | None,
        ctx: BindContext,
    ) -> Any:
        value = self._effective(properties, key, default, ctx)
        return _cast(tp, _text(value, ctx), ctx)

    def _bind_sequence(
        self,
        properties: Properties,
        current: Any,
        tp: Any,
        key: str,
        default: str | None,
        ctx: BindContext,
    ) -> list[Any]:
        elem = element_type(tp)
        fn = self.converters.lookup(elem)
        if elem in _LIST_UNSUPPORTED:
            raise _unsupported_element(tp, ctx)
        if elem not in _LIST_SCALARS and fn is None and not is_struct(elem):
            raise _unsupported_element(tp, ctx)

        value = self._effective(properties, key, default, ctx, indexed=True)

        if elem in _LIST_SCALARS:
            return [_cast(elem, t, ctx) for t in _text_list(value, ctx)]
        if fn is not None:
            return [self._convert(fn, t, elem, ctx) for t in _text_list(value, ctx)]

        if isinstance(value, Scalar) and not value.text.strip():
            return []
        if not isinstance(value, Sequence):
            msg = f'property "{ctx.full_name}" is not a list of tables'
            raise ShapeMismatch(msg, field_path=ctx.field_path, property_name=ctx.full_name)
        result = []
        for i, item in enumerate(value):
            sub = ctx.derive(
                prefix="",
                full_name=f"{key}[{i}]",
                field_path=f"{ctx.field_path}[{i}]",
            )
            if not isinstance(item, Mapping):
                msg = f'property "{sub.full_name}" is not a table'
                raise ShapeMismatch(msg, field_path=sub.field_path, property_name=sub.full_name)
            instance = new_instance(elem)
            self.bind_fields(Properties.from_mapping(item), instance, sub)
            result.append(instance)
        return result

    def _bind_mapping(
        self,
        properties: Properties,
        current: Any,
        tp: Any,
        key: str,
        default: str | None,
        ctx: BindContext,
    ) -> dict[str, Any]:
        if key_type(tp) is not str:
            msg = f"{ctx.field_path}: dict keys must be str, got {tp}"
            raise UnsupportedDestinationType(
                msg, field_path=ctx.field_path, property_name=ctx.full_name
            )
        elem = element_type(tp)
        fn = self.converters.lookup(elem)
        if elem in _DICT_UNSUPPORTED:
            raise _unsupported_element(tp, ctx)
        if elem is not str and fn is None and not is_struct(elem):
            raise _unsupported_element(tp, ctx)

        value = self._effective(properties, key, default, ctx)
        entries = _relative_entries(value, key, ctx)

        if elem is str:
            return {k: _text(v, ctx) for k, v in entries.items()}
        if fn is not None:
            return {k: self._convert(fn, _text(v, ctx), elem, ctx) for k, v in entries.items()}

        groups: dict[str, dict[str, PropertyValue]] = {}
        for sub_key, item in entries.items():
            head, sep, rest = sub_key.partition(".")
            if not sep:
                msg = f'property "{ctx.full_name}.{sub_key}" is not a table'
                raise ShapeMismatch(msg, field_path=ctx.field_path, property_name=ctx.full_name)
            groups.setdefault(head, {})[rest] = item

        result: dict[str, Any] = {}
        for name, bucket in groups.items():
            sub = ctx.derive(
                prefix="",
                full_name=f"{key}.{name}",
                field_path=f"{ctx.field_path}[{name!r}]",
            )
            instance = new_instance(elem)
            self.bind_fields(Properties(bucket), instance, sub)
            result[name] = instance
        return result

    def _bind_unsupported(
        self,
        properties: Properties,
        current: Any,
        tp: Any,
        key: str,
        default: str | None,
        ctx: BindContext,
    ) -> Any:
        msg = f"{ctx.field_path}: unsupported type {tp}"
        raise UnsupportedDestinationType(
            msg, field_path=ctx.field_path, property_name=ctx.full_name
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _effective(
        self,
        properties: Properties,
        key: str,
        default: str | None,
        ctx: BindContext,
        *,
        indexed: bool = False,
    ) -> PropertyValue:
        """Stored value -> default literal -> indexed list -> prefixed entries."""
        value, found = properties.get_default(key)
        if found:
            return value  # type: ignore[no-any-return]
        if default is not None:
            logger.debug("Property %r not set, using default %r", ctx.full_name, default)
            return Scalar(default)
        if indexed:
            try:
                items = properties.get_indexed(key)
            except ShapeMismatch as exc:
                msg = f"{ctx.field_path}: {exc.message}"
                raise ShapeMismatch(
                    msg, field_path=ctx.field_path, property_name=exc.property_name
                ) from exc
            if items is not None:
                return items
        prefixed = properties.get_prefix(key) if key else {}
        if prefixed:
            return Mapping(prefixed)  # type: ignore[arg-type]
        msg = f'{ctx.field_path}: property "{ctx.full_name}" not configured'
        raise PropertyNotConfigured(msg, field_path=ctx.field_path, property_name=ctx.full_name)

    def _convert(self, fn: Converter, text: str, tp: Any, ctx: BindContext) -> Any:
        try:
            return fn(text)
        except BindingError:
            raise
        except (ValueError, TypeError, OverflowError) as exc:
            msg = (
                f'{ctx.field_path}: cannot convert property "{ctx.full_name}" '
                f"to {type_label(tp)}: {exc}"
            )
            raise ConversionFailure(
                msg, field_path=ctx.field_path, property_name=ctx.full_name
            ) from exc


def bind_into(
    properties: Properties,
    root_key: str,
    target: Any,
    allow_private_fields: bool = False,
    *,
    converters: ConverterRegistry | None = None,
) -> None:
    """Bind *properties* under *root_key* into *target*.

    Usage::

        cfg = AppConfig()
        bind_into(props, "app", cfg)
    """
    Binder(converters).bind(properties, root_key, target, allow_private_fields)


# ---------------------------------------------------------------------------
# Module helpers
# ---------------------------------------------------------------------------


def _assign(instance: Any, name: str, value: Any, ctx: BindContext) -> None:
    try:
        setattr(instance, name, value)
    except (AttributeError, ValidationError) as exc:
        msg = f"{ctx.field_path}: field is read-only"
        raise InvalidBindTarget(
            msg, field_path=ctx.field_path, property_name=ctx.full_name
        ) from exc


def _text(value: PropertyValue, ctx: BindContext) -> str:
    if not isinstance(value, Scalar):
        msg = f'property "{ctx.full_name}" is not a single value'
        raise ShapeMismatch(msg, field_path=ctx.field_path, property_name=ctx.full_name)
    return value.text


def _text_list(value: PropertyValue, ctx: BindContext) -> list[str]:
    """Items of a list of scalars; a single scalar splits on whitespace."""
    if isinstance(value, Scalar):
        return value.text.split()
    if isinstance(value, Sequence):
        return [_text(item, ctx) for item in value]
    msg = f'property "{ctx.full_name}" is not a list'
    raise ShapeMismatch(msg, field_path=ctx.field_path, property_name=ctx.full_name)


def _cast(tp: type, text: str, ctx: BindContext) -> Any:
    if tp is str:
        return text
    try:
        return _ADAPTERS[tp].validate_python(text)
    except ValidationError as exc:
        msg = (
            f'{ctx.field_path}: cannot convert property "{ctx.full_name}"={text!r} '
            f"to {tp.__name__}"
        )
        raise ConversionFailure(
            msg, field_path=ctx.field_path, property_name=ctx.full_name
        ) from exc


def _relative_entries(value: PropertyValue, key: str, ctx: BindContext) -> dict[str, PropertyValue]:
    """Flattened entries of a table, keyed relative to *key*, lower-cased."""
    if not isinstance(value, Mapping):
        msg = f'property "{ctx.full_name}" is not a table'
        raise ShapeMismatch(msg, field_path=ctx.field_path, property_name=ctx.full_name)
    strip = key.lower() + "."
    return {k.lower().removeprefix(strip): v for k, v in flatten(value).items()}


def _unsupported_element(tp: Any, ctx: BindContext) -> UnsupportedElementType:
    msg = f"{ctx.field_path}: element type of {tp} is not supported"
    return UnsupportedElementType(msg, field_path=ctx.field_path, property_name=ctx.full_name)
