"""PropertyService — inspect a property store and bind it into types.

Binding targets are named by import path (``package.module:ClassName``)
so the CLI can bind any dataclass or pydantic model on ``sys.path``.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Literal

from pydantic_core import to_jsonable_python

from propbind.domain.binding import Binder
from propbind.domain.errors import BindingError
from propbind.domain.shapes import Ref, is_struct, new_instance
from propbind.domain.values import to_python
from propbind.services.base import BaseService
from propbind.services.result import ServiceResult

logger = logging.getLogger(__name__)

Collection = Literal["one", "list", "dict"]


def resolve_target(target: str) -> type:
    """Import ``module:Name`` (or ``module.Name``) and return the class.

    Raises:
        LookupError: The module or attribute cannot be found.
        TypeError: The attribute is not a dataclass or pydantic model.
    """
    module_name, sep, attr = target.partition(":")
    if not sep:
        module_name, _, attr = target.rpartition(".")
    if not module_name or not attr:
        msg = f"Invalid target {target!r}; expected 'module:ClassName'"
        raise LookupError(msg)
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        msg = f"Cannot import module {module_name!r}: {exc}"
        raise LookupError(msg) from exc

    obj: Any = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as exc:
            msg = f"Module {module_name!r} has no attribute {attr!r}"
            raise LookupError(msg) from exc
    if not is_struct(obj):
        msg = f"{target!r} is not a dataclass or pydantic model"
        raise TypeError(msg)
    return obj  # type: ignore[no-any-return]


class PropertyService(BaseService):
    """Read-only queries over properties plus binding into target types."""

    def list_properties(self, prefix: str | None = None) -> ServiceResult:
        """List all properties, or those at or below *prefix*."""
        op = "list_properties"
        if prefix:
            entries = self._properties.get_prefix(prefix)
        else:
            entries = dict(self._properties.items())
        items = [{"key": k, "value": to_python(v)} for k, v in sorted(entries.items())]
        return ServiceResult(
            ok=True,
            op=op,
            data={"count": len(items), "items": items},
        )

    def get_property(self, key: str, default: str | None = None) -> ServiceResult:
        """Look up a single property, falling back to *default* when given."""
        op = "get_property"
        value, found = self._properties.get_default(key)
        if found:
            return ServiceResult(
                ok=True,
                op=op,
                data={"key": key.lower(), "value": to_python(value), "found": True},
            )
        if default is not None:
            return ServiceResult(
                ok=True,
                op=op,
                data={"key": key.lower(), "value": default, "found": False},
            )
        return ServiceResult.failure(
            op,
            "NOT_CONFIGURED",
            f'Property "{key}" not configured',
            {"property_name": key},
        )

    def bind(
        self,
        target: str,
        *,
        key: str = "",
        collection: Collection = "one",
        allow_private: bool = False,
    ) -> ServiceResult:
        """Bind the properties under *key* into the class named by *target*.

        *collection* binds a ``list`` or ``dict[str, ...]`` of the class
        instead of a single instance.
        """
        op = "bind"
        try:
            cls = resolve_target(target)
        except (LookupError, TypeError) as exc:
            return ServiceResult.failure(op, "INVALID_TARGET", str(exc), {"target": target})

        tp: Any = cls
        if collection == "list":
            tp = list[cls]  # type: ignore[valid-type]
        elif collection == "dict":
            tp = dict[str, cls]  # type: ignore[valid-type]

        binder = Binder(self._converters)
        holder: Any = new_instance(cls) if collection == "one" else Ref(tp)
        try:
            binder.bind(self._properties, key, holder, allow_private)
        except BindingError as exc:
            return self._binding_failure(op, exc)

        bound = holder if collection == "one" else holder.value
        logger.debug("Bound %r into %s", key, target)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "target": target,
                "key": key,
                "value": to_jsonable_python(bound),
            },
        )
