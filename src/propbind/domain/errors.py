"""Binding error kinds.

Every failure aborts the whole top-level bind call. Each error carries the
diagnostic field path (``Config.server.port``) and the full property name
(``server.port``) so callers can point at the offending configuration.
"""

from __future__ import annotations


class BindingError(Exception):
    """Base class for all binding failures."""

    code = "BINDING_FAILED"

    def __init__(self, message: str, *, field_path: str = "", property_name: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.field_path = field_path
        self.property_name = property_name

    def detail(self) -> dict[str, str]:
        return {"field_path": self.field_path, "property_name": self.property_name}


class TagSyntaxError(BindingError):
    """Tag text does not match ``${...}``."""

    code = "TAG_SYNTAX"


class InvalidBindTarget(BindingError):
    """Destination is not addressable, or is a reference where a value is required."""

    code = "INVALID_TARGET"


class PropertyNotConfigured(BindingError):
    """No stored value, no default literal, no prefixed entries."""

    code = "NOT_CONFIGURED"


class StructDefaultNotAllowed(BindingError):
    """A struct-typed field supplied a default literal."""

    code = "STRUCT_DEFAULT"


class ShapeMismatch(BindingError):
    """The property value's shape does not fit the destination type."""

    code = "SHAPE_MISMATCH"


class UnsupportedElementType(BindingError):
    """List or dict element type is outside the supported set."""

    code = "UNSUPPORTED_ELEMENT"


class UnsupportedDestinationType(BindingError):
    """Destination type is outside the supported set."""

    code = "UNSUPPORTED_TYPE"


class ConversionFailure(BindingError):
    """A converter or scalar cast could not parse the resolved value."""

    code = "CONVERSION_FAILED"


class SourceError(Exception):
    """A config source could not be read or parsed."""
