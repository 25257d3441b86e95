"""propbind — bind flat property stores into typed Python structures."""

from propbind.domain.binding import Binder, bind_into
from propbind.domain.converters import ConverterRegistry, default_registry
from propbind.domain.errors import (
    BindingError,
    ConversionFailure,
    InvalidBindTarget,
    PropertyNotConfigured,
    ShapeMismatch,
    StructDefaultNotAllowed,
    TagSyntaxError,
    UnsupportedDestinationType,
    UnsupportedElementType,
)
from propbind.domain.properties import Properties
from propbind.domain.shapes import Ref
from propbind.domain.tags import embedded, value

__version__ = "0.1.0"

__all__ = [
    "Binder",
    "BindingError",
    "ConversionFailure",
    "ConverterRegistry",
    "InvalidBindTarget",
    "Properties",
    "PropertyNotConfigured",
    "Ref",
    "ShapeMismatch",
    "StructDefaultNotAllowed",
    "TagSyntaxError",
    "UnsupportedDestinationType",
    "UnsupportedElementType",
    "__version__",
    "bind_into",
    "default_registry",
    "embedded",
    "value",
]
