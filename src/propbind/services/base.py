"""BaseService — foundation for propbind services.

Every service receives the loaded :class:`Properties` and the converter
registry at construction time. Services never load sources themselves.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from propbind.domain.converters import default_registry
from propbind.services.result import ServiceResult

if TYPE_CHECKING:
    from propbind.domain.converters import ConverterRegistry
    from propbind.domain.errors import BindingError
    from propbind.domain.properties import Properties

logger = logging.getLogger(__name__)


class BaseService:
    """Base for service-layer classes.

    Usage::

        class PropertyService(BaseService):
            def get_property(self, key: str) -> ServiceResult:
                value = self._properties.get(key)
                ...
    """

    def __init__(
        self,
        properties: Properties,
        converters: ConverterRegistry | None = None,
    ) -> None:
        self._properties = properties
        self._converters = converters if converters is not None else default_registry()

    @staticmethod
    def _binding_failure(op: str, exc: BindingError) -> ServiceResult:
        """Convert a binding error into a failed result."""
        logger.debug("%s failed: %s", op, exc.message)
        return ServiceResult.failure(op, exc.code, exc.message, exc.detail())
