"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, propbind.toml only contains
overrides. An empty file is a valid configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# --- propbind.toml sections ---


class SourcesConfig(BaseModel):
    """[sources] section.

    ``files`` are loaded in order, later files overriding earlier ones.
    Relative paths resolve against the directory holding propbind.toml.
    """

    model_config = {"frozen": True}

    files: list[str] = Field(default_factory=list)


class BinderConfig(BaseModel):
    """[binder] section."""

    model_config = {"frozen": True}

    allow_private_fields: bool = False

