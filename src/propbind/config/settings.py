"""Unified settings — CLI flags, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs  — CLI flags passed by Click
  2. Env vars     — ``PROPBIND_*`` prefix
  3. TOML file    — ``propbind.toml`` discovered via walk-up
  4. Code defaults — baked into the section models

Uses Pydantic Settings v2 with a custom :class:`TomlSettingsSource` that
reuses the ``find_config`` walk-up discovery from
:mod:`propbind.config.discovery`.
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from typing import Any, ClassVar

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from propbind.config.discovery import find_config
from propbind.config.models import BinderConfig, SourcesConfig


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from a ``propbind.toml`` file discovered via walk-up."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            raw = toml_path.read_text(encoding="utf-8")
            try:
                self._data = tomllib.loads(raw)
            except tomllib.TOMLDecodeError as exc:
                import click

                msg = f"Invalid TOML in {toml_path}: {exc}"
                raise click.ClickException(msg) from exc

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        """Return the full TOML data dict for Pydantic to merge."""
        return self._data


# Thread-local storage for TOML path during construction.
_tls = threading.local()


class PropbindSettings(BaseSettings):
    """Unified settings for the propbind CLI.

    Merges CLI flags, environment variables, TOML config sections,
    and code-baked defaults into a single frozen object.

    Attributes:
        base_dir: Directory relative source paths resolve against (parent
            of ``propbind.toml``, or CWD if no config found).
        config_path: The TOML file in use, or None.
        files: Extra property sources from ``--file``, loaded after the
            ``[sources]`` files.
        allow_private: ``--allow-private`` override; None defers to
            ``[binder] allow_private_fields``.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "PROPBIND_",
        "env_nested_delimiter": "__",
    }

    # --- Resolved paths, derived from the config location ---
    base_dir: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    # --- CLI flags ---
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False
    files: list[Path] = Field(default_factory=list)
    allow_private: bool | None = None

    # --- TOML sections ---
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    binder: BinderConfig = Field(default_factory=BinderConfig)
    properties: dict[str, Any] = Field(default_factory=dict)

    # Retained for type-checker visibility; not used at runtime.
    _toml_path: ClassVar[Path | None] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert TOML source between env vars and defaults."""
        toml_path = getattr(_tls, "toml_path", None)
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )

    @property
    def allow_private_fields(self) -> bool:
        """Effective private-field policy (CLI flag wins over TOML)."""
        if self.allow_private is not None:
            return self.allow_private
        return self.binder.allow_private_fields

    def source_paths(self) -> list[Path]:
        """All property source files, in load order."""
        configured = [self.base_dir / f for f in self.sources.files]
        return [*configured, *self.files]

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        base_dir: Path | None = None,
        **cli_flags: Any,
    ) -> PropbindSettings:
        """Construct settings from CLI invocation.

        Discovers ``propbind.toml`` via walk-up (or explicit *config_path*),
        resolves *base_dir* from the config file's parent directory,
        and merges CLI flags as highest-priority overrides.
        """
        toml_path: Path | None = None
        if config_path:
            p = Path(config_path)
            if p.is_file():
                toml_path = p
        else:
            toml_path = find_config(base_dir)

        resolved_dir = base_dir
        if resolved_dir is None:
            resolved_dir = toml_path.parent if toml_path else Path.cwd()

        _tls.toml_path = toml_path
        try:
            return cls(
                base_dir=resolved_dir,
                config_path=toml_path,
                **cli_flags,
            )
        finally:
            _tls.toml_path = None
