"""AppContext — shared Click context for all commands.

Created once by the root CLI group and flows to all subcommands via
``@click.pass_obj``.  Provides lazy property loading and centralized
result emission (stdout/stderr routing + exit codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from propbind.output.formatters import OutputSettings, format_result
from propbind.services.result import ServiceResult

if TYPE_CHECKING:
    from propbind.config.settings import PropbindSettings
    from propbind.domain.properties import Properties


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    Subcommands access it via ``@click.pass_obj``.  Property sources are
    loaded lazily on first use so ``--help`` and ``--version`` never
    touch the filesystem.
    """

    def __init__(self, settings: PropbindSettings) -> None:
        self.settings = settings
        self._properties: Properties | None = None

        # Configure structured logging
        from propbind.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

    @property
    def properties(self) -> Properties:
        """The loaded property store (built lazily on first access).

        A source that cannot be read or parsed is emitted as a failed
        ``load_sources`` result, which exits with code 1.
        """
        if self._properties is None:
            from propbind.domain.errors import SourceError
            from propbind.infrastructure.sources import load_sources

            try:
                self._properties = load_sources(
                    self.settings.properties,
                    self.settings.source_paths(),
                )
            except SourceError as exc:
                self.emit(ServiceResult.failure("load_sources", "SOURCE_ERROR", str(exc)))
                raise  # unreachable: emit() exits
        return self._properties

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success (``result.ok``): writes to stdout, returns normally.
          Warnings are emitted to stderr so they don't pollute piped output.
        * Failure: writes to stderr, exits with code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            # In JSON mode, warnings are already in the serialized payload.
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
