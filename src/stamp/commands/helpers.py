"""Shared plumbing for stamp commands.

Application context (config dir, config, registry access), logging setup
and error reporting.
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from stamp.core.config import StampConfig, default_config_dir, load_config, registry_path
from stamp.core.errors import StampError
from stamp.core.registry import Registry

console = Console()


@dataclass
class AppContext:
    """Per-invocation settings shared by every command."""
    config_dir: Path
    config: StampConfig

    @classmethod
    def from_dir(cls, config_dir: Optional[Path] = None) -> "AppContext":
        config_dir = Path(config_dir) if config_dir else default_config_dir()
        return cls(config_dir=config_dir, config=load_config(config_dir))

    @property
    def registry_file(self) -> Path:
        return registry_path(self.config, self.config_dir)

    def open_registry(self) -> Registry:
        """Load a registry handle for this invocation."""
        return Registry.load(
            self.registry_file,
            metadata_file=self.config.metadata_file,
            ignored_dirs=self.config.ignored_dirs,
        )


def get_app() -> AppContext:
    """AppContext of the running command, created on first use."""
    ctx = click.get_current_context()
    app = ctx.find_object(AppContext)
    if app is None:
        app = AppContext.from_dir()
        ctx.obj = app
    return app


def setup_logging(verbose: bool = False) -> None:
    """Route stamp's log records through rich on stderr."""
    logger = logging.getLogger("stamp")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=Console(stderr=True),
            show_time=False,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)


def fail(error: StampError, hint: Optional[str] = None) -> NoReturn:
    """Report ``error`` and exit with its code."""
    console.print(f"[red]Error:[/] {escape(str(error))}", highlight=False)
    if hint:
        console.print(hint)
    sys.exit(error.exit_code)
