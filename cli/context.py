"""
NFTMint CLI Context

Shared state handed to every command: configuration, logging and output.
"""

import functools
import logging
import sys
import traceback
from typing import Any, Optional

import click

from .config import ConfigurationManager
from .output import OutputFormatter


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Third-party loggers kept at WARNING unless -vv is given
NOISY_LOGGERS = ('requests', 'urllib3', 'web3')


class CLIContext:
    """Global CLI context for sharing state across commands."""

    _handler: Optional[logging.Handler] = None

    def __init__(self):
        self.config_file: Optional[str] = None
        self.profile: Optional[str] = None
        self.output_format: str = "table"
        self.verbose: int = 0
        self.logger = logging.getLogger('nftmint.cli')
        self._config: Optional[ConfigurationManager] = None

    @property
    def config(self) -> ConfigurationManager:
        if self._config is None:
            self._config = ConfigurationManager(self.config_file, self.profile)
        return self._config

    def setup_logging(self):
        """Configure logging based on verbosity level."""
        log_levels = {
            0: logging.WARNING,
            1: logging.INFO,
            2: logging.DEBUG
        }
        level = log_levels[min(self.verbose, 2)]

        root = logging.getLogger()
        if CLIContext._handler is not None:
            root.removeHandler(CLIContext._handler)

        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        root.setLevel(level)
        CLIContext._handler = handler

        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.DEBUG if self.verbose >= 2 else logging.WARNING)

    def output(self, data: Any, format_override: Optional[str] = None):
        """Output data in the selected format."""
        formatter = OutputFormatter(format_override or self.output_format)
        click.echo(formatter.format(data))


pass_context = click.make_pass_decorator(CLIContext, ensure=True)


def handle_cli_error(func):
    """Decorator to handle CLI errors gracefully."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.ClickException:
            raise
        except KeyboardInterrupt:
            click.echo("\nOperation cancelled by user.", err=True)
            sys.exit(130)
        except Exception as e:
            ctx = None
            current = click.get_current_context(silent=True)
            if current is not None:
                ctx = current.find_object(CLIContext)

            click.echo(f"Error: {e}", err=True)
            if ctx and ctx.verbose >= 2:
                click.echo(traceback.format_exc(), err=True)
            else:
                click.echo("Use -vv for detailed error information.", err=True)
            sys.exit(1)

    return wrapper
