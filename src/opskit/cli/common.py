from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Awaitable, Callable, NoReturn, Optional

import httpx

from opskit.config import OpskitConfig, load_config
from opskit.errors import ConfigError, InputError, UpstreamError
from opskit.logging_setup import configure_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


class CommandParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 (not argparse's 2) on usage errors."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_FAILURE, f"{self.prog}: error: {message}\n")


# PUBLIC_INTERFACE
def setup(parser: CommandParser, argv: Optional[list[str]]) -> tuple[argparse.Namespace, OpskitConfig]:
    """Parse argv, load env config and configure logging; shared by every command."""
    args = parser.parse_args(argv)
    config = load_config()
    configure_logging(config.log_level)
    return args, config


# PUBLIC_INTERFACE
def run_command(parser: CommandParser, command: Callable[[], Awaitable[int]]) -> int:
    """
    Run an async command and map failures to exit status 1.

    - ConfigError: message plus usage on stderr.
    - InputError / UpstreamError / transport errors: logged.
    """
    try:
        return asyncio.run(command())
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        parser.print_help(sys.stderr)
        return EXIT_FAILURE
    except InputError as exc:
        logger.error("%s", exc)
        return EXIT_FAILURE
    except UpstreamError as exc:
        logger.error("%s", exc)
        if exc.body:
            logger.error("%s", exc.body)
        return EXIT_FAILURE
    except httpx.HTTPError as exc:
        logger.error("Request failed: %s", exc)
        return EXIT_FAILURE
