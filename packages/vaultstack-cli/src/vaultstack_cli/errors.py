"""CLI error handling for vaultstack-cli.

Wraps vaultstack-core exceptions into user-friendly messages with exit codes.
Internal details carried by core exceptions are already logged by the core
and are never printed here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import click
from pydantic import ValidationError as PydanticValidationError
from rich.markup import escape

from vaultstack_cli.output import error

if TYPE_CHECKING:
    from pydantic_core import ErrorDetails
    from vaultstack_core.errors import VaultstackError


EXIT_USER_ERROR = 1  # Invalid settings or plan
EXIT_SYSTEM_ERROR = 2  # Engine failure, write failure
EXIT_PENDING_VALIDATION = 3  # Certificate awaiting DNS validation


class CLIError(click.ClickException):
    """Click exception printed through the rich console with a chosen exit code."""

    def __init__(self, message: str, exit_code: int = EXIT_USER_ERROR) -> None:
        super().__init__(message)
        self.exit_code = exit_code

    def show(self, file: object = None) -> None:
        error(escape(self.format_message()))


def format_pydantic_error(err: PydanticValidationError) -> str:
    """Format a pydantic validation error as one line per issue.

    Example:
        >>> format_pydantic_error(err)
        "Validation failed:\\n  - domain_name: String should match pattern ..."
    """
    details: list[ErrorDetails] = err.errors()
    issues = [f"  - {'.'.join(map(str, d['loc'])) or '<model>'}: {d['msg']}" for d in details]
    return "\n".join(["Validation failed:", *issues])


def exit_code_for(err: VaultstackError) -> int:
    """Exit code for a core exception.

    Settings and plan errors are the user's to fix; everything else comes
    from the engine side.
    """
    from vaultstack_core.errors import (
        ConfigurationError,
        DuplicateComponentError,
        MissingDependencyError,
    )

    if isinstance(err, (ConfigurationError, MissingDependencyError, DuplicateComponentError)):
        return EXIT_USER_ERROR
    return EXIT_SYSTEM_ERROR


def handle_core_error(err: VaultstackError, action: str) -> NoReturn:
    """Turn a core exception into a CLIError.

    Args:
        err: Exception raised by vaultstack-core.
        action: What was being attempted (e.g., "Synthesis").

    Raises:
        CLIError: Always.
    """
    raise CLIError(f"{action} failed: {err.user_message}", exit_code=exit_code_for(err))


def handle_permission_error(path: str, operation: str = "access") -> NoReturn:
    """Report a file the CLI is not allowed to touch.

    Raises:
        CLIError: Always, with EXIT_SYSTEM_ERROR.
    """
    raise CLIError(
        f"Permission denied: Cannot {operation} {path}",
        exit_code=EXIT_SYSTEM_ERROR,
    )
