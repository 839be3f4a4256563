"""
BundleGuard CLI exception hierarchy.

This module defines CLI-specific exceptions for the BundleGuard application.
"""

import traceback

from rich.console import Console
from rich.panel import Panel

from bundleguard.exceptions import BundleGuardError

console = Console(stderr=True)

EXIT_CONFIGURATION_ERROR = 2
EXIT_INTERNAL_ERROR = 3
EXIT_UNEXPECTED_ERROR = 4


class BundleGuardCLIError(BundleGuardError):
    """
    Base exception class for CLI-related errors.

    These relate to command-line interface operations.
    """

    def __init__(
        self,
        message: str,
        hint: str | None = None,
        code: int = 1,
        original_exception: Exception | None = None,
        show_traceback: bool = False,
    ):
        super().__init__(message)
        self.hint = hint
        self.code = code
        self.original_exception = original_exception
        self.show_traceback = show_traceback

    def format_rich(self) -> str:
        """Format the error message for rich display."""
        error_message = f"[red bold]Error:[/] {self.message}"

        if self.hint:
            error_message += f"\n[yellow]Hint:[/] {self.hint}"

        if self.original_exception and self.show_traceback:
            error_message += "\n\n[dim]Original error:[/]"
            error_message += (
                f"\n[dim]{self.original_exception.__class__.__name__}: {self.original_exception!s}[/]"
            )

            tb = "".join(traceback.format_tb(self.original_exception.__traceback__))
            if tb:
                error_message += f"\n[dim]Traceback:[/]\n[dim]{tb}[/]"

        return error_message

    def show(self) -> None:
        """Display the error message using Rich formatting."""
        console.print(Panel(self.format_rich(), title="[red]BundleGuard CLI Error[/]", border_style="red"))


class CLIProtectError(BundleGuardCLIError):
    """Raised when protecting a build via CLI fails."""


class CLIInstallError(BundleGuardCLIError):
    """Raised when provisioning the tool via CLI fails."""


class CLIStatusError(BundleGuardCLIError):
    """Raised when there are errors displaying status via CLI."""


def from_package_error(
    cli_error_class: type[BundleGuardCLIError], error: Exception, action: str
) -> BundleGuardCLIError:
    """
    Translate an exception raised by the package into a CLI error with a hint and exit code.

    Configuration problems tell the user what to fix; internal faults point
    to support; anything else is reported as a possible bug with its traceback.
    """
    if isinstance(error, BundleGuardError) and error.user_fixable:
        return cli_error_class(
            message=str(error),
            hint="Fix the configuration described above and run the command again.",
            code=EXIT_CONFIGURATION_ERROR,
            original_exception=error,
        )
    if isinstance(error, BundleGuardError):
        return cli_error_class(
            message=f"{action} failed: {error}",
            code=EXIT_INTERNAL_ERROR,
            original_exception=error,
        )
    return cli_error_class(
        message=f"Unexpected error during {action.lower()}: {error}",
        hint="This may be a bug. Please report it if the issue persists.",
        code=EXIT_UNEXPECTED_ERROR,
        original_exception=error,
        show_traceback=True,
    )
