import os

import typer
from rich.console import Console
from rich.table import Table

from bundleguard.cli.exceptions import CLIStatusError, from_package_error
from bundleguard.cli.settings import load_settings
from bundleguard.constants import (
    API_KEY_ENV,
    API_SECRET_ENV,
    LICENSE_REGION_ENV,
    LICENSE_SETUP_SENTINEL,
    LICENSE_TOKEN_ENV,
)
from bundleguard.install import PackageInstaller
from bundleguard.settings import BundleGuardSettings

console = Console()


def describe_secret(value: str | None) -> str:
    """Presence of a secret value, never the value itself."""
    if not value:
        return "[red]not set[/]"
    return "[green]set[/]"


def describe_license_token(value: str | None) -> str:
    if value == LICENSE_SETUP_SENTINEL:
        return "[yellow]interactive setup[/]"
    return describe_secret(value)


def build_status_table(settings: BundleGuardSettings, installer: PackageInstaller) -> Table:
    installed_version = installer.cache.installed_version()
    up_to_date = installer.is_up_to_date(settings.required_version)

    table = Table(title="BundleGuard status", show_header=True, header_style="bold")
    table.add_column("Item", style="cyan")
    table.add_column("Value")

    table.add_row("Required version", settings.required_version)
    table.add_row(
        "Installed version",
        f"[green]{installed_version}[/]" if up_to_date else f"[yellow]{installed_version or 'none'}[/]",
    )
    table.add_row("Install location", str(settings.install_location))
    table.add_row(
        "Tool binary",
        f"{settings.tool_binary} ({'present' if installer.is_installed() else 'missing'})",
    )
    table.add_row("Platform", settings.platform)
    table.add_row(API_KEY_ENV, describe_secret(settings.api_key))
    table.add_row(API_SECRET_ENV, describe_secret(settings.api_secret))
    table.add_row(LICENSE_TOKEN_ENV, describe_license_token(os.environ.get(LICENSE_TOKEN_ENV)))
    table.add_row(LICENSE_REGION_ENV, os.environ.get(LICENSE_REGION_ENV) or "[dim]not set[/]")
    if settings.settings_file:
        table.add_row("Settings file", settings.settings_file)
    return table


def status(ctx: typer.Context) -> None:
    """
    Displays the installed tool version and which credentials are configured.
    """
    try:
        settings = load_settings(ctx, CLIStatusError)
        console.print(build_status_table(settings, PackageInstaller(settings)))

    except CLIStatusError as e:
        e.show()
        raise typer.Exit(code=e.code) from None

    except Exception as e:
        cli_error = from_package_error(CLIStatusError, e, "Status")
        cli_error.show()
        raise typer.Exit(code=cli_error.code) from None
