import typer
from rich.console import Console

from bundleguard.cli.exceptions import CLIInstallError, from_package_error
from bundleguard.cli.settings import load_settings
from bundleguard.install import PackageInstaller

console = Console()


def install(
    ctx: typer.Context,
    force: bool = typer.Option(
        False, "--force", "-f", help="Reinstall even if the required version is already installed."
    ),
) -> None:
    """
    Downloads and installs the protection tool at the required version.
    """
    try:
        settings = load_settings(ctx, CLIInstallError)
        installer = PackageInstaller(settings)
        version = settings.required_version

        if force:
            installer.install(version)
            installed = True
        else:
            installed = installer.ensure(version)

    except CLIInstallError as e:
        e.show()
        raise typer.Exit(code=e.code) from None

    except Exception as e:
        cli_error = from_package_error(CLIInstallError, e, "Installation")
        cli_error.show()
        raise typer.Exit(code=cli_error.code) from None

    if installed:
        console.print(f"[green]Installed protection tool {version}[/] into {settings.install_location}")
    else:
        console.print(f"Protection tool {version} is already installed in {settings.install_location}")
