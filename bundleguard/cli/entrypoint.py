import typer

from bundleguard.cli import install, protect, status

app = typer.Typer(
    help="BundleGuard protects web application bundles with an external protection tool at build time.",
    add_completion=False,
)


def settings_callback(ctx: typer.Context, settings: str | None = None) -> None:
    """
    Priority order (highest to lowest):
    1. --settings CLI argument (caller's explicit intent)
    2. BUNDLEGUARD_SETTINGS environment variable (handled by BundleGuardSettings.load)
    3. Default bundleguard.yaml (handled by BundleGuardSettings.load)
    """
    ctx.obj = {"settings": settings if settings else ""}


@app.callback()
def main(
    ctx: typer.Context,
    settings: str | None = typer.Option(
        None, "--settings", "-s", help="Specify a path to a custom settings file."
    ),
) -> None:
    settings_callback(ctx, settings)


# Register subcommands
app.command()(protect.protect)
app.command()(install.install)
app.command()(status.status)

if __name__ == "__main__":
    app()
