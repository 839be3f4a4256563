import typer

from bundleguard.cli.exceptions import BundleGuardCLIError, EXIT_CONFIGURATION_ERROR
from bundleguard.exceptions import SettingsError
from bundleguard.settings import BundleGuardSettings


def load_settings(ctx: typer.Context, cli_error_class: type[BundleGuardCLIError]) -> BundleGuardSettings:
    """
    Load settings from the --settings path stored on the context (if any).

    Raises:
        BundleGuardCLIError: Of `cli_error_class`, when the settings are invalid.
    """
    settings_file = (ctx.obj or {}).get("settings") or None
    try:
        return BundleGuardSettings.load(settings_file)
    except SettingsError as e:
        raise cli_error_class(
            message=str(e),
            hint="Check the settings file passed with --settings or the BUNDLEGUARD_SETTINGS variable.",
            code=EXIT_CONFIGURATION_ERROR,
            original_exception=e,
        ) from e
