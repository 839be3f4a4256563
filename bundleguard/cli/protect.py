from pathlib import Path
from typing import Any

import typer
import yaml
from rich.console import Console

from bundleguard.cli.exceptions import CLIProtectError, EXIT_CONFIGURATION_ERROR, from_package_error
from bundleguard.cli.settings import load_settings
from bundleguard.constants import HostHookName
from bundleguard.host import DirectoryBuild
from bundleguard.logger import logger
from bundleguard.plugin import ProtectionPlugin

console = Console()


def load_blueprint(path: Path) -> dict[str, Any]:
    """
    Load a blueprint tree from a YAML or JSON file.

    Raises:
        CLIProtectError: If the file cannot be read or is not a mapping.
    """
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise CLIProtectError(
            message=f"Blueprint file not found: {path}",
            hint="Check the path passed to --blueprint.",
            code=EXIT_CONFIGURATION_ERROR,
            original_exception=e,
        ) from e
    except (OSError, yaml.YAMLError) as e:
        raise CLIProtectError(
            message=f"Failed to read blueprint {path}: {e}",
            hint="Blueprints must be valid YAML or JSON documents.",
            code=EXIT_CONFIGURATION_ERROR,
            original_exception=e,
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise CLIProtectError(
            message=f"Blueprint {path} must contain a mapping, got {type(data).__name__}",
            code=EXIT_CONFIGURATION_ERROR,
        )
    return data


BLUEPRINT_OPTION = typer.Option(
    None, "--blueprint", "-b", help="Blueprint file (YAML or JSON). Defaults to the built-in blueprint."
)
OUTPUT_DIR_OPTION = typer.Option(
    None, "--output-dir", "-o", help="Where to write the protected build. Defaults to BUILD_DIR itself."
)
CONTEXT_OPTION = typer.Option(
    None, "--context", "-c", help="Project directory holding package.json. Defaults to BUILD_DIR."
)
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Run the protection tool in verbose mode.")
BUFFER_SIZE_OPTION = typer.Option(
    None, "--buffer-size", help="Maximum bytes of tool output to capture per stream."
)
LEGACY_OPTION = typer.Option(
    False, "--legacy", help="Use the legacy emit hook (only chunk files are protected)."
)
LOG_DIR_OPTION = typer.Option(None, "--log-dir", help="Also write a DEBUG log file into this directory.")


def protect(
    ctx: typer.Context,
    build_dir: Path = typer.Argument(
        ..., exists=True, file_okay=False, help="Directory holding the built application"
    ),
    blueprint: Path | None = BLUEPRINT_OPTION,
    output_dir: Path | None = OUTPUT_DIR_OPTION,
    context: Path | None = CONTEXT_OPTION,
    verbose: bool = VERBOSE_OPTION,
    buffer_size: int | None = BUFFER_SIZE_OPTION,
    legacy: bool = LEGACY_OPTION,
    log_dir: Path | None = LOG_DIR_OPTION,
) -> None:
    """
    Protects the scripts and markup of a build directory.
    """
    try:
        settings = load_settings(ctx, CLIProtectError)
        blueprint_data = load_blueprint(blueprint) if blueprint else None

        logger.set_console_level("INFO")
        if log_dir:
            logger.set_log_file("protect", log_dir, "DEBUG")

        build = DirectoryBuild(build_dir, output_dir=output_dir, context=context)
        plugin = ProtectionPlugin(
            blueprint_data,
            settings,
            hook=HostHookName.EMIT if legacy else HostHookName.PROCESS_ASSETS,
            verbose=verbose or None,
            buffer_size=buffer_size,
        )
        plugin.apply(build.compiler)
        build.run()

    except CLIProtectError as e:
        e.show()
        raise typer.Exit(code=e.code) from None

    except Exception as e:
        cli_error = from_package_error(CLIProtectError, e, "Protection")
        cli_error.show()
        raise typer.Exit(code=cli_error.code) from None

    finally:
        logger.clear_log_file()

    applied = plugin.last_pass.applied if plugin.last_pass else []
    console.print(f"[green]Protected {len(applied)} assets[/] into {build.output_dir}")
