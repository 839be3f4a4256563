import os
import platform as platform_module
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, PrivateAttr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bundleguard.constants import (
    API_KEY_ENV,
    API_SECRET_ENV,
    DEFAULT_BUFFER_SIZE,
    DEFAULT_PACKAGE_PREFIX,
    DEFAULT_PRODUCT,
    DEFAULT_REQUIRED_VERSION,
    METADATA_FILENAME,
)
from bundleguard.exceptions import SettingsError


def detect_platform() -> str:
    """Return the distribution service's name for the running OS."""
    system = platform_module.system().lower()
    if system == "darwin":
        return "macos"
    if system in ("windows", "win32"):
        return "windows"
    return "linux"


def default_install_location() -> Path:
    return Path.home() / ".bundleguard" / "tool"


class BundleGuardSettings(BaseSettings):
    """
    BundleGuard settings management using Pydantic.

    Settings are loaded with the following priority (highest to lowest):
    1. Values passed to the constructor (including those read by `load()` from
       the settings YAML file and its overrides)
    2. Environment variables (prefixed with BUNDLEGUARD_SETTINGS_)
    3. Default values defined in the model

    Provisioning credentials are the exception: they are read from
    PROTECT_API_KEY and PROTECT_API_SECRET and never from the settings file
    prefix.

    Environment variable examples:
    - BUNDLEGUARD_SETTINGS_INSTALL_LOCATION=/opt/protect
    - BUNDLEGUARD_SETTINGS_REQUIRED_VERSION=7.9.0
    - BUNDLEGUARD_SETTINGS_VERBOSE=true
    """

    model_config = SettingsConfigDict(
        env_prefix="BUNDLEGUARD_SETTINGS_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    api_url: str = Field(
        default="https://auth.bundleguard.dev", description="Base URL of the OAuth2 token service"
    )
    services_url: str = Field(
        default="https://services.bundleguard.dev", description="Base URL of the download service"
    )
    product: str = Field(default=DEFAULT_PRODUCT, description="Product name on the download service")
    package_prefix: str = Field(
        default=DEFAULT_PACKAGE_PREFIX, description="Filename prefix of the tool's packages"
    )
    platform: str = Field(default_factory=detect_platform, description="Package platform to download")
    required_version: str = Field(
        default=DEFAULT_REQUIRED_VERSION, description="Exact tool version the pipeline requires"
    )
    install_location: Path = Field(
        default_factory=default_install_location, description="Directory the tool is installed into"
    )
    binary_path: Path | None = Field(
        default=None, description="Tool executable; defaults to <install_location>/bin/protect-web"
    )
    http_timeout: float = Field(default=60.0, description="Timeout in seconds for HTTP requests")
    buffer_size: int = Field(
        default=DEFAULT_BUFFER_SIZE, description="Maximum bytes captured per tool output stream"
    )
    verbose: bool = Field(default=False, description="Pass --verbose to the tool")

    api_key: str | None = Field(default=None, validation_alias=API_KEY_ENV, repr=False)
    api_secret: str | None = Field(default=None, validation_alias=API_SECRET_ENV, repr=False)

    _settings_file: str | None = PrivateAttr(default=None)

    @field_validator("buffer_size")
    @classmethod
    def validate_buffer_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("buffer_size must be a positive number of bytes")
        return v

    @field_validator("api_url", "services_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def tool_binary(self) -> Path:
        """Path of the protection tool executable."""
        if self.binary_path:
            return self.binary_path
        name = "protect-web.exe" if self.platform == "windows" else "protect-web"
        return self.install_location / "bin" / name

    @property
    def metadata_file(self) -> Path:
        return self.install_location / METADATA_FILENAME

    @property
    def has_credentials(self) -> bool:
        """True when both provisioning credentials are set."""
        return bool(self.api_key and self.api_secret)

    @property
    def missing_credentials(self) -> list[str]:
        missing = []
        if not self.api_key:
            missing.append(API_KEY_ENV)
        if not self.api_secret:
            missing.append(API_SECRET_ENV)
        return missing

    @property
    def settings_file(self) -> str | None:
        return self._settings_file

    def resolve_relative_paths(self, base_dir: Path) -> "BundleGuardSettings":
        """Resolve relative paths to absolute paths based on base directory."""
        if not self.install_location.is_absolute():
            self.install_location = base_dir / self.install_location
        if self.binary_path and not self.binary_path.is_absolute():
            self.binary_path = base_dir / self.binary_path
        return self

    @classmethod
    def load(cls, settings_file: str | None = None, **overrides: Any) -> "BundleGuardSettings":
        """
        Load settings from an optional YAML file with programmatic overrides.

        Settings file resolution priority (highest to lowest):
        1. Explicit settings_file parameter
        2. BUNDLEGUARD_SETTINGS environment variable
        3. Default "bundleguard.yaml" in the current directory

        An explicitly requested file (1 or 2) must exist. The default file is
        optional: when it is absent, only environment and defaults apply.

        Args:
            settings_file: Path to settings YAML file.
            **overrides: Values that take precedence over the YAML file.

        Returns:
            BundleGuardSettings instance with relative paths resolved against the
            settings file's directory.

        Raises:
            SettingsError: If the settings file is missing or contains invalid data.
        """
        explicit = settings_file or os.getenv("BUNDLEGUARD_SETTINGS")
        settings_path = Path(explicit or "bundleguard.yaml").resolve()

        yaml_data: Any = {}
        if settings_path.exists():
            try:
                with settings_path.open() as f:
                    yaml_data = yaml.safe_load(f) or {}
            except Exception as e:
                raise SettingsError(f"Failed to load settings from {settings_path}: {e}") from e
            if not isinstance(yaml_data, dict):
                raise SettingsError(
                    f"Settings file must contain a YAML dictionary, got {type(yaml_data).__name__}"
                )
        elif explicit:
            raise SettingsError(
                f"Settings file not found: {explicit}\n"
                f"Resolved to absolute path: {settings_path}\n"
                f"Current working directory: {Path.cwd()}"
            )

        try:
            instance = cls(**{**yaml_data, **overrides})
        except ValidationError as e:
            raise SettingsError(f"Invalid settings: {e}") from e

        if settings_path.exists():
            instance._settings_file = str(settings_path)
            instance.resolve_relative_paths(settings_path.parent)
        return instance

    @property
    def as_dict(self) -> dict[str, Any]:
        """Settings as a dictionary, without credentials."""
        return self.model_dump(exclude={"api_key", "api_secret"})
