"""
BundleGuard exception hierarchy.

This module defines the exceptions used throughout BundleGuard, organized
hierarchically with clear inheritance paths. Errors that users can fix on their
own (missing credentials, license or blueprint problems) derive from
ConfigurationError; errors that indicate an unexpected fault derive from
InternalError and point the user to the support contact.
"""

from bundleguard.constants import SUPPORT_EMAIL

###############################################################################
# ROOT EXCEPTION
###############################################################################


class BundleGuardError(Exception):
    """
    Root exception class for all BundleGuard errors.

    Attributes:
        user_fixable: True when the error describes missing or invalid
            configuration the user can correct without outside help.
    """

    user_fixable: bool = False

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


###############################################################################
# CONFIGURATION EXCEPTIONS
###############################################################################


class ConfigurationError(BundleGuardError):
    """Base for errors the user can remediate by fixing their configuration."""

    user_fixable = True


class MissingCredentialsError(ConfigurationError):
    """Raised when the credentials needed to provision the tool are not set."""

    def __init__(self, missing: list[str] | tuple[str, ...] = ()):
        self.missing = list(missing)
        names = " and ".join(self.missing) if self.missing else "PROTECT_API_KEY and PROTECT_API_SECRET"
        super().__init__(
            f"Could not find environment variables required to download the protection tool: {names}. "
            "Refer to the README to learn how to set them up correctly."
        )


class LicenseConfigurationError(ConfigurationError):
    """Raised when the blueprint cannot be licensed (or the tool cannot be installed to license it)."""


class MultipleTargetsError(ConfigurationError):
    """Raised when a blueprint declares more than one protection target."""

    def __init__(self, target_names: list[str]):
        self.target_names = target_names
        super().__init__(
            "Protection could not be applied on multiple targets "
            f"({', '.join(target_names)}). Please remove all targets except one from the blueprint."
        )


class BlueprintError(ConfigurationError):
    """Raised when a blueprint does not have the expected structure."""

    def __init__(self, message: str = "", section: str = ""):
        self.section = section
        prefix = f"Blueprint section '{section}': " if section else "Blueprint: "
        super().__init__(f"{prefix}{message}")


class EntitlementError(ConfigurationError):
    """Raised when the API key is not entitled to list product downloads."""


class SettingsError(ConfigurationError):
    """
    Base exception class for settings-related errors.

    These relate to BundleGuard's own configuration and settings management.
    """

    def __init__(self, message: str = "", setting: str = ""):
        prefix = f"Setting '{setting}': " if setting else ""
        super().__init__(f"{prefix}{message}")
        self.setting = setting


###############################################################################
# INTERNAL EXCEPTIONS
###############################################################################


class InternalError(BundleGuardError):
    """
    Base for unexpected faults the user cannot fix alone.

    The support contact is appended to the message.
    """

    def __init__(self, message: str = ""):
        super().__init__(f"{message} Please contact {SUPPORT_EMAIL} for help resolving this issue.")


class PackageNotFoundError(InternalError):
    """Raised when the distribution service lists no package for this platform."""

    def __init__(self, version: str, platform: str):
        self.version = version
        self.platform = platform
        super().__init__(f"Protection tool {version} for platform '{platform}' could not be downloaded.")


class MetadataWriteError(InternalError):
    """Raised when the install metadata cannot be written after a successful install."""


class MountError(InternalError):
    """Raised when a disk image package cannot be mounted or unmounted."""


###############################################################################
# PROVISIONING EXCEPTIONS
###############################################################################


class ProvisioningError(BundleGuardError):
    """Base for failures while talking to the distribution service."""


class AuthenticationError(ProvisioningError):
    """Raised when the client-credentials exchange fails."""

    def __init__(self, description: str):
        self.description = description
        super().__init__(f"Authentication failed. Error message: {description}")


class DownloadError(ProvisioningError):
    """Raised when the package payload cannot be downloaded or unpacked."""


###############################################################################
# INVOCATION EXCEPTIONS
###############################################################################


class InvocationError(BundleGuardError):
    """
    Raised when the protection tool exits unsuccessfully.

    The message always starts with whatever the tool printed to stdout before
    failing, followed by the error detail.
    """

    def __init__(self, message: str = "", stdout: str = "", stderr: str = ""):
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message)


class BufferOverflowError(InvocationError):
    """Raised when the tool output exceeds the configured capture buffer."""


###############################################################################
# ASSET EXCEPTIONS
###############################################################################


class AssetError(BundleGuardError):
    """Base for filesystem faults while moving build assets."""

    def __init__(self, message: str = "", asset_name: str = ""):
        prefix = f"Asset '{asset_name}': " if asset_name else ""
        super().__init__(f"{prefix}{message}")
        self.asset_name = asset_name


class StagingError(AssetError):
    """Raised when assets cannot be written into the staging directory."""


class ReintegrationError(AssetError):
    """Raised when tool output cannot be read back into the build."""
