import re
from enum import Enum

try:
    # Python 3.11+ provides StrEnum
    from enum import StrEnum
except Exception:

    class StrEnum(str, Enum):
        """Compatibility StrEnum for Python < 3.11"""

        @staticmethod
        def _generate_next_value_(name: str, start: int, count: int, last_values: list) -> str:
            return name

        def __str__(self) -> str:
            return str(self.value)


class TargetType(StrEnum):
    """
    Target platforms with a directory layout the protection tool depends on.

    Any target type not listed here (e.g. "browser") stages files directly at
    the staging root.
    """

    NATIVESCRIPT_IOS = "nativescript-ios"
    NATIVESCRIPT_ANDROID = "nativescript-android"


class PassState(StrEnum):
    """States of a single protection pass over a build."""

    IDLE = "idle"
    STAGING = "staging"
    NORMALIZING = "normalizing"
    INSTALLING = "installing"
    INVOKING = "invoking"
    REINTEGRATING = "reintegrating"
    DONE = "done"
    FAILED = "failed"


class HostHookName(StrEnum):
    """
    Host lifecycle hooks the plugin can attach to.

    Attributes:
        PROCESS_ASSETS: Modern asset-processing stage; every asset in the
            compilation is a staging candidate.
        EMIT: Legacy emit stage; only files listed by the compilation's chunks
            are staging candidates.
    """

    PROCESS_ASSETS = "process-assets"
    EMIT = "emit"

    @classmethod
    def _missing_(cls, value: object) -> "HostHookName | None":
        """Handle underscore/hyphen variations for flexibility."""
        if isinstance(value, str):
            normalized = value.lower().replace("_", "-")
            for member in cls:
                if member.value == normalized:
                    return member
        return None


PLUGIN_NAME = "BundleGuardPlugin"

SUPPORT_EMAIL = "support@bundleguard.dev"

DEFAULT_TARGET_TYPE = "browser"
DEFAULT_TARGET_NAME = "target"

# Relative directory, inside the staging root, that the tool reads for each layout
TARGET_LAYOUTS: dict[str, str] = {
    TargetType.NATIVESCRIPT_IOS.value: "app",
    TargetType.NATIVESCRIPT_ANDROID.value: "assets/app",
}

# Blueprint key names (matched case-insensitively)
GLOBAL_CONFIGURATION_KEY = "globalConfiguration"
TARGETS_KEY = "targets"
TARGET_TYPE_KEY = "targetType"
APP_ID_KEY = "appID"
EPHEMERAL_MODE_KEY = "ephemeralMode"
LICENSE_REGION_KEY = "licenseRegion"
INPUT_KEY = "input"
OUTPUT_DIRECTORY_KEY = "outputDirectory"

# Target fields owned by the pipeline; user supplied values are removed
PIPELINE_OWNED_TARGET_FIELDS = (
    "input",
    "outputFile",
    "outputDirectory",
    "output",
    "stdin",
    "ignorePaths",
    "validateIgnorePaths",
)

DEFAULT_BLUEPRINT = {
    "guardConfigurations": {
        "guardConfiguration": {},
    },
}

# Environment variables read by the pipeline
API_KEY_ENV = "PROTECT_API_KEY"
API_SECRET_ENV = "PROTECT_API_SECRET"
LICENSE_TOKEN_ENV = "PROTECT_LICENSE_TOKEN"
LICENSE_REGION_ENV = "PROTECT_LICENSE_REGION"

# Token value that asks the tool for interactive license setup instead of a mode flag
LICENSE_SETUP_SENTINEL = "setup"

# Set in the tool's environment so it knows it was started by this package
INVOCATION_MARKER_ENV = "SJS_NPM_INVOCATION"

DEFAULT_BUFFER_SIZE = 1024 * 50000
DEFAULT_REQUIRED_VERSION = "7.9.0"
DEFAULT_PACKAGE_PREFIX = "protect-web"
DEFAULT_PRODUCT = "Web App Protection"
METADATA_FILENAME = "metadata.json"
BLUEPRINT_FILE_SUFFIX = ".blueprint"
DISK_IMAGE_SUFFIX = ".dmg"
PROJECT_DESCRIPTOR = "package.json"

# Assets the protection tool understands (scripts, markup, platform bundles, source maps)
PROTECTABLE_ASSET_PATTERN = re.compile(r"\.(js|html|htm|jsbundle|android\.bundle|xhtml|jsp|asp|aspx|map)$")

BUNDLEGUARD_DEFAULT_LOGGER = {
    "directory": ".bundleguard/logs",
    "level": "INFO",
}

# Keywords in log messages whose values should be masked
PROTECTED_KEYWORDS = [
    "password",
    "secret",
    "token",
    "apikey",
    "api_key",
    "access_token",
    "authorization",
    "bearer",
    "client_id",
    "client_secret",
    "ephemeralMode",
    "credentials",
]
