"""
Blueprint model and normalization.

A blueprint is the free-form, nested configuration tree handed to the protection
tool. Property names are matched case-insensitively against the names this
package recognizes ("GlobalConfiguration" and "globalConfiguration" are the same
section); everything else passes through untouched.

Normalization is split into small steps so the plugin can run them in order:

1. `strip_target_fields` removes paths the pipeline owns from every target.
2. `apply_app_id` derives `appID` from the project descriptor.
3. `apply_license` injects license settings from the environment and rejects
   blueprints that cannot be licensed.
4. `select_target` enforces the single-target invariant and points the target
   at the staging directories.

`normalize` chains all of them and returns a new blueprint.
"""

import copy
import json
import logging
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any

from pydantic import RootModel, model_validator

from bundleguard.constants import (
    API_KEY_ENV,
    API_SECRET_ENV,
    APP_ID_KEY,
    DEFAULT_BLUEPRINT,
    DEFAULT_TARGET_NAME,
    DEFAULT_TARGET_TYPE,
    EPHEMERAL_MODE_KEY,
    GLOBAL_CONFIGURATION_KEY,
    INPUT_KEY,
    LICENSE_REGION_ENV,
    LICENSE_REGION_KEY,
    LICENSE_SETUP_SENTINEL,
    LICENSE_TOKEN_ENV,
    OUTPUT_DIRECTORY_KEY,
    PIPELINE_OWNED_TARGET_FIELDS,
    PROJECT_DESCRIPTOR,
    TARGET_TYPE_KEY,
    TARGETS_KEY,
)
from bundleguard.exceptions import BlueprintError, LicenseConfigurationError, MultipleTargetsError

logger = logging.getLogger(__name__)

MISSING_INSTALL_CREDENTIALS_MESSAGE = (
    "The protection tool is not installed and the environment variables required to download it "
    f"are not set: {API_KEY_ENV} and {API_SECRET_ENV}. Refer to the README to learn how to set them up."
)
MISSING_LICENSE_MESSAGE = (
    f"Could not find environment variable required to license the protection tool: {LICENSE_TOKEN_ENV}. "
    "Set it, or add 'ephemeralMode' to the blueprint's globalConfiguration."
)


def find_key(mapping: Mapping[str, Any], name: str) -> str | None:
    """
    Find the key in `mapping` that equals `name` ignoring case.

    Args:
        mapping: The mapping to search.
        name: The recognized property name.

    Returns:
        The exact key as it appears in the mapping, or None when absent.
    """
    lowered = name.lower()
    for key in mapping:
        if isinstance(key, str) and key.lower() == lowered:
            return key
    return None


def get_case_insensitive(mapping: Mapping[str, Any], name: str, default: Any = None) -> Any:
    """Read `name` from `mapping` with a case-insensitive key match."""
    key = find_key(mapping, name)
    return mapping[key] if key is not None else default


def pop_case_insensitive(mapping: MutableMapping[str, Any], name: str) -> Any:
    """Remove `name` (matched ignoring case) from `mapping` and return its value, or None."""
    key = find_key(mapping, name)
    return mapping.pop(key) if key is not None else None


class Blueprint(RootModel[dict[str, Any]]):
    """
    Typed view over a blueprint tree.

    The tree itself stays a plain ordered dict (`root`) so unrecognized sections
    are serialized exactly as the user wrote them. Recognized sections are
    reached through the case-insensitive accessors below.
    """

    @model_validator(mode="after")
    def validate_sections(self) -> "Blueprint":
        global_configuration = get_case_insensitive(self.root, GLOBAL_CONFIGURATION_KEY)
        if global_configuration is not None and not isinstance(global_configuration, dict):
            raise ValueError(f"'{GLOBAL_CONFIGURATION_KEY}' must be a mapping")

        targets = get_case_insensitive(self.root, TARGETS_KEY)
        if targets is not None:
            if not isinstance(targets, dict):
                raise ValueError(f"'{TARGETS_KEY}' must be a mapping of target names to descriptors")
            for name, descriptor in targets.items():
                if descriptor is not None and not isinstance(descriptor, dict):
                    raise ValueError(f"target '{name}' must be a mapping")
        return self

    @classmethod
    def create(cls, data: "Blueprint | Mapping[str, Any] | None") -> "Blueprint":
        """
        Build a Blueprint from a mapping, wrapping validation errors.

        None yields the default blueprint. The input is deep-copied.

        Raises:
            BlueprintError: If the data is not a valid blueprint tree.
        """
        if isinstance(data, Blueprint):
            return data.copy_tree()
        if data is None:
            data = DEFAULT_BLUEPRINT
        if not isinstance(data, Mapping):
            raise BlueprintError(f"expected a mapping, got {type(data).__name__}")
        try:
            return cls(copy.deepcopy(dict(data)))
        except ValueError as e:
            raise BlueprintError(str(e)) from e

    def copy_tree(self) -> "Blueprint":
        """Return an independent deep copy."""
        return Blueprint(copy.deepcopy(self.root))

    @property
    def global_configuration_key(self) -> str | None:
        return find_key(self.root, GLOBAL_CONFIGURATION_KEY)

    @property
    def global_configuration(self) -> dict[str, Any] | None:
        key = self.global_configuration_key
        return self.root[key] if key is not None else None

    def ensure_global_configuration(self) -> dict[str, Any]:
        """Return the globalConfiguration section, creating an empty one if absent or null."""
        section = self.global_configuration
        if section is None:
            section = {}
            self.root[self.global_configuration_key or GLOBAL_CONFIGURATION_KEY] = section
        return section

    @property
    def targets_key(self) -> str | None:
        return find_key(self.root, TARGETS_KEY)

    @property
    def targets(self) -> dict[str, Any] | None:
        key = self.targets_key
        return self.root[key] if key is not None else None

    @property
    def target_type(self) -> str:
        """Lowercased `globalConfiguration.targetType`, or "browser" when unset."""
        section = self.global_configuration or {}
        value = get_case_insensitive(section, TARGET_TYPE_KEY)
        if not value:
            return DEFAULT_TARGET_TYPE
        return str(value).lower()

    def to_json(self) -> str:
        return json.dumps(self.root)


###############################################################################
# NORMALIZATION STEPS
###############################################################################


def strip_target_fields(blueprint: Blueprint) -> Blueprint:
    """Remove pipeline-owned paths from every target descriptor, in place."""
    targets = blueprint.targets or {}
    for target_name, descriptor in targets.items():
        if not descriptor:
            continue
        for field in PIPELINE_OWNED_TARGET_FIELDS:
            key = find_key(descriptor, field)
            if key is not None:
                logger.debug(f"Removing pipeline-owned field '{key}' from target '{target_name}'")
                del descriptor[key]
    return blueprint


def read_project_name(context: str | Path | None) -> str | None:
    """
    Read the `name` of the project descriptor (package.json) in `context`.

    A missing, unreadable or nameless descriptor yields None.
    """
    if not context:
        return None
    descriptor_path = Path(context) / PROJECT_DESCRIPTOR
    if not descriptor_path.is_file():
        return None
    try:
        data = json.loads(descriptor_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable project descriptor {descriptor_path}: {e}")
        return None
    name = data.get("name") if isinstance(data, dict) else None
    return name if isinstance(name, str) and name else None


def apply_app_id(blueprint: Blueprint, app_name: str | None) -> Blueprint:
    """Set `globalConfiguration.appID` to `app_name` when the blueprint does not set one."""
    if not app_name:
        return blueprint
    section = blueprint.ensure_global_configuration()
    if find_key(section, APP_ID_KEY) is None:
        section[APP_ID_KEY] = app_name
    return blueprint


def apply_license(
    blueprint: Blueprint,
    env: Mapping[str, str],
    tool_installed: bool,
    has_credentials: bool,
) -> Blueprint:
    """
    Inject license settings from the environment into the blueprint, in place.

    The ephemeral license token becomes `ephemeralMode` unless it is the
    interactive-setup sentinel; the license region becomes `licenseRegion`.
    Values already present in the blueprint are never overwritten.

    Rejections are checked in a fixed order, so one condition never hides the other:
    the missing-install check runs first, the missing-license check second.

    Args:
        blueprint: The blueprint to update.
        env: Process environment (or any mapping standing in for it).
        tool_installed: Whether the protection tool binary is present.
        has_credentials: Whether both provisioning credentials are set.

    Returns:
        The updated blueprint.

    Raises:
        LicenseConfigurationError: If the tool can neither be found nor
            installed, or if no license token can be resolved.
    """
    if not tool_installed and not has_credentials:
        raise LicenseConfigurationError(MISSING_INSTALL_CREDENTIALS_MESSAGE)

    token = env.get(LICENSE_TOKEN_ENV) or None
    region = env.get(LICENSE_REGION_ENV) or None

    section = blueprint.global_configuration
    if section is None:
        if not token:
            raise LicenseConfigurationError(MISSING_LICENSE_MESSAGE)
        section = blueprint.ensure_global_configuration()
        if token != LICENSE_SETUP_SENTINEL:
            section[EPHEMERAL_MODE_KEY] = token
        if region:
            section[LICENSE_REGION_KEY] = region
        return blueprint

    has_ephemeral_mode = find_key(section, EPHEMERAL_MODE_KEY) is not None
    if not has_ephemeral_mode and token and token != LICENSE_SETUP_SENTINEL:
        section[EPHEMERAL_MODE_KEY] = token
    if find_key(section, LICENSE_REGION_KEY) is None and region:
        section[LICENSE_REGION_KEY] = region

    if not has_ephemeral_mode and not token:
        raise LicenseConfigurationError(MISSING_LICENSE_MESSAGE)
    return blueprint


def select_target(
    blueprint: Blueprint,
    input_directory: str | Path | None = None,
    output_directory: str | Path | None = None,
) -> str:
    """
    Enforce the single-target invariant and point the target at staging paths.

    A blueprint without targets gets one empty target named "target".

    Args:
        blueprint: The blueprint to update in place.
        input_directory: Staging directory the tool reads from.
        output_directory: Directory the tool writes protected output to.

    Returns:
        The name of the selected target.

    Raises:
        MultipleTargetsError: If more than one target is declared.
    """
    targets_key = blueprint.targets_key or TARGETS_KEY
    targets = blueprint.root.get(targets_key) or {}
    blueprint.root[targets_key] = targets

    if len(targets) > 1:
        raise MultipleTargetsError(list(targets))

    if targets:
        target_name = next(iter(targets))
        if targets[target_name] is None:
            targets[target_name] = {}
    else:
        target_name = DEFAULT_TARGET_NAME
        targets[target_name] = {}

    descriptor = targets[target_name]
    if input_directory is not None:
        pop_case_insensitive(descriptor, INPUT_KEY)
        descriptor[INPUT_KEY] = str(input_directory)
    if output_directory is not None:
        pop_case_insensitive(descriptor, OUTPUT_DIRECTORY_KEY)
        descriptor[OUTPUT_DIRECTORY_KEY] = str(output_directory)
    return target_name


def normalize(
    blueprint: "Blueprint | Mapping[str, Any] | None",
    env: Mapping[str, str],
    *,
    tool_installed: bool,
    has_credentials: bool,
    app_name: str | None = None,
    input_directory: str | Path | None = None,
    output_directory: str | Path | None = None,
) -> Blueprint:
    """
    Run every normalization step on a copy of `blueprint`.

    The target checks run before the license checks, so a multi-target
    blueprint is rejected no matter how the environment looks.

    Returns:
        A new, normalized Blueprint; the input is left unchanged.
    """
    result = Blueprint.create(blueprint)
    strip_target_fields(result)
    apply_app_id(result, app_name)
    select_target(result, input_directory, output_directory)
    apply_license(result, env, tool_installed=tool_installed, has_credentials=has_credentials)
    return result
