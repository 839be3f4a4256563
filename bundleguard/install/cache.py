import json
import logging
from pathlib import Path
from typing import Any

from bundleguard.exceptions import MetadataWriteError

logger = logging.getLogger(__name__)


class InstallMetadataCache:
    """
    Single-slot record of the tool version in the install location.

    The record is a small JSON file, `{"version": "..."}`. A missing or
    unreadable file simply means no version is installed.
    """

    def __init__(self, metadata_file: str | Path):
        self.metadata_file = Path(metadata_file)

    def read(self) -> dict[str, Any]:
        try:
            contents = json.loads(self.metadata_file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        return contents if isinstance(contents, dict) else {}

    def write(self, version: str) -> None:
        """
        Record `version` as installed.

        Raises:
            MetadataWriteError: If the file cannot be written. The tool is then
                installed but the cache is stale.
        """
        try:
            self.metadata_file.parent.mkdir(parents=True, exist_ok=True)
            self.metadata_file.write_text(json.dumps({"version": version}), encoding="utf-8")
        except OSError as e:
            raise MetadataWriteError(f"Internal error: Failed to write to {self.metadata_file.name}.") from e
        logger.debug(f"Recorded installed version {version} in {self.metadata_file}")

    def installed_version(self) -> str | None:
        version = self.read().get("version")
        return version if isinstance(version, str) else None

    def is_up_to_date(self, required_version: str) -> bool:
        return self.installed_version() == required_version
