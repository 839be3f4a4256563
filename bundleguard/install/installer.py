import logging
import shutil
import stat
import threading
from pathlib import Path

from bundleguard.exceptions import MissingCredentialsError
from bundleguard.install.cache import InstallMetadataCache
from bundleguard.install.fetcher import ArtifactFetcher, is_disk_image
from bundleguard.install.mount import DiskImageMounter
from bundleguard.settings import BundleGuardSettings

logger = logging.getLogger(__name__)

_install_lock = threading.Lock()


class PackageInstaller:
    """
    Keeps the protection tool installed at the required version.

    An install is fetch, then mount and copy for disk images, then removal of
    the raw package, then a metadata update. The install location is wiped at
    the start of every install, so installs are serialized within the process;
    callers sharing an install location across processes must serialize
    themselves.

    Args:
        settings: Install location, credentials and service configuration.
        fetcher: Distribution service client; built from settings when omitted.
        cache: Installed-version record; built from settings when omitted.
        mounter: Disk image mounter; `hdiutil` based when omitted.
    """

    def __init__(
        self,
        settings: BundleGuardSettings,
        fetcher: ArtifactFetcher | None = None,
        cache: InstallMetadataCache | None = None,
        mounter: DiskImageMounter | None = None,
    ):
        self.settings = settings
        self._fetcher = fetcher
        self.cache = cache or InstallMetadataCache(settings.metadata_file)
        self.mounter = mounter or DiskImageMounter()

    @property
    def fetcher(self) -> ArtifactFetcher:
        if self._fetcher is None:
            self._fetcher = ArtifactFetcher(self.settings)
        return self._fetcher

    def is_up_to_date(self, required_version: str | None = None) -> bool:
        return self.cache.is_up_to_date(required_version or self.settings.required_version)

    def is_installed(self) -> bool:
        """True when the tool binary exists, whatever its version."""
        return self.settings.tool_binary.is_file()

    def has_credentials(self) -> bool:
        return self.settings.has_credentials

    def ensure(self, required_version: str | None = None) -> bool:
        """
        Install the required version unless it is already installed.

        Returns:
            True when an install took place.
        """
        version = required_version or self.settings.required_version
        if self.is_up_to_date(version):
            logger.debug(f"Protection tool {version} is up to date")
            return False
        logger.info(f"Protection tool {version} is not installed; provisioning it")
        self.install(version)
        return True

    def install(self, required_version: str | None = None) -> None:
        """
        Download and install the tool, then record its version.

        Raises:
            MissingCredentialsError: Before any network call, if a credential is missing.
            AuthenticationError, EntitlementError, PackageNotFoundError, DownloadError:
                From the distribution service.
            MountError: If a disk image cannot be mounted or unmounted.
            MetadataWriteError: If the version cannot be recorded.
        """
        version = required_version or self.settings.required_version
        if not self.has_credentials():
            raise MissingCredentialsError(self.settings.missing_credentials)

        with _install_lock:
            fetcher = self.fetcher
            token = fetcher.authenticate(self.settings.api_key, self.settings.api_secret)
            filename = fetcher.resolve_package_name(token, self.settings.platform, version)
            package_path = fetcher.download_and_extract(token, filename, version)

            if is_disk_image(filename):
                self._copy_from_disk_image(package_path)

            package_path.unlink(missing_ok=True)
            self._mark_executable(self.settings.tool_binary)
            self.cache.write(version)
            logger.info(f"Installed protection tool {version} into {self.settings.install_location}")

    def _copy_from_disk_image(self, image: Path) -> None:
        mount_point = self.mounter.mount(image)
        try:
            shutil.copytree(mount_point, self.settings.install_location, dirs_exist_ok=True)
        finally:
            self.mounter.unmount(mount_point)

    @staticmethod
    def _mark_executable(binary: Path) -> None:
        if binary.is_file():
            mode = binary.stat().st_mode
            binary.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
