import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

from bundleguard.exceptions import MountError

logger = logging.getLogger(__name__)


class DiskImageMounter:
    """Mounts and unmounts macOS disk images with `hdiutil`."""

    def __init__(self, hdiutil: str = "hdiutil"):
        self.hdiutil = hdiutil

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        return subprocess.run([self.hdiutil, *args], capture_output=True, text=True, check=False)

    def mount(self, image: str | Path) -> Path:
        """
        Attach `image` read-only at a fresh temporary mount point.

        Raises:
            MountError: If the image cannot be attached.
        """
        mount_point = Path(tempfile.mkdtemp(prefix="bundleguard-dmg-"))
        try:
            result = self._run("attach", str(image), "-nobrowse", "-readonly", "-mountpoint", str(mount_point))
        except OSError as e:
            shutil.rmtree(mount_point, ignore_errors=True)
            raise MountError(f"Failed to mount protection tool disk image. {e}.") from e
        if result.returncode != 0:
            shutil.rmtree(mount_point, ignore_errors=True)
            raise MountError(f"Failed to mount protection tool disk image. {result.stderr.strip()}.")
        logger.debug(f"Mounted {image} at {mount_point}")
        return mount_point

    def unmount(self, mount_point: str | Path) -> None:
        """
        Detach a mount point created by `mount`.

        Raises:
            MountError: If the image cannot be detached.
        """
        try:
            result = self._run("detach", str(mount_point))
        except OSError as e:
            raise MountError(f"Failed to unmount protection tool disk image. {e}.") from e
        if result.returncode != 0:
            raise MountError(f"Failed to unmount protection tool disk image. {result.stderr.strip()}.")
        shutil.rmtree(mount_point, ignore_errors=True)
        logger.debug(f"Unmounted {mount_point}")
