import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from bundleguard.constants import DISK_IMAGE_SUFFIX
from bundleguard.exceptions import (
    AuthenticationError,
    DownloadError,
    EntitlementError,
    PackageNotFoundError,
)
from bundleguard.settings import BundleGuardSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessToken:
    """Short-lived bearer credential for the distribution service. Never persisted."""

    type: str
    token: str

    @property
    def authorization(self) -> str:
        return f"{self.type} {self.token}"

    def __repr__(self) -> str:
        return f"AccessToken(type={self.type!r}, token=***)"


def is_disk_image(filename: str) -> bool:
    return filename.lower().endswith(DISK_IMAGE_SUFFIX)


def _error_description(error: httpx.HTTPError) -> str:
    """Upstream `error_description` when the response carries one, else the transport message."""
    if isinstance(error, httpx.HTTPStatusError):
        try:
            body = error.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error_description"):
            return str(body["error_description"])
    return str(error)


class ArtifactFetcher:
    """
    Client for the distribution service that hosts the protection tool.

    Args:
        settings: Provides service URLs, product, package prefix and install location.
        client: HTTP client to use; one is created (and owned) when omitted.
    """

    def __init__(self, settings: BundleGuardSettings, client: httpx.Client | None = None):
        self.settings = settings
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=settings.http_timeout, follow_redirects=True)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> "ArtifactFetcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def authenticate(self, key: str, secret: str) -> AccessToken:
        """
        Exchange client credentials for an access token.

        Raises:
            AuthenticationError: On any transport or protocol error.
        """
        url = f"{self.settings.api_url}/services/oauth2/token"
        try:
            response = self.client.post(
                url,
                data={"grant_type": "client_credentials", "client_id": key, "client_secret": secret},
            )
            response.raise_for_status()
            payload = response.json()
            token = AccessToken(type=payload["token_type"], token=payload["access_token"])
        except httpx.HTTPError as e:
            raise AuthenticationError(_error_description(e)) from e
        except (ValueError, KeyError, TypeError) as e:
            raise AuthenticationError(f"Unexpected token response: {e}") from e
        logger.debug("Authenticated against the distribution service")
        return token

    def resolve_package_name(self, token: AccessToken, platform: str, version: str) -> str:
        """
        Find the package filename for `platform` and `version`.

        Raises:
            EntitlementError: If the file listing cannot be retrieved.
            PackageNotFoundError: If no listed file matches.
        """
        url = f"{self.settings.services_url}/download/v1/filelist"
        try:
            response = self.client.get(
                url,
                params={"product": self.settings.product, "version": version},
                headers={"authorization": token.authorization},
            )
            response.raise_for_status()
            files: Any = response.json()
            if not isinstance(files, list):
                raise ValueError(f"expected a list of files, got {type(files).__name__}")
        except (httpx.HTTPError, ValueError) as e:
            raise EntitlementError(
                f"Protection tool {version} could not be downloaded. Make sure you have the "
                f'"Product download" entitlement associated with the API key. ({e})'
            ) from e

        for entry in files:
            if not isinstance(entry, dict):
                continue
            filename = str(entry.get("filename", ""))
            if entry.get("platform") == platform and filename.startswith(self.settings.package_prefix):
                logger.debug(f"Resolved package {filename} for {platform}")
                return filename
        raise PackageNotFoundError(version, platform)

    def download_and_extract(self, token: AccessToken, filename: str, version: str) -> Path:
        """
        Download the package into the install location and unpack it there.

        The install location is wiped first. Disk images are only written;
        mounting them is the installer's job.

        Returns:
            Path of the downloaded package file.

        Raises:
            DownloadError: If the download or extraction fails.
        """
        install_location = self.settings.install_location
        shutil.rmtree(install_location, ignore_errors=True)
        install_location.mkdir(parents=True, exist_ok=True)
        package_path = install_location / filename

        url = f"{self.settings.services_url}/download/v1/file"
        try:
            with self.client.stream(
                "GET",
                url,
                params={"product": self.settings.product, "version": version, "filename": filename},
                headers={"authorization": token.authorization},
            ) as response:
                response.raise_for_status()
                with package_path.open("wb") as package_file:
                    for chunk in response.iter_bytes():
                        package_file.write(chunk)
            logger.info(f"Downloaded {filename} to {install_location}")

            if not is_disk_image(filename):
                shutil.unpack_archive(str(package_path), str(install_location))
        except (httpx.HTTPError, OSError, shutil.ReadError, ValueError) as e:
            raise DownloadError(f"Failed to download protection tool {version}. Error message: {e}") from e
        return package_path
