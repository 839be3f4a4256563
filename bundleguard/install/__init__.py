"""Provisioning of the protection tool: download, local install and version cache."""

from bundleguard.install.cache import InstallMetadataCache
from bundleguard.install.fetcher import AccessToken, ArtifactFetcher
from bundleguard.install.installer import PackageInstaller
from bundleguard.install.mount import DiskImageMounter

__all__ = [
    "AccessToken",
    "ArtifactFetcher",
    "DiskImageMounter",
    "InstallMetadataCache",
    "PackageInstaller",
]
