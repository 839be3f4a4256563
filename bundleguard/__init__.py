"""BundleGuard: build-time protection of web application bundles."""

from bundleguard.blueprint import Blueprint, normalize
from bundleguard.host import Compilation, Compiler, DirectoryBuild, RawSource
from bundleguard.install import PackageInstaller
from bundleguard.invocation import InvocationController, InvocationOptions, InvocationResult
from bundleguard.plugin import ProtectionPass, ProtectionPlugin
from bundleguard.settings import BundleGuardSettings

__all__ = [
    "Blueprint",
    "BundleGuardSettings",
    "Compilation",
    "Compiler",
    "DirectoryBuild",
    "InvocationController",
    "InvocationOptions",
    "InvocationResult",
    "PackageInstaller",
    "ProtectionPass",
    "ProtectionPlugin",
    "RawSource",
    "normalize",
]
