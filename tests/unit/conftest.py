import json
import os
import stat
import sys
from pathlib import Path

import pytest

from bundleguard.constants import DEFAULT_REQUIRED_VERSION
from bundleguard.host import Compilation, Compiler, RawSource
from bundleguard.settings import BundleGuardSettings

PROTECT_ENV_VARS = (
    "PROTECT_API_KEY",
    "PROTECT_API_SECRET",
    "PROTECT_LICENSE_TOKEN",
    "PROTECT_LICENSE_REGION",
    "SJS_NPM_INVOCATION",
    "BUNDLEGUARD_SETTINGS",
)

TOOL_HEADER = """#!{python}
import json
import os
import pathlib
import sys

args = sys.argv[1:]
blueprint_path = pathlib.Path(args[args.index("--blueprint") + 1])
blueprint = json.loads(blueprint_path.read_text())
target = next(iter(blueprint["targets"].values()))
"""

# Copies every staged file to the output directory, prefixed with a marker
PROTECTING_TOOL_BODY = """
source = pathlib.Path(target["input"])
destination = pathlib.Path(target["outputDirectory"])
count = 0
for path in sorted(source.rglob("*")):
    if path.is_file():
        out = destination / path.relative_to(source)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(b"/* protected */" + path.read_bytes())
        count += 1
print(f"Protected {count} files")
"""


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the caller's credentials and license settings out of every test."""
    for name in PROTECT_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    for name in list(os.environ):
        if name.startswith("BUNDLEGUARD_SETTINGS_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def install_location(tmp_path) -> Path:
    return tmp_path / "tool"


@pytest.fixture
def settings(install_location) -> BundleGuardSettings:
    """Settings pointing at a temporary install location and test service URLs."""
    return BundleGuardSettings(
        install_location=install_location,
        platform="linux",
        api_url="https://auth.test",
        services_url="https://services.test",
    )


@pytest.fixture
def credentials(monkeypatch):
    monkeypatch.setenv("PROTECT_API_KEY", "key")
    monkeypatch.setenv("PROTECT_API_SECRET", "secret")


@pytest.fixture
def make_tool():
    """Factory writing an executable Python script that plays the protection tool."""

    def _make_tool(path: Path, body: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(TOOL_HEADER.format(python=sys.executable) + body)
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make_tool


@pytest.fixture
def installed_tool(settings, make_tool):
    """A protecting tool installed at the required version."""
    make_tool(settings.tool_binary, PROTECTING_TOOL_BODY)
    settings.metadata_file.write_text(json.dumps({"version": DEFAULT_REQUIRED_VERSION}))
    return settings.tool_binary


@pytest.fixture
def project_dir(tmp_path) -> Path:
    project = tmp_path / "project"
    project.mkdir()
    (project / "package.json").write_text(json.dumps({"name": "my-web-app", "version": "1.0.0"}))
    return project


@pytest.fixture
def compiler(project_dir) -> Compiler:
    return Compiler(project_dir)


@pytest.fixture
def compilation() -> Compilation:
    return Compilation(
        {
            "bundle.js": RawSource(b"console.log('hello');"),
            "index.html": RawSource(b"<html></html>"),
            "styles.css": RawSource(b"body {}"),
        }
    )


@pytest.fixture
def run_hook():
    """Call an async hook and return the arguments its completion callback received."""

    def _run_hook(hook, compilation):
        calls = []

        def callback(error=None):
            calls.append(error)

        hook.call_async(compilation, callback)
        return calls

    return _run_hook
