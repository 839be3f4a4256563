"""
Host build tool contract.

BundleGuard plugs into a host build tool through a small contract: the host
exposes named lifecycle hooks the plugin taps, and passes each tap a
compilation holding the build's named in-memory assets. The plugin reads asset
contents, replaces assets, and signals completion through a single callback.

This module defines that contract and an in-memory implementation of it.
`DirectoryBuild` backs a compilation with a directory of already built files,
which is how the CLI protects a build output folder.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from bundleguard.exceptions import BundleGuardError

logger = logging.getLogger(__name__)

DoneCallback = Callable[..., None]
AsyncTap = Callable[["Compilation", DoneCallback], None]


@runtime_checkable
class Asset(Protocol):
    """A named build output whose contents can be read."""

    def source(self) -> bytes: ...

    def size(self) -> int: ...


class RawSource:
    """Asset backed by an immutable byte string."""

    def __init__(self, content: bytes | str):
        self._content = content.encode("utf-8") if isinstance(content, str) else bytes(content)

    def source(self) -> bytes:
        return self._content

    def size(self) -> int:
        return len(self._content)

    def __repr__(self) -> str:
        return f"RawSource(size={self.size()})"


def asset_bytes(asset: Asset) -> bytes:
    """Contents of any asset as bytes (hosts may hand out text sources)."""
    content = asset.source()
    return content.encode("utf-8") if isinstance(content, str) else bytes(content)


@dataclass
class Chunk:
    """A group of emitted files, as listed by hosts using the legacy emit hook."""

    name: str
    files: list[str] = field(default_factory=list)


class Compilation:
    """
    One build's set of named assets.

    Asset names are POSIX relative paths ("js/app.js").
    """

    def __init__(self, assets: dict[str, Asset] | None = None, chunks: Iterable[Chunk] | None = None):
        self.assets: dict[str, Asset] = dict(assets or {})
        self.chunks: list[Chunk] = list(chunks or [])

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(f"bundleguard.build.{name}")

    def get_asset(self, name: str) -> Asset | None:
        return self.assets.get(name)

    def update_asset(self, name: str, source: Asset) -> None:
        """Replace an existing asset."""
        if name not in self.assets:
            raise BundleGuardError(f"Cannot update asset '{name}': it does not exist")
        self.assets[name] = source

    def emit_asset(self, name: str, source: Asset) -> None:
        """Add a new asset."""
        if name in self.assets:
            raise BundleGuardError(f"Cannot emit asset '{name}': it already exists")
        self.assets[name] = source


class AsyncSeriesHook:
    """
    A lifecycle hook whose taps run one after another.

    Each tap receives the compilation and a callback it must call exactly
    once: without arguments on success, with the error on failure. The first
    failure stops the series.
    """

    def __init__(self, name: str):
        self.name = name
        self.taps: list[tuple[str, AsyncTap]] = []

    def tap_async(self, name: str, fn: AsyncTap) -> None:
        self.taps.append((name, fn))

    def call_async(self, compilation: Compilation, callback: DoneCallback) -> None:
        self._run_from(0, compilation, callback)

    def _run_from(self, index: int, compilation: Compilation, callback: DoneCallback) -> None:
        if index >= len(self.taps):
            callback()
            return

        tap_name, fn = self.taps[index]
        called = False

        def done(error: BaseException | str | None = None) -> None:
            nonlocal called
            if called:
                logger.warning(f"Tap '{tap_name}' on hook '{self.name}' completed more than once")
                return
            called = True
            if error:
                callback(error)
            else:
                self._run_from(index + 1, compilation, callback)

        fn(compilation, done)


class CompilerHooks:
    """Hooks a compiler exposes to plugins."""

    def __init__(self):
        self.emit = AsyncSeriesHook("emit")
        self.process_assets = AsyncSeriesHook("process_assets")


class Compiler:
    """
    The host side of the contract: a project directory plus lifecycle hooks.

    Attributes:
        context: Project directory; its package.json names the application.
        hooks: Hooks plugins tap during `apply`.
    """

    def __init__(self, context: str | Path | None = None):
        self.context = Path(context) if context else Path.cwd()
        self.hooks = CompilerHooks()

    def run_hooks(self, compilation: Compilation) -> None:
        """
        Run the asset-processing hooks then the emit hooks over a compilation.

        Raises:
            BundleGuardError: If any tap reported an error.
        """
        errors: list[BaseException | str] = []

        def collect(error: BaseException | str | None = None) -> None:
            if error:
                errors.append(error)

        for hook in (self.hooks.process_assets, self.hooks.emit):
            hook.call_async(compilation, collect)
            if errors:
                error = errors[0]
                if isinstance(error, BaseException):
                    raise error
                raise BundleGuardError(str(error))


class DirectoryBuild:
    """
    Run a compiler's hooks over a directory of built files.

    Every regular file under `build_dir` becomes an asset; the legacy emit hook
    sees them as one chunk. After the hooks ran, `write()` stores the resulting
    assets under `output_dir` (the build directory itself by default).
    """

    def __init__(
        self,
        build_dir: str | Path,
        output_dir: str | Path | None = None,
        context: str | Path | None = None,
    ):
        self.build_dir = Path(build_dir)
        self.output_dir = Path(output_dir) if output_dir else self.build_dir
        self.compiler = Compiler(context or self.build_dir)

    def load(self) -> Compilation:
        if not self.build_dir.is_dir():
            raise FileNotFoundError(f"Build directory not found: {self.build_dir}")
        assets: dict[str, Asset] = {}
        for path in sorted(self.build_dir.rglob("*")):
            if path.is_file():
                assets[path.relative_to(self.build_dir).as_posix()] = RawSource(path.read_bytes())
        logger.debug(f"Loaded {len(assets)} assets from {self.build_dir}")
        return Compilation(assets, chunks=[Chunk("main", list(assets))])

    def write(self, compilation: Compilation) -> list[Path]:
        written = []
        for name, asset in compilation.assets.items():
            target = self.output_dir / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(asset_bytes(asset))
            written.append(target)
        return written

    def run(self) -> Compilation:
        """Load the build, run every tapped hook and write the assets out."""
        compilation = self.load()
        self.compiler.run_hooks(compilation)
        self.write(compilation)
        return compilation
