import logging
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path

from bundleguard.constants import PROTECTABLE_ASSET_PATTERN, TARGET_LAYOUTS
from bundleguard.exceptions import ReintegrationError, StagingError
from bundleguard.host import Asset, RawSource, asset_bytes

logger = logging.getLogger(__name__)

Publisher = Callable[[str, Asset], None]


def layout_subdirectory(target_type: str) -> str:
    """Relative directory the tool expects files in for `target_type` ("" for the root)."""
    return TARGET_LAYOUTS.get(target_type.lower(), "")


def layout_root(root: str | Path, target_type: str) -> Path:
    """`root` adjusted for the target-platform layout."""
    subdirectory = layout_subdirectory(target_type)
    return Path(root) / subdirectory if subdirectory else Path(root)


def is_protectable(name: str) -> bool:
    return bool(PROTECTABLE_ASSET_PATTERN.search(name))


def select_assets(names: Iterable[str]) -> list[str]:
    """Names the protection tool can process, in order, without duplicates."""
    selected = []
    for name in names:
        if is_protectable(name) and name not in selected:
            selected.append(name)
    return selected


def stage(
    assets: Mapping[str, Asset],
    names: Iterable[str],
    staging_root: str | Path,
    target_type: str,
) -> Path:
    """
    Copy the protectable assets among `names` into the staging directory.

    Files land under the layout-adjusted root, keeping their relative names;
    intermediate directories are created as needed. Names that match the
    allow-list but are missing from `assets` are skipped.

    Args:
        assets: The build's assets by name.
        names: Candidate asset names.
        staging_root: Temporary input directory.
        target_type: Lowercased blueprint target type.

    Returns:
        The layout-adjusted directory the files were written to.

    Raises:
        StagingError: If an asset cannot be read or written.
    """
    root = layout_root(staging_root, target_type)
    root.mkdir(parents=True, exist_ok=True)

    staged = 0
    for name in select_assets(names):
        asset = assets.get(name)
        if asset is None:
            logger.debug(f"Skipping '{name}': listed by a chunk but not present in the assets")
            continue
        destination = root / name
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(asset_bytes(asset))
        except OSError as e:
            raise StagingError(f"Failed to stage into {destination}: {e}", asset_name=name) from e
        staged += 1

    logger.info(f"Staged {staged} assets into {root}")
    return root


def iterate_files(directory: Path, prefix: str = ""):
    """Yield POSIX relative paths of every regular file under `directory`, depth-first."""
    for entry in sorted(directory.iterdir()):
        relative = f"{prefix}{entry.name}"
        if entry.is_dir():
            yield from iterate_files(entry, f"{relative}/")
        elif entry.is_file():
            yield relative


def reintegrate(output_root: str | Path, publish: Publisher) -> list[str]:
    """
    Publish every file the tool wrote under `output_root` back into the build.

    Each file replaces the asset with the same relative name (or is added when
    no such asset exists). A missing output root means the tool produced
    nothing to apply.

    Args:
        output_root: Layout-adjusted output directory.
        publish: Called with (name, asset) for every file.

    Returns:
        The names of the published assets.

    Raises:
        ReintegrationError: If the output cannot be read.
    """
    root = Path(output_root)
    if not root.exists():
        logger.warning(f"Protection produced no output directory at {root}; nothing to reintegrate")
        return []
    if not root.is_dir():
        raise ReintegrationError(f"Output root {root} is not a directory")

    applied = []
    try:
        for name in iterate_files(root):
            publish(name, RawSource((root / name).read_bytes()))
            applied.append(name)
    except OSError as e:
        raise ReintegrationError(f"Failed to read protected output from {root}: {e}") from e

    logger.info(f"Reintegrated {len(applied)} protected assets")
    return applied
