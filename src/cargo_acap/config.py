"""Loads the Cargo project that is being packaged."""

import os
from pathlib import Path
import tomllib
from typing import Any

from attrs import define

from pyvider.telemetry import logger

from .exceptions import ConfigurationError
from .models import AcapMetadata, PackageVersion

DEFAULT_MANIFEST_PATH = Path("Cargo.toml")


@define(frozen=True, slots=True)
class CargoProject:
    name: str
    version: PackageVersion
    manifest_path: Path
    package_root: Path
    workspace_root: Path
    target_dir: Path
    cargo_home: Path
    metadata: AcapMetadata

    @property
    def source_dir(self) -> Path:
        return self.package_root / "src"


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Cargo manifest not found at: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Unable to parse {path}: {e}") from e


def _find_workspace_root(package_root: Path) -> Path:
    """Finds the nearest enclosing directory whose Cargo.toml declares [workspace]."""
    current = package_root
    while True:
        candidate = current / "Cargo.toml"
        if candidate.is_file() and "workspace" in _read_toml(candidate):
            return current
        if current.parent == current:
            return package_root
        current = current.parent


def _cargo_home() -> Path:
    if home := os.environ.get("CARGO_HOME"):
        return Path(home)
    return Path.home() / ".cargo"


def load_project(manifest_path: Path = DEFAULT_MANIFEST_PATH) -> CargoProject:
    manifest_path = Path(manifest_path).resolve()
    cargo_toml = _read_toml(manifest_path)

    package = cargo_toml.get("package")
    if not package:
        raise ConfigurationError(
            f"A [package] section was not found in {manifest_path}."
        )

    name = package.get("name")
    version = package.get("version")
    if not name or not version:
        raise ConfigurationError(
            f"Missing 'name' or 'version' in [package] table of {manifest_path}"
        )
    if not isinstance(version, str):
        raise ConfigurationError(
            f"Workspace-inherited versions are not supported in {manifest_path}"
        )

    acap_table = package.get("metadata", {}).get("acap")
    package_root = manifest_path.parent
    workspace_root = _find_workspace_root(package_root)

    if target_dir := os.environ.get("CARGO_TARGET_DIR"):
        resolved_target_dir = Path(target_dir).resolve()
    else:
        resolved_target_dir = workspace_root / "target"

    project = CargoProject(
        name=name,
        version=PackageVersion.parse(version),
        manifest_path=manifest_path,
        package_root=package_root,
        workspace_root=workspace_root,
        target_dir=resolved_target_dir,
        cargo_home=_cargo_home(),
        metadata=AcapMetadata.from_table(acap_table),
    )
    logger.debug(
        "Loaded Cargo project",
        name=project.name,
        version=str(project.version),
        workspace_root=str(workspace_root),
    )
    return project
