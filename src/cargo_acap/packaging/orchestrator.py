"""Core logic for cross-compiling and packaging an ACAP application per target."""

from collections.abc import Iterable
from enum import Enum
from pathlib import Path
import shutil

from attrs import define, field
import click

from pyvider.telemetry import logger

from ..config import CargoProject
from ..environment import ExecutionEnvironment
from ..exceptions import AcapError, BuildError, CommandFailedError, StagingError
from ..manifest import PackageManifest
from ..targets import Target
from .archive import assemble_package

OUTPUT_DIR_NAME = "acap"
DEFAULT_MANIFEST_NAME = "Cargo.toml"


def resolve_output_dir(target_dir: Path) -> Path:
    """Creates `<target_dir>` and `<target_dir>/acap` if needed and returns the latter."""
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise BuildError(f"error creating {target_dir}: {e}") from e

    output_dir = target_dir / OUTPUT_DIR_NAME
    try:
        output_dir.mkdir()
    except FileExistsError:
        pass
    except OSError as e:
        raise BuildError(f"error creating {output_dir}: {e}") from e
    return output_dir


class BuildState(str, Enum):
    PENDING = "pending"
    COMPILING = "compiling"
    STAGING = "staging"
    STRIPPING = "stripping"
    PACKAGING = "packaging"
    DONE = "done"
    FAILED = "failed"


@define
class TargetBuild:
    target: Target
    state: BuildState = BuildState.PENDING
    reason: str | None = None
    built_executable: Path | None = None
    elf_path: Path | None = None
    stripped_executable: Path | None = None
    package_path: Path | None = None

    def advance(self, state: BuildState) -> None:
        logger.debug("Target state changed", target=self.target.name, state=state.value)
        self.state = state

    def fail(self, reason: str) -> None:
        logger.error("Target build failed", target=self.target.name, reason=reason)
        self.state = BuildState.FAILED
        self.reason = reason


@define
class BuildOrchestrator:
    project: CargoProject
    manifest: PackageManifest
    environment: ExecutionEnvironment
    output_dir: Path
    verbose: int = 0
    results: list[TargetBuild] = field(factory=list, init=False)

    def _run(self, command: str, args: list[str]) -> None:
        if self.verbose > 1:
            cmd = self.environment.command_line(command, args)
            click.echo(f"+ {' '.join(cmd)}", err=True)
        exit_code = self.environment.run(command, args)
        if exit_code != 0:
            raise CommandFailedError(
                self.environment.command_line(command, args), exit_code
            )

    def artifact_path(self, target: Target, suffix: str) -> Path:
        return self.output_dir / (
            f"{self.manifest.app_name}_{self.project.version}_{target.name}{suffix}"
        )

    def describe_toolchain(self) -> None:
        """Shows the compiler version available inside the build environment."""
        self._run("rustc", ["--version"])

    def compile(self, target: Target) -> Path:
        args = ["build", "--target", target.triple, "--release"]
        # The container starts in the package root, where cargo finds Cargo.toml itself.
        if self.project.manifest_path.name != DEFAULT_MANIFEST_NAME:
            args += ["--manifest-path", str(self.project.manifest_path)]
        args += ["--verbose"] * max(self.verbose - 1, 0)

        self._run("cargo", args)
        return self.output_dir / target.triple / "release" / self.project.name

    def stage(self, target: Target, built_executable: Path) -> Path:
        elf_path = self.artifact_path(target, ".elf")
        try:
            shutil.copyfile(built_executable, elf_path)
        except OSError as e:
            raise StagingError(f"error copying built executable: {e}") from e
        if self.verbose > 0:
            size = elf_path.stat().st_size
            click.echo(f"built executable {elf_path} ({size} bytes)", err=True)
        return elf_path

    def strip(self, target: Target, built_executable: Path) -> Path:
        stripped = built_executable.with_suffix(".stripped")
        self._run(target.objcopy, ["--strip-all", str(built_executable), str(stripped)])
        if self.verbose > 1:
            try:
                size = stripped.stat().st_size
            except OSError as e:
                raise StagingError(f"error reading stripped executable {stripped}: {e}") from e
            click.echo(f"stripped {stripped} ({size} bytes without symbols)", err=True)
        return stripped

    def package(self, target: Target, stripped_executable: Path) -> Path:
        package_path = assemble_package(
            self.manifest,
            stripped_executable,
            self.artifact_path(target, ".eap"),
            source_dir=self.project.source_dir,
        )
        if self.verbose > 0:
            size = package_path.stat().st_size
            click.echo(f"built package {package_path} ({size} bytes)", err=True)
        return package_path

    def build_target(self, target: Target) -> TargetBuild:
        build = TargetBuild(target)
        self.results.append(build)
        click.echo(f"cargo-acap: building target {target.name}", err=True)
        try:
            build.advance(BuildState.COMPILING)
            build.built_executable = self.compile(target)
            build.advance(BuildState.STAGING)
            build.elf_path = self.stage(target, build.built_executable)
            build.advance(BuildState.STRIPPING)
            build.stripped_executable = self.strip(target, build.built_executable)
            build.advance(BuildState.PACKAGING)
            build.package_path = self.package(target, build.stripped_executable)
        except AcapError as e:
            build.fail(str(e))
            raise
        build.advance(BuildState.DONE)
        return build

    def build(self, targets: Iterable[Target]) -> list[TargetBuild]:
        """
        Builds each target in order. The first failure propagates immediately,
        so later targets are never attempted.
        """
        logger.info(
            "Starting ACAP build",
            app_name=self.manifest.app_name,
            version=str(self.project.version),
        )
        return [self.build_target(target) for target in targets]
