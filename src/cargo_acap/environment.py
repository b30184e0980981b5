"""
Execution environments that run build commands in isolation.

The orchestrator only depends on the `ExecutionEnvironment` protocol; the
Docker implementation mounts the workspace, the output directory and the cargo
home into a cross-compilation image.
"""

from collections.abc import Mapping, Sequence
import os
from pathlib import Path
import shutil
import subprocess
import sys
from typing import Protocol

from attrs import define, field

from pyvider.telemetry import logger

from .exceptions import ConfigurationError

DEFAULT_DOCKER_IMAGE = "trunnion/cargo-acap"
CONTAINER_TARGET_DIR = "/target"
CONTAINER_CARGO_HOME = "/.cargo"


class ExecutionEnvironment(Protocol):
    def command_line(
        self,
        command: str,
        args: Sequence[str],
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> list[str]: ...

    def run(
        self,
        command: str,
        args: Sequence[str],
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> int: ...


@define(frozen=True, slots=True)
class Whoami:
    uid: int
    gid: int
    username: str | None = None


def whoami() -> Whoami:
    """Returns the effective user, so files written in the container stay owned by it."""
    if sys.platform == "win32":
        return Whoami(uid=1000, gid=1000)

    import pwd

    uid = os.geteuid()
    gid = os.getegid()
    try:
        username: str | None = pwd.getpwuid(uid).pw_name
    except KeyError:
        username = None
    return Whoami(uid=uid, gid=gid, username=username)


def _stdin_is_tty() -> bool:
    return sys.stdin is not None and sys.stdin.isatty()


def _stdout_is_tty() -> bool:
    return sys.stdout is not None and sys.stdout.isatty()


def rustc_version() -> str:
    """Returns the version of the host's `rustc`, e.g. "1.50.0"."""
    if not shutil.which("rustc"):
        raise ConfigurationError(
            "rustc not found in PATH. Please install Rust or pass a tagged --docker-image."
        )
    result = subprocess.run(
        ["rustc", "--version"], capture_output=True, text=True, check=False
    )
    if result.returncode != 0:
        raise ConfigurationError(
            f"`rustc --version` failed with exit code {result.returncode}.\n"
            f"  Stderr: {result.stderr.strip()}"
        )
    # "rustc 1.50.0 (cb75ad5db 2021-02-10)"
    parts = result.stdout.split()
    if len(parts) < 2:
        raise ConfigurationError(f"Unexpected `rustc --version` output: {result.stdout!r}")
    return parts[1]


def resolve_docker_image(image: str, version: str | None = None) -> str:
    """Tags an untagged image with the rustc version, leaving tagged images alone."""
    if ":" in image:
        return image
    return f"{image}:{version or rustc_version()}"


@define
class DockerEnvironment:
    image: str
    workspace_root: Path
    package_root: Path
    output_dir: Path
    cargo_home: Path
    user: Whoami = field(factory=whoami)
    extra_options: list[str] = field(factory=list)
    interactive: bool = field(factory=_stdin_is_tty)
    tty: bool = field(factory=_stdout_is_tty)

    @classmethod
    def from_environ(
        cls,
        image: str,
        workspace_root: Path,
        package_root: Path,
        output_dir: Path,
        cargo_home: Path,
    ) -> "DockerEnvironment":
        """Builds an environment, honoring extra `docker run` flags from $DOCKER_OPTS."""
        options = os.environ.get("DOCKER_OPTS")
        return cls(
            image=image,
            workspace_root=workspace_root,
            package_root=package_root,
            output_dir=output_dir,
            cargo_home=cargo_home,
            extra_options=options.split(" ") if options else [],
        )

    def base_command(self, cwd: Path | None = None) -> list[str]:
        docker = ["docker", "run", "--rm"]
        if self.interactive:
            docker.append("--interactive")
            if self.tty:
                docker.append("--tty")

        docker += ["--user", f"{self.user.uid}:{self.user.gid}"]
        if self.user.username:
            docker += ["--env", f"USER={self.user.username}"]

        docker += [
            "--volume",
            f"{self.workspace_root}:{self.workspace_root}:Z",
            "--workdir",
            str(cwd or self.package_root),
            "--volume",
            f"{self.output_dir}:{CONTAINER_TARGET_DIR}:Z",
            "--env",
            f"CARGO_TARGET_DIR={CONTAINER_TARGET_DIR}",
            "--volume",
            f"{self.cargo_home}:{CONTAINER_CARGO_HOME}:Z",
        ]
        return docker

    def command_line(
        self,
        command: str,
        args: Sequence[str],
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> list[str]:
        docker = self.base_command(cwd)
        for key, value in (env or {}).items():
            docker += ["--env", f"{key}={value}"]
        docker += self.extra_options
        docker.append(self.image)
        docker.append(command)
        docker += [str(arg) for arg in args]
        return docker

    def run(
        self,
        command: str,
        args: Sequence[str],
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> int:
        cmd = self.command_line(command, args, cwd=cwd, env=env)
        logger.debug("Running command in container", command=" ".join(cmd))
        result = subprocess.run(cmd, check=False)
        return result.returncode

    def describe_image(self) -> int:
        """Shows the local `docker images` entry for the build image."""
        return subprocess.run(["docker", "images", self.image], check=False).returncode
