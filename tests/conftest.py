"""Pytest fixtures for the entire cargo-acap test suite."""

from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import attrs
import pytest

from cargo_acap.config import CargoProject, load_project
from cargo_acap.manifest import PackageManifest, build_manifest
from cargo_acap.models import AcapMetadata, PackageVersion


@attrs.define
class FakeEnvironment:
    """
    Stands in for the Docker environment. Successful `cargo build` and `objcopy`
    invocations write the files the real tools would produce.
    """

    output_dir: Path
    package_name: str
    exit_codes: dict[str, int] = attrs.field(factory=dict)
    calls: list[tuple[str, list[str]]] = attrs.field(factory=list)
    produce_files: bool = True
    missing_outputs: set[str] = attrs.field(factory=set)
    image: str = "fake-image"
    described: int = 0

    def command_line(
        self,
        command: str,
        args: Sequence[str],
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> list[str]:
        return ["fake-env", command, *args]

    def describe_image(self) -> int:
        self.described += 1
        return 0

    def run(
        self,
        command: str,
        args: Sequence[str],
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> int:
        self.calls.append((command, list(args)))
        exit_code = self.exit_codes.get(command, 0)
        if exit_code != 0 or not self.produce_files:
            return exit_code
        if command in self.missing_outputs:
            return 0

        if command == "cargo":
            triple = args[args.index("--target") + 1]
            built = self.output_dir / triple / "release" / self.package_name
            built.parent.mkdir(parents=True, exist_ok=True)
            built.write_bytes(b"\x7fELF" + triple.encode() + b"\x00symbols")
        elif command.endswith("objcopy"):
            source, destination = Path(args[1]), Path(args[2])
            destination.write_bytes(source.read_bytes().split(b"\x00")[0])
        return 0


@pytest.fixture
def make_cargo_project(tmp_path: Path) -> Callable[..., Path]:
    """A factory fixture that writes a Cargo project and returns its manifest path."""

    def _make(
        name: str = "demo", version: str = "1.0.0", acap_table: str = ""
    ) -> Path:
        project_dir = tmp_path / name
        (project_dir / "src").mkdir(parents=True)
        (project_dir / "src" / "main.rs").write_text('fn main() { println!("hi"); }\n')
        cargo_toml = f'[package]\nname = "{name}"\nversion = "{version}"\n'
        if acap_table:
            cargo_toml += f"\n[package.metadata.acap]\n{acap_table}\n"
        manifest_path = project_dir / "Cargo.toml"
        manifest_path.write_text(cargo_toml)
        return manifest_path

    return _make


@pytest.fixture
def project(
    make_cargo_project: Callable[..., Path], monkeypatch: pytest.MonkeyPatch
) -> CargoProject:
    monkeypatch.delenv("CARGO_TARGET_DIR", raising=False)
    return load_project(make_cargo_project())


@pytest.fixture
def output_dir(project: CargoProject) -> Path:
    path = project.target_dir / "acap"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def fake_environment(output_dir: Path, project: CargoProject) -> FakeEnvironment:
    return FakeEnvironment(output_dir=output_dir, package_name=project.name)


@pytest.fixture
def manifest() -> PackageManifest:
    return build_manifest(AcapMetadata(), "demo", PackageVersion.parse("1.0.0"))


@pytest.fixture
def stripped_binary(tmp_path: Path) -> Path:
    path = tmp_path / "demo.stripped"
    path.write_bytes(b"\x7fELF" + bytes(range(256)) * 4)
    return path


@attrs.define
class DockerStub:
    """Hands out FakeEnvironments in place of the CLI's Docker environment."""

    exit_codes: dict[str, int] = attrs.field(factory=dict)
    created: list[FakeEnvironment] = attrs.field(factory=list)

    def from_environ(
        self,
        image: str,
        workspace_root: Path,
        package_root: Path,
        output_dir: Path,
        cargo_home: Path,
    ) -> FakeEnvironment:
        environment = FakeEnvironment(
            output_dir=output_dir,
            package_name=package_root.name,
            exit_codes=self.exit_codes,
            image=image,
        )
        self.created.append(environment)
        return environment


@pytest.fixture
def docker_stub(monkeypatch: pytest.MonkeyPatch) -> DockerStub:
    stub = DockerStub()
    monkeypatch.setattr(
        "cargo_acap.cli.DockerEnvironment.from_environ", stub.from_environ
    )
    monkeypatch.delenv("CARGO_TARGET_DIR", raising=False)
    return stub
