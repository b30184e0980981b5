"""The `cargo-acap` command-line interface."""

import importlib.metadata
from pathlib import Path
import sys
from typing import Any

import click

from .config import DEFAULT_MANIFEST_PATH, load_project
from .environment import DEFAULT_DOCKER_IMAGE, DockerEnvironment, resolve_docker_image
from .exceptions import AcapError, CommandFailedError, NoSuchTargetError, UnsupportedSocError
from .manifest import build_manifest
from .packaging.orchestrator import BuildOrchestrator, resolve_output_dir
from .targets import Target, all_socs, all_targets, parse_target

try:
    __version__ = importlib.metadata.version("cargo-acap")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0-dev"


class TargetParamType(click.ParamType):
    name = "target"

    def convert(
        self, value: Any, param: click.Parameter | None, ctx: click.Context | None
    ) -> Target:
        if isinstance(value, Target):
            return value
        try:
            return parse_target(value)
        except NoSuchTargetError as e:
            self.fail(str(e), param, ctx)


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.version_option(
    __version__,
    "-V",
    "--version",
    prog_name="cargo-acap",
    message="%(prog)s version %(version)s",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="A level of verbosity, and can be used multiple times.",
)
@click.option(
    "--manifest-path",
    default=str(DEFAULT_MANIFEST_PATH),
    type=click.Path(dir_okay=False),
    help="Path to the application project's Cargo.toml.",
)
@click.option(
    "--docker-image",
    default=DEFAULT_DOCKER_IMAGE,
    show_default=True,
    help="Docker image to use for cross-compiling.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: int, manifest_path: str, docker_image: str) -> None:
    """Build Axis ACAP applications from Cargo projects."""
    ctx.ensure_object(dict)
    ctx.obj.update(
        verbose=verbose,
        manifest_path=Path(manifest_path),
        docker_image=docker_image,
    )


@cli.command("build")
@click.option(
    "-t",
    "--target",
    "--targets",
    "targets",
    multiple=True,
    type=TargetParamType(),
    help="Which target(s) to build (defaults to all).",
)
@click.option(
    "--show-version",
    is_flag=True,
    help="Show the Docker image and compiler version before building.",
)
@click.pass_context
def build_command(
    ctx: click.Context, targets: tuple[Target, ...], show_version: bool
) -> None:
    """Builds an ACAP application for one or more targets."""
    verbose: int = ctx.obj["verbose"]
    try:
        project = load_project(ctx.obj["manifest_path"])
        manifest = build_manifest(project.metadata, project.name, project.version)
        # Serialization errors do not depend on the target.
        manifest.to_package_conf()

        selected = targets or project.metadata.targets or all_targets()

        output_dir = resolve_output_dir(project.target_dir)
        environment = DockerEnvironment.from_environ(
            image=resolve_docker_image(ctx.obj["docker_image"]),
            workspace_root=project.workspace_root,
            package_root=project.package_root,
            output_dir=output_dir,
            cargo_home=project.cargo_home,
        )
        click.echo(
            f"cargo-acap: building ACAP package `{manifest.app_name}` "
            f"using Docker image {environment.image}"
        )

        orchestrator = BuildOrchestrator(
            project=project,
            manifest=manifest,
            environment=environment,
            output_dir=output_dir,
            verbose=verbose,
        )
        if show_version or verbose > 0:
            environment.describe_image()
            orchestrator.describe_toolchain()

        results = orchestrator.build(selected)
    except CommandFailedError as e:
        click.secho(
            f"`cargo acap` failed: `{' '.join(e.command)}` returned exit code {e.exit_code}",
            fg="red",
            err=True,
        )
        ctx.exit(_exit_status(e.exit_code))
    except AcapError as e:
        click.secho(f"❌ Build Failed:\n{e}", fg="red", err=True)
        raise click.Abort() from e

    for result in results:
        click.secho(f"✅ {result.package_path}", fg="green")


def _exit_status(exit_code: int) -> int:
    """Maps a subprocess killed by signal N (reported as -N) to the shell's 128 + N."""
    if exit_code < 0:
        return 128 - exit_code
    return exit_code


def _print_table(headers: list[str], rows: list[list[str]]) -> None:
    widths = [len(h) for h in headers]
    for row in rows:
        for column, cell in enumerate(row):
            widths[column] = max(widths[column], len(cell))

    def render(cells: list[str]) -> str:
        return "|" + "".join(f" {c.ljust(w)} |" for c, w in zip(cells, widths))

    click.echo(render(headers))
    click.echo(render(["-" * w for w in widths]))
    for row in rows:
        click.echo(render(row))


@cli.command("targets")
@click.argument(
    "mode",
    type=click.Choice(["plain", "table", "soc_table"]),
    default="plain",
    required=False,
)
def targets_command(mode: str) -> None:
    """Lists the supported targets."""
    if mode == "plain":
        for target in all_targets():
            click.echo(target.name)
    elif mode == "table":
        _print_table(
            ["`cargo acap` `target`", "Rust `--target`"],
            [[f"`{t.name}`", f"`{t.triple}`"] for t in all_targets()],
        )
    else:
        rows = []
        for soc in sorted(all_socs(), key=lambda s: (s.year, s.display_name)):
            try:
                target = soc.architecture()
            except UnsupportedSocError:
                name = triple = "(unsupported)"
            else:
                name, triple = f"`{target.name}`", f"`{target.triple}`"
            rows.append([soc.display_name, str(soc.year), name, triple])
        _print_table(
            ["SOC", "Year", "`cargo acap` `target`", "Rust `--target`"], rows
        )


def _cargo_subcommand_args(argv: list[str]) -> list[str]:
    """Drops the `acap` argument cargo passes when invoked as `cargo acap ...`."""
    if argv and argv[0] == "acap":
        return argv[1:]
    return argv


def main() -> None:
    cli.main(args=_cargo_subcommand_args(sys.argv[1:]), prog_name="cargo-acap")


if __name__ == "__main__":
    main()
