"""Writes `.eap` packages: gzip-compressed GNU tar archives."""

from collections.abc import Callable
import gzip
import io
import os
from pathlib import Path
import tarfile
import time
from typing import BinaryIO

import attrs

from pyvider.telemetry import logger

from ..exceptions import PackagingError
from ..manifest import PackageManifest

PACKAGE_CONF_NAME = "package.conf"
CGI_PATHS_NAME = "cgi.txt"
ENTRY_MODE = 0o644
PARTIAL_SUFFIX = ".partial"


def tar_header(name: str, size: int, mtime: float) -> tarfile.TarInfo:
    """Builds an entry header that only varies by name, size and mtime."""
    info = tarfile.TarInfo(name)
    info.type = tarfile.REGTYPE
    info.mode = ENTRY_MODE
    info.uid = 0
    info.gid = 0
    info.uname = ""
    info.gname = ""
    info.mtime = int(mtime)
    info.size = size
    return info


def _add_file(tar: tarfile.TarFile, name: str, path: Path) -> None:
    with path.open("rb") as f:
        stat = os.fstat(f.fileno())
        tar.addfile(tar_header(name, stat.st_size, stat.st_mtime), f)
    logger.debug("Added archive entry", name=name, size=stat.st_size)


def _add_bytes(tar: tarfile.TarFile, name: str, data: bytes, mtime: float) -> None:
    tar.addfile(tar_header(name, len(data), mtime), io.BytesIO(data))
    logger.debug("Added archive entry", name=name, size=len(data))


def _write_entries(
    fileobj: BinaryIO,
    package_conf: bytes,
    app_name: str,
    executable_path: Path,
    cgi_paths: Path | None,
    now: Callable[[], float],
) -> None:
    with gzip.GzipFile(filename="", mode="wb", fileobj=fileobj, mtime=0) as gz:
        with tarfile.open(fileobj=gz, mode="w", format=tarfile.GNU_FORMAT) as tar:
            if cgi_paths is not None:
                _add_file(tar, CGI_PATHS_NAME, cgi_paths)
            _add_bytes(tar, PACKAGE_CONF_NAME, package_conf, now())
            _add_file(tar, app_name, executable_path)


def _probe_cgi_paths(source_dir: Path | None) -> Path | None:
    if source_dir is None:
        return None
    candidate = source_dir / CGI_PATHS_NAME
    try:
        with candidate.open("rb"):
            pass
    except FileNotFoundError:
        return None
    except OSError as e:
        raise PackagingError(f"Unable to read {candidate}: {e}") from e
    return candidate


def assemble_package(
    manifest: PackageManifest,
    executable_path: Path,
    output_path: Path,
    source_dir: Path | None = None,
    now: Callable[[], float] = time.time,
) -> Path:
    """
    Writes an ACAP package to `output_path`.

    The archive holds, in order, `cgi.txt` when it exists in `source_dir`,
    `package.conf` rendered from `manifest`, and the executable under the
    application's name. When `cgi.txt` is packaged, HTTPCGIPATHS is set on a
    copy of the manifest; the caller's manifest is left untouched.

    The archive is written next to `output_path` and only renamed into place
    once it has been completely flushed.
    """
    cgi_paths = _probe_cgi_paths(source_dir)
    if cgi_paths is not None:
        manifest = attrs.evolve(manifest, http_cgi_paths=CGI_PATHS_NAME)
    package_conf = manifest.to_package_conf().encode("utf-8")

    partial_path = output_path.with_name(output_path.name + PARTIAL_SUFFIX)
    try:
        with partial_path.open("wb") as f:
            _write_entries(
                f, package_conf, manifest.app_name, executable_path, cgi_paths, now
            )
            f.flush()
            os.fsync(f.fileno())
        os.replace(partial_path, output_path)
    except OSError as e:
        raise PackagingError(f"error building package {output_path}: {e}") from e

    logger.info("Built package", path=str(output_path), cgi=cgi_paths is not None)
    return output_path


def read_package_entries(package_path: Path) -> list[tarfile.TarInfo]:
    """Lists the entries of a built package, in archive order."""
    with tarfile.open(package_path, mode="r:gz") as tar:
        return tar.getmembers()
