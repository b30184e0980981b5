"""Tests for `.eap` archive assembly."""

import gzip
import os
from pathlib import Path
import tarfile

import attrs
import pytest

from cargo_acap.exceptions import PackagingError
from cargo_acap.manifest import PackageManifest
from cargo_acap.packaging.archive import (
    assemble_package,
    read_package_entries,
    tar_header,
)

FIXED_NOW = 1_600_000_000.0


def _read_member(package_path: Path, name: str) -> bytes:
    with tarfile.open(package_path, mode="r:gz") as tar:
        member = tar.extractfile(name)
        assert member is not None
        return member.read()


def test_package_without_cgi_has_two_entries(
    tmp_path: Path, manifest: PackageManifest, stripped_binary: Path
) -> None:
    source_dir = tmp_path / "src"
    source_dir.mkdir()
    output = tmp_path / "demo_1.0.0_armv7hf.eap"

    result = assemble_package(
        manifest, stripped_binary, output, source_dir=source_dir, now=lambda: FIXED_NOW
    )

    assert result == output
    entries = read_package_entries(output)
    assert [e.name for e in entries] == ["package.conf", "demo"]
    assert entries[0].mtime == int(FIXED_NOW)
    assert _read_member(output, "demo") == stripped_binary.read_bytes()
    package_conf = _read_member(output, "package.conf").decode()
    assert package_conf == manifest.to_package_conf()
    assert "HTTPCGIPATHS" not in package_conf


def test_package_with_cgi_sets_cgi_paths_on_copy_only(
    tmp_path: Path, manifest: PackageManifest, stripped_binary: Path
) -> None:
    source_dir = tmp_path / "src"
    source_dir.mkdir()
    (source_dir / "cgi.txt").write_text("/local/demo/api.cgi\n")
    output = tmp_path / "demo.eap"

    assemble_package(manifest, stripped_binary, output, source_dir=source_dir)

    assert [e.name for e in read_package_entries(output)] == [
        "cgi.txt",
        "package.conf",
        "demo",
    ]
    assert _read_member(output, "cgi.txt") == b"/local/demo/api.cgi\n"
    assert 'HTTPCGIPATHS="cgi.txt"\n' in _read_member(output, "package.conf").decode()
    assert manifest.http_cgi_paths is None


def test_entry_metadata_is_fixed(
    tmp_path: Path, manifest: PackageManifest, stripped_binary: Path
) -> None:
    source_dir = tmp_path / "src"
    source_dir.mkdir()
    (source_dir / "cgi.txt").write_text("x.cgi\n")
    stripped_binary.chmod(0o755)
    output = tmp_path / "demo.eap"

    assemble_package(manifest, stripped_binary, output, source_dir=source_dir)

    with tarfile.open(output, mode="r:gz") as tar:
        for member in tar.getmembers():
            data = tar.extractfile(member).read()
            assert member.uid == 0
            assert member.gid == 0
            assert member.mode == 0o644
            assert member.isreg()
            assert member.size == len(data)


def test_executable_mtime_comes_from_file(
    tmp_path: Path, manifest: PackageManifest, stripped_binary: Path
) -> None:
    os.utime(stripped_binary, (1_500_000_000, 1_500_000_000))
    output = tmp_path / "demo.eap"
    assemble_package(manifest, stripped_binary, output)
    entries = {e.name: e for e in read_package_entries(output)}
    assert entries["demo"].mtime == 1_500_000_000


def test_gzip_stream_is_reproducible(
    tmp_path: Path, manifest: PackageManifest, stripped_binary: Path
) -> None:
    first = assemble_package(
        manifest, stripped_binary, tmp_path / "a.eap", now=lambda: FIXED_NOW
    )
    second = assemble_package(
        manifest, stripped_binary, tmp_path / "b.eap", now=lambda: FIXED_NOW
    )
    assert first.read_bytes() == second.read_bytes()
    # No timestamp in the gzip header.
    assert first.read_bytes()[4:8] == b"\x00\x00\x00\x00"
    with gzip.open(first) as f:
        assert len(f.read()) % tarfile.RECORDSIZE == 0


def test_long_entry_names_round_trip(
    tmp_path: Path, manifest: PackageManifest, stripped_binary: Path
) -> None:
    long_name = "a" * 150
    output = tmp_path / "long.eap"
    assemble_package(attrs.evolve(manifest, app_name=long_name), stripped_binary, output)
    assert [e.name for e in read_package_entries(output)][-1] == long_name


def test_missing_executable_leaves_no_package(
    tmp_path: Path, manifest: PackageManifest
) -> None:
    output = tmp_path / "demo.eap"
    with pytest.raises(PackagingError, match="error building package"):
        assemble_package(manifest, tmp_path / "missing", output)
    assert not output.exists()


def test_unreadable_cgi_is_fatal(
    tmp_path: Path, manifest: PackageManifest, stripped_binary: Path
) -> None:
    source_dir = tmp_path / "src"
    (source_dir / "cgi.txt").mkdir(parents=True)
    with pytest.raises(PackagingError, match="Unable to read"):
        assemble_package(
            manifest, stripped_binary, tmp_path / "demo.eap", source_dir=source_dir
        )


def test_tar_header() -> None:
    header = tar_header("package.conf", 12, 1234.9)
    assert header.mode == 0o644
    assert (header.uid, header.gid) == (0, 0)
    assert header.type == tarfile.REGTYPE
    assert header.mtime == 1234
    assert header.size == 12
