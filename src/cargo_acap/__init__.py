# cargo-acap/src/cargo_acap/__init__.py
"""
This package contains the core logic for cross-compiling Cargo projects and
packaging them as Axis ACAP applications (`.eap` archives).
"""

from .manifest import PackageManifest, build_manifest
from .packaging.orchestrator import BuildOrchestrator
from .targets import Target, all_targets, by_name, by_triple

__all__ = [
    "BuildOrchestrator",
    "PackageManifest",
    "Target",
    "all_targets",
    "build_manifest",
    "by_name",
    "by_triple",
]
