"""
The `packaging` sub-package contains modules related to building ACAP packages.

This includes:
- Orchestrating the per-target build, by invoking cargo and objcopy inside the build environment.
- Assembling the `.eap` archive from the manifest and the stripped executable.
"""
