import re
from enum import Enum
from typing import Any, Self

from attrs import define, field, fields

from .exceptions import ConfigurationError, NoSuchTargetError
from .targets import Target, parse_target

# https://semver.org/#is-there-a-suggested-regular-expression-regex-to-check-a-semver-string
SEMVER_PATTERN = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)


class LicensePage(str, Enum):
    AXIS = "axis"
    CUSTOM = "custom"
    NONE = "none"


class StartMode(str, Enum):
    RESPAWN = "respawn"
    ONCE = "once"
    NEVER = "never"


@define(frozen=True, slots=True)
class PackageVersion:
    major: int
    minor: int
    patch: int
    pre: str | None = None
    build: str | None = None

    @classmethod
    def parse(cls, value: str) -> Self:
        match = SEMVER_PATTERN.match(value.strip())
        if match is None:
            raise ConfigurationError(f"Invalid semantic version: {value!r}")
        return cls(
            major=int(match["major"]),
            minor=int(match["minor"]),
            patch=int(match["patch"]),
            pre=match["pre"],
            build=match["build"],
        )

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            text += f"-{self.pre}"
        if self.build:
            text += f"+{self.build}"
        return text


@define(frozen=True, slots=True)
class AcapMetadata:
    """
    The `[package.metadata.acap]` table of a Cargo manifest.

    Every field is optional; an absent value means "use the default" when the
    package manifest is resolved.
    """

    app_name: str | None = None
    display_name: str | None = None
    menu_name: str | None = None
    vendor: str | None = None
    vendor_homepage_url: str | None = None
    launch_arguments: str | None = None
    license_check_arguments: str | None = None
    axis_application_id: str | None = None
    start_mode: StartMode | None = None
    targets: tuple[Target, ...] | None = field(default=None)

    @classmethod
    def from_table(cls, table: dict[str, Any] | None) -> Self:
        if not table:
            return cls()

        values: dict[str, Any] = {}
        for attribute in fields(cls):
            if attribute.name not in table:
                continue
            raw = table[attribute.name]
            if attribute.name == "start_mode":
                try:
                    values["start_mode"] = StartMode(raw)
                except ValueError as e:
                    choices = ", ".join(m.value for m in StartMode)
                    raise ConfigurationError(
                        f"error parsing [package.metadata.acap] table: "
                        f"start_mode must be one of {choices}, got {raw!r}"
                    ) from e
            elif attribute.name == "targets":
                if not isinstance(raw, list):
                    raise ConfigurationError(
                        "error parsing [package.metadata.acap] table: "
                        "targets must be a list of target names"
                    )
                try:
                    values["targets"] = tuple(parse_target(str(t)) for t in raw)
                except NoSuchTargetError as e:
                    raise ConfigurationError(
                        f"error parsing [package.metadata.acap] table: {e}"
                    ) from e
            else:
                if not isinstance(raw, str):
                    raise ConfigurationError(
                        f"error parsing [package.metadata.acap] table: "
                        f"{attribute.name} must be a string, got {raw!r}"
                    )
                values[attribute.name] = raw
        return cls(**values)
