"""
Resolution and serialization of `package.conf`, the manifest embedded in every
ACAP package.
"""

from typing import Any

from attrs import define, field

from .exceptions import ConfigurationError, ManifestSerializationError
from .models import AcapMetadata, LicensePage, PackageVersion, StartMode

REQUIRED_EMBEDDED_DEVELOPMENT_VERSION = "2.0"
DEFAULT_UNIX_USER = "sdk"
DEFAULT_UNIX_GROUP = "sdk"

# APPMAJORVERSION and APPMINORVERSION are signed 32-bit integers.
VERSION_COMPONENT_MAX = 2**31 - 1

_SHELL_SPECIAL_CHARS = ("\\", '"', "$", "`")


@define(frozen=True, slots=True)
class PackageManifest:
    app_name: str
    display_name: str
    menu_name: str
    application_id: str
    vendor: str
    major_version: int
    minor_version: int
    micro_version: str
    license_page: LicensePage
    start_mode: StartMode
    launch_arguments: str | None = None
    other_files: tuple[str, ...] = field(default=(), converter=tuple)
    license_check_arguments: str | None = None
    settings_page_file: str | None = None
    settings_page_text: str | None = None
    vendor_homepage_link: str | None = None
    http_cgi_paths: str | None = None
    post_install_script: str | None = None
    required_embedded_development_version: str = REQUIRED_EMBEDDED_DEVELOPMENT_VERSION
    unix_user: str = DEFAULT_UNIX_USER
    unix_group: str = DEFAULT_UNIX_GROUP

    def entries(self) -> list[tuple[str, str | None]]:
        """The `package.conf` keys and values, in file order. Unset optional values are None."""
        return [
            ("APPNAME", self.app_name),
            ("PACKAGENAME", self.display_name),
            ("MENUNAME", self.menu_name),
            ("APPID", self.application_id),
            ("VENDOR", self.vendor),
            ("APPOPTS", self.launch_arguments),
            ("APPMAJORVERSION", str(self.major_version)),
            ("APPMINORVERSION", str(self.minor_version)),
            ("APPMICROVERSION", self.micro_version),
            ("OTHERFILES", _join_other_files(self.other_files)),
            ("LICENSEPAGE", self.license_page.value),
            ("LICENSE_CHECK_ARGS", self.license_check_arguments),
            ("SETTINGSPAGEFILE", self.settings_page_file),
            ("SETTINGSPAGETEXT", self.settings_page_text),
            ("VENDORHOMEPAGELINK", self.vendor_homepage_link),
            ("HTTPCGIPATHS", self.http_cgi_paths),
            ("POSTINSTALLSCRIPT", self.post_install_script),
            ("REQEMBDEVVERSION", self.required_embedded_development_version),
            ("APPUSR", self.unix_user),
            ("APPGRP", self.unix_group),
            ("STARTMODE", self.start_mode.value),
        ]

    def to_package_conf(self) -> str:
        """Renders the manifest as shell variable assignments, one per line."""
        lines = []
        for key, value in self.entries():
            if value is None:
                continue
            lines.append(f'{key}="{_quote(key, value)}"\n')
        return "".join(lines)

    def __str__(self) -> str:
        return self.to_package_conf()


def _join_other_files(other_files: tuple[str, ...]) -> str:
    for name in other_files:
        if " " in name:
            raise ManifestSerializationError(
                f"unable to serialize OTHERFILES entry {name!r} since it contains a space"
            )
    return " ".join(other_files)


def _quote(key: str, value: str) -> str:
    if "\n" in value or "\r" in value or "\0" in value:
        raise ManifestSerializationError(
            f"unable to serialize {key}={value!r}: values must fit on a single line"
        )
    for char in _SHELL_SPECIAL_CHARS:
        value = value.replace(char, "\\" + char)
    return value


def derive_license_page(metadata: AcapMetadata) -> LicensePage:
    # An Axis application ID takes precedence over custom license checks.
    if metadata.axis_application_id is not None:
        return LicensePage.AXIS
    if metadata.license_check_arguments is not None:
        return LicensePage.CUSTOM
    return LicensePage.NONE


def micro_version(version: PackageVersion) -> str:
    text = str(version.patch)
    if version.pre:
        text += f"-{version.pre}"
    if version.build:
        text += f"+{version.build}"
    return text


def _check_version_component(label: str, value: int, version: PackageVersion) -> int:
    if not 0 <= value <= VERSION_COMPONENT_MAX:
        raise ConfigurationError(
            f"version {version} out of range: {label} version {value} "
            f"does not fit in APP{label.upper()}VERSION"
        )
    return value


def _or_default(value: Any, default: Any) -> Any:
    return default if value is None else value


def build_manifest(
    metadata: AcapMetadata, package_name: str, version: PackageVersion
) -> PackageManifest:
    """
    Resolves the sparse `[package.metadata.acap]` settings into a complete
    manifest, filling every absent value with its default.
    """
    app_name = _or_default(metadata.app_name, package_name)
    display_name = _or_default(metadata.display_name, package_name)
    menu_name = _or_default(metadata.menu_name, display_name)
    vendor = _or_default(metadata.vendor, f"{display_name} authors")

    # TODO: HTML-escape the vendor name and URL once package consumers accept it.
    vendor_homepage_link = None
    if metadata.vendor_homepage_url is not None:
        vendor_homepage_link = f'<a href="{metadata.vendor_homepage_url}">{vendor}</a>'

    return PackageManifest(
        app_name=app_name,
        display_name=display_name,
        menu_name=menu_name,
        application_id=_or_default(metadata.axis_application_id, ""),
        vendor=vendor,
        launch_arguments=metadata.launch_arguments,
        major_version=_check_version_component("major", version.major, version),
        minor_version=_check_version_component("minor", version.minor, version),
        micro_version=micro_version(version),
        license_page=derive_license_page(metadata),
        license_check_arguments=metadata.license_check_arguments,
        vendor_homepage_link=vendor_homepage_link,
        start_mode=_or_default(metadata.start_mode, StartMode.RESPAWN),
    )
