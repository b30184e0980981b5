"""
Static catalog of the architectures ACAP packages can be built for, and the
Axis SoC families that map onto them.
"""

from enum import Enum

from attrs import define

from .exceptions import NoSuchTargetError, UnsupportedSocError


class Architecture(str, Enum):
    AARCH64 = "aarch64"
    ARMV5TEJ = "armv5tej"
    ARMV6 = "armv6"
    ARMV7 = "armv7"
    ARMV7HF = "armv7hf"
    CRIS = "cris"
    CRISV32 = "crisv32"
    MIPS = "mips"

    @property
    def target(self) -> "Target | None":
        """The buildable target for this architecture, if there is one."""
        for target in TARGETS:
            if target.name == self.value:
                return target
        return None


@define(frozen=True, slots=True)
class Target:
    name: str
    triple: str
    objcopy: str

    @property
    def architecture(self) -> Architecture:
        return Architecture(self.name)

    def __str__(self) -> str:
        return self.name


TARGETS: tuple[Target, ...] = (
    Target("aarch64", "aarch64-axis-linux-gnu", "aarch64-linux-gnu-objcopy"),
    Target("armv5tej", "armv5te-axis-linux-gnueabi", "arm-linux-gnueabi-objcopy"),
    Target("armv6", "arm-axis-linux-gnueabi", "arm-linux-gnueabi-objcopy"),
    Target("armv7", "armv7-axis-linux-gnueabi", "arm-linux-gnueabihf-objcopy"),
    Target("armv7hf", "armv7-axis-linux-gnueabihf", "arm-linux-gnueabihf-objcopy"),
    Target("mips", "mipsel-axis-linux-gnu", "mipsisa32r2el-axis-linux-gnu-objcopy"),
)


def all_targets() -> tuple[Target, ...]:
    return TARGETS


def _no_such_target(value: str) -> NoSuchTargetError:
    return NoSuchTargetError(value, [t.name for t in TARGETS])


def by_name(name: str) -> Target:
    for target in TARGETS:
        if target.name == name:
            return target
    raise _no_such_target(name)


def by_triple(triple: str) -> Target:
    for target in TARGETS:
        if target.triple == triple:
            return target
    raise _no_such_target(triple)


def parse_target(value: str) -> Target:
    """Resolves a target from either its short name or its toolchain triple."""
    for target in TARGETS:
        if value in (target.name, target.triple):
            return target
    raise _no_such_target(value)


@define(frozen=True, slots=True)
class Soc:
    display_name: str
    year: int
    arch: Architecture

    def architecture(self) -> Target:
        """
        Returns the target used to build for this SoC.

        Raises UnsupportedSocError for families whose architecture has no
        toolchain; callers are expected to skip those with a diagnostic.
        """
        target = self.arch.target
        if target is None:
            raise UnsupportedSocError(
                f"{self.display_name} uses the {self.arch.value} architecture, "
                "which cargo-acap cannot build for"
            )
        return target


SOCS: tuple[Soc, ...] = (
    Soc("ARTPEC-3", 2007, Architecture.CRISV32),
    Soc("ARTPEC-4", 2011, Architecture.MIPS),
    Soc("ARTPEC-5", 2013, Architecture.MIPS),
    Soc("ARTPEC-6", 2017, Architecture.ARMV7HF),
    Soc("ARTPEC-7", 2019, Architecture.ARMV7HF),
    Soc("ETRAX 100LX", 2000, Architecture.CRIS),
    Soc("Ambarella A5S", 2011, Architecture.ARMV6),
    Soc("Ambarella S2", 2013, Architecture.ARMV7HF),
    Soc("Ambarella S2E", 2014, Architecture.ARMV7HF),
    Soc("Ambarella S2L", 2014, Architecture.ARMV7HF),
    Soc("Ambarella S3L", 2017, Architecture.ARMV7HF),
    Soc("Ambarella S5", 2018, Architecture.AARCH64),
    Soc("Ambarella S5L", 2018, Architecture.AARCH64),
    Soc("Ambarella CV25", 2020, Architecture.AARCH64),
    Soc("Hi3516C V300", 2016, Architecture.ARMV5TEJ),
    Soc("Hi3719C V100", 2015, Architecture.ARMV7),
    Soc("i.MX 6SoloX", 2015, Architecture.ARMV7HF),
    Soc("i.MX 6ULL", 2016, Architecture.ARMV7HF),
)


def all_socs() -> tuple[Soc, ...]:
    return SOCS
