class AcapError(Exception):
    pass


class ConfigurationError(AcapError):
    pass


class ManifestSerializationError(ConfigurationError):
    pass


class NoSuchTargetError(AcapError, LookupError):
    def __init__(self, value: str, valid_names: list[str]) -> None:
        self.value = value
        self.valid_names = valid_names
        expected = "".join(f"  * {name}\n" for name in valid_names)
        super().__init__(f"no such target: {value}\nexpected one of:\n{expected}")


class UnsupportedSocError(LookupError):
    pass


class BuildError(AcapError):
    pass


class CommandFailedError(BuildError):
    def __init__(self, command: list[str], exit_code: int) -> None:
        self.command = command
        self.exit_code = exit_code
        super().__init__(
            f"`{' '.join(command)}` returned exit code {exit_code}"
        )


class StagingError(BuildError):
    pass


class PackagingError(BuildError):
    pass
