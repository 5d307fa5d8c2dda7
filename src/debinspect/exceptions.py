from typing import cast, Optional


class DebInspectRuntimeError(RuntimeError):
    @property
    def message(self) -> str:
        return cast("str", self.args[0])


class DebInspectUsageError(DebInspectRuntimeError):
    pass


class PackageNotStagedError(DebInspectUsageError):
    @property
    def operation(self) -> str:
        return cast("str", self.args[1])


class ExtractionFailureError(DebInspectRuntimeError):
    @property
    def archive_path(self) -> str:
        return cast("str", self.args[1])


class ArchiveNotFoundError(ExtractionFailureError):
    pass


class InvalidArchiveError(ExtractionFailureError):
    pass


class ArchiveMemberError(ExtractionFailureError):
    pass


class UnsupportedPlatformError(ExtractionFailureError):
    pass


class StagingDirectoryError(ExtractionFailureError):
    @property
    def staging_root(self) -> str:
        return cast("str", self.args[2])


class ControlFileError(DebInspectRuntimeError):
    pass


class MissingMandatoryFieldError(ControlFileError):
    @property
    def field_name(self) -> str:
        return cast("str", self.args[1])


class MalformedControlFileError(ControlFileError):
    @property
    def line_number(self) -> Optional[int]:
        return cast("Optional[int]", self.args[1])


class InvalidFieldValueError(ControlFileError):
    @property
    def field_name(self) -> str:
        return cast("str", self.args[1])

    @property
    def value(self) -> str:
        return cast("str", self.args[2])


class StagedFilesystemError(DebInspectRuntimeError):
    @property
    def path(self) -> str:
        return cast("str", self.args[1])
