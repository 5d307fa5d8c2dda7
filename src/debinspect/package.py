import os
from enum import Enum
from typing import Optional

from debinspect.control import ControlRecord, parse_control_file
from debinspect.exceptions import (
    ExtractionFailureError,
    MalformedControlFileError,
    PackageNotStagedError,
    StagedFilesystemError,
)
from debinspect.install_tree import InstallTree, compute_install_tree
from debinspect.staging import (
    BUILTIN_STAGING_METHOD,
    STAGED_CONTROL_DIR,
    STAGED_DATA_DIR,
    STAGED_VERSION_MEMBER,
    discard_staging_dir,
    stage_archive,
)


class FormatVersion(Enum):
    V1_0 = b"1.0\n"
    V2_0 = b"2.0\n"
    UNKNOWN = None

    @classmethod
    def from_debian_binary(cls, content: bytes) -> "FormatVersion":
        for version in (cls.V1_0, cls.V2_0):
            if content == version.value:
                return version
        return cls.UNKNOWN

    @property
    def pretty_name(self) -> str:
        if self.value is None:
            return "unknown"
        return self.value.decode("ascii").strip()


class DebPackage:
    """A .deb archive that can be inspected once it has been staged

    The package starts out unstaged. `stage()` unpacks the archive into a
    staging directory; only then can `format_version()`, `control_record()`
    and `install_tree()` be used.

    Staging an already staged package unpacks the archive again and replaces
    the recorded staging directory. The previous directory is left behind
    (use `discard_staging()` first to remove it). Re-staging while another
    thread queries the same package is not supported.

    The package can be used as a context manager; the staging directory is
    removed when the block is left.
    """

    __slots__ = ["_archive_path", "_staging_dir"]

    def __init__(self, archive_path: str) -> None:
        self._archive_path = archive_path
        self._staging_dir: Optional[str] = None

    @property
    def archive_path(self) -> str:
        return self._archive_path

    @property
    def staging_dir(self) -> Optional[str]:
        return self._staging_dir

    @property
    def is_staged(self) -> bool:
        return self._staging_dir is not None

    def stage(
        self,
        *,
        staging_root: Optional[str] = None,
        method: str = BUILTIN_STAGING_METHOD,
    ) -> "DebPackage":
        staging_dir = stage_archive(
            self._archive_path,
            staging_root=staging_root,
            method=method,
        )
        if not os.path.isdir(staging_dir):
            raise ExtractionFailureError(
                f'Staging "{self._archive_path}" did not produce the directory "{staging_dir}"',
                self._archive_path,
            )
        self._staging_dir = staging_dir
        return self

    def discard_staging(self) -> None:
        staging_dir = self._staging_dir
        if staging_dir is None:
            return
        self._staging_dir = None
        if os.path.isdir(staging_dir):
            discard_staging_dir(staging_dir)

    def _staged_path(self, operation: str, *segments: str) -> str:
        staging_dir = self._staging_dir
        if staging_dir is None:
            raise PackageNotStagedError(
                f'The package "{self._archive_path}" must be staged before calling {operation}().'
                " Please call stage() first",
                operation,
            )
        return os.path.join(staging_dir, *segments)

    def _read_staged_file(self, path: str) -> bytes:
        try:
            with open(path, "rb") as fd:
                return fd.read()
        except OSError as e:
            raise StagedFilesystemError(
                f'Cannot read "{path}" staged from "{self._archive_path}": {e.strerror}',
                path,
            ) from e

    def format_version(self) -> FormatVersion:
        """The version of the .deb format (not the version of the package)

        Only the exact contents "1.0\\n" and "2.0\\n" are recognized; anything
        else is `FormatVersion.UNKNOWN`.
        """
        path = self._staged_path("format_version", STAGED_VERSION_MEMBER)
        return FormatVersion.from_debian_binary(self._read_staged_file(path))

    def control_record(self) -> ControlRecord:
        path = self._staged_path("control_record", STAGED_CONTROL_DIR, "control")
        content = self._read_staged_file(path)
        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedControlFileError(
                f'The control file of "{self._archive_path}" is not valid UTF-8: {e}',
                None,
            ) from e
        return parse_control_file(text)

    def install_tree(self) -> InstallTree:
        data_root = self._staged_path("install_tree", STAGED_DATA_DIR)
        return compute_install_tree(data_root)

    def __enter__(self) -> "DebPackage":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.discard_staging()

    def __repr__(self) -> str:
        return f"<DebPackage {self._archive_path!r} staging_dir={self._staging_dir!r}>"


def stage(
    archive_path: str,
    *,
    staging_root: Optional[str] = None,
    method: str = BUILTIN_STAGING_METHOD,
) -> DebPackage:
    return DebPackage(archive_path).stage(staging_root=staging_root, method=method)


def format_version(package: DebPackage) -> FormatVersion:
    return package.format_version()


def control_record(package: DebPackage) -> ControlRecord:
    return package.control_record()


def install_tree(package: DebPackage) -> InstallTree:
    return package.install_tree()

