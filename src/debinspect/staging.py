"""Unpacking of .deb archives into a staging directory

A staged package is a directory with exactly three entries:

 * `debian-binary` - the format version member, byte for byte.
 * `control/` - the unpacked control.tar (holds `control/control`).
 * `data/` - the unpacked data.tar; paths below it are install paths.

Every call creates a fresh directory named by a random UUID below the staging
root, so several archives can be staged at the same time.
"""

import lzma
import os
import shutil
import subprocess
import tarfile
import tempfile
import uuid
import zlib
from typing import Callable, Dict, List, Optional, Type

from debian.arfile import ArError
from debian.debfile import (
    CTRL_PART,
    DATA_PART,
    DebError,
    DebFile,
    INFO_PART,
    PART_EXTS,
)

from debinspect.exceptions import (
    ArchiveMemberError,
    ArchiveNotFoundError,
    ExtractionFailureError,
    InvalidArchiveError,
    StagingDirectoryError,
    UnsupportedPlatformError,
)
from debinspect.util import _info, ensure_dir, log_command

STAGED_VERSION_MEMBER = INFO_PART
STAGED_CONTROL_DIR = "control"
STAGED_DATA_DIR = "data"

BUILTIN_STAGING_METHOD = "builtin"
AR_TAR_STAGING_METHOD = "ar+tar"

_TAR_EXTRACTION_ERRORS = (
    tarfile.TarError,
    EOFError,
    lzma.LZMAError,
    zlib.error,
    OSError,
)


def default_staging_root() -> str:
    return os.path.join(tempfile.gettempdir(), "debinspect")


def _compressed_part_name(
    archive_path: str,
    basename: str,
    member_names: List[str],
) -> str:
    candidates = [f"{basename}.{ext}" for ext in PART_EXTS]
    candidates.append(basename)
    parts = [n for n in member_names if n in candidates]
    if not parts:
        raise ArchiveMemberError(
            f'The archive "{archive_path}" has no {basename} member'
            f" (expected one of: {', '.join(candidates)})",
            archive_path,
        )
    if len(parts) > 1:
        raise ArchiveMemberError(
            f'The archive "{archive_path}" has more than one {basename} member: {", ".join(parts)}',
            archive_path,
        )
    return parts[0]


def _extract_tar(archive_path: str, tar_fd: tarfile.TarFile, output_dir: str) -> None:
    os.mkdir(output_dir)
    try:
        # The "tar" filter refuses members that would land outside output_dir
        tar_fd.extractall(output_dir, filter="tar")
    except _TAR_EXTRACTION_ERRORS as e:
        raise ArchiveMemberError(
            f'Could not unpack "{os.path.basename(output_dir)}" from "{archive_path}": {e}',
            archive_path,
        ) from e


def _stage_with_python_debian(archive_path: str, staging_dir: str) -> None:
    try:
        deb = DebFile(archive_path)
    except DebError as e:
        raise ArchiveMemberError(
            f'The archive "{archive_path}" is not a complete deb: {e}', archive_path
        ) from e
    except (ArError, OSError, ValueError) as e:
        # ValueError: an ar member header with non-numeric fields
        raise InvalidArchiveError(
            f'The file "{archive_path}" is not an ar archive: {e}', archive_path
        ) from e

    with deb:
        member = deb.getmember(INFO_PART)
        member.seek(0)
        with open(os.path.join(staging_dir, STAGED_VERSION_MEMBER), "wb") as fd:
            fd.write(member.read())

        for part, subdir in (
            (deb.control, STAGED_CONTROL_DIR),
            (deb.data, STAGED_DATA_DIR),
        ):
            try:
                tar_fd = part.tgz()
            except (DebError, *_TAR_EXTRACTION_ERRORS) as e:
                raise ArchiveMemberError(
                    f'Could not open the {subdir} member of "{archive_path}": {e}',
                    archive_path,
                ) from e
            _extract_tar(archive_path, tar_fd, os.path.join(staging_dir, subdir))


def _run(
    cmd: List[str],
    archive_path: str,
    error_class: Type[ExtractionFailureError],
    *,
    cwd: Optional[str] = None,
) -> None:
    log_command(*cmd)
    try:
        subprocess.run(
            cmd,
            cwd=cwd,
            check=True,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise ExtractionFailureError(
            f'Cannot stage "{archive_path}": the command "{cmd[0]}" is not available',
            archive_path,
        ) from e
    except subprocess.CalledProcessError as e:
        stderr = e.stderr.decode("utf-8", errors="replace").strip()
        raise error_class(
            f'The command "{cmd[0]}" failed on "{archive_path}" (exit code {e.returncode}): {stderr}',
            archive_path,
        ) from e


def _stage_with_ar_and_tar(archive_path: str, staging_dir: str) -> None:
    _run(
        ["ar", "x", os.path.abspath(archive_path)],
        archive_path,
        InvalidArchiveError,
        cwd=staging_dir,
    )
    member_names = sorted(os.listdir(staging_dir))
    if STAGED_VERSION_MEMBER not in member_names:
        raise ArchiveMemberError(
            f'The archive "{archive_path}" has no {INFO_PART} member', archive_path
        )

    keep = {STAGED_VERSION_MEMBER, STAGED_CONTROL_DIR, STAGED_DATA_DIR}
    for basename, subdir in (
        (CTRL_PART, STAGED_CONTROL_DIR),
        (DATA_PART, STAGED_DATA_DIR),
    ):
        member = os.path.join(
            staging_dir, _compressed_part_name(archive_path, basename, member_names)
        )
        output_dir = os.path.join(staging_dir, subdir)
        os.mkdir(output_dir)
        _run(
            ["tar", "-xf", member, "-C", output_dir],
            archive_path,
            ArchiveMemberError,
        )

    for name in member_names:
        if name not in keep:
            os.unlink(os.path.join(staging_dir, name))


STAGING_METHODS: Dict[str, Callable[[str, str], None]] = {
    BUILTIN_STAGING_METHOD: _stage_with_python_debian,
    AR_TAR_STAGING_METHOD: _stage_with_ar_and_tar,
}


def stage_archive(
    archive_path: str,
    *,
    staging_root: Optional[str] = None,
    method: str = BUILTIN_STAGING_METHOD,
) -> str:
    """Unpack a .deb into a new staging directory

    :param archive_path: Path to the .deb file
    :param staging_root: The directory in which the staging directory is
      created. Defaults to `default_staging_root()`.
    :param method: Either "builtin" (python-debian + tarfile) or "ar+tar"
      (the ar and tar command line tools)
    :return: The path to the staging directory. It is removed again if the
      staging fails.
    :raises ExtractionFailureError: (or a subclass) if the archive cannot be
      staged
    """
    if os.name != "posix":
        raise UnsupportedPlatformError(
            f'Cannot stage "{archive_path}": only POSIX systems are supported (this is "{os.name}")',
            archive_path,
        )
    try:
        stage_impl = STAGING_METHODS[method]
    except KeyError:
        raise ValueError(
            f'Unknown staging method "{method}". Valid methods are: {", ".join(STAGING_METHODS)}'
        ) from None
    if not os.path.isfile(archive_path):
        raise ArchiveNotFoundError(
            f'The archive "{archive_path}" does not exist or is not a file',
            archive_path,
        )

    if staging_root is None:
        staging_root = default_staging_root()
    staging_dir = os.path.join(staging_root, str(uuid.uuid4()))
    try:
        ensure_dir(staging_root)
        os.mkdir(staging_dir)
    except OSError as e:
        raise StagingDirectoryError(
            f'Cannot create a staging directory for "{archive_path}" in "{staging_root}": {e.strerror}',
            archive_path,
            staging_root,
        ) from e
    _info(f'Staging "{archive_path}" in "{staging_dir}" (method: {method})')

    try:
        stage_impl(archive_path, staging_dir)
    except Exception:
        shutil.rmtree(staging_dir, ignore_errors=True)
        raise
    return staging_dir


def discard_staging_dir(staging_dir: str) -> None:
    _info(f'Removing staging directory "{staging_dir}"')
    shutil.rmtree(staging_dir)
