import dataclasses
import json
import os
import pathlib
import stat
from enum import Enum
from typing import Any, Dict, IO, Iterable, List, NoReturn

from debinspect.exceptions import StagedFilesystemError

InstallTree = List["InstallEntry"]


class PathType(Enum):
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    OTHER = "other"

    @property
    def is_installable(self) -> bool:
        # Directories are implied by their files; symlinks are never followed
        return self == PathType.FILE


def _fs_type_from_st_mode(st_mode: int) -> PathType:
    if stat.S_ISREG(st_mode):
        return PathType.FILE
    if stat.S_ISDIR(st_mode):
        return PathType.DIRECTORY
    if stat.S_ISLNK(st_mode):
        return PathType.SYMLINK
    return PathType.OTHER


def _target_path(data_root: str, fs_path: str) -> str:
    rel_path = os.path.relpath(fs_path, data_root)
    return "/" + pathlib.PurePath(rel_path).as_posix()


@dataclasses.dataclass(slots=True, frozen=True)
class InstallEntry:
    source_path: str
    target_path: str

    def to_manifest(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


def _raise_walk_error(e: OSError) -> NoReturn:
    raise StagedFilesystemError(
        f"Unable to read the staged data tree at {e.filename}: {e.strerror}",
        e.filename,
    ) from e


def compute_install_tree(data_root: str) -> InstallTree:
    """List the files a package would install

    :param data_root: The directory holding the unpacked data.tar of the package
    :return: One entry per regular file below `data_root` sorted by target path.
      An absent `data_root` gives an empty list.
    :raises StagedFilesystemError: If part of the tree cannot be read
    """
    if not os.path.isdir(data_root):
        return []
    data_root = os.path.abspath(data_root)
    install_tree = []
    for dirpath, _, filenames in os.walk(data_root, onerror=_raise_walk_error):
        for filename in filenames:
            fs_path = os.path.join(dirpath, filename)
            try:
                st_mode = os.lstat(fs_path).st_mode
            except OSError as e:
                _raise_walk_error(e)
            if not _fs_type_from_st_mode(st_mode).is_installable:
                continue
            install_tree.append(
                InstallEntry(
                    source_path=fs_path,
                    target_path=_target_path(data_root, fs_path),
                )
            )
    install_tree.sort(key=lambda e: e.target_path)
    return install_tree


def output_install_manifest_to_fd(fd: IO[str], entries: Iterable[InstallEntry]) -> None:
    serial_format = [e.to_manifest() for e in entries]
    json.dump(serial_format, fd)
