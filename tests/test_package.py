import os

import pytest

import debinspect
from debinspect.exceptions import (
    MalformedControlFileError,
    PackageNotStagedError,
    StagedFilesystemError,
)
from debinspect.package import DebPackage, FormatVersion

from tutil import list_staging_root


@pytest.mark.parametrize(
    "operation",
    ["format_version", "control_record", "install_tree"],
)
def test_queries_require_staging(hello_deb: str, operation: str) -> None:
    package = DebPackage(hello_deb)
    assert not package.is_staged
    with pytest.raises(PackageNotStagedError) as e_info:
        getattr(package, operation)()
    assert e_info.value.operation == operation


def test_queries_on_missing_archive_require_staging(tmp_path) -> None:
    package = DebPackage(str(tmp_path / "never-created.deb"))
    with pytest.raises(PackageNotStagedError):
        package.control_record()


def test_stage_and_query(hello_deb: str, staging_root: str) -> None:
    package = DebPackage(hello_deb)
    assert package.stage(staging_root=staging_root) is package
    assert package.is_staged
    assert os.path.dirname(package.staging_dir) == staging_root

    assert package.format_version() == FormatVersion.V2_0
    record = package.control_record()
    assert record.package == "hello"
    assert record.installed_size == 280
    assert [e.target_path for e in package.install_tree()] == [
        "/usr/bin/hello",
        "/usr/share/doc/hello/copyright",
        "/usr/share/man/man1/hello.1.gz",
    ]
    assert all(
        e.source_path.startswith(package.staging_dir) for e in package.install_tree()
    )


def test_module_level_functions(hello_deb: str, staging_root: str) -> None:
    package = debinspect.stage(hello_deb, staging_root=staging_root)
    assert debinspect.format_version(package) == FormatVersion.V2_0
    assert debinspect.control_record(package).version == "2.10-3"
    assert len(debinspect.install_tree(package)) == 3


@pytest.mark.parametrize(
    "debian_binary,expected",
    [
        (b"2.0\n", FormatVersion.V2_0),
        (b"1.0\n", FormatVersion.V1_0),
        (b"2.0", FormatVersion.UNKNOWN),
        (b"3.0\n", FormatVersion.UNKNOWN),
        (b" 2.0\n", FormatVersion.UNKNOWN),
        (b"2.0\n\n", FormatVersion.UNKNOWN),
    ],
)
def test_format_version(
    deb_factory,
    staging_root: str,
    debian_binary: bytes,
    expected: FormatVersion,
) -> None:
    package = DebPackage(deb_factory(debian_binary=debian_binary))
    package.stage(staging_root=staging_root)
    assert package.format_version() == expected


def test_format_version_pretty_name() -> None:
    assert FormatVersion.V2_0.pretty_name == "2.0"
    assert FormatVersion.V1_0.pretty_name == "1.0"
    assert FormatVersion.UNKNOWN.pretty_name == "unknown"


def test_control_file_not_utf8(deb_factory, staging_root: str) -> None:
    control = b"Package: hello\nVersion: 1.0\nMaintainer: J\xf6rg <j@example.org>\n"
    package = DebPackage(deb_factory(control=control))
    package.stage(staging_root=staging_root)
    with pytest.raises(MalformedControlFileError) as e_info:
        package.control_record()
    assert e_info.value.line_number is None


def test_control_tar_without_control_file(deb_factory, staging_root: str) -> None:
    package = DebPackage(deb_factory(control=None))
    package.stage(staging_root=staging_root)
    with pytest.raises(StagedFilesystemError) as e_info:
        package.control_record()
    assert e_info.value.path.endswith(os.path.join("control", "control"))


def test_empty_data_member(deb_factory, staging_root: str) -> None:
    package = DebPackage(
        deb_factory(files={}, symlinks={}, directories=("./", "./usr/"))
    )
    package.stage(staging_root=staging_root)
    assert package.install_tree() == []


def test_restaging_replaces_staging_dir(hello_deb: str, staging_root: str) -> None:
    package = DebPackage(hello_deb)
    package.stage(staging_root=staging_root)
    first = package.staging_dir
    package.stage(staging_root=staging_root)
    second = package.staging_dir

    assert first != second
    # The previous staging directory is left untouched
    assert os.path.isdir(first)
    assert package.install_tree()[0].source_path.startswith(second)


def test_discard_staging(hello_deb: str, staging_root: str) -> None:
    package = DebPackage(hello_deb)
    package.stage(staging_root=staging_root)
    staging_dir = package.staging_dir

    package.discard_staging()

    assert not package.is_staged
    assert not os.path.exists(staging_dir)
    with pytest.raises(PackageNotStagedError):
        package.format_version()
    # Discarding twice is a no-op
    package.discard_staging()


def test_context_manager(hello_deb: str, staging_root: str) -> None:
    with DebPackage(hello_deb).stage(staging_root=staging_root) as package:
        assert package.control_record().package == "hello"
    assert not package.is_staged
    assert list_staging_root(staging_root) == []


def test_failed_stage_keeps_previous_state(hello_deb: str, staging_root: str) -> None:
    package = DebPackage(hello_deb)
    package.stage(staging_root=staging_root)
    staging_dir = package.staging_dir
    os.unlink(hello_deb)

    with pytest.raises(debinspect.exceptions.ArchiveNotFoundError):
        package.stage(staging_root=staging_root)

    assert package.staging_dir == staging_dir
    assert package.format_version() == FormatVersion.V2_0
