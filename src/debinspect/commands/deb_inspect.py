#!/usr/bin/python3 -B
import argparse
import contextlib
import os
import sys
import textwrap
from typing import Iterator, List, Optional, Sequence

from debinspect.commands.output import (
    OUTPUT_FORMATS,
    OutputFormatter,
    output_formatter,
)
from debinspect.exceptions import DebInspectRuntimeError
from debinspect.install_tree import output_install_manifest_to_fd
from debinspect.package import DebPackage, FormatVersion
from debinspect.relationships import RELATIONSHIP_FIELDS
from debinspect.staging import (
    BUILTIN_STAGING_METHOD,
    STAGING_METHODS,
)
from debinspect.util import (
    _error,
    _info,
    _warn,
    ColorizedArgumentParser,
    program_name,
    setup_logging,
)
from debinspect.version import version_string


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    description = textwrap.dedent(
        """\
    Inspect a .deb package without installing it.

    The package is unpacked into a temporary staging directory, which is removed
    again afterwards unless --keep-staging is given.
    """
    )

    parser = ColorizedArgumentParser(
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        prog=program_name(),
    )

    parser.add_argument("--version", action="version", version=version_string())

    shared_options = argparse.ArgumentParser(add_help=False)
    shared_options.add_argument(
        "deb",
        metavar="DEB",
        help="The .deb file to inspect",
    )
    shared_options.add_argument(
        "--staging-root",
        dest="staging_root",
        metavar="DIR",
        default=os.environ.get("DEBINSPECT_STAGING_ROOT"),
        help="Directory in which the staging directory is created (default: DEBINSPECT_STAGING_ROOT"
        " from the environment or a directory in the system temporary directory)",
    )
    shared_options.add_argument(
        "--staging-method",
        dest="staging_method",
        choices=sorted(STAGING_METHODS),
        default=BUILTIN_STAGING_METHOD,
        help="How to unpack the deb: With python-debian (builtin) or with the ar and tar tools",
    )
    shared_options.add_argument(
        "--keep-staging",
        dest="keep_staging",
        default=False,
        action="store_true",
        help="Do not remove the staging directory afterwards",
    )
    shared_options.add_argument(
        "--output-format",
        dest="output_format",
        choices=OUTPUT_FORMATS,
        default="text",
        help="The format of the output",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "format-version",
        parents=[shared_options],
        allow_abbrev=False,
        help="Show the version of the deb format (from the debian-binary member)",
    )

    control_parser = subparsers.add_parser(
        "control",
        parents=[shared_options],
        allow_abbrev=False,
        help="Show the metadata of the package",
    )
    control_parser.add_argument(
        "--field",
        dest="field",
        metavar="NAME",
        default=None,
        help="Only print the raw value of this field",
    )

    relationships_parser = subparsers.add_parser(
        "relationships",
        parents=[shared_options],
        allow_abbrev=False,
        help="List the relationships (Depends, Breaks, ...) of the package",
    )
    relationships_parser.add_argument(
        "--relationship",
        dest="relationships",
        metavar="FIELD",
        action="append",
        choices=RELATIONSHIP_FIELDS,
        default=None,
        help="Only list this relationship field (can be repeated)",
    )

    subparsers.add_parser(
        "install-tree",
        parents=[shared_options],
        allow_abbrev=False,
        help="List the files the package would install and where",
    )

    return parser.parse_args(argv)


@contextlib.contextmanager
def staged_package(parsed_args: argparse.Namespace) -> Iterator[DebPackage]:
    package = DebPackage(parsed_args.deb)
    package.stage(
        staging_root=parsed_args.staging_root,
        method=parsed_args.staging_method,
    )
    try:
        yield package
    finally:
        if parsed_args.keep_staging:
            _info(f'Keeping the staging directory "{package.staging_dir}"')
        else:
            package.discard_staging()


def _show_format_version(
    package: DebPackage,
    fo: OutputFormatter,
) -> None:
    version = package.format_version()
    if version == FormatVersion.UNKNOWN:
        _warn(f'The deb "{package.archive_path}" uses an unknown format version')
    if fo.output_format == "json":
        fo.print_json({"format_version": version.pretty_name})
    elif fo.output_format == "csv":
        fo.print_table(["format_version"], [[version.pretty_name]])
    else:
        fg = "yellow" if version == FormatVersion.UNKNOWN else None
        fo.print(fo.colored(version.pretty_name, fg=fg))


def _show_control(
    package: DebPackage,
    fo: OutputFormatter,
    field: Optional[str],
) -> None:
    record = package.control_record()
    if field is not None:
        value = record.fields.get(field)
        if value is None:
            _error(f'The package {record.package} does not have a "{field}" field')
        if fo.output_format == "json":
            fo.print_json({field: value})
        elif fo.output_format == "csv":
            fo.print_table(["Field", "Value"], [[field, value]])
        else:
            fo.print(value)
        return
    if fo.output_format == "json":
        fo.print_json(record.as_dict())
        return
    rows = [
        [key, str(value)]
        for key, value in record.as_dict().items()
        if value is not None and not isinstance(value, list)
    ]
    for field_name, references in record.relationships().items():
        if references:
            rows.append([field_name, ", ".join(str(r) for r in references)])
    fo.print_table(["Field", "Value"], rows)


def _show_relationships(
    package: DebPackage,
    fo: OutputFormatter,
    selected_fields: Optional[List[str]],
) -> None:
    record = package.control_record()
    relationships = record.relationships()
    if selected_fields:
        relationships = {
            k: v for k, v in relationships.items() if k in selected_fields
        }
    if fo.output_format == "json":
        fo.print_json(
            {
                field_name: [r.as_dict() for r in references]
                for field_name, references in relationships.items()
            }
        )
        return
    rows = [
        [field_name, r.name, r.operator.name, r.version]
        for field_name, references in relationships.items()
        for r in references
    ]
    fo.print_table(
        ["Field", "Package", "Operator", "Version"],
        rows,
    )


def _show_install_tree(
    package: DebPackage,
    fo: OutputFormatter,
) -> None:
    entries = package.install_tree()
    if fo.output_format == "json":
        output_install_manifest_to_fd(fo.stream, entries)
        fo.print()
        return
    fo.print_table(
        ["Target", "Source"],
        [[e.target_path, e.source_path] for e in entries],
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    setup_logging(reconfigure_logging=True)
    parsed_args = parse_args(argv)
    fo = output_formatter(parsed_args, sys.stdout)
    try:
        with staged_package(parsed_args) as package:
            if parsed_args.command == "format-version":
                _show_format_version(package, fo)
            elif parsed_args.command == "control":
                _show_control(package, fo, parsed_args.field)
            elif parsed_args.command == "relationships":
                _show_relationships(package, fo, parsed_args.relationships)
            elif parsed_args.command == "install-tree":
                _show_install_tree(package, fo)
            else:
                _error(
                    f'Internal error: Unimplemented command "{parsed_args.command}"'
                )
    except DebInspectRuntimeError as e:
        _error(e.message)


if __name__ == "__main__":
    main()
