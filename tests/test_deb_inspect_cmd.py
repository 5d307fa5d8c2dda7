import csv
import io
import json
import os
from typing import List

import pytest

from debinspect.commands.deb_inspect import main, parse_args
from debinspect.util import escape_shell

from tutil import list_staging_root


def _run(hello_deb: str, staging_root: str, *args: str) -> List[str]:
    return [*args, hello_deb, "--staging-root", staging_root]


def test_format_version(capsys, hello_deb: str, staging_root: str) -> None:
    main(_run(hello_deb, staging_root, "format-version"))
    assert capsys.readouterr().out == "2.0\n"
    assert list_staging_root(staging_root) == []


def test_format_version_json(capsys, hello_deb: str, staging_root: str) -> None:
    main(_run(hello_deb, staging_root, "format-version", "--output-format=json"))
    assert json.loads(capsys.readouterr().out) == {"format_version": "2.0"}


def test_unknown_format_version_warns(
    capsys, deb_factory, staging_root: str
) -> None:
    deb = deb_factory(debian_binary=b"9.9\n")
    main(_run(deb, staging_root, "format-version"))
    out, err = capsys.readouterr()
    assert out == "unknown\n"
    assert "unknown format version" in err


def test_control_json(capsys, hello_deb: str, staging_root: str) -> None:
    main(_run(hello_deb, staging_root, "control", "--output-format=json"))
    data = json.loads(capsys.readouterr().out)
    assert data["package"] == "hello"
    assert data["installed_size"] == 280
    assert data["depends"][0] == {"name": "libc6", "operator": "GE", "version": "2.34"}


def test_control_text(capsys, hello_deb: str, staging_root: str) -> None:
    main(_run(hello_deb, staging_root, "control"))
    out = capsys.readouterr().out
    assert "| Field" in out
    assert "libc6 (>= 2.34), libfoo1 (<< 2.0~)" in out


def test_control_single_field(capsys, hello_deb: str, staging_root: str) -> None:
    main(_run(hello_deb, staging_root, "control", "--field", "homepage"))
    assert capsys.readouterr().out == "https://www.gnu.org/software/hello/\n"


def test_control_missing_field(capsys, hello_deb: str, staging_root: str) -> None:
    with pytest.raises(SystemExit) as e_info:
        main(_run(hello_deb, staging_root, "control", "--field", "Multi-Arch"))
    assert e_info.value.code == 1
    assert "Multi-Arch" in capsys.readouterr().err
    assert list_staging_root(staging_root) == []


def test_relationships_csv(capsys, hello_deb: str, staging_root: str) -> None:
    main(_run(hello_deb, staging_root, "relationships", "--output-format=csv"))
    rows = list(csv.reader(io.StringIO(capsys.readouterr().out)))
    assert rows == [
        ["Field", "Package", "Operator", "Version"],
        ["Depends", "libc6", "GE", "2.34"],
        ["Depends", "libfoo1", "LT", "2.0~"],
        ["Breaks", "hello-debhelper", "LT", "2.9"],
    ]


def test_relationships_filtered(capsys, hello_deb: str, staging_root: str) -> None:
    main(
        _run(
            hello_deb,
            staging_root,
            "relationships",
            "--relationship=Breaks",
            "--output-format=json",
        )
    )
    assert json.loads(capsys.readouterr().out) == {
        "Breaks": [{"name": "hello-debhelper", "operator": "LT", "version": "2.9"}]
    }


def test_install_tree_json(capsys, hello_deb: str, staging_root: str) -> None:
    main(
        _run(
            hello_deb,
            staging_root,
            "install-tree",
            "--output-format=json",
            "--keep-staging",
        )
    )
    entries = json.loads(capsys.readouterr().out)
    assert [e["target_path"] for e in entries] == [
        "/usr/bin/hello",
        "/usr/share/doc/hello/copyright",
        "/usr/share/man/man1/hello.1.gz",
    ]
    (staging_dir,) = list_staging_root(staging_root)
    assert entries[0]["source_path"] == os.path.join(
        staging_root, staging_dir, "data", "usr", "bin", "hello"
    )


def test_missing_deb(capsys, tmp_path, staging_root: str) -> None:
    with pytest.raises(SystemExit) as e_info:
        main(_run(str(tmp_path / "missing.deb"), staging_root, "control"))
    assert e_info.value.code == 1
    assert "missing.deb" in capsys.readouterr().err


def test_invalid_deb(capsys, tmp_path, staging_root: str) -> None:
    not_a_deb = tmp_path / "bad.deb"
    not_a_deb.write_bytes(b"garbage")
    with pytest.raises(SystemExit) as e_info:
        main(_run(str(not_a_deb), staging_root, "install-tree"))
    assert e_info.value.code == 1
    assert list_staging_root(staging_root) == []


def test_staging_root_from_environment(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("DEBINSPECT_STAGING_ROOT", str(tmp_path))
    parsed_args = parse_args(["control", "hello.deb"])
    assert parsed_args.staging_root == str(tmp_path)
    assert parsed_args.staging_method == "builtin"
    assert not parsed_args.keep_staging


def test_command_is_required(capsys) -> None:
    with pytest.raises(SystemExit) as e_info:
        parse_args([])
    assert e_info.value.code != 0


@pytest.mark.parametrize(
    "args,expected",
    [
        (("ar", "x", "hello.deb"), "ar x hello.deb"),
        (("ar", "x", "/tmp/my debs/hello.deb"), r"ar x /tmp/my\ debs/hello.deb"),
        (("tar", "-xf", "data.tar.xz", "-C", "$HOME"), r"tar -xf data.tar.xz -C \$HOME"),
    ],
)
def test_escape_shell(args, expected: str) -> None:
    assert escape_shell(*args) == expected


def test_unusable_staging_root(capsys, hello_deb: str, tmp_path) -> None:
    not_a_dir = tmp_path / "regular-file"
    not_a_dir.write_text("")
    with pytest.raises(SystemExit) as e_info:
        main(_run(hello_deb, str(not_a_dir / "staging"), "format-version"))
    assert e_info.value.code == 1
    assert "Cannot create a staging directory" in capsys.readouterr().err


def test_control_single_field_json(capsys, hello_deb: str, staging_root: str) -> None:
    main(
        _run(
            hello_deb,
            staging_root,
            "control",
            "--field=Section",
            "--output-format=json",
        )
    )
    assert json.loads(capsys.readouterr().out) == {"Section": "devel"}


def test_control_single_field_csv(capsys, hello_deb: str, staging_root: str) -> None:
    main(
        _run(
            hello_deb,
            staging_root,
            "control",
            "--field=Priority",
            "--output-format=csv",
        )
    )
    rows = list(csv.reader(io.StringIO(capsys.readouterr().out)))
    assert rows == [["Field", "Value"], ["Priority", "optional"]]


def test_control_multiline_description_field(
    capsys, hello_deb: str, staging_root: str
) -> None:
    main(_run(hello_deb, staging_root, "control", "--field=Description"))
    assert capsys.readouterr().out.splitlines() == [
        "example package based on GNU hello",
        " The GNU hello program produces a familiar, friendly greeting.",
        " .",
        " It allows non-programmers to use a classic computer science tool.",
    ]
