from typing import List, Optional, Set, Tuple

from debian._deb822_repro import parse_deb822_file
from debian._deb822_repro.tokens import (
    Deb822ErrorToken,
    Deb822FieldNameToken,
    Deb822WhitespaceToken,
    tokenize_deb822_file,
)
from debian.deb822 import Deb822

from debinspect.exceptions import MalformedControlFileError

# Fields whose line structure is significant; all other fields are folded
_MULTILINE_FIELDS = frozenset(["description"])


def _first_paragraph_lines(lines: List[str]) -> Tuple[List[str], Optional[int]]:
    """Cut the lines of the first paragraph from a deb822 file

    :return: The lines up to (not including) the blank line that ends the first
      paragraph and the line number of the first syntax error or duplicated
      field in them (None if there is none).
    """
    line_no = 1
    at_line_start = True
    seen_fields: Set[str] = set()
    problem_line = None
    for token in tokenize_deb822_file(lines):
        if (
            at_line_start
            and seen_fields
            and isinstance(token, Deb822WhitespaceToken)
        ):
            return lines[: line_no - 1], problem_line
        if problem_line is None:
            if isinstance(token, Deb822ErrorToken):
                problem_line = line_no
            elif isinstance(token, Deb822FieldNameToken):
                name = token.text.lower()
                if name in seen_fields:
                    problem_line = line_no
                seen_fields.add(name)
        text = token.text
        line_no += text.count("\n")
        at_line_start = text.endswith("\n")
    return lines, problem_line


def _fold_value(field_name: str, value: str) -> str:
    if field_name.lower() in _MULTILINE_FIELDS:
        return value
    return " ".join(line.strip() for line in value.splitlines() if line.strip())


def parse_control_paragraph(text: str) -> Deb822:
    """Parse the first paragraph of an RFC822-style control file

    The result maps field names to values case-insensitively and keeps the
    order of the fields in the text. Continuation lines are folded into a
    single line joined by spaces, except for the Description field, which is
    kept in deb822 form (one continuation line per line, each starting with a
    space; " ." marks an empty line).

    :param text: The raw text of the control file
    :return: The fields of the first paragraph
    :raises MalformedControlFileError: If the paragraph has a continuation
      line before the first field, a line that is not a field, a duplicated
      field or no fields at all.
    """
    lines, problem_line = _first_paragraph_lines(text.splitlines(keepends=True))
    try:
        deb822_file = parse_deb822_file(
            lines,
            accept_files_with_error_tokens=False,
            accept_files_with_duplicated_fields=False,
        )
    except ValueError as e:
        raise MalformedControlFileError(
            f"Line {problem_line}: {e}" if problem_line else str(e),
            problem_line,
        ) from e
    if problem_line is not None:
        raise MalformedControlFileError(
            f"Line {problem_line}: the field appears more than once",
            problem_line,
        )

    deb822_paragraph = next(iter(deb822_file), None)
    if deb822_paragraph is None:
        raise MalformedControlFileError(
            "The control file does not contain any fields", None
        )
    paragraph = Deb822()
    for name in deb822_paragraph:
        paragraph[name] = _fold_value(name, deb822_paragraph[name])
    return paragraph
