import argparse
import csv
import json
import os
from typing import Any, IO, List, Optional, Sequence

try:
    import colored

    if not hasattr(colored, "Style") or not hasattr(colored, "Fore"):
        # python3-colored v1 (bookworm) has neither
        raise ImportError
except ImportError:
    colored = None

from debinspect.util import use_colors

OUTPUT_FORMATS = ("text", "csv", "json")

_SUPPORTED_COLORS = frozenset(
    ["black", "red", "green", "yellow", "blue", "magenta", "cyan", "white"]
)


class OutputFormatter:
    """Writes query results to a stream as a text table, CSV or JSON

    Text tables are framed by "+---+" dividers unless `compact_tables` is set,
    which leaves only the header and the rows (easier on screen readers).
    """

    def __init__(
        self,
        stream: IO[str],
        output_format: str = "text",
        *,
        colors: bool = False,
        compact_tables: bool = False,
    ) -> None:
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(
                f'Unsupported output format "{output_format}".'
                f" Valid formats are: {', '.join(OUTPUT_FORMATS)}"
            )
        self.stream = stream
        self.output_format = output_format
        self.colors = colors and colored is not None
        self.compact_tables = compact_tables

    def colored(
        self,
        text: str,
        *,
        fg: Optional[str] = None,
        bold: bool = False,
    ) -> str:
        if fg is not None and fg not in _SUPPORTED_COLORS:
            raise ValueError(
                f"Unsupported color: {fg}. Only the following are supported"
                f" {', '.join(sorted(_SUPPORTED_COLORS))}"
            )
        if not self.colors or (fg is None and not bold):
            return text
        codes = []
        if bold:
            codes.append(colored.Style.bold)
        if fg is not None:
            codes.append(getattr(colored.Fore, fg))
        return "".join(codes) + text + colored.Style.reset

    def print(self, text: str = "") -> None:
        print(text, file=self.stream)

    def print_json(self, data: Any) -> None:
        json.dump(data, self.stream, indent=2)
        self.print()

    def print_table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
    ) -> None:
        if not headers:
            raise ValueError("A table needs at least one column")
        if any(len(row) != len(headers) for row in rows):
            raise ValueError("Unbalanced table: Every row must have one cell per header")

        if self.output_format == "csv":
            writer = csv.writer(self.stream)
            writer.writerow(headers)
            writer.writerows(rows)
            return

        widths = [
            max([len(header), *(len(row[i]) for row in rows)])
            for i, header in enumerate(headers)
        ]
        divider = "+-" + "-+-".join("-" * w for w in widths) + "-+"

        def _table_line(cells: Sequence[str], bold: bool = False) -> str:
            inner = " | ".join(
                self.colored(cell.ljust(width), bold=bold)
                for cell, width in zip(cells, widths)
            )
            return f"| {inner} |"

        lines: List[str] = [_table_line(headers, bold=True)]
        if not self.compact_tables:
            lines.insert(0, divider)
            lines.append(divider)
        lines.extend(_table_line(row) for row in rows)
        if not self.compact_tables:
            lines.append(divider)
        for line in lines:
            self.print(line)


def output_formatter(
    parsed_args: argparse.Namespace,
    stream: IO[str],
) -> OutputFormatter:
    return OutputFormatter(
        stream,
        getattr(parsed_args, "output_format", None) or "text",
        colors=use_colors(stream),
        compact_tables=os.environ.get("OPTIMIZE_FOR_SCREEN_READER", "") != "",
    )
