import argparse
import logging
import os
import re
import sys
from typing import IO, NoReturn, Optional

_SPACE_RE = re.compile(r"\s")
_DOUBLE_ESCAPEES = re.compile(r'([\n`$"\\])')
_REGULAR_ESCAPEES = re.compile(r'([\s!"$()*+#;<>?@\[\]\\`|~])')
_COLOR_REQUESTS = frozenset(["auto", "always", "never"])
_DEFAULT_LOGGER: Optional[logging.Logger] = None
_LOG_HANDLER: Optional[logging.Handler] = None


def _info(msg: str) -> None:
    logger = _DEFAULT_LOGGER
    if logger:
        logger.info(msg)
    # Silent until setup_logging() has been called


def _warn(msg: str, *, prog: Optional[str] = None) -> None:
    logger = _DEFAULT_LOGGER
    if logger:
        logger.warning(msg)
    else:
        me = os.path.basename(sys.argv[0]) if prog is None else prog
        print(f"{me}: warning: {msg}", file=sys.stderr)


def _error(msg: str, *, prog: Optional[str] = None) -> NoReturn:
    logger = _DEFAULT_LOGGER
    if logger:
        logger.error(msg)
    else:
        me = os.path.basename(sys.argv[0]) if prog is None else prog
        print(f"{me}: error: {msg}", file=sys.stderr)
    sys.exit(1)


class ColorizedArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        _error(message, prog=self.prog)


def ensure_dir(path: str) -> None:
    if not os.path.isdir(path):
        os.makedirs(path, mode=0o755, exist_ok=True)


def _backslash_escape(m: re.Match[str]) -> str:
    return "\\" + m.group(0)


def _escape_shell_word(w: str) -> str:
    if _SPACE_RE.match(w):
        w = _DOUBLE_ESCAPEES.sub(_backslash_escape, w)
        return f'"{w}"'
    return _REGULAR_ESCAPEES.sub(_backslash_escape, w)


def escape_shell(*args: str) -> str:
    return " ".join(_escape_shell_word(w) for w in args)


def log_command(*args: str) -> None:
    _info(f"   {escape_shell(*args)}")


def requested_color_mode() -> str:
    """The color mode asked for by the environment: "auto", "always" or "never"

    DEBINSPECT_COLORS wins over DPKG_COLORS, which wins over NO_COLOR.
    An invalid request is reported and treated as "auto".
    """
    default = "never" if "NO_COLOR" in os.environ else "auto"
    mode = os.environ.get("DEBINSPECT_COLORS", os.environ.get("DPKG_COLORS", default))
    if mode not in _COLOR_REQUESTS:
        _warn(
            f'Invalid color request "{mode}" in either DEBINSPECT_COLORS or DPKG_COLORS.'
            ' Resetting to "auto".'
        )
        mode = "auto"
    return mode


def use_colors(stream: IO[str]) -> bool:
    mode = requested_color_mode()
    if mode == "auto":
        return stream.isatty()
    return mode == "always"


def program_name() -> str:
    name = os.path.basename(sys.argv[0])
    if name.endswith(".py"):
        name = name[:-3]
    if name == "__main__":
        name = os.path.basename(os.path.dirname(sys.argv[0]))
    if name in ("deb_inspect", "commands"):
        name = "deb-inspect"
    return name


class _LevelNameLowerFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.levelnamelower = record.levelname.lower()
        return True


def setup_logging(*, reconfigure_logging: bool = False) -> None:
    """Send log messages to stderr as "<prog>: <level>: <message>"

    stdout is left to the query results. Colors come from colorlog when
    stderr is a terminal (or DEBINSPECT_COLORS=always) and colorlog is
    installed.
    """
    global _DEFAULT_LOGGER, _LOG_HANDLER
    if _LOG_HANDLER is not None and not reconfigure_logging:
        raise RuntimeError(
            "Logging has already been configured."
            " Use reconfigure_logging=True if you need to reconfigure it"
        )

    stream = sys.stderr
    color = use_colors(stream)
    if color:
        try:
            import colorlog
        except ImportError:
            color = False

    if color:
        handler: logging.Handler = colorlog.StreamHandler(stream)
        handler.setFormatter(
            colorlog.ColoredFormatter(
                "{bold}{name}{reset}: {bold}{log_color}{levelnamelower}{reset}: {message}",
                style="{",
                force_color=True,
            )
        )
    else:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(
            logging.Formatter("{name}: {levelnamelower}: {message}", style="{")
        )
    handler.addFilter(_LevelNameLowerFilter())

    root_logger = logging.getLogger()
    if _LOG_HANDLER is not None:
        root_logger.removeHandler(_LOG_HANDLER)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.INFO)
    _LOG_HANDLER = handler
    _DEFAULT_LOGGER = logging.getLogger(program_name())
