import functools
import os
import subprocess
from importlib import metadata

_DISTRIBUTION_NAME = "debinspect"


@functools.lru_cache(maxsize=None)
def version_string() -> str:
    """The version of debinspect

    Taken from the installed distribution. A source checkout that was never
    installed falls back to `git describe`, and finally to "N/A".
    """
    try:
        return metadata.version(_DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        pass

    try:
        v = (
            subprocess.check_output(
                ["git", "describe", "--tags"],
                cwd=os.path.dirname(os.path.abspath(__file__)),
                stderr=subprocess.DEVNULL,
            )
            .strip()
            .decode("utf-8")
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        return "N/A"
    if v.startswith("v"):
        v = v[1:]
    return v


def __getattr__(name: str) -> str:
    if name == "__version__":
        return version_string()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
