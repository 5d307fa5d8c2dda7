from .version import __version__
from .package import (
    DebPackage,
    FormatVersion,
    control_record,
    format_version,
    install_tree,
    stage,
)
