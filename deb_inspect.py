#!/usr/bin/python3 -B
import pathlib
import sys

DEBINSPECT_SOURCE_DIR = pathlib.Path(__file__).parent / "src"

if __name__ == "__main__":
    # setup PYTHONPATH: add the source directory of this checkout.
    sys.path.insert(0, str(DEBINSPECT_SOURCE_DIR))
    from debinspect.commands.deb_inspect import main

    main()
