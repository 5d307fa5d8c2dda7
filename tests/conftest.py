import os
from typing import Callable

import pytest

from tutil import write_deb

# Keep the output of dpkg tools (such as ar and tar) untranslated for easier debugging
os.environ["LC_ALL"] = "C.UTF-8"


@pytest.fixture()
def staging_root(tmp_path) -> str:
    path = tmp_path / "staging"
    path.mkdir()
    return str(path)


@pytest.fixture()
def deb_factory(tmp_path) -> Callable[..., str]:
    counter = 0

    def _factory(**kwargs) -> str:
        nonlocal counter
        counter += 1
        return write_deb(str(tmp_path / f"package-{counter}.deb"), **kwargs)

    return _factory


@pytest.fixture()
def hello_deb(deb_factory) -> str:
    return deb_factory()
