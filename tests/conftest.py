import io

import pytest
from rich.console import Console

from steam_prefill.models.config import PrefillConfig


@pytest.fixture
def config(tmp_path):
    return PrefillConfig(config_dir=tmp_path / "config", cache_dir=tmp_path / "cache")


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=120)
