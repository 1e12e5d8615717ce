import os
from typing import Generator

import pytest
import yaml

from sluice.bootstrap.config.settings import SluiceConfig
from tests.fake.fake_endpoints import FakePushSource, FakeSink
from tests.fake.fake_transport import FakeTransport
from tests.helpers import FakeSluiceConfig


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def push_source():
    return FakePushSource()


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def config_file(tmp_path):
    file = tmp_path / "sluice.yaml"

    data = {
        "flow": {
            "chunk_size": 1024,
            "high_water_mark": 4096,
        }
    }

    file.write_text(yaml.dump(data))
    return file


@pytest.fixture
def sluice_config(config_file) -> Generator[SluiceConfig, None, None]:
    backup = os.environ.copy()

    try:
        os.environ["TEST_SLUICECONFIG"] = str(config_file)
        yield FakeSluiceConfig()
    finally:
        os.environ.clear()
        os.environ.update(backup)
