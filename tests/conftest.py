from __future__ import annotations

import pytest
from fakes import FakeNetworkHub


@pytest.fixture
def hub() -> FakeNetworkHub:
    return FakeNetworkHub()
