"""Shared fixtures."""

import pytest

from helpers import FakeLoop


@pytest.fixture
def fake_loop() -> FakeLoop:
    return FakeLoop()
