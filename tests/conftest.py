"""Shared test fixtures."""

from __future__ import annotations

import pytest

from reef.adapters.registry import AdapterRegistry
from tests.helpers import FakeAdapter


@pytest.fixture()
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture()
def registry(fake_adapter: FakeAdapter) -> AdapterRegistry:
    adapters = AdapterRegistry()
    adapters.register("fake", fake_adapter)
    return adapters
