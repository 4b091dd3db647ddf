from __future__ import annotations

from test import setup, teardown

import pytest


@pytest.fixture(scope="package", autouse=True)
def test_setup_and_teardown():
    setup()
    yield
    teardown()
