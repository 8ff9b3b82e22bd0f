import os

import pytest

from control_layout.layout_state import open_layout
from control_layout.storage import InMemoryStore


def pytest_runtest_setup(item):
    if item.get_closest_marker("pyqt_required"):
        if not os.getenv("PYQT_TESTS"):
            pytest.skip("PYQT_TESTS not set; skipping PyQt-dependent test")


@pytest.fixture
def backend() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def layout(backend):
    return open_layout(backend)
