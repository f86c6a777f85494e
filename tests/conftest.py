"""
Pytest configuration and shared fixtures for the owclient tests.
"""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import patch

import pytest
from fakes import FakeOwserver


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (deselect with '-m \"not integration\"')",
    )


@pytest.fixture
def fake_owserver() -> Iterator[FakeOwserver]:
    """Patch socket creation so connections talk to a FakeOwserver."""
    server = FakeOwserver()
    with patch(
        "owclient.ownet.transport.socket.create_connection",
        side_effect=server.create_connection,
    ):
        yield server
