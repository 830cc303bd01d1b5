from __future__ import annotations

from collections.abc import Iterator
from types import ModuleType

import pytest

from whytho.dev import mock_gitlab_server


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def mock_gitlab_state() -> Iterator[ModuleType]:
    """每个测试前清空 mock GitLab 记录的 notes/discussions。"""
    mock_gitlab_server._notes.clear()
    mock_gitlab_server._discussions.clear()
    yield mock_gitlab_server
    mock_gitlab_server._notes.clear()
    mock_gitlab_server._discussions.clear()
