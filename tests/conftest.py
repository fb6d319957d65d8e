"""
Shared fixtures for the test suite.

Run:  pytest tests/ -v
"""

from unittest.mock import MagicMock

import pytest

from feishu_docs.services.feishu_client import FeishuClient
from feishu_docs.services.token_manager import Credentials, TokenManager

from fakes import BASE_URL, FakeResponse, token_payload


@pytest.fixture
def session():
    """A requests.Session stand-in; token exchanges succeed by default."""
    s = MagicMock()
    s.post.return_value = FakeResponse(token_payload())
    return s


@pytest.fixture
def token_manager(session):
    return TokenManager(
        Credentials("cli_app", "secret"),
        session=session,
        base_url=BASE_URL,
        timeout=5,
        clock=lambda: 1000.0,
    )


@pytest.fixture
def client(session, token_manager):
    return FeishuClient(
        token_manager=token_manager,
        session=session,
        base_url=BASE_URL,
        timeout=5,
        page_size=50,
        max_pages=10,
    )
