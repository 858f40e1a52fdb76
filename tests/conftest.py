"""
Shared pytest fixtures for refresh invoker tests.

This module provides:
- FakeSecretProvider: in-memory secret store with optional failures
- RecordingRefreshClient: records refresh executions, optionally failing
- callback_posts: captures callback POSTs instead of sending them
"""

import os
import sys
from unittest.mock import MagicMock, patch

import pytest

# Add config directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'config'))

from refresh_core.errors import SecretResolutionError  # noqa: E402
from refresh_core.settings import RefreshSettings  # noqa: E402


DEFAULT_SECRETS = {
    'spn-client-id': '00000000-0000-0000-0000-0000000000aa',
    'spn-client-secret': 'not-a-real-secret',
    'azure-tenant-id': '00000000-0000-0000-0000-0000000000bb',
}

ADVENTUREWORKS_QUERY = (
    '{"sequence":{"operations":[{"refresh":{"type":"full","objects":'
    '[{"database":"adventureworks","table":"Customer"}]}}]}}'
)


class FakeSecretProvider:
    """Secret provider backed by a dict; records every lookup."""

    def __init__(self, secrets=None):
        self.secrets = dict(DEFAULT_SECRETS if secrets is None else secrets)
        self.calls = []

    def get_secret(self, vault_name, secret_name):
        self.calls.append((vault_name, secret_name))
        if secret_name not in self.secrets:
            raise SecretResolutionError(secret_name, "not found")
        return self.secrets[secret_name]


class RecordingRefreshClient:
    """Refresh client that records calls and raises `error` if set."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def execute(self, endpoint, command, credential):
        self.calls.append({'endpoint': endpoint, 'command': command, 'credential': credential})
        if self.error is not None:
            raise self.error


@pytest.fixture
def settings():
    return RefreshSettings(key_vault_name='kv-refresh-test', poll_interval_seconds=0)


@pytest.fixture
def secret_provider():
    return FakeSecretProvider()


@pytest.fixture
def refresh_client():
    return RecordingRefreshClient()


@pytest.fixture
def callback_posts():
    """Patch requests.post used for callbacks and expose the mock."""
    with patch('refresh_core.callback.requests.post') as mock_post:
        mock_post.return_value = MagicMock(status_code=200)
        yield mock_post
