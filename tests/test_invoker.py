"""Tests for the invocation flow and its callback contract."""

import json
from unittest.mock import patch

import requests
from azure.identity import ClientSecretCredential

from conftest import ADVENTUREWORKS_QUERY, FakeSecretProvider, RecordingRefreshClient
from refresh_core.errors import RefreshExecutionError
from refresh_core.invoker import execute_refresh, invoke
from refresh_core.models import parse_invocation_request

CALLBACK = "https://adf.example/cb"


def make_request(callback_uri=None, query=ADVENTUREWORKS_QUERY, workspace='adventureworks'):
    body = {'workspaceName': workspace, 'queryXMLA': query}
    if callback_uri:
        body['callBackUri'] = callback_uri
    return parse_invocation_request(body)


class TestSuccessfulRefresh:

    def test_no_callback_invokes_remote_once_and_posts_nothing(self, settings, secret_provider,
                                                               refresh_client, callback_posts):
        request = make_request()

        result = invoke(request, settings=settings, secret_provider=secret_provider,
                        refresh_client=refresh_client)

        assert result is None
        assert len(refresh_client.calls) == 1
        assert refresh_client.calls[0]['command'] == json.loads(ADVENTUREWORKS_QUERY)
        callback_posts.assert_not_called()

    def test_callback_receives_exactly_one_200(self, settings, secret_provider,
                                               refresh_client, callback_posts):
        invoke(make_request(CALLBACK), settings=settings, secret_provider=secret_provider,
               refresh_client=refresh_client)

        callback_posts.assert_called_once_with(CALLBACK, json={'StatusCode': '200'})

    def test_endpoint_is_templated_from_workspace_name(self, settings, secret_provider,
                                                       refresh_client, callback_posts):
        invoke(make_request(), settings=settings, secret_provider=secret_provider,
               refresh_client=refresh_client)

        endpoint = refresh_client.calls[0]['endpoint']
        assert endpoint.address == "powerbi://api.powerbi.com/v1.0/myorg/adventureworks"
        assert endpoint.workspace_name == "adventureworks"

    def test_credential_built_from_resolved_secrets(self, settings, secret_provider,
                                                    refresh_client, callback_posts):
        invoke(make_request(), settings=settings, secret_provider=secret_provider,
               refresh_client=refresh_client)

        assert isinstance(refresh_client.calls[0]['credential'], ClientSecretCredential)
        assert secret_provider.calls == [
            ('kv-refresh-test', 'spn-client-id'),
            ('kv-refresh-test', 'spn-client-secret'),
            ('kv-refresh-test', 'azure-tenant-id'),
        ]

    def test_max_parallelism_passed_through_unmodified(self, settings, secret_provider,
                                                       refresh_client, callback_posts):
        query = json.dumps({"sequence": {"maxParallelism": 10, "operations": [
            {"refresh": {"type": "full", "objects": [{"database": "adventureworks", "table": "Customer"}]}}]}})

        invoke(make_request(query=query), settings=settings, secret_provider=secret_provider,
               refresh_client=refresh_client)

        assert refresh_client.calls[0]['command']['sequence']['maxParallelism'] == 10

    def test_repeated_invocations_are_independent(self, settings, secret_provider,
                                                  refresh_client, callback_posts):
        request = make_request(CALLBACK)

        invoke(request, settings=settings, secret_provider=secret_provider, refresh_client=refresh_client)
        invoke(request, settings=settings, secret_provider=secret_provider, refresh_client=refresh_client)

        assert len(refresh_client.calls) == 2
        assert callback_posts.call_count == 2

    def test_prints_success_line(self, settings, secret_provider, refresh_client,
                                 callback_posts, capsys):
        invoke(make_request(), settings=settings, secret_provider=secret_provider,
               refresh_client=refresh_client)

        assert "✓ Refresh succeeded for workspace adventureworks" in capsys.readouterr().out


class TestFailedRefresh:

    def test_missing_secret_sends_400_and_skips_refresh(self, settings, refresh_client, callback_posts):
        provider = FakeSecretProvider({'spn-client-id': 'app', 'azure-tenant-id': 'tenant'})

        invoke(make_request(CALLBACK), settings=settings, secret_provider=provider,
               refresh_client=refresh_client)

        callback_posts.assert_called_once_with(CALLBACK, json={'StatusCode': '400'})
        assert refresh_client.calls == []

    def test_remote_failure_sends_400_without_raising(self, settings, secret_provider, callback_posts):
        client = RecordingRefreshClient(error=RefreshExecutionError("Table 'Customer' not found"))

        invoke(make_request(CALLBACK), settings=settings, secret_provider=secret_provider,
               refresh_client=client)

        assert len(client.calls) == 1
        callback_posts.assert_called_once_with(CALLBACK, json={'StatusCode': '400'})

    def test_unexpected_error_is_reported_as_400(self, settings, secret_provider, callback_posts):
        client = RecordingRefreshClient(error=ValueError("boom"))

        invoke(make_request(CALLBACK), settings=settings, secret_provider=secret_provider,
               refresh_client=client)

        callback_posts.assert_called_once_with(CALLBACK, json={'StatusCode': '400'})

    def test_failure_without_callback_only_prints(self, settings, secret_provider,
                                                  callback_posts, capsys):
        client = RecordingRefreshClient(error=RefreshExecutionError("permission denied"))

        invoke(make_request(), settings=settings, secret_provider=secret_provider, refresh_client=client)

        callback_posts.assert_not_called()
        out = capsys.readouterr().out
        assert "✗ Refresh failed for workspace adventureworks" in out
        assert "permission denied" in out

    def test_callback_delivery_failure_is_swallowed(self, settings, secret_provider,
                                                    refresh_client, callback_posts):
        callback_posts.side_effect = requests.ConnectionError("unreachable")

        invoke(make_request(CALLBACK), settings=settings, secret_provider=secret_provider,
               refresh_client=refresh_client)

        assert callback_posts.call_count == 1

    def test_secrets_never_printed(self, settings, refresh_client, callback_posts, capsys):
        provider = FakeSecretProvider({'spn-client-id': 'app', 'spn-client-secret': 's3cr3t-value'})

        invoke(make_request(), settings=settings, secret_provider=provider, refresh_client=refresh_client)

        assert 's3cr3t-value' not in capsys.readouterr().out


class TestDefaultCollaborators:

    def test_settings_loaded_from_default_template(self, secret_provider, refresh_client,
                                                   callback_posts, monkeypatch):
        monkeypatch.setenv('KEY_VAULT_NAME', 'kv-from-env')
        monkeypatch.delenv('SECRET_PROVIDER', raising=False)

        invoke(make_request(CALLBACK), secret_provider=secret_provider, refresh_client=refresh_client)

        assert secret_provider.calls[0] == ('kv-from-env', 'spn-client-id')
        callback_posts.assert_called_once_with(CALLBACK, json={'StatusCode': '200'})

    def test_invalid_configuration_sends_400_without_raising(self, secret_provider, refresh_client,
                                                             callback_posts, monkeypatch, capsys):
        monkeypatch.setenv('SECRET_PROVIDER', 'vault9000')

        result = invoke(make_request(CALLBACK), secret_provider=secret_provider,
                        refresh_client=refresh_client)

        assert result is None
        assert secret_provider.calls == []
        assert refresh_client.calls == []
        callback_posts.assert_called_once_with(CALLBACK, json={'StatusCode': '400'})
        assert "Unknown secret provider 'vault9000'" in capsys.readouterr().out

    def test_collaborator_construction_failure_sends_400(self, settings, callback_posts):
        with patch('refresh_core.invoker.create_secret_provider', side_effect=RuntimeError('no identity')):
            invoke(make_request(CALLBACK), settings=settings, refresh_client=RecordingRefreshClient())

        callback_posts.assert_called_once_with(CALLBACK, json={'StatusCode': '400'})

    def test_default_refresh_client_uses_settings(self, settings, secret_provider):
        with patch('refresh_core.invoker.PowerBIRefreshClient') as client_cls:
            outcome = execute_refresh(make_request(), settings, secret_provider)

        assert outcome.ok
        client_cls.from_settings.assert_called_once_with(settings)
        client_cls.from_settings.return_value.execute.assert_called_once()


class TestExecuteRefresh:

    def test_returns_succeeded_outcome(self, settings, secret_provider, refresh_client):
        outcome = execute_refresh(make_request(), settings, secret_provider, refresh_client)

        assert outcome.ok
        assert outcome.error_kind is None

    def test_secret_failure_outcome_kind(self, settings, refresh_client):
        outcome = execute_refresh(make_request(), settings, FakeSecretProvider({}), refresh_client)

        assert not outcome.ok
        assert outcome.error_kind == 'SecretResolutionError'
        assert 'spn-client-id' in outcome.detail

    def test_remote_failure_outcome_kind(self, settings, secret_provider):
        client = RecordingRefreshClient(error=RefreshExecutionError("rejected"))

        outcome = execute_refresh(make_request(), settings, secret_provider, client)

        assert outcome.error_kind == 'RefreshExecutionError'
        assert outcome.detail == 'rejected'
