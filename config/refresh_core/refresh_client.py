"""Execute refresh commands against Power BI / Fabric semantic models.

The workspace endpoint is addressed by its XMLA address
(powerbi://api.powerbi.com/v1.0/myorg/<workspace>). Refresh operations are
submitted through the enhanced refresh REST API and polled until the
service reports a terminal status.
"""

import json
import time
from dataclasses import dataclass
from urllib.parse import quote, unquote, urlparse

import requests

from .auth import get_access_token
from .errors import RefreshExecutionError
from .models import refresh_operations

TERMINAL_FAILURE_STATUSES = ['Failed', 'Cancelled', 'Disabled', 'TimedOut']

# Refresh type casing expected by the REST API
REFRESH_TYPES = {
    'full': 'Full',
    'automatic': 'Automatic',
    'dataonly': 'DataOnly',
    'calculate': 'Calculate',
    'clearvalues': 'ClearValues',
    'defragment': 'Defragment',
}


@dataclass(frozen=True)
class RefreshEndpoint:
    address: str
    api_base: str
    workspace_name: str


def build_endpoint(workspace_name, endpoint_template) -> RefreshEndpoint:
    """
    Template a workspace name into the endpoint address.

    Args:
        workspace_name: Workspace display name
        endpoint_template: Address pattern containing '{workspace_name}'

    Returns:
        RefreshEndpoint: Address plus the REST base URL and workspace name
    """
    address = endpoint_template.format(workspace_name=quote(workspace_name, safe=''))
    parsed = urlparse(address)

    if not parsed.netloc or '/' not in parsed.path:
        raise RefreshExecutionError(f"Invalid endpoint address: {address}")

    base_path, _, workspace_segment = parsed.path.rpartition('/')
    scheme = 'https' if parsed.scheme in ('powerbi', 'https') else parsed.scheme

    return RefreshEndpoint(
        address=address,
        api_base=f"{scheme}://{parsed.netloc}{base_path}",
        workspace_name=unquote(workspace_segment),
    )


def build_refresh_body(operation, objects, max_parallelism=None):
    """
    Build the enhanced refresh request body for one database.

    Objects without a table mean the whole model is refreshed, so no
    object list is sent. When a database-only object is mixed with table
    objects, the whole-model refresh wins and a note is printed.
    max_parallelism is passed through as given.
    """
    refresh_type = operation.get('type', 'full')
    body = {
        'type': REFRESH_TYPES.get(str(refresh_type).lower(), refresh_type),
        'commitMode': 'transactional',
        'retryCount': 0,
    }

    table_objects = [obj for obj in objects if obj.get('table')]
    if table_objects and len(table_objects) == len(objects):
        body['objects'] = []
        for obj in objects:
            target = {'table': obj['table']}
            if obj.get('partition'):
                target['partition'] = obj['partition']
            body['objects'].append(target)
    elif table_objects:
        print(f"  Note: whole model requested alongside {len(table_objects)} table object(s); "
              "refreshing the whole model")

    if max_parallelism is not None:
        body['maxParallelism'] = max_parallelism

    return body


def _group_by_database(objects):
    """Group refresh objects by database, keeping first-seen order."""
    grouped = {}
    for obj in objects:
        database = obj.get('database') if isinstance(obj, dict) else None
        if not database:
            raise RefreshExecutionError(f"Refresh object has no database: {obj}")
        grouped.setdefault(database, []).append(obj)
    return grouped


def _error_detail(response):
    """Pull a readable error message out of a failed response."""
    try:
        payload = response.json() if response.text else {}
    except json.JSONDecodeError:
        return response.text
    error = payload.get('error') if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return error.get('message') or error.get('code') or str(error)
    return str(payload) if payload else f"HTTP {response.status_code}"


class PowerBIRefreshClient:
    """Runs refresh commands and blocks until each refresh finishes."""

    def __init__(self, poll_interval_seconds=15, timeout_seconds=None):
        self.poll_interval_seconds = poll_interval_seconds
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings):
        return cls(poll_interval_seconds=settings.poll_interval_seconds,
                   timeout_seconds=settings.timeout_seconds)

    def _api_request(self, method, url, token, json_body=None, params=None):
        headers = {
            'Authorization': f'Bearer {token}',
            'Content-Type': 'application/json'
        }
        try:
            return requests.request(method, url, headers=headers, json=json_body, params=params)
        except requests.RequestException as e:
            raise RefreshExecutionError(f"{method} {url} failed: {e}") from e

    def get_workspace_id(self, endpoint, token):
        """Resolve the workspace (group) id by name."""
        # OData string literals escape a single quote by doubling it
        name_literal = endpoint.workspace_name.replace("'", "''")
        params = {'$filter': f"name eq '{name_literal}'"}

        response = self._api_request('GET', f"{endpoint.api_base}/groups", token, params=params)
        if response.status_code != 200:
            raise RefreshExecutionError(f"Failed to list workspaces: {_error_detail(response)}")

        for group in response.json().get('value', []):
            if group.get('name') == endpoint.workspace_name:
                return group.get('id')

        raise RefreshExecutionError(f"Workspace not found: {endpoint.workspace_name}")

    def get_dataset_id(self, endpoint, token, workspace_id, database):
        """Resolve a semantic model (dataset) id by name within a workspace."""
        response = self._api_request('GET', f"{endpoint.api_base}/groups/{workspace_id}/datasets", token)
        if response.status_code != 200:
            raise RefreshExecutionError(f"Failed to list semantic models: {_error_detail(response)}")

        for dataset in response.json().get('value', []):
            if dataset.get('name') == database:
                return dataset.get('id')

        raise RefreshExecutionError(f"Semantic model not found in {endpoint.workspace_name}: {database}")

    def start_refresh(self, refreshes_url, token, body):
        """Submit an enhanced refresh and return its refresh id."""
        response = self._api_request('POST', refreshes_url, token, json_body=body)
        if response.status_code not in [200, 202]:
            raise RefreshExecutionError(
                f"Refresh rejected (HTTP {response.status_code}): {_error_detail(response)}")

        # Location format: .../refreshes/{refresh_id}
        location = response.headers.get('Location', '')
        if '/refreshes/' in location:
            return location.rstrip('/').split('/refreshes/')[-1].split('?')[0]

        refresh_id = response.headers.get('x-ms-request-id')
        if not refresh_id:
            raise RefreshExecutionError("No refresh id returned by the service")
        return refresh_id

    def wait_for_refresh(self, refreshes_url, token, refresh_id):
        """
        Poll a refresh until it reaches a terminal status.

        Raises:
            RefreshExecutionError: If the refresh fails, is cancelled or
                exceeds the configured timeout
        """
        status_url = f"{refreshes_url}/{refresh_id}"
        elapsed = 0

        while self.timeout_seconds is None or elapsed < self.timeout_seconds:
            time.sleep(self.poll_interval_seconds)
            elapsed += self.poll_interval_seconds

            # 202 while the refresh is still running, 200 once it has finished
            response = self._api_request('GET', status_url, token)
            if response.status_code not in [200, 202]:
                raise RefreshExecutionError(
                    f"Failed to get refresh status (HTTP {response.status_code}): {_error_detail(response)}")

            details = response.json()
            status = details.get('status', 'Unknown')

            if status == 'Completed':
                print(f"  Refresh {refresh_id} completed ({elapsed:g}s)")
                return details
            if status in TERMINAL_FAILURE_STATUSES:
                messages = [m.get('message', '') for m in details.get('messages', []) if isinstance(m, dict)]
                reason = '; '.join(filter(None, messages)) or details.get('serviceExceptionJson') or 'no details'
                raise RefreshExecutionError(f"Refresh {refresh_id} {status.lower()}: {reason}")

            print(f"  Refresh status: {status} ({elapsed:g}s)")

        raise RefreshExecutionError(f"Refresh {refresh_id} did not complete within {self.timeout_seconds:g} seconds")

    def execute(self, endpoint, command, credential):
        """
        Execute a refresh command against a workspace endpoint.

        Operations run in document order; each database within an operation
        is refreshed as one request. The first failure stops the sequence.

        Args:
            endpoint: RefreshEndpoint for the workspace
            command: Refresh command document
            credential: Credential for the service principal
        """
        max_parallelism, operations = refresh_operations(command)
        if not operations:
            raise RefreshExecutionError("Command contains no refresh operation")

        token = get_access_token(credential)
        workspace_id = self.get_workspace_id(endpoint, token)

        for operation in operations:
            objects = operation.get('objects') or []
            if not objects:
                raise RefreshExecutionError("Refresh operation has no objects")

            for database, database_objects in _group_by_database(objects).items():
                dataset_id = self.get_dataset_id(endpoint, token, workspace_id, database)
                refreshes_url = f"{endpoint.api_base}/groups/{workspace_id}/datasets/{dataset_id}/refreshes"
                body = build_refresh_body(operation, database_objects, max_parallelism)

                print(f"  Refreshing {database} ({body['type']}, {len(database_objects)} object(s))")
                refresh_id = self.start_refresh(refreshes_url, token, body)
                self.wait_for_refresh(refreshes_url, token, refresh_id)
