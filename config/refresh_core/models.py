"""Request, command and outcome models for the refresh invoker.

The invoker treats the refresh command as an opaque JSON document that is
validated by the remote service. `build_refresh_command` is the only place
that enforces command invariants, for commands assembled locally.
"""

import json
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from .errors import InvalidRequestError

STATUS_SUCCEEDED = 200
STATUS_FAILED = 400


def build_refresh_command(objects, refresh_type='full', max_parallelism=None):
    """
    Build a sequence/refresh command for one or more model objects.

    Args:
        objects: List of dicts with 'database', 'table' and optional 'partition'
        refresh_type: Refresh type (e.g., 'full', 'dataOnly', 'calculate')
        max_parallelism: Optional max parallelism for the sequence

    Returns:
        dict: Refresh command document
    """
    if not objects:
        raise InvalidRequestError("A refresh command needs at least one object")

    command_objects = []
    for obj in objects:
        database = obj.get('database')
        table = obj.get('table')
        if not database or not table:
            raise InvalidRequestError(f"Refresh object requires 'database' and 'table': {obj}")

        command_object = {'database': database, 'table': table}
        if obj.get('partition'):
            command_object['partition'] = obj['partition']
        command_objects.append(command_object)

    sequence = {}
    if max_parallelism is not None:
        sequence['maxParallelism'] = max_parallelism
    sequence['operations'] = [{'refresh': {'type': refresh_type, 'objects': command_objects}}]

    return {'sequence': sequence}


def parse_object_spec(spec):
    """Parse 'database.table[.partition]' into a refresh object dict."""
    parts = spec.split('.', 2)
    if len(parts) < 2 or not all(parts):
        raise InvalidRequestError(f"Expected 'database.table[.partition]', got '{spec}'")

    obj = {'database': parts[0], 'table': parts[1]}
    if len(parts) == 3:
        obj['partition'] = parts[2]
    return obj


def refresh_operations(command):
    """
    Extract the refresh operations of a command in execution order.

    Accepts either a 'sequence' command or a bare 'refresh' command.

    Returns:
        tuple: (max_parallelism or None, list of refresh operation dicts)
    """
    if 'sequence' in command:
        sequence = command.get('sequence') or {}
        operations = [op['refresh'] for op in sequence.get('operations', [])
                      if isinstance(op, dict) and 'refresh' in op]
        return sequence.get('maxParallelism'), operations

    if 'refresh' in command:
        refresh = command['refresh']
        return refresh.get('maxParallelism'), [refresh]

    return None, []


def _validate_callback_uri(value):
    if not isinstance(value, str):
        raise InvalidRequestError("callBackUri must be a string")

    parsed = urlparse(value)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise InvalidRequestError(f"callBackUri is not a valid http(s) URL: {value}")
    return value


def _decode_query(value):
    if isinstance(value, dict):
        return value

    if not isinstance(value, str) or not value.strip():
        raise InvalidRequestError("queryXMLA must be a JSON-encoded refresh command")

    try:
        query = json.loads(value)
    except json.JSONDecodeError as e:
        raise InvalidRequestError(f"queryXMLA is not valid JSON: {e}") from e

    if not isinstance(query, dict):
        raise InvalidRequestError("queryXMLA must decode to a JSON object")
    return query


@dataclass(frozen=True)
class InvocationRequest:
    workspace_name: str
    query_xmla: dict
    callback_uri: Optional[str] = None


def parse_invocation_request(body):
    """
    Validate a trigger body and build an InvocationRequest.

    Args:
        body: JSON text/bytes or an already decoded dict with 'workspaceName',
              'queryXMLA' and optional 'callBackUri'

    Returns:
        InvocationRequest

    Raises:
        InvalidRequestError: If the body is malformed
    """
    if isinstance(body, (bytes, bytearray)):
        body = body.decode('utf-8')

    if isinstance(body, str):
        if not body.strip():
            raise InvalidRequestError("Request body is empty")
        try:
            body = json.loads(body)
        except json.JSONDecodeError as e:
            raise InvalidRequestError(f"Request body is not valid JSON: {e}") from e

    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object")

    workspace_name = body.get('workspaceName')
    if not isinstance(workspace_name, str) or not workspace_name.strip():
        raise InvalidRequestError("workspaceName is required")

    if 'queryXMLA' not in body:
        raise InvalidRequestError("queryXMLA is required")
    query = _decode_query(body['queryXMLA'])

    # Pipelines commonly send an empty string when no callback is wanted
    callback_uri = body.get('callBackUri')
    if callback_uri in (None, ''):
        callback_uri = None
    else:
        callback_uri = _validate_callback_uri(callback_uri)

    return InvocationRequest(
        workspace_name=workspace_name.strip(),
        query_xmla=query,
        callback_uri=callback_uri,
    )


@dataclass(frozen=True)
class RefreshOutcome:
    """Result of the execution step: Ok, or Err with an error kind."""
    ok: bool
    error_kind: Optional[str] = None
    detail: Optional[str] = None

    @classmethod
    def succeeded(cls):
        return cls(ok=True)

    @classmethod
    def failed(cls, error_kind, detail):
        return cls(ok=False, error_kind=error_kind, detail=detail)


def status_code_for(outcome: RefreshOutcome) -> int:
    """Map an outcome to the callback status code."""
    return STATUS_SUCCEEDED if outcome.ok else STATUS_FAILED
