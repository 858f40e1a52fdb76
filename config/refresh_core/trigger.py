"""Invocation trigger: validates a webhook body and runs the refresh."""

from .errors import InvalidRequestError
from .invoker import invoke
from .models import parse_invocation_request

STATUS_ACCEPTED = 202
STATUS_BAD_REQUEST = 400


def handle_webhook(body, settings=None, secret_provider=None, refresh_client=None):
    """
    Handle a trigger call from the orchestrating pipeline.

    Malformed requests are rejected before any secret is read and no
    callback is sent for them.

    Args:
        body: Raw JSON body (str/bytes) or decoded dict

    Returns:
        tuple: (http_status: int, payload: dict)
    """
    try:
        request = parse_invocation_request(body)
    except InvalidRequestError as e:
        print(f"✗ Rejected invocation request: {e}")
        return STATUS_BAD_REQUEST, {'error': str(e)}

    invoke(request, settings=settings, secret_provider=secret_provider, refresh_client=refresh_client)

    return STATUS_ACCEPTED, {'workspaceName': request.workspace_name, 'status': 'Accepted'}
