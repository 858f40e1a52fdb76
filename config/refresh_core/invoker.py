"""Run one refresh invocation and report the outcome to the caller.

Each invocation resolves its own credentials and holds no state between
calls. Failures never propagate past `invoke`; they are reported through
the callback status and the printed outcome line.
"""

from .auth import build_credential
from .callback import notify_callback
from .errors import RefreshExecutionError, SecretResolutionError
from .models import status_code_for, RefreshOutcome
from .refresh_client import PowerBIRefreshClient, build_endpoint
from .secrets import create_secret_provider, resolve_service_principal
from .settings import load_settings


def execute_refresh(request, settings=None, secret_provider=None, refresh_client=None) -> RefreshOutcome:
    """
    Load settings, resolve credentials and execute the refresh command.

    Missing collaborators are built from settings inside the guarded step,
    so configuration errors become a failed outcome as well.

    Returns:
        RefreshOutcome: succeeded, or failed with the error kind and detail
    """
    try:
        settings = settings or load_settings()
        secret_provider = secret_provider or create_secret_provider(settings)
        refresh_client = refresh_client or PowerBIRefreshClient.from_settings(settings)

        print("  Resolving credentials...")
        principal = resolve_service_principal(secret_provider, settings)

        endpoint = build_endpoint(request.workspace_name, settings.endpoint_template)
        credential = build_credential(principal)

        print(f"  Invoking refresh on {endpoint.address}")
        refresh_client.execute(endpoint, request.query_xmla, credential)

    except (SecretResolutionError, RefreshExecutionError) as e:
        return RefreshOutcome.failed(type(e).__name__, str(e))
    except Exception as e:
        return RefreshOutcome.failed(RefreshExecutionError.__name__, f"{type(e).__name__}: {e}")

    return RefreshOutcome.succeeded()


def report_outcome(request, outcome):
    """Print the outcome line and send at most one callback."""
    if outcome.ok:
        print(f"✓ Refresh succeeded for workspace {request.workspace_name}")
    else:
        print(f"✗ Refresh failed for workspace {request.workspace_name}: "
              f"{outcome.error_kind}: {outcome.detail}")

    if not request.callback_uri:
        print("  No callback address, skipping callback")
        return False

    return notify_callback(request.callback_uri, status_code_for(outcome))


def invoke(request, settings=None, secret_provider=None, refresh_client=None):
    """
    Refresh the objects named in the request and notify the callback address.

    Args:
        request: InvocationRequest
        settings: RefreshSettings (loaded from the default template if omitted)
        secret_provider: Object with get_secret(vault_name, secret_name)
        refresh_client: Object with execute(endpoint, command, credential)
    """
    outcome = execute_refresh(request, settings, secret_provider, refresh_client)
    report_outcome(request, outcome)
