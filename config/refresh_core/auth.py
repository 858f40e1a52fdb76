"""Service principal credentials for the refresh call."""

from dataclasses import dataclass, field

from azure.core.exceptions import ClientAuthenticationError
from azure.identity import ClientSecretCredential

from .errors import RefreshExecutionError

POWERBI_SCOPE = "https://analysis.windows.net/powerbi/api/.default"


@dataclass(frozen=True)
class ServicePrincipal:
    client_id: str
    client_secret: str = field(repr=False)
    tenant_id: str


def build_credential(principal: ServicePrincipal) -> ClientSecretCredential:
    """Build a credential for one invocation from resolved service principal fields."""
    return ClientSecretCredential(
        tenant_id=principal.tenant_id,
        client_id=principal.client_id,
        client_secret=principal.client_secret,
    )


def get_access_token(credential, scope=POWERBI_SCOPE) -> str:
    """
    Get an access token for the given scope.

    Raises:
        RefreshExecutionError: If the service principal cannot authenticate
    """
    try:
        token = credential.get_token(scope)
    except ClientAuthenticationError as e:
        raise RefreshExecutionError(f"Service principal authentication failed: {e.message}") from e
    return token.token
