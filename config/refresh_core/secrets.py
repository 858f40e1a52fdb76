"""Secret providers used to resolve the service principal for a refresh.

Key Vault is read through its REST API with a token from the hosting
identity (managed identity when running in Azure, developer login locally).
"""

import os

import requests
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import DefaultAzureCredential

from .auth import ServicePrincipal
from .errors import SecretResolutionError

KEY_VAULT_SCOPE = "https://vault.azure.net/.default"
KEY_VAULT_API_VERSION = "7.4"


class KeyVaultSecretProvider:
    """Reads secrets from Azure Key Vault."""

    def __init__(self, credential=None):
        self._credential = credential

    @property
    def credential(self):
        # Created lazily so constructing a provider never touches the identity endpoint
        if self._credential is None:
            self._credential = DefaultAzureCredential()
        return self._credential

    @staticmethod
    def vault_url(vault_name):
        if vault_name.startswith('https://'):
            return vault_name.rstrip('/')
        return f"https://{vault_name}.vault.azure.net"

    def get_secret(self, vault_name, secret_name):
        """
        Read the current version of a secret.

        Args:
            vault_name: Key Vault name or full vault URL
            secret_name: Name of the secret

        Returns:
            str: Secret value

        Raises:
            SecretResolutionError: If the secret cannot be read
        """
        if not vault_name:
            raise SecretResolutionError(secret_name, "no Key Vault configured (set KEY_VAULT_NAME)")

        try:
            token = self.credential.get_token(KEY_VAULT_SCOPE).token
        except ClientAuthenticationError as e:
            raise SecretResolutionError(secret_name, f"authentication failed: {e.message}") from e

        url = f"{self.vault_url(vault_name)}/secrets/{secret_name}?api-version={KEY_VAULT_API_VERSION}"
        headers = {'Authorization': f'Bearer {token}'}

        try:
            response = requests.get(url, headers=headers)
        except requests.RequestException as e:
            raise SecretResolutionError(secret_name, f"request failed: {e}") from e

        if response.status_code == 404:
            raise SecretResolutionError(secret_name, "not found")
        if response.status_code in [401, 403]:
            raise SecretResolutionError(secret_name, f"access denied (HTTP {response.status_code})")
        if response.status_code != 200:
            raise SecretResolutionError(secret_name, f"Key Vault returned HTTP {response.status_code}")

        try:
            value = response.json().get('value')
        except ValueError as e:
            raise SecretResolutionError(secret_name, "invalid Key Vault response") from e

        if value is None:
            raise SecretResolutionError(secret_name, "secret has no value")
        return value


class EnvironmentSecretProvider:
    """Reads secrets from environment variables, for local development.

    'spn-client-id' is read from SPN_CLIENT_ID. The vault name is ignored.
    """

    def __init__(self, environ=None):
        self._environ = os.environ if environ is None else environ

    @staticmethod
    def variable_name(secret_name):
        return secret_name.upper().replace('-', '_')

    def get_secret(self, vault_name, secret_name):
        value = self._environ.get(self.variable_name(secret_name))
        if not value:
            raise SecretResolutionError(secret_name, f"environment variable {self.variable_name(secret_name)} not set")
        return value


def create_secret_provider(settings):
    """Create the secret provider named in settings."""
    if settings.secret_provider == 'environment':
        return EnvironmentSecretProvider()
    return KeyVaultSecretProvider()


def resolve_service_principal(provider, settings) -> ServicePrincipal:
    """
    Resolve application id, application secret and tenant id.

    Each secret is read independently; the first failure is raised.
    """
    vault_name = settings.key_vault_name
    return ServicePrincipal(
        client_id=provider.get_secret(vault_name, settings.app_id_secret),
        client_secret=provider.get_secret(vault_name, settings.app_secret_secret),
        tenant_id=provider.get_secret(vault_name, settings.tenant_id_secret),
    )
