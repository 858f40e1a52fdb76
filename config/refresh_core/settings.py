"""Runtime settings for the refresh invoker, loaded from the YAML template."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .utils import is_unresolved, load_config

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / 'templates' / 'refresh' / 'refresh-template.yml'

# XMLA address of a Power BI / Fabric workspace
DEFAULT_ENDPOINT_TEMPLATE = "powerbi://api.powerbi.com/v1.0/myorg/{workspace_name}"
DEFAULT_POLL_INTERVAL_SECONDS = 15

SECRET_PROVIDERS = ('keyvault', 'environment')


@dataclass(frozen=True)
class RefreshSettings:
    key_vault_name: Optional[str] = None
    secret_provider: str = 'keyvault'
    app_id_secret: str = 'spn-client-id'
    app_secret_secret: str = 'spn-client-secret'
    tenant_id_secret: str = 'azure-tenant-id'
    endpoint_template: str = DEFAULT_ENDPOINT_TEMPLATE
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    timeout_seconds: Optional[float] = None


def _value(section: dict, key: str, default=None):
    """Read a config value, falling back when missing, empty or unresolved."""
    value = section.get(key)
    if value is None or value == '' or is_unresolved(value):
        return default
    return value


def settings_from_config(config: dict) -> RefreshSettings:
    """
    Build RefreshSettings from a loaded configuration dict.

    Args:
        config: Parsed YAML configuration

    Returns:
        RefreshSettings: Settings with defaults for anything not configured
    """
    key_vault = config.get('key_vault') or {}
    secrets = config.get('secrets') or {}
    refresh = config.get('refresh') or {}
    defaults = RefreshSettings()

    secret_provider = str(_value(secrets, 'provider', defaults.secret_provider)).lower()
    if secret_provider not in SECRET_PROVIDERS:
        raise ValueError(f"Unknown secret provider '{secret_provider}' (expected one of {SECRET_PROVIDERS})")

    timeout = _value(refresh, 'timeout_seconds')

    return RefreshSettings(
        key_vault_name=_value(key_vault, 'name'),
        secret_provider=secret_provider,
        app_id_secret=_value(secrets, 'app_id', defaults.app_id_secret),
        app_secret_secret=_value(secrets, 'app_secret', defaults.app_secret_secret),
        tenant_id_secret=_value(secrets, 'tenant_id', defaults.tenant_id_secret),
        endpoint_template=_value(refresh, 'endpoint_template', defaults.endpoint_template),
        poll_interval_seconds=float(_value(refresh, 'poll_interval_seconds', defaults.poll_interval_seconds)),
        timeout_seconds=float(timeout) if timeout is not None else None,
    )


def load_settings(config_path=None) -> RefreshSettings:
    """
    Load settings from a YAML file.

    Falls back to built-in defaults when the default template is not present
    (e.g. when the package is installed without the config templates).
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        if config_path:
            raise FileNotFoundError(f"Configuration file not found: {path}")
        return RefreshSettings()

    return settings_from_config(load_config(str(path)))
