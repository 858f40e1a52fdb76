"""
Refresh Core - Refresh semantic models on behalf of an orchestrating pipeline.

This package contains:
- Request validation and refresh command helpers
- Secret resolution (Key Vault or environment)
- Refresh execution against Power BI / Fabric workspaces
- Callback reporting
"""

import os
from pathlib import Path

from .errors import (RefreshInvokerError, InvalidRequestError, SecretResolutionError,
                     RefreshExecutionError, CallbackDeliveryError)
from .models import (InvocationRequest, RefreshOutcome, build_refresh_command,
                     parse_invocation_request, status_code_for)
from .settings import RefreshSettings, load_settings
from .invoker import invoke
from .trigger import handle_webhook


def bootstrap():
    """Load .env file for local development (skipped in GitHub Actions)."""
    if not os.getenv('GITHUB_ACTIONS'):
        from dotenv import load_dotenv
        # Walk up from refresh_core package to find project root .env
        env_file = Path(__file__).parent.parent.parent / '.env'
        if env_file.exists():
            load_dotenv(env_file)


__all__ = [
    'bootstrap',
    'RefreshInvokerError',
    'InvalidRequestError',
    'SecretResolutionError',
    'RefreshExecutionError',
    'CallbackDeliveryError',
    'InvocationRequest',
    'RefreshOutcome',
    'build_refresh_command',
    'parse_invocation_request',
    'status_code_for',
    'RefreshSettings',
    'load_settings',
    'invoke',
    'handle_webhook'
]
