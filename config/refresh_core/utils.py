"""Shared helpers for configuration loading."""

import os
import re

import yaml

# Matches ${VAR} placeholders that were not substituted from the environment
_UNRESOLVED_VAR = re.compile(r'^\$\{[^}]+\}$')


def _substitute_env_vars(value):
    """Recursively expand ${VAR} placeholders in strings."""
    if isinstance(value, dict):
        return {key: _substitute_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    if isinstance(value, str):
        return os.path.expandvars(value)
    return value


def load_config(config_path):
    """
    Load a YAML configuration file with environment variable substitution.

    Args:
        config_path: Path to the YAML file

    Returns:
        dict: Parsed configuration (empty dict for an empty file)
    """
    with open(config_path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f) or {}

    return _substitute_env_vars(config)


def is_unresolved(value):
    """True when a config value is an unsubstituted ${...} placeholder."""
    return isinstance(value, str) and bool(_UNRESOLVED_VAR.match(value))
