"""
Refresh semantic model objects and report the result to a callback address.

Runs the same invocation the HTTP trigger runs, for local testing or
pipeline steps that call scripts directly.

Usage:
    python invoke_refresh.py --workspace-name adventureworks --query-file refresh.json
    python invoke_refresh.py -w adventureworks --object adventureworks.Customer --max-parallelism 10
    python invoke_refresh.py -w adventureworks --query '{"refresh": {...}}' --callback-uri https://...
"""

# fmt: off
# isort: skip_file
import os
import sys
import json
import argparse
from pathlib import Path
import yaml
from dotenv import load_dotenv

# Add config directory to Python path for refresh_core imports
config_dir = Path(__file__).parent.parent
if str(config_dir) not in sys.path:
    sys.path.insert(0, str(config_dir))

from refresh_core import InvalidRequestError, build_refresh_command, handle_webhook, load_settings
from refresh_core.models import parse_object_spec
# fmt: on


def build_query(args) -> str:
    """Build the queryXMLA string from --query, --query-file or --object arguments."""
    if args.query:
        return args.query

    if args.query_file:
        with open(args.query_file, 'r', encoding='utf-8') as f:
            return f.read()

    objects = [parse_object_spec(spec) for spec in args.object]
    command = build_refresh_command(objects, refresh_type=args.type or 'full', max_parallelism=args.max_parallelism)
    return json.dumps(command)


def main():
    parser = argparse.ArgumentParser(description='Refresh semantic model objects')
    parser.add_argument('--workspace-name', '-w', required=True,
                        help='Workspace hosting the semantic model')
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--query', '-q', help='Refresh command as a JSON string')
    source.add_argument('--query-file', '-f', help='Path to a JSON file with the refresh command')
    source.add_argument('--object', '-o', action='append',
                        help='Object to refresh as database.table[.partition] (repeatable)')
    parser.add_argument('--type', '-t', default=None,
                        help='Refresh type, only with --object (default: full)')
    parser.add_argument('--max-parallelism', type=int, default=None,
                        help='Max parallelism, only with --object')
    parser.add_argument('--callback-uri', '-u', default=None,
                        help='URL that receives {"StatusCode": "200"|"400"}')
    parser.add_argument('--config', '-c', default='config/templates/refresh/refresh-template.yml',
                        help='Path to configuration file')

    args = parser.parse_args()

    if not args.object and (args.type is not None or args.max_parallelism is not None):
        parser.error("--type and --max-parallelism can only be used with --object")

    # Load .env for local testing
    if not os.getenv('GITHUB_ACTIONS'):
        env_file = Path(__file__).parent.parent.parent / '.env'
        if env_file.exists():
            load_dotenv(env_file)

    repository_root = Path(__file__).parent.parent.parent
    config_path = repository_root / args.config

    if not config_path.exists():
        print(f"ERROR: Config not found: {config_path}")
        sys.exit(1)

    try:
        settings = load_settings(config_path)
    except (ValueError, OSError, yaml.YAMLError) as e:
        print(f"ERROR: Invalid configuration {config_path}: {e}")
        sys.exit(1)

    try:
        query = build_query(args)
    except (InvalidRequestError, OSError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    body = {'workspaceName': args.workspace_name, 'queryXMLA': query}
    if args.callback_uri:
        body['callBackUri'] = args.callback_uri

    print("=== SEMANTIC MODEL REFRESH ===")
    print(f"Workspace: {args.workspace_name}")
    print(f"Callback:  {args.callback_uri or 'none'}")

    status_code, _ = handle_webhook(body, settings=settings)

    # Failures are reported through the callback, not the exit code
    sys.exit(0 if status_code == 202 else 1)


if __name__ == "__main__":
    main()
