"""
Command line entry point for IAM token management.

Usage:
    # Print a bearer token for the configured service account
    python -m iam_auth token

    # Fetch a token and print manager diagnostics as JSON
    python -m iam_auth check

    # Use a config file and JSON logs
    python -m iam_auth --config config.yaml --json-logs check
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from iam_auth.config import IamCredentials, TokenManagerConfig
from iam_auth.errors import InvalidConfigurationError, TokenExchangeError
from iam_auth.logging.setup import setup_logging
from iam_auth.logging.utilities import get_logger, log_exception, log_with_context
from iam_auth.manager import TokenLifecycleManager
from iam_auth.registry import ManagerRegistry, token_manager_for

logger = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="iam_auth",
        description="Exchange an IAM API key for a bearer token",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m iam_auth token                 Print a bearer token
  python -m iam_auth check                 Fetch a token, print diagnostics

Environment Variables:

  GP_IAM_ENDPOINT              IAM endpoint (e.g. https://iam.cloud.ibm.com)
  GP_IAM_API_KEY               IAM API key
  GP_IAM_BEARER_TOKEN          Pre-issued bearer token (used without API key)
  IAM_TOKEN_EXPIRY_THRESHOLD   Refresh after this fraction of lifetime (0.85)
  IAM_TOKEN_REQUEST_TIMEOUT    Token request timeout in seconds (30)
        """,
    )

    parser.add_argument(
        "command",
        choices=["token", "check"],
        help="'token' prints a bearer token, 'check' prints diagnostics",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config YAML file (default: config.yaml)",
    )

    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for configuration or exchange errors)
    """
    load_dotenv()

    args = parse_args(argv)

    setup_logging(
        json_format=args.json_logs,
        console_level=logging.DEBUG if args.verbose else logging.WARNING,
    )

    try:
        config = TokenManagerConfig.load_config(args.config)
        credentials = IamCredentials.from_env()
        registry = ManagerRegistry.from_config(config)
        manager = token_manager_for(credentials, registry)

        token = manager.get_token()

        if args.command == "token":
            print(token)
        else:
            if isinstance(manager, TokenLifecycleManager):
                diagnostics = manager.get_diagnostics()
            else:
                diagnostics = {"auth_mode": "bearer", "state": "static"}
            print(json.dumps(diagnostics, indent=2))

        log_with_context(logger, logging.DEBUG, "Command completed", command=args.command)
        return 0

    except InvalidConfigurationError as e:
        log_exception(logger, e, "Configuration error", include_traceback=False)
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    except TokenExchangeError as e:
        log_exception(logger, e, "Token exchange failed", include_traceback=False)
        print(f"Token exchange failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
