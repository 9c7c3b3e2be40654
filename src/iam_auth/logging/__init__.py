"""
Logging module for iam_auth.

Import directly from sub-modules:
    from iam_auth.logging.setup import setup_logging
    from iam_auth.logging.utilities import get_logger, log_with_context
"""
