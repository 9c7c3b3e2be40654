"""
pytest configuration for iam_auth tests.

Adds src directory to Python path for imports and sets up test environment.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))


@pytest.fixture(autouse=True)
def clean_iam_env(monkeypatch):
    """Keep developer credentials out of tests."""
    for name in (
        "GP_IAM_ENDPOINT",
        "GP_IAM_API_KEY",
        "GP_IAM_BEARER_TOKEN",
        "IAM_TOKEN_EXPIRY_THRESHOLD",
        "IAM_TOKEN_REQUEST_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
