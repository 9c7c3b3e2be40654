"""
Secret handling utilities for iam_auth.

Provides:
- Secret masking for reprs and diagnostics
- Redaction of credentials in URLs, IAM bodies and exception text
"""

import re
from typing import Optional
from urllib.parse import parse_qsl, urlparse, urlunparse


# ---------------------------------------------------------------------------
# Secret Masking
# ---------------------------------------------------------------------------

MASK = "***"

# Characters of a secret that may be shown before the mask
VISIBLE_PREFIX = 4


def mask_secret(value: Optional[str], visible: int = VISIBLE_PREFIX) -> str:
    """
    Mask a secret for display.

    Short secrets are masked completely so that the visible prefix never
    reveals a meaningful share of the value.

    Args:
        value: Secret to mask (API key, token)
        visible: Number of leading characters to keep

    Returns:
        Masked string, e.g. "abcd***"

    Examples:
        >>> mask_secret("abcdefghijklmnop")
        'abcd***'
        >>> mask_secret("short")
        '***'
    """
    if not value:
        return MASK
    if len(value) < visible * 3:
        return MASK
    return f"{value[:visible]}{MASK}"


# ---------------------------------------------------------------------------
# Log Redaction
# ---------------------------------------------------------------------------

REDACTED = "[REDACTED]"

# Query/form parameter names whose values are credentials
CREDENTIAL_PARAMS = frozenset({
    "apikey",
    "api_key",
    "access_token",
    "refresh_token",
    "token",
    "password",
    "authorization",
})


def sanitize_url(url: str) -> str:
    """
    Redact credential query parameters in a URL.

    Example:
        >>> sanitize_url("https://iam.example.com/identity/token?apikey=k&a=1")
        'https://iam.example.com/identity/token?apikey=[REDACTED]&a=1'
    """
    if not url or "?" not in url:
        return url

    try:
        parsed = urlparse(url)
        pairs = parse_qsl(parsed.query, keep_blank_values=True)
    except ValueError:
        return url

    if not any(name.lower() in CREDENTIAL_PARAMS for name, _ in pairs):
        return url

    query = "&".join(
        f"{name}={REDACTED if name.lower() in CREDENTIAL_PARAMS else value}"
        for name, value in pairs
    )
    return urlunparse(parsed._replace(query=query))


# Credential shapes found in IAM request bodies, error bodies and exception text
SENSITIVE_PATTERNS = [
    # form-encoded body: apikey=...
    (re.compile(r'apikey=[^&\s"\']+', re.IGNORECASE), f"apikey={REDACTED}"),
    (re.compile(r'api[_-]key[=:]\s*[^\s"\'&]+', re.IGNORECASE), f"api_key={REDACTED}"),
    # JSON bodies
    (re.compile(r'"apikey"\s*:\s*"[^"]*"', re.IGNORECASE), f'"apikey": "{REDACTED}"'),
    (
        re.compile(r'"(access_token|refresh_token)"\s*:\s*"[^"]*"', re.IGNORECASE),
        rf'"\1": "{REDACTED}"',
    ),
    (re.compile(r'(access_|refresh_)?token=[^&\s"\']+', re.IGNORECASE), rf"\1token={REDACTED}"),
    # Authorization header
    (re.compile(r"bearer\s+[A-Za-z0-9\-_.=]+", re.IGNORECASE), f"Bearer {REDACTED}"),
]

URL_PATTERN = re.compile(r'https?://[^\s"\'<>]+')


def sanitize_error_message(
    msg: str,
    secret: Optional[str] = None,
    max_length: int = 500,
) -> str:
    """
    Redact credentials from an error message or response body and truncate it.

    Args:
        msg: Text that may contain credentials
        secret: The caller's API key, removed wherever it appears verbatim
        max_length: Maximum length of the result

    Returns:
        Redacted text, at most max_length characters
    """
    if not msg:
        return msg

    if secret:
        msg = msg.replace(secret, REDACTED)

    for pattern, replacement in SENSITIVE_PATTERNS:
        msg = pattern.sub(replacement, msg)

    msg = URL_PATTERN.sub(lambda m: sanitize_url(m.group(0)), msg)

    if len(msg) > max_length:
        msg = msg[: max_length - 3] + "..."
    return msg
