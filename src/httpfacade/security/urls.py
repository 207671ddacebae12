"""
URL validation for request submission and URL redaction for logs.
"""

from urllib.parse import urlparse, urlunparse

from httpfacade.errors.exceptions import MalformedURLError

# Schemes the transport can open
ALLOWED_SCHEMES = frozenset({"http", "https"})

SECURE_SCHEMES = frozenset({"https"})

# Query parameters whose values are never written to logs
SENSITIVE_PARAMS = frozenset(
    {
        "sig",
        "signature",
        "token",
        "access_token",
        "key",
        "api_key",
        "apikey",
        "secret",
        "password",
        "auth",
        "x-amz-signature",
        "x-amz-credential",
    }
)


def validate_request_url(url: str) -> str:
    """
    Check that ``url`` is an absolute http(s) URL with a host.

    Args:
        url: URL string passed by the caller

    Returns:
        The URL, unchanged

    Raises:
        MalformedURLError: If the URL is empty, unparsable, relative, uses a
            scheme the transport cannot open, or has no host

    Examples:
        >>> validate_request_url("https://example.com/a?b=1")
        'https://example.com/a?b=1'

        validate_request_url("example.com/a") raises MalformedURLError
        ("no protocol").
    """
    if not isinstance(url, str) or not url.strip():
        raise MalformedURLError(str(url), "empty URL")

    try:
        parsed = urlparse(url)
        # Accessing port validates it (raises ValueError when out of range)
        parsed.port
    except ValueError as e:
        raise MalformedURLError(url, f"invalid URL format: {e}", cause=e) from e

    if not parsed.scheme:
        raise MalformedURLError(url, "no protocol")

    scheme = parsed.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise MalformedURLError(url, f"unknown protocol: {parsed.scheme}")

    if not parsed.hostname:
        raise MalformedURLError(url, "no hostname in URL")

    return url


def is_secure_url(url: str) -> bool:
    """True when the URL scheme negotiates TLS."""
    return urlparse(url).scheme.lower() in SECURE_SCHEMES


def sanitize_url(url: str) -> str:
    """
    Remove sensitive query parameters and credentials from URL.

    Preserves the path and structure for debugging while removing
    tokens that could grant access if exposed in logs.
    """
    if not url:
        return url

    try:
        parsed = urlparse(url)
    except ValueError:
        return url

    netloc = parsed.netloc
    if "@" in netloc:
        netloc = "[REDACTED]@" + netloc.rsplit("@", 1)[1]

    sanitized_params = []
    if parsed.query:
        for param in parsed.query.split("&"):
            if "=" in param:
                key, _ = param.split("=", 1)
                if key.lower() in SENSITIVE_PARAMS:
                    sanitized_params.append(f"{key}=[REDACTED]")
                    continue
            sanitized_params.append(param)

    return urlunparse(parsed._replace(netloc=netloc, query="&".join(sanitized_params)))


__all__ = [
    "ALLOWED_SCHEMES",
    "SECURE_SCHEMES",
    "SENSITIVE_PARAMS",
    "validate_request_url",
    "is_secure_url",
    "sanitize_url",
]
