"""
Security helpers.

Components:
    - validate_request_url(): reject malformed URLs before a request is queued
    - sanitize_url(): remove credentials and tokens from logged URLs
    - TrustConfig: custom certificate trust for HTTPS connections
"""

from httpfacade.security.trust import (
    TrustConfig,
    build_custom_trust_context,
    build_tls_context,
    build_trust_manager,
    build_trust_store,
    parse_certificate,
    read_certificate_source,
)
from httpfacade.security.urls import (
    ALLOWED_SCHEMES,
    SECURE_SCHEMES,
    is_secure_url,
    sanitize_url,
    validate_request_url,
)

__all__ = [
    # URL validation
    "validate_request_url",
    "is_secure_url",
    "sanitize_url",
    "ALLOWED_SCHEMES",
    "SECURE_SCHEMES",
    # Trust
    "TrustConfig",
    "build_custom_trust_context",
    "read_certificate_source",
    "parse_certificate",
    "build_trust_store",
    "build_trust_manager",
    "build_tls_context",
]
