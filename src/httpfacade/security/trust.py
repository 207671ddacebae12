"""
Custom TLS trust for secure connections.

Builds an ``ssl.SSLContext`` that trusts exactly one caller-supplied
certificate. Construction runs as a pipeline of fallible stages:

    parse certificate -> trust store -> trust manager -> TLS context

Any failing stage is logged and collapses the result to ``None``, which
means "platform default trust" for subsequently started requests. Nothing
half-built is ever retained and nothing is raised to the caller.
"""

import logging
import ssl
import threading
from pathlib import Path
from typing import BinaryIO

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from httpfacade.errors.exceptions import TrustBuildError
from httpfacade.logging.utilities import log_exception

logger = logging.getLogger(__name__)

PEM_CERTIFICATE_MARKER = b"-----BEGIN CERTIFICATE-----"

CertificateSource = bytes | bytearray | str | BinaryIO


def read_certificate_source(source: CertificateSource) -> bytes:
    """Return certificate bytes; streams are read fully and then closed."""
    if isinstance(source, str):
        return source.encode("ascii", errors="replace")
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)

    try:
        data = source.read()
    except (OSError, ValueError) as e:
        raise TrustBuildError("read", f"Could not read certificate stream: {e}", cause=e) from e
    finally:
        try:
            source.close()
        except OSError:
            logger.debug("Ignoring error while closing certificate stream", exc_info=True)

    if isinstance(data, str):
        data = data.encode("ascii", errors="replace")
    return data


def parse_certificate(data: bytes) -> x509.Certificate:
    """Parse a PEM or DER encoded X.509 certificate."""
    if not data:
        raise TrustBuildError("parse", "Certificate data is empty")

    try:
        if PEM_CERTIFICATE_MARKER in data:
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)
    except ValueError as e:
        raise TrustBuildError("parse", f"Could not parse certificate: {e}", cause=e) from e


def build_trust_store(certificate: x509.Certificate) -> str:
    """Build a single-entry PEM trust store holding ``certificate``."""
    try:
        return certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")
    except (ValueError, TypeError) as e:
        raise TrustBuildError(
            "trust_store", f"Could not build trust store from certificate: {e}", cause=e
        ) from e


def build_trust_manager(trust_store: str) -> ssl.SSLContext:
    """
    Create a client context that verifies peers against ``trust_store`` only.

    Platform CA certificates are deliberately not loaded.
    """
    try:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.verify_mode = ssl.CERT_REQUIRED
        context.load_verify_locations(cadata=trust_store)
    except (ssl.SSLError, ValueError, TypeError) as e:
        raise TrustBuildError(
            "trust_manager", f"Could not build trust manager from certificate: {e}", cause=e
        ) from e
    return context


def build_tls_context(trust_manager: ssl.SSLContext) -> ssl.SSLContext:
    """Finalize TLS client settings on top of the trust manager."""
    try:
        trust_manager.check_hostname = True
        trust_manager.minimum_version = ssl.TLSVersion.TLSv1_2
        trust_manager.set_alpn_protocols(["http/1.1"])
    except (ssl.SSLError, ValueError, NotImplementedError) as e:
        raise TrustBuildError(
            "tls_context", f"Could not build TLS context from certificate: {e}", cause=e
        ) from e
    return trust_manager


def build_custom_trust_context(source: CertificateSource) -> ssl.SSLContext | None:
    """
    Run the full trust pipeline.

    Returns:
        SSLContext trusting only the given certificate, or None if any
        stage failed (the failure is logged)
    """
    try:
        certificate = parse_certificate(read_certificate_source(source))
        logger.debug(
            "Parsed custom trust certificate",
            extra={"certificate_subject": certificate.subject.rfc4514_string()},
        )
        trust_store = build_trust_store(certificate)
        trust_manager = build_trust_manager(trust_store)
        return build_tls_context(trust_manager)
    except TrustBuildError as e:
        log_exception(
            logger,
            e,
            "Custom trust certificate rejected, falling back to default trust",
            level=logging.WARNING,
            include_traceback=False,
            stage=e.stage,
        )
        return None


class TrustConfig:
    """
    Holder of the current custom TLS context.

    The context is replaced wholesale and never mutated after it is built,
    so a reference obtained from ``snapshot()`` stays valid and unaffected
    by later calls.
    """

    def __init__(self) -> None:
        self._context: ssl.SSLContext | None = None
        self._lock = threading.Lock()

    def snapshot(self) -> ssl.SSLContext | None:
        """Current TLS context, or None for platform default trust."""
        with self._lock:
            return self._context

    @property
    def has_custom_trust(self) -> bool:
        return self.snapshot() is not None

    def set_custom_trust_certificate(self, certificate: CertificateSource) -> bool:
        """
        Trust only ``certificate`` for connections started afterwards.

        Args:
            certificate: PEM text, PEM/DER bytes, or a binary stream
                (closed after reading)

        Returns:
            True if the custom context was installed, False if the
            pipeline failed and default trust is in effect
        """
        logger.debug("Setting custom trusted certificate chain")
        context = build_custom_trust_context(certificate)
        with self._lock:
            self._context = context
        return context is not None

    def set_custom_trust_certificate_file(self, path: str | Path) -> bool:
        """Read a PEM or DER certificate file and install it."""
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            log_exception(
                logger,
                TrustBuildError("read", f"Could not read certificate file {path}", cause=e),
                "Custom trust certificate rejected, falling back to default trust",
                level=logging.WARNING,
                include_traceback=False,
                stage="read",
            )
            self.clear_trust_chain_keystore()
            return False
        return self.set_custom_trust_certificate(data)

    def clear_trust_chain_keystore(self) -> None:
        """Drop the custom certificate; platform default trust applies again."""
        with self._lock:
            self._context = None
