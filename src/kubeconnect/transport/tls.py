"""Server certificate validation against an out-of-band cluster CA.

Kubeconfig clusters usually ship their own CA certificate, which the
platform trust store does not know. A TLS stack validating against the
platform store therefore reports "unknown root" for a perfectly good
cluster. :func:`verify_server_certificate` is the predicate that decides
whether such a handshake may proceed:

* no reported error: accept;
* any error other than "unknown root" (name mismatch, missing
  certificate, ...): reject;
* "unknown root" alone: rebuild the chain from the leaf with the cluster
  CA bundle as the only trust anchors and accept only if that succeeds.

The predicate is pure: the CA is passed in, and the chain builder is a
parameter so it can be replaced.
"""

from __future__ import annotations

import enum
import logging
import ssl
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from cryptography import x509
from cryptography.exceptions import InvalidSignature

from kubeconnect.exceptions import TlsValidationError

logger = logging.getLogger(__name__)

ChainBuilder = Callable[
    [x509.Certificate, Sequence[x509.Certificate], x509.Certificate], bool
]
"""``(leaf, intermediates, trusted_root) -> bool``."""

# OpenSSL verify codes that mean "could not reach a trusted root".
_UNKNOWN_ROOT_CODES = frozenset({2, 18, 19, 20, 21})
_NAME_MISMATCH_CODES = frozenset({62})


class TlsPolicyError(enum.Flag):
    """Chain-build problems reported by the TLS stack for one handshake."""

    NONE = 0
    CERTIFICATE_NOT_AVAILABLE = enum.auto()
    NAME_MISMATCH = enum.auto()
    UNKNOWN_ROOT = enum.auto()
    OTHER = enum.auto()


def classify_verification_error(error: ssl.SSLCertVerificationError) -> TlsPolicyError:
    """Map an OpenSSL verification failure onto :class:`TlsPolicyError`."""
    code = getattr(error, "verify_code", None)
    if code in _UNKNOWN_ROOT_CODES:
        return TlsPolicyError.UNKNOWN_ROOT
    if code in _NAME_MISMATCH_CODES:
        return TlsPolicyError.NAME_MISMATCH
    return TlsPolicyError.OTHER


def _within_validity(certificate: x509.Certificate, now: datetime) -> bool:
    return certificate.not_valid_before_utc <= now <= certificate.not_valid_after_utc


def _issued_by(certificate: x509.Certificate, issuer: x509.Certificate) -> bool:
    try:
        certificate.verify_directly_issued_by(issuer)
    except (ValueError, TypeError, InvalidSignature):
        return False
    return True


def build_chain_with_ca(
    leaf: x509.Certificate,
    intermediates: Sequence[x509.Certificate],
    trusted_root: x509.Certificate,
    now: Optional[datetime] = None,
) -> bool:
    """Return ``True`` if *leaf* chains up to *trusted_root*.

    Walks from the leaf through *intermediates* (in any order), checking
    the issuer name and signature of every link and the validity window of
    every certificate, including the root.
    """
    now = now or datetime.now(timezone.utc)
    if not _within_validity(trusted_root, now):
        logger.debug("Cluster CA certificate is outside its validity period")
        return False

    current = leaf
    remaining = list(intermediates)
    # Each step consumes one intermediate, so the walk terminates.
    for _ in range(len(remaining) + 1):
        if not _within_validity(current, now):
            logger.debug("Certificate %s is outside its validity period", current.subject.rfc4514_string())
            return False
        if current == trusted_root or _issued_by(current, trusted_root):
            return True
        issuer = next(
            (
                candidate
                for candidate in remaining
                if candidate.subject == current.issuer and _issued_by(current, candidate)
            ),
            None,
        )
        if issuer is None:
            return False
        remaining.remove(issuer)
        current = issuer
    return False


def verify_server_certificate(
    errors: TlsPolicyError,
    leaf: Optional[x509.Certificate],
    intermediates: Sequence[x509.Certificate] = (),
    ca_certificate: Optional[x509.Certificate] = None,
    allow_insecure: bool = False,
    chain_builder: ChainBuilder = build_chain_with_ca,
    extra_ca_certificates: Sequence[x509.Certificate] = (),
) -> bool:
    """Decide whether a server certificate is acceptable.

    Args:
        errors: Problems the TLS stack reported for the handshake.
        leaf: The server's certificate, if one was presented.
        intermediates: Other certificates the server sent.
        ca_certificate: The cluster CA from the kubeconfig.
        allow_insecure: Accept anything when no CA is configured.
        chain_builder: Rebuilds the chain with one trusted root.
        extra_ca_certificates: Further certificates of the cluster CA
            bundle. Each is tried as the root in turn, and the others are
            offered as intermediates.

    Returns:
        ``True`` to let the handshake proceed.
    """
    if ca_certificate is None:
        return allow_insecure or errors == TlsPolicyError.NONE
    if errors == TlsPolicyError.NONE:
        return True
    if errors != TlsPolicyError.UNKNOWN_ROOT:
        logger.debug("Rejecting server certificate: %s", errors)
        return False
    if leaf is None:
        return False
    anchors = [ca_certificate, *extra_ca_certificates]
    for anchor in anchors:
        others = [c for c in anchors if c is not anchor]
        if chain_builder(leaf, [*intermediates, *others], anchor):
            return True
    return False


def ensure_server_certificate(
    errors: TlsPolicyError,
    leaf: Optional[x509.Certificate],
    intermediates: Sequence[x509.Certificate] = (),
    ca_certificate: Optional[x509.Certificate] = None,
    allow_insecure: bool = False,
    chain_builder: ChainBuilder = build_chain_with_ca,
    extra_ca_certificates: Sequence[x509.Certificate] = (),
) -> None:
    """Like :func:`verify_server_certificate`, but raise on rejection.

    Raises:
        TlsValidationError: If the certificate is not acceptable.
    """
    if verify_server_certificate(
        errors,
        leaf,
        intermediates,
        ca_certificate,
        allow_insecure,
        chain_builder,
        extra_ca_certificates,
    ):
        return
    subject = leaf.subject.rfc4514_string() if leaf is not None else "<none>"
    if ca_certificate is not None and errors == TlsPolicyError.UNKNOWN_ROOT:
        reason = "the chain does not lead to the configured cluster CA"
    else:
        reason = f"TLS errors {errors}"
    raise TlsValidationError(f"Server certificate '{subject}' rejected: {reason}")
