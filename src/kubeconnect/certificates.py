"""Loading of CA certificates and client certificate/key pairs.

Kubeconfig files carry certificate material either inline (base64-encoded
PEM under ``*-data`` keys) or as file paths. This module turns both forms
into :mod:`cryptography` objects and reports every failure as a
:class:`~kubeconnect.exceptions.CertificateLoadError`.
"""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from kubeconnect.exceptions import CertificateLoadError

logger = logging.getLogger(__name__)


class ClientCertificate:
    """A client certificate together with its (optional) private key.

    Args:
        certificate: The parsed X.509 certificate.
        private_key: The matching private key, or ``None`` if unavailable.
    """

    def __init__(
        self,
        certificate: x509.Certificate,
        private_key: Optional[PrivateKeyTypes] = None,
    ) -> None:
        self.certificate = certificate
        self.private_key = private_key

    @classmethod
    def from_pem(cls, cert_pem: bytes, key_pem: Optional[bytes]) -> ClientCertificate:
        """Parse a PEM certificate and optional PEM key.

        Raises:
            CertificateLoadError: If either blob cannot be parsed.
        """
        certificate = parse_certificate(cert_pem, "client certificate")
        private_key = None
        if key_pem is not None:
            try:
                private_key = serialization.load_pem_private_key(key_pem, password=None)
            except (ValueError, TypeError) as exc:
                raise CertificateLoadError(
                    f"Cannot parse client key: {exc}"
                ) from exc
        return cls(certificate, private_key)

    @property
    def has_private_key(self) -> bool:
        return self.private_key is not None

    @property
    def subject(self) -> str:
        return self.certificate.subject.rfc4514_string()

    @property
    def not_valid_after(self) -> datetime:
        return self.certificate.not_valid_after_utc

    def validate(self) -> None:
        """Ensure the private key is present and belongs to the certificate.

        Raises:
            CertificateLoadError: If the key is missing or does not match.
        """
        if self.private_key is None:
            raise CertificateLoadError(
                f"The private key for client certificate '{self.subject}' is not available."
            )
        cert_public = self.certificate.public_key().public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        key_public = self.private_key.public_key().public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        if cert_public != key_public:
            raise CertificateLoadError(
                f"The private key does not match client certificate '{self.subject}'."
            )

    def certificate_pem(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.PEM)

    def private_key_pem(self) -> bytes:
        """Return the private key as unencrypted PKCS#8 PEM.

        Raises:
            CertificateLoadError: If no private key is available.
        """
        if self.private_key is None:
            raise CertificateLoadError(
                f"The private key for client certificate '{self.subject}' is not available."
            )
        return self.private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )


def parse_certificates(raw: bytes, what: str = "certificate") -> list[x509.Certificate]:
    """Parse every certificate in PEM bytes, or the single certificate in DER bytes.

    Raises:
        CertificateLoadError: If *raw* holds no parseable certificate.
    """
    if b"-----BEGIN" in raw:
        try:
            return x509.load_pem_x509_certificates(raw)
        except ValueError as exc:
            raise CertificateLoadError(f"Cannot parse {what}: {exc}") from exc
    try:
        return [x509.load_der_x509_certificate(raw)]
    except ValueError as exc:
        raise CertificateLoadError(f"Cannot parse {what}: {exc}") from exc


def parse_certificate(raw: bytes, what: str = "certificate") -> x509.Certificate:
    """Parse the first certificate from PEM (or DER) bytes.

    Raises:
        CertificateLoadError: If *raw* holds no parseable certificate.
    """
    certificates = parse_certificates(raw, what)
    if len(certificates) > 1:
        logger.warning(
            "%s contains %d certificates; only the first is used",
            what,
            len(certificates),
        )
    return certificates[0]


def read_material(
    data: Optional[str],
    path: Optional[str],
    what: str,
) -> Optional[bytes]:
    """Return raw bytes from inline base64 *data* or from the file at *path*.

    Inline data wins when both are set. Returns ``None`` when neither is.

    Raises:
        CertificateLoadError: If the data is not valid base64 or the file
            cannot be read.
    """
    if data:
        try:
            return base64.b64decode(data)
        except (binascii.Error, ValueError) as exc:
            raise CertificateLoadError(f"Invalid base64 data for {what}: {exc}") from exc
    if path:
        file_path = Path(path).expanduser()
        try:
            return file_path.read_bytes()
        except OSError as exc:
            raise CertificateLoadError(f"Cannot read {what} from {file_path}: {exc}") from exc
    return None


def load_ca_bundle(data: Optional[str], path: Optional[str]) -> list[x509.Certificate]:
    """Load every certificate of a cluster's CA bundle; empty if none is configured.

    All certificates in the bundle are trust anchors.
    """
    raw = read_material(data, path, "certificate authority")
    if raw is None:
        return []
    return parse_certificates(raw, "certificate authority")


def load_client_certificate(
    cert_data: Optional[str],
    cert_path: Optional[str],
    key_data: Optional[str],
    key_path: Optional[str],
) -> Optional[ClientCertificate]:
    """Load a client certificate and its key from kubeconfig fields.

    Returns ``None`` when no certificate is configured. A certificate
    without a key is loaded as-is; :meth:`ClientCertificate.validate`
    rejects it later.
    """
    cert_raw = read_material(cert_data, cert_path, "client certificate")
    if cert_raw is None:
        return None
    key_raw = read_material(key_data, key_path, "client key")
    return ClientCertificate.from_pem(cert_raw, key_raw)
