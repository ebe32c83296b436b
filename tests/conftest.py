"""Shared test fixtures for kubeconnect.

Provides an in-memory PKI (CA, intermediate, server and client
certificates generated with :mod:`cryptography`), kubeconfig builders,
a fake process launcher for credential helpers, isolated config
directories, and output/CLI helpers. Fixtures are discovered by pytest
automatically.
"""

from __future__ import annotations

import base64
import json
import subprocess
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import pytest
import yaml
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from kubeconnect.output import OutputFormat, OutputManager, reset_output, set_output

NOW = datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The manager keeps references to sys.stdout/sys.stderr; CliRunner swaps
    those streams, so a stale manager would write to closed files.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


def new_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


def make_certificate(
    common_name: str,
    key: ec.EllipticCurvePrivateKey,
    issuer: Optional[x509.Certificate] = None,
    issuer_key: Optional[ec.EllipticCurvePrivateKey] = None,
    is_ca: bool = False,
    not_before: Optional[datetime] = None,
    not_after: Optional[datetime] = None,
) -> x509.Certificate:
    """Issue a certificate for *key*; self-signed when *issuer* is ``None``."""
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer.subject if issuer is not None else subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or NOW - timedelta(days=1))
        .not_valid_after(not_after or NOW + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
    )
    return builder.sign(issuer_key or key, hashes.SHA256())


def cert_pem(certificate: x509.Certificate) -> bytes:
    return certificate.public_bytes(serialization.Encoding.PEM)


def key_pem(key: ec.EllipticCurvePrivateKey) -> bytes:
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class Pki:
    """A small certificate hierarchy.

    ``ca`` -> ``intermediate`` -> ``leaf``; ``ca`` -> ``direct_leaf``;
    ``rogue_ca`` -> ``rogue_leaf``; ``expired_leaf`` is issued by ``ca``
    but already expired; ``client_cert`` / ``client_key`` is a client pair
    issued by ``ca`` and ``other_key`` does not match it.
    """

    def __init__(self) -> None:
        self.ca_key = new_key()
        self.ca = make_certificate("test-ca", self.ca_key, is_ca=True)

        self.intermediate_key = new_key()
        self.intermediate = make_certificate(
            "test-intermediate", self.intermediate_key, self.ca, self.ca_key, is_ca=True
        )

        self.leaf_key = new_key()
        self.leaf = make_certificate(
            "api.cluster.local", self.leaf_key, self.intermediate, self.intermediate_key
        )
        self.direct_leaf = make_certificate("direct.cluster.local", new_key(), self.ca, self.ca_key)

        self.rogue_ca_key = new_key()
        self.rogue_ca = make_certificate("rogue-ca", self.rogue_ca_key, is_ca=True)
        self.rogue_leaf = make_certificate(
            "api.cluster.local", new_key(), self.rogue_ca, self.rogue_ca_key
        )

        self.expired_leaf = make_certificate(
            "old.cluster.local",
            new_key(),
            self.ca,
            self.ca_key,
            not_before=NOW - timedelta(days=60),
            not_after=NOW - timedelta(days=1),
        )

        self.client_key = new_key()
        self.client_cert = make_certificate("admin", self.client_key, self.ca, self.ca_key)
        self.other_key = new_key()


@pytest.fixture(scope="session")
def pki() -> Pki:
    return Pki()


# ---------------------------------------------------------------------------
# Kubeconfig builders
# ---------------------------------------------------------------------------


def kubeconfig_dict(
    user: Optional[dict[str, Any]] = None,
    cluster: Optional[dict[str, Any]] = None,
    context_name: str = "dev",
    current: Optional[str] = "dev",
    namespace: Optional[str] = None,
) -> dict[str, Any]:
    """Build a one-context kubeconfig mapping (context ``dev``)."""
    context: dict[str, Any] = {"cluster": "dev-cluster", "user": "dev-user"}
    if namespace:
        context["namespace"] = namespace
    return {
        "apiVersion": "v1",
        "kind": "Config",
        "current-context": current,
        "contexts": [{"name": context_name, "context": context}],
        "clusters": [
            {
                "name": "dev-cluster",
                "cluster": cluster if cluster is not None else {"server": "https://10.0.0.1:6443"},
            }
        ],
        "users": [{"name": "dev-user", "user": user if user is not None else {"token": "abc123"}}],
    }


def write_kubeconfig(path: Path, data: dict[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Credential helper processes
# ---------------------------------------------------------------------------


def exec_credential_json(
    token: Optional[str] = "xyz",
    expiration: Optional[str] = "2099-01-01T00:00:00Z",
    api_version: str = "client.authentication.k8s.io/v1",
    **status: Any,
) -> str:
    body: dict[str, Any] = {}
    if token is not None:
        body["token"] = token
    if expiration is not None:
        body["expirationTimestamp"] = expiration
    body.update(status)
    return json.dumps({"apiVersion": api_version, "kind": "ExecCredential", "status": body})


class FakeProcess:
    """Process launcher that records calls and replays a canned result.

    Args:
        stdout: Text printed by the fake process.
        returncode: Exit status.
        stderr: Text written to standard error.
        raises: Exception to raise instead of returning.
    """

    def __init__(
        self,
        stdout: str = "",
        returncode: int = 0,
        stderr: str = "",
        raises: Optional[BaseException] = None,
    ) -> None:
        self.stdout = stdout
        self.returncode = returncode
        self.stderr = stderr
        self.raises = raises
        self.calls: list[dict[str, Any]] = []

    def __call__(self, argv, env, timeout):
        self.calls.append({"argv": list(argv), "env": dict(env) if env is not None else None, "timeout": timeout})
        if self.raises is not None:
            raise self.raises
        return subprocess.CompletedProcess(argv, self.returncode, self.stdout, self.stderr)

    @property
    def call_count(self) -> int:
        return len(self.calls)


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate settings, HOME and kubeconfig discovery to *tmp_path*.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    for var in [
        "KUBECONFIG",
        "KUBECONNECT_CONTEXT",
        "KUBERNETES_SERVICE_HOST",
        "KUBERNETES_SERVICE_PORT",
    ]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner()
