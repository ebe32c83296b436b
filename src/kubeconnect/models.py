"""Canonical Pydantic models shared across all kubeconnect modules.

The models fall into three groups:

**Kubeconfig document models** -- the parsed shape of a kubeconfig file:
    :class:`ConfigDocument`, :class:`Context`, :class:`Cluster`,
    :class:`UserIdentity` and their nested ``*Config`` records. Field aliases
    follow the kebab/camel-case keys used on disk (``current-context``,
    ``certificate-authority-data``, ``apiVersion``...). Unknown keys are
    ignored so newer kubeconfig files still load.

**Credential models** -- :class:`Credential`, the descriptors that drive the
    credential helpers (:class:`AuthProviderDescriptor`, :class:`ExecConfig`,
    :class:`ExecClusterInfo`) and the ExecCredential wire format
    (:class:`ExecCredential`, :class:`ExecCredentialStatus`).

**Settings models** -- :class:`GlobalConfig` and its sections, persisted as
    JSON in the user's config directory, plus :class:`InClusterEnvironment`.
"""

from __future__ import annotations

import shlex
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

_DATETIME = TypeAdapter(datetime)


def ensure_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Raises:
        ValueError: If *value* is not a valid timestamp.
    """
    return ensure_utc(_DATETIME.validate_python(value.strip()))


class _KubeModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# --- Kubeconfig document ---


class ContextConfig(_KubeModel):
    """The ``context`` body of a named context entry."""

    cluster: str = ""
    user: str = ""
    namespace: Optional[str] = None


class Context(_KubeModel):
    """A named pairing of a cluster and a user identity."""

    name: str
    context: ContextConfig = Field(default_factory=ContextConfig)


class ClusterConfig(_KubeModel):
    """The ``cluster`` body of a named cluster entry."""

    server: str = ""
    certificate_authority: Optional[str] = Field(
        default=None, alias="certificate-authority"
    )
    certificate_authority_data: Optional[str] = Field(
        default=None, alias="certificate-authority-data"
    )
    insecure_skip_tls_verify: bool = Field(
        default=False, alias="insecure-skip-tls-verify"
    )


class Cluster(_KubeModel):
    """A named API endpoint with its trust anchor and TLS policy."""

    name: str
    cluster: ClusterConfig = Field(default_factory=ClusterConfig)


class AuthProviderDescriptor(BaseModel):
    """Typed view of a legacy ``auth-provider`` block.

    Attributes:
        command_path: Executable that prints the token (``cmd-path``).
        command_args: Arguments for the executable (``cmd-args``, shell-split).
        token_selector: Path to the token inside the JSON output (``token-key``).
        expiry_selector: Path to the RFC 3339 expiry (``expiry-key``).
        initial_token: Token cached in the kubeconfig (``access-token``).
        initial_expiry: Expiry of the cached token (``expiry``).
    """

    command_path: Optional[str] = None
    command_args: list[str] = Field(default_factory=list)
    token_selector: Optional[str] = None
    expiry_selector: Optional[str] = None
    initial_token: Optional[str] = None
    initial_expiry: Optional[datetime] = None

    @field_validator("initial_expiry")
    @classmethod
    def _expiry_is_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class AuthProviderConfig(_KubeModel):
    """A legacy ``auth-provider`` block: a provider name plus string settings."""

    name: str = ""
    config: dict[str, str] = Field(default_factory=dict)

    def to_descriptor(self) -> AuthProviderDescriptor:
        """Convert the loosely-typed ``config`` map into a descriptor.

        Raises:
            ValueError: If ``expiry`` is present but not a valid timestamp.
        """
        cfg = self.config
        args = cfg.get("cmd-args")
        expiry = cfg.get("expiry")
        return AuthProviderDescriptor(
            command_path=cfg.get("cmd-path") or None,
            command_args=shlex.split(args) if args else [],
            token_selector=cfg.get("token-key") or None,
            expiry_selector=cfg.get("expiry-key") or None,
            initial_token=cfg.get("access-token") or None,
            initial_expiry=parse_timestamp(expiry) if expiry else None,
        )


class ExecEnvVar(_KubeModel):
    """One ``env`` entry of an exec plugin block."""

    name: str
    value: str = ""


class ExecConfig(_KubeModel):
    """A client-go credential plugin (``exec``) block.

    Used directly as the descriptor for the structured exec protocol.
    """

    api_version: str = Field(default="", alias="apiVersion")
    command: str = ""
    args: list[str] = Field(default_factory=list)
    env: list[ExecEnvVar] = Field(default_factory=list)
    install_hint: Optional[str] = Field(default=None, alias="installHint")
    provide_cluster_info: bool = Field(default=False, alias="provideClusterInfo")
    interactive_mode: Optional[str] = Field(default=None, alias="interactiveMode")

    def env_map(self) -> dict[str, str]:
        """Return the configured environment entries as a dict (last wins)."""
        return {var.name: var.value for var in self.env}


class CredentialConfig(_KubeModel):
    """The ``user`` body of a user identity: every supported credential source."""

    client_certificate: Optional[str] = Field(default=None, alias="client-certificate")
    client_certificate_data: Optional[str] = Field(
        default=None, alias="client-certificate-data"
    )
    client_key: Optional[str] = Field(default=None, alias="client-key")
    client_key_data: Optional[str] = Field(default=None, alias="client-key-data")
    token: Optional[str] = None
    token_file: Optional[str] = Field(default=None, alias="tokenFile")
    username: Optional[str] = None
    password: Optional[str] = None
    auth_provider: Optional[AuthProviderConfig] = Field(
        default=None, alias="auth-provider"
    )
    exec: Optional[ExecConfig] = None

    @property
    def has_client_certificate(self) -> bool:
        return bool(self.client_certificate or self.client_certificate_data)


class UserIdentity(_KubeModel):
    """A named credential source."""

    name: str
    user: CredentialConfig = Field(default_factory=CredentialConfig)


class ConfigDocument(_KubeModel):
    """A parsed kubeconfig document.

    References between entries are by name. Lookups return the first entry
    with a matching name.

    Example::

        doc = ConfigDocument.model_validate(yaml.safe_load(text))
        ctx = doc.find_context(doc.current_context)
    """

    api_version: str = Field(default="v1", alias="apiVersion")
    kind: str = "Config"
    current_context: str = Field(default="", alias="current-context")
    contexts: list[Context] = Field(default_factory=list)
    clusters: list[Cluster] = Field(default_factory=list)
    users: list[UserIdentity] = Field(default_factory=list)

    @field_validator("current_context", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("contexts", "clusters", "users", mode="before")
    @classmethod
    def _null_list_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def find_context(self, name: str) -> Optional[Context]:
        return next((c for c in self.contexts if c.name == name), None)

    def find_cluster(self, name: str) -> Optional[Cluster]:
        return next((c for c in self.clusters if c.name == name), None)

    def find_user(self, name: str) -> Optional[UserIdentity]:
        return next((u for u in self.users if u.name == name), None)

    def merge(self, other: ConfigDocument) -> ConfigDocument:
        """Return a new document with *other*'s entries appended.

        Entries whose name already exists in this document are skipped, and
        ``current-context`` is taken from *other* only if this document does
        not set one, so the first file in a ``KUBECONFIG`` list wins.
        """

        def _union(mine: list, theirs: list) -> list:
            seen = {item.name for item in mine}
            return list(mine) + [item for item in theirs if item.name not in seen]

        return ConfigDocument(
            api_version=self.api_version,
            kind=self.kind,
            current_context=self.current_context or other.current_context,
            contexts=_union(self.contexts, other.contexts),
            clusters=_union(self.clusters, other.clusters),
            users=_union(self.users, other.users),
        )


# --- Credentials ---


class Credential(BaseModel):
    """Credential material produced by a strategy.

    A credential without :attr:`expires_at` never expires and is never
    refreshed.

    Attributes:
        token: Bearer token, if the source issues tokens.
        expires_at: UTC expiry instant, or ``None``.
        client_certificate_data: PEM client certificate issued by an exec
            plugin.
        client_key_data: PEM private key matching ``client_certificate_data``.
    """

    token: Optional[str] = None
    expires_at: Optional[datetime] = None
    client_certificate_data: Optional[str] = None
    client_key_data: Optional[str] = None

    @field_validator("expires_at")
    @classmethod
    def _expiry_is_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    def needs_refresh(self, now: datetime, margin: timedelta) -> bool:
        """Return ``True`` when the credential expires within *margin* of *now*."""
        if self.expires_at is None:
            return False
        return ensure_utc(now) >= self.expires_at - margin


class ExecClusterInfo(BaseModel):
    """Cluster details handed to an exec plugin when ``provideClusterInfo`` is set."""

    model_config = ConfigDict(populate_by_name=True)

    server: str
    certificate_authority_data: Optional[str] = Field(
        default=None, alias="certificate-authority-data"
    )
    insecure_skip_tls_verify: bool = Field(
        default=False, alias="insecure-skip-tls-verify"
    )


class ExecCredentialStatus(BaseModel):
    """The ``status`` section printed by an exec plugin."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    token: Optional[str] = None
    client_certificate_data: Optional[str] = Field(
        default=None, alias="clientCertificateData"
    )
    client_key_data: Optional[str] = Field(default=None, alias="clientKeyData")
    expiration_timestamp: Optional[datetime] = Field(
        default=None, alias="expirationTimestamp"
    )


class ExecCredential(BaseModel):
    """An ``ExecCredential`` document, as printed by (or sent to) an exec plugin."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    api_version: str = Field(alias="apiVersion")
    kind: str
    spec: dict[str, Any] = Field(default_factory=dict)
    status: Optional[ExecCredentialStatus] = None


# --- Settings ---


class RequestConfig(BaseModel):
    """HTTP request defaults used by :class:`~kubeconnect.client.SyncClient`."""

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(
        default=True, description="Verify server certificates (kubeconfig may relax this)"
    )
    max_retries: int = Field(default=3, description="Max retry attempts")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(default="auto", description="Output format: auto, json, plain, rich")


class GlobalConfig(BaseModel):
    """User-wide settings persisted at ``~/.config/kubeconnect/config.json``.

    Loaded by :func:`~kubeconnect.config.load_global_config`. Values here
    have the lowest precedence; CLI flags and environment variables win.
    """

    default_context: Optional[str] = None
    default_namespace: Optional[str] = None
    exec_timeout: float = Field(
        default=30.0, gt=0, description="Seconds a credential helper may run"
    )
    refresh_margin_seconds: float = Field(
        default=60.0, ge=0, description="Lead time before expiry at which credentials are refreshed"
    )
    request: RequestConfig = Field(default_factory=RequestConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


class InClusterEnvironment(BaseModel):
    """Pod-local bootstrap inputs, gathered once by the surrounding application.

    See :func:`~kubeconnect.config.in_cluster_environment` for the
    environment-variable reader and
    :func:`~kubeconnect.resolver.resolve_in_cluster` for the consumer.
    """

    service_host: str
    service_port: str
    service_account_path: str = "/var/run/secrets/kubernetes.io/serviceaccount"
