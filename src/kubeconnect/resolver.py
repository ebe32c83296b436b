"""Resolve a kubeconfig context into :class:`~kubeconnect.options.ConnectionOptions`.

Two entry points:

- :func:`resolve` -- pick the (context, cluster, user) triple named in a
  parsed :class:`~kubeconnect.models.ConfigDocument`, load its trust
  material and build exactly one credential strategy.
- :func:`resolve_in_cluster` -- build options from the service-account
  volume mounted into a pod.

When a user entry configures several credential sources, the strategy is
chosen in this order: client certificate, static token (``token`` then
``tokenFile``), basic, legacy ``auth-provider``, ``exec`` plugin, none.
"""

from __future__ import annotations

import base64
import logging
from datetime import timedelta
from pathlib import Path
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from kubeconnect.auth.base import AuthStrategy
from kubeconnect.auth.executor import CredentialPluginExecutor
from kubeconnect.auth.refresh import DEFAULT_REFRESH_MARGIN
from kubeconnect.certificates import (
    ClientCertificate,
    load_ca_bundle,
    load_client_certificate,
)
from kubeconnect.exceptions import (
    ClusterNotFoundError,
    ConfigError,
    ContextNotFoundError,
    InvalidAuthConfigurationError,
    NoContextSpecifiedError,
    UserNotFoundError,
)
from kubeconnect.models import (
    ClusterConfig,
    ConfigDocument,
    CredentialConfig,
    ExecClusterInfo,
    InClusterEnvironment,
)
from kubeconnect.options import ConnectionOptions
from kubeconnect.strategies import (
    AnonymousStrategy,
    BasicAuthStrategy,
    BearerTokenStrategy,
    ClientCertificateStrategy,
    ExecPluginStrategy,
    TokenProviderStrategy,
)

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"


def resolve(
    document: ConfigDocument,
    context_name: Optional[str] = None,
    default_namespace: Optional[str] = None,
    *,
    executor: Optional[CredentialPluginExecutor] = None,
    refresh_margin: timedelta = DEFAULT_REFRESH_MARGIN,
    fallback_namespace: Optional[str] = None,
) -> ConnectionOptions:
    """Resolve *context_name* in *document* into validated connection options.

    Args:
        document: The parsed kubeconfig.
        context_name: Context to use; empty or ``None`` means the document's
            ``current-context``.
        default_namespace: Namespace override. Falls back to the context's
            ``namespace``, then *fallback_namespace*, then ``"default"``.
        executor: Runs credential helpers for refreshable strategies.
        refresh_margin: Lead time before expiry at which refreshable
            credentials are renewed.
        fallback_namespace: Namespace used when neither the argument nor the
            context sets one.

    Returns:
        Options whose strategy has already passed ``validate()``.

    Raises:
        NoContextSpecifiedError: If no context name is given and the document
            has no ``current-context``.
        ContextNotFoundError: If the context does not exist.
        ClusterNotFoundError: If the context references an unknown cluster.
        UserNotFoundError: If the context references an unknown user.
        CertificateLoadError: If certificate material cannot be loaded.
        InvalidAuthConfigurationError: If the credential configuration is
            incomplete.
    """
    name = context_name or document.current_context
    if not name:
        raise NoContextSpecifiedError(
            "No context was specified and the kubeconfig has no 'current-context'"
        )

    context = document.find_context(name)
    if context is None:
        raise ContextNotFoundError(name)
    cluster = document.find_cluster(context.context.cluster)
    if cluster is None:
        raise ClusterNotFoundError(context.context.cluster)
    user = document.find_user(context.context.user)
    if user is None:
        raise UserNotFoundError(context.context.user)

    cluster_config = cluster.cluster
    ca_bundle = load_ca_bundle(
        cluster_config.certificate_authority_data,
        cluster_config.certificate_authority,
    )
    if ca_bundle and cluster_config.insecure_skip_tls_verify:
        logger.warning(
            "Cluster '%s' sets both a CA certificate and insecure-skip-tls-verify; "
            "the CA certificate is used",
            cluster.name,
        )

    strategy, client_certificate = build_strategy(
        user.user,
        cluster_info=_exec_cluster_info(cluster_config, ca_bundle),
        executor=executor,
        refresh_margin=refresh_margin,
    )
    strategy.validate()
    logger.debug(
        "Resolved context '%s' (cluster '%s', user '%s') with %s credentials",
        name,
        cluster.name,
        user.name,
        strategy.auth_type,
    )

    options = ConnectionOptions(
        endpoint=cluster_config.server,
        namespace=(
            default_namespace
            or context.context.namespace
            or fallback_namespace
            or DEFAULT_NAMESPACE
        ),
        ca_certificate=ca_bundle[0] if ca_bundle else None,
        extra_ca_certificates=tuple(ca_bundle[1:]),
        allow_insecure=cluster_config.insecure_skip_tls_verify,
        strategy=strategy,
        client_certificate=client_certificate,
        context_name=name,
        cluster_name=cluster.name,
        user_name=user.name,
    )
    return options.ensure_valid()


def build_strategy(
    credentials: CredentialConfig,
    cluster_info: Optional[ExecClusterInfo] = None,
    executor: Optional[CredentialPluginExecutor] = None,
    refresh_margin: timedelta = DEFAULT_REFRESH_MARGIN,
) -> tuple[AuthStrategy, Optional[ClientCertificate]]:
    """Build the one strategy a user entry's credential fields select.

    Returns:
        The strategy and, for the certificate strategy, the loaded client
        certificate.
    """
    if credentials.has_client_certificate:
        ignored = _other_sources(credentials)
        if ignored:
            logger.warning(
                "Client certificate takes precedence; ignoring %s", ", ".join(ignored)
            )
        certificate = load_client_certificate(
            credentials.client_certificate_data,
            credentials.client_certificate,
            credentials.client_key_data,
            credentials.client_key,
        )
        return ClientCertificateStrategy(certificate), certificate

    if credentials.token:
        return BearerTokenStrategy(credentials.token), None
    if credentials.token_file:
        return BearerTokenStrategy(read_token_file(credentials.token_file)), None

    if credentials.username or credentials.password:
        return BasicAuthStrategy(credentials.username, credentials.password), None

    if credentials.auth_provider is not None:
        try:
            descriptor = credentials.auth_provider.to_descriptor()
        except ValueError as exc:
            raise InvalidAuthConfigurationError(
                f"Invalid auth-provider '{credentials.auth_provider.name}' configuration: {exc}"
            ) from exc
        strategy = TokenProviderStrategy(
            descriptor, executor=executor, refresh_margin=refresh_margin
        )
        return strategy, None

    if credentials.exec is not None:
        strategy = ExecPluginStrategy(
            credentials.exec,
            executor=executor,
            cluster=cluster_info,
            refresh_margin=refresh_margin,
        )
        return strategy, None

    return AnonymousStrategy(), None


def read_token_file(path: str | Path) -> str:
    """Read a bearer token from *path*, stripping surrounding whitespace.

    Raises:
        InvalidAuthConfigurationError: If the file cannot be read or is empty.
    """
    token_path = Path(path).expanduser()
    try:
        token = token_path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise InvalidAuthConfigurationError(
            f"Cannot read token file {token_path}: {exc}"
        ) from exc
    if not token:
        raise InvalidAuthConfigurationError(f"Token file {token_path} is empty")
    return token


def resolve_in_cluster(environment: InClusterEnvironment) -> ConnectionOptions:
    """Build options from a pod's mounted service-account volume.

    Reads ``namespace``, ``token`` and ``ca.crt`` from
    ``environment.service_account_path``.

    Raises:
        ConfigError: If the service host or port is missing, or the
            namespace file cannot be read.
        InvalidAuthConfigurationError: If the token file cannot be read.
        CertificateLoadError: If ``ca.crt`` cannot be loaded.
    """
    host = environment.service_host.strip()
    port = environment.service_port.strip()
    if not host or not port:
        raise ConfigError(
            "In-cluster configuration needs KUBERNETES_SERVICE_HOST and "
            "KUBERNETES_SERVICE_PORT; is this running in a pod?"
        )
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"

    account_dir = Path(environment.service_account_path)
    try:
        namespace = (account_dir / "namespace").read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ConfigError(f"Cannot read service-account namespace: {exc}") from exc

    token = read_token_file(account_dir / "token")
    ca_bundle = load_ca_bundle(None, str(account_dir / "ca.crt"))

    logger.debug("Resolved in-cluster configuration for namespace '%s'", namespace)
    options = ConnectionOptions(
        endpoint=f"https://{host}:{port}/",
        namespace=namespace or DEFAULT_NAMESPACE,
        ca_certificate=ca_bundle[0] if ca_bundle else None,
        extra_ca_certificates=tuple(ca_bundle[1:]),
        strategy=BearerTokenStrategy(token),
    )
    return options.ensure_valid()


def _exec_cluster_info(
    cluster: ClusterConfig, ca_bundle: list[x509.Certificate]
) -> ExecClusterInfo:
    ca_data = None
    if ca_bundle:
        pem = b"".join(c.public_bytes(serialization.Encoding.PEM) for c in ca_bundle)
        ca_data = base64.b64encode(pem).decode("ascii")
    return ExecClusterInfo(
        server=cluster.server,
        certificate_authority_data=ca_data,
        insecure_skip_tls_verify=cluster.insecure_skip_tls_verify,
    )


def _other_sources(credentials: CredentialConfig) -> list[str]:
    sources = []
    if credentials.token or credentials.token_file:
        sources.append("token")
    if credentials.username or credentials.password:
        sources.append("username/password")
    if credentials.auth_provider is not None:
        sources.append("auth-provider")
    if credentials.exec is not None:
        sources.append("exec")
    return sources
