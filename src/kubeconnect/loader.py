"""One-call loading of connection options for applications and the CLI.

:func:`load_connection_options` glues :mod:`kubeconnect.config` (file
discovery, user settings, environment) to :mod:`kubeconnect.resolver`.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path
from typing import Mapping, Optional

from kubeconnect.auth.executor import CredentialPluginExecutor
from kubeconnect.config import (
    in_cluster_environment,
    load_global_config,
    load_kubeconfig,
    locate_kubeconfig,
    resolve_context_name,
)
from kubeconnect.models import ConfigDocument, GlobalConfig
from kubeconnect.options import ConnectionOptions
from kubeconnect.resolver import resolve, resolve_in_cluster

logger = logging.getLogger(__name__)


def load_document(
    kubeconfig: Optional[str | Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ConfigDocument:
    """Locate and load the kubeconfig (see :func:`~kubeconnect.config.locate_kubeconfig`)."""
    paths = locate_kubeconfig(kubeconfig, environ)
    logger.debug("Loading kubeconfig from %s", ", ".join(str(p) for p in paths))
    return load_kubeconfig(paths)


def load_connection_options(
    kubeconfig: Optional[str | Path] = None,
    context: Optional[str] = None,
    namespace: Optional[str] = None,
    in_cluster: bool = False,
    global_config: Optional[GlobalConfig] = None,
    executor: Optional[CredentialPluginExecutor] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ConnectionOptions:
    """Resolve connection options the way the CLI does.

    Args:
        kubeconfig: Explicit kubeconfig path.
        context: Context name (beats ``KUBECONNECT_CONTEXT`` and the
            configured default).
        namespace: Namespace override.
        in_cluster: Use the pod's service account instead of a kubeconfig.
        global_config: User settings; loaded from disk when ``None``.
        executor: Credential helper runner; built from the settings' timeout
            when ``None``.
        environ: Environment to read instead of :data:`os.environ`.

    Raises:
        KubeConnectError: Any configuration or resolution failure.
    """
    settings = global_config or load_global_config()

    if in_cluster:
        options = resolve_in_cluster(in_cluster_environment(environ))
        if namespace:
            options = options.model_copy(update={"namespace": namespace})
        return options

    document = load_document(kubeconfig, environ)
    return resolve(
        document,
        resolve_context_name(context, settings, environ),
        namespace,
        executor=executor or CredentialPluginExecutor(timeout=settings.exec_timeout),
        refresh_margin=timedelta(seconds=settings.refresh_margin_seconds),
        fallback_namespace=settings.default_namespace,
    )
