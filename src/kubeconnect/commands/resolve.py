"""``kubeconnect resolve`` -- show the connection options a context resolves to."""

from __future__ import annotations

from typing import Any

import typer

from kubeconnect.options import ConnectionOptions
from kubeconnect.output import get_output


def describe_options(options: ConnectionOptions) -> dict[str, Any]:
    """Summarise *options* without exposing secrets."""
    ca = options.ca_certificate
    client = options.client_certificate
    return {
        "context": options.context_name,
        "cluster": options.cluster_name,
        "user": options.user_name,
        "endpoint": options.endpoint,
        "namespace": options.namespace,
        "auth_type": options.auth_type,
        "certificate_authority": ca.subject.rfc4514_string() if ca is not None else None,
        "insecure_skip_tls_verify": options.allow_insecure,
        "client_certificate": client.subject if client is not None else None,
        "client_certificate_expires": (
            client.not_valid_after.isoformat() if client is not None else None
        ),
    }


def resolve_command(ctx: typer.Context) -> None:
    """Resolve the selected context and print the result.

    Static credential configuration is validated; credential helpers are
    not run (see ``kubeconnect credential``).

    Example::

        kubeconnect resolve
        kubeconnect --context prod resolve --json
    """
    from kubeconnect.app import load_options

    options = load_options(ctx)
    get_output().format_response(describe_options(options))
