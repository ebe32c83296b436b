"""``kubeconnect credential`` -- print the current credential.

The output is an ``ExecCredential`` document, so kubeconnect can itself be
used as an exec plugin by other kubeconfig files.
"""

from __future__ import annotations

import typer

from kubeconnect.models import Credential, ExecCredential, ExecCredentialStatus
from kubeconnect.output import get_output

EXEC_CREDENTIAL_API_VERSION = "client.authentication.k8s.io/v1"


def mask_secret(value: str) -> str:
    """Keep the first four characters of long secrets; hide the rest."""
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}****"


def to_exec_credential(credential: Credential, reveal: bool = False) -> ExecCredential:
    """Wrap *credential* in an ``ExecCredential``, masking secrets unless *reveal*."""

    def _show(value):
        if value is None or reveal:
            return value
        return mask_secret(value)

    return ExecCredential(
        api_version=EXEC_CREDENTIAL_API_VERSION,
        kind="ExecCredential",
        status=ExecCredentialStatus(
            token=_show(credential.token),
            client_certificate_data=credential.client_certificate_data,
            client_key_data=_show(credential.client_key_data),
            expiration_timestamp=credential.expires_at,
        ),
    )


def credential_command(
    ctx: typer.Context,
    reveal: bool = typer.Option(
        False, "--reveal", help="Print the token and key instead of masking them."
    ),
) -> None:
    """Resolve the credential for the selected context, running helpers if needed.

    Example::

        kubeconnect credential
        kubeconnect --context eks credential --reveal
    """
    from kubeconnect.app import load_options

    options = load_options(ctx)
    output = get_output()
    if options.auth_type == "none":
        output.warning(f"Context '{options.context_name}' has no credentials configured.")

    credential = options.strategy.resolve_credential()
    document = to_exec_credential(credential, reveal=reveal)
    output.format_response(
        document.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"spec"})
    )
    if not reveal and (credential.token or credential.client_key_data):
        output.suggest("Secrets are masked; pass --reveal to print them.")
