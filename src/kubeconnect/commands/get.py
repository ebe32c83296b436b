"""``kubeconnect get PATH`` -- authenticated GET against the API server."""

from __future__ import annotations

import typer

from kubeconnect.output import get_output


def get_command(
    ctx: typer.Context,
    path: str = typer.Argument(help="API path, e.g. /version or /api/v1/namespaces."),
) -> None:
    """Send a GET request with the resolved credentials and print the response.

    ``{namespace}`` in PATH is replaced by the resolved namespace.

    Example::

        kubeconnect get /version
        kubeconnect --context dev get /api/v1/namespaces/{namespace}/pods
    """
    from kubeconnect.app import global_settings, load_options
    from kubeconnect.client import SyncClient

    options = load_options(ctx)
    settings = global_settings(ctx)
    output = get_output()

    resolved_path = path.replace("{namespace}", options.namespace)
    if not resolved_path.startswith("/"):
        resolved_path = f"/{resolved_path}"
    output.debug(f"GET {options.endpoint.rstrip('/')}{resolved_path}")

    with SyncClient(options, request_config=settings.request) as client:
        response = client.get(resolved_path)

    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        output.format_response(response.json())
    else:
        output.print_data(response.text)
