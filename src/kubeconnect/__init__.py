"""kubeconnect -- resolve kubeconfig contexts into authenticated API connections.

A kubeconfig context names a cluster (endpoint and CA) and a user
identity (credential source). kubeconnect resolves a context into
:class:`~kubeconnect.options.ConnectionOptions` carrying one credential
strategy -- none, basic, bearer token, refreshable auth-provider token,
client certificate, or exec credential plugin -- and binds that strategy
to HTTP requests and WebSocket handshakes.

Typical use::

    from kubeconnect.loader import load_connection_options
    from kubeconnect.client import SyncClient

    options = load_connection_options(context="dev")
    with SyncClient(options) as client:
        print(client.get("/version").json())

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models for kubeconfig documents, credentials, settings.
    config: Kubeconfig discovery/loading and user settings.
    resolver: Context resolution and strategy selection.
    strategies: The credential strategy variants.
    auth: Strategy base class, credential helper executor, single-flight refresh.
    transport: TLS predicate, SSL context and request binding.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting with Rich.
"""

__version__ = "0.1.0"
