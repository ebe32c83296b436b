"""Numeric process exit codes for the ``kubeconnect`` command line.

Each constant maps to one error category and is referenced by the matching
:class:`~kubeconnect.exceptions.KubeConnectError` subclass, so shell
wrappers can tell a bad kubeconfig apart from a failing credential helper
without parsing stderr.

Example::

    $ kubeconnect credential --context prod
    $ echo $?
    8   # EXIT_CREDENTIAL_FAILURE -- the exec plugin failed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""The API server rejected the credentials (HTTP 401/403)."""

EXIT_NOT_FOUND = 4
"""A context, cluster, user, or remote resource was not found."""

EXIT_SERVER_ERROR = 5
"""The API server returned an error status."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_CONFIG_ERROR = 7
"""The kubeconfig or credential configuration is missing or invalid."""

EXIT_CREDENTIAL_FAILURE = 8
"""A credential helper process failed or produced unusable output."""

EXIT_TLS_FAILURE = 9
"""The server certificate chain could not be validated."""
