"""Exception hierarchy for kubeconnect.

All exceptions inherit from :class:`KubeConnectError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`kubeconnect.exit_codes`. The CLI entry point catches
``KubeConnectError`` and exits with the matching code.

Subclass hierarchy::

    KubeConnectError (exit 1)
    +-- ConfigError                       (exit 7)
    |   +-- ResolutionError
    |   |   +-- NoContextSpecifiedError
    |   |   +-- ContextNotFoundError      (exit 4)
    |   |   +-- ClusterNotFoundError      (exit 4)
    |   |   +-- UserNotFoundError         (exit 4)
    |   +-- InvalidAuthConfigurationError
    |   +-- CertificateLoadError
    +-- ExecPluginError                   (exit 8)
    |   +-- ExecPluginOutputInvalidError
    +-- CredentialRefreshError            (exit 8)
    +-- TlsValidationError                (exit 9)
    +-- AuthError                         (exit 3)
    +-- NotFoundError                     (exit 4)
    +-- ServerError                       (exit 5)
    +-- ConnectionError_                  (exit 6)

Resolution-time errors (everything under :class:`ConfigError`) are raised
before any connection is attempted. Refresh-time errors
(:class:`CredentialRefreshError`) only fail the request that triggered the
refresh.
"""

from __future__ import annotations

from typing import Optional

from kubeconnect.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONFIG_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_CREDENTIAL_FAILURE,
    EXIT_GENERIC_FAILURE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
    EXIT_TLS_FAILURE,
)


class KubeConnectError(Exception):
    """Base exception for all kubeconnect errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(KubeConnectError):
    """Raised when a kubeconfig or settings file cannot be read or validated."""

    exit_code = EXIT_CONFIG_ERROR


class ResolutionError(ConfigError):
    """Base class for failures while picking the (context, cluster, user) triple."""


class NoContextSpecifiedError(ResolutionError):
    """No context name was given and the document has no ``current-context``."""


class ContextNotFoundError(ResolutionError):
    """The requested context does not exist in the document."""

    exit_code = EXIT_NOT_FOUND

    def __init__(self, name: str):
        super().__init__(f"Cannot find a context named '{name}' in the kubeconfig.")
        self.name = name


class ClusterNotFoundError(ResolutionError):
    """The cluster referenced by the selected context does not exist."""

    exit_code = EXIT_NOT_FOUND

    def __init__(self, name: str):
        super().__init__(f"Cannot find a cluster named '{name}' in the kubeconfig.")
        self.name = name


class UserNotFoundError(ResolutionError):
    """The user identity referenced by the selected context does not exist."""

    exit_code = EXIT_NOT_FOUND

    def __init__(self, name: str):
        super().__init__(
            f"Cannot find a user identity named '{name}' in the kubeconfig."
        )
        self.name = name


class InvalidAuthConfigurationError(ConfigError):
    """Required credential fields are missing or contradict each other."""


class CertificateLoadError(ConfigError):
    """Certificate or key material is unreadable, unparseable, or incomplete."""


class ExecPluginError(KubeConnectError):
    """A credential helper process failed at the process level.

    Covers non-zero exit, timeout, and a missing executable.

    Args:
        message: Description of the failure.
        exit_status: Process exit status, or ``None`` if the process never
            finished (timeout) or never started.
        stderr: Trailing excerpt of the process's standard error.
        timed_out: ``True`` when the process was killed after the timeout.
    """

    exit_code = EXIT_CREDENTIAL_FAILURE

    def __init__(
        self,
        message: str,
        exit_status: Optional[int] = None,
        stderr: str = "",
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.exit_status = exit_status
        self.stderr = stderr
        self.timed_out = timed_out


class ExecPluginOutputInvalidError(ExecPluginError):
    """A credential helper exited cleanly but its output is unusable."""


class CredentialRefreshError(KubeConnectError):
    """Refreshing a credential failed; wraps the underlying executor error.

    The original error is kept both as ``__cause__`` and as :attr:`cause`.
    """

    exit_code = EXIT_CREDENTIAL_FAILURE

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class TlsValidationError(KubeConnectError):
    """The server chain could not be built even with the configured CA."""

    exit_code = EXIT_TLS_FAILURE


class AuthError(KubeConnectError):
    """The API server rejected the request's credentials (HTTP 401/403)."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(KubeConnectError):
    """The API server returned HTTP 404."""

    exit_code = EXIT_NOT_FOUND


class ServerError(KubeConnectError):
    """The API server returned HTTP 5xx (or an unmapped 4xx)."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(KubeConnectError):
    """Raised on network-level failures (timeout, DNS resolution, refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR
