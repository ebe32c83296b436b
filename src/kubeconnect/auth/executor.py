"""Credential helper execution for the two external-command protocols.

:class:`CredentialPluginExecutor` runs a helper process and turns its
standard output into a :class:`~kubeconnect.models.Credential`:

* **Legacy auth-provider protocol** (:meth:`~CredentialPluginExecutor.run_auth_provider`)
  -- run ``cmd-path`` with ``cmd-args``. With a ``token-key`` selector the
  output is parsed as JSON and the token (and optionally the expiry) is
  picked out by path; without one the whole trimmed output is the token.
* **Structured exec protocol** (:meth:`~CredentialPluginExecutor.run_exec_plugin`)
  -- run ``command`` with ``args`` and an augmented environment, and parse
  the ``ExecCredential`` document it prints.

Process-level failures raise :class:`~kubeconnect.exceptions.ExecPluginError`;
unusable output raises
:class:`~kubeconnect.exceptions.ExecPluginOutputInvalidError`.

The process launcher is injectable so callers (and tests) control how the
OS process is started; :func:`run_subprocess` is the default.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
from typing import Any, Callable, Mapping, Optional

from pydantic import ValidationError

from kubeconnect.certificates import ClientCertificate
from kubeconnect.exceptions import (
    CertificateLoadError,
    ExecPluginError,
    ExecPluginOutputInvalidError,
)
from kubeconnect.models import (
    AuthProviderDescriptor,
    Credential,
    ExecClusterInfo,
    ExecConfig,
    ExecCredential,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

DEFAULT_EXEC_TIMEOUT = 30.0
"""Seconds a credential helper may run before it is killed."""

EXEC_INFO_ENV = "KUBERNETES_EXEC_INFO"
"""Environment variable carrying the ExecCredential request to exec plugins."""

SUPPORTED_EXEC_API_VERSIONS = (
    "client.authentication.k8s.io/v1alpha1",
    "client.authentication.k8s.io/v1beta1",
    "client.authentication.k8s.io/v1",
)

_STDERR_EXCERPT = 500

ProcessRunner = Callable[
    [list[str], Optional[Mapping[str, str]], float],
    "subprocess.CompletedProcess[str]",
]
"""Signature of a process launcher: ``(argv, env, timeout) -> CompletedProcess``.

A launcher must raise :class:`subprocess.TimeoutExpired` when *timeout*
elapses and :class:`OSError` (typically :class:`FileNotFoundError`) when the
executable cannot be started. Undecodable output surfaces as
:class:`UnicodeDecodeError`.
"""


def run_subprocess(
    argv: list[str],
    env: Optional[Mapping[str, str]],
    timeout: float,
) -> subprocess.CompletedProcess[str]:
    """Run *argv* to completion, decoding its output as UTF-8; stdin is closed."""
    return subprocess.run(
        argv,
        env=dict(env) if env is not None else None,
        stdin=subprocess.DEVNULL,
        capture_output=True,
        encoding="utf-8",
        timeout=timeout,
        check=False,
    )


def split_selector(selector: str) -> list[str]:
    """Split a selector into path segments.

    Accepts slash-delimited paths (``credential/access_token``) and the
    kubectl JSONPath style (``{.credential.access_token}``).
    """
    text = selector.strip()
    if text.startswith("{") and text.endswith("}"):
        text = text[1:-1].strip()
    separator = "/" if "/" in text else "."
    return [part for part in text.split(separator) if part and part != "$"]


def select_value(document: Any, selector: str) -> Any:
    """Return the value at *selector* within a parsed JSON *document*.

    Numeric segments index into lists.

    Raises:
        ExecPluginOutputInvalidError: If the path does not exist.
    """
    node = document
    for segment in split_selector(selector):
        if isinstance(node, dict) and segment in node:
            node = node[segment]
        elif isinstance(node, list) and segment.isdigit() and int(segment) < len(node):
            node = node[int(segment)]
        else:
            raise ExecPluginOutputInvalidError(
                f"Selector '{selector}' does not match the credential helper output "
                f"(no '{segment}')"
            )
    return node


class CredentialPluginExecutor:
    """Runs credential helper processes and parses what they print.

    The executor is stateless apart from its settings; caching and
    single-flight serialisation belong to the strategy that owns it.

    Args:
        timeout: Seconds a helper may run before it is killed.
        run_process: Process launcher (see :data:`ProcessRunner`).
        environ: Base environment for exec plugins. Defaults to the current
            process environment, read at call time.

    Example::

        executor = CredentialPluginExecutor(timeout=10)
        credential = executor.run_exec_plugin(exec_config)
    """

    def __init__(
        self,
        timeout: float = DEFAULT_EXEC_TIMEOUT,
        run_process: ProcessRunner = run_subprocess,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.timeout = timeout
        self._run_process = run_process
        self._environ = environ

    # ------------------------------------------------------------------ #
    # Protocols
    # ------------------------------------------------------------------ #

    def refresh(
        self,
        descriptor: AuthProviderDescriptor | ExecConfig,
        cluster: Optional[ExecClusterInfo] = None,
    ) -> Credential:
        """Run whichever protocol *descriptor* describes."""
        if isinstance(descriptor, ExecConfig):
            return self.run_exec_plugin(descriptor, cluster)
        return self.run_auth_provider(descriptor)

    def run_auth_provider(self, descriptor: AuthProviderDescriptor) -> Credential:
        """Obtain a token through the legacy auth-provider protocol.

        Raises:
            ExecPluginError: If no command is configured or the process fails.
            ExecPluginOutputInvalidError: If the output is empty, not JSON when
                a selector is configured, or the selected values are invalid.
        """
        if not descriptor.command_path:
            raise ExecPluginError("The auth provider has no 'cmd-path' configured")

        argv = [descriptor.command_path, *descriptor.command_args]
        output = self._execute(argv, env=None).strip()

        if not descriptor.token_selector:
            if not output:
                raise ExecPluginOutputInvalidError(
                    f"Credential helper '{descriptor.command_path}' printed no token"
                )
            return Credential(token=output)

        try:
            document = json.loads(output)
        except json.JSONDecodeError as exc:
            raise ExecPluginOutputInvalidError(
                f"Credential helper '{descriptor.command_path}' output is not valid JSON: {exc}"
            ) from exc

        token = select_value(document, descriptor.token_selector)
        if not isinstance(token, str) or not token.strip():
            raise ExecPluginOutputInvalidError(
                f"Selector '{descriptor.token_selector}' did not yield a token string"
            )

        expires_at = None
        if descriptor.expiry_selector:
            raw_expiry = select_value(document, descriptor.expiry_selector)
            if not isinstance(raw_expiry, str):
                raise ExecPluginOutputInvalidError(
                    f"Selector '{descriptor.expiry_selector}' did not yield a timestamp string"
                )
            try:
                expires_at = parse_timestamp(raw_expiry)
            except ValueError as exc:
                raise ExecPluginOutputInvalidError(
                    f"Invalid token expiry '{raw_expiry}': {exc}"
                ) from exc

        return Credential(token=token.strip(), expires_at=expires_at)

    def run_exec_plugin(
        self,
        config: ExecConfig,
        cluster: Optional[ExecClusterInfo] = None,
    ) -> Credential:
        """Obtain a credential through the structured ExecCredential protocol.

        Args:
            config: The ``exec`` block from the kubeconfig.
            cluster: Cluster details, sent in ``spec.cluster`` when the
                block sets ``provideClusterInfo``.

        Raises:
            ExecPluginError: If the process cannot be started, times out, or
                exits non-zero.
            ExecPluginOutputInvalidError: If the output is not a matching
                ``ExecCredential`` with a token or certificate pair.
        """
        if not config.command:
            raise ExecPluginError("The exec plugin has no 'command' configured")

        argv = [config.command, *config.args]
        env = dict(self._environ if self._environ is not None else os.environ)
        env.update(config.env_map())
        env[EXEC_INFO_ENV] = json.dumps(self._exec_info(config, cluster))

        output = self._execute(argv, env=env, install_hint=config.install_hint)
        return self._parse_exec_credential(output, config)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _exec_info(config: ExecConfig, cluster: Optional[ExecClusterInfo]) -> dict[str, Any]:
        spec: dict[str, Any] = {"interactive": False}
        if config.provide_cluster_info and cluster is not None:
            spec["cluster"] = cluster.model_dump(by_alias=True, exclude_none=True)
        return {"apiVersion": config.api_version, "kind": "ExecCredential", "spec": spec}

    def _execute(
        self,
        argv: list[str],
        env: Optional[Mapping[str, str]],
        install_hint: Optional[str] = None,
    ) -> str:
        """Run *argv* and return its stdout, mapping failures to ExecPluginError."""
        command = argv[0]
        logger.debug("Running credential helper %s", command)
        try:
            result = self._run_process(argv, env, self.timeout)
        except subprocess.TimeoutExpired as exc:
            raise ExecPluginError(
                f"Credential helper '{command}' timed out after {self.timeout}s",
                stderr=_excerpt(exc.stderr),
                timed_out=True,
            ) from exc
        except UnicodeDecodeError as exc:
            raise ExecPluginOutputInvalidError(
                f"Credential helper '{command}' printed output that is not valid UTF-8: {exc.reason}"
            ) from exc
        except OSError as exc:
            message = f"Cannot run credential helper '{command}': {exc}"
            if install_hint:
                message = f"{message}\n\n{install_hint}"
            raise ExecPluginError(message) from exc

        if result.returncode != 0:
            stderr = _excerpt(result.stderr)
            detail = f": {stderr}" if stderr else ""
            raise ExecPluginError(
                f"Credential helper '{command}' exited with status {result.returncode}{detail}",
                exit_status=result.returncode,
                stderr=stderr,
            )
        return result.stdout or ""

    @staticmethod
    def _parse_exec_credential(output: str, config: ExecConfig) -> Credential:
        try:
            document = ExecCredential.model_validate_json(output)
        except ValidationError as exc:
            raise ExecPluginOutputInvalidError(
                f"Exec plugin '{config.command}' printed an invalid ExecCredential: {exc}"
            ) from exc

        if document.kind != "ExecCredential":
            raise ExecPluginOutputInvalidError(
                f"Exec plugin '{config.command}' printed kind '{document.kind}', "
                "expected 'ExecCredential'"
            )
        if document.api_version != config.api_version:
            raise ExecPluginOutputInvalidError(
                f"Exec plugin '{config.command}' printed apiVersion '{document.api_version}', "
                f"expected '{config.api_version}'"
            )

        status = document.status
        if status is None:
            raise ExecPluginOutputInvalidError(
                f"Exec plugin '{config.command}' printed no 'status'"
            )
        has_certificate = bool(status.client_certificate_data)
        has_key = bool(status.client_key_data)
        if has_certificate != has_key:
            raise ExecPluginOutputInvalidError(
                f"Exec plugin '{config.command}' must print both 'clientCertificateData' "
                "and 'clientKeyData', or neither"
            )
        if not status.token and not has_certificate:
            raise ExecPluginOutputInvalidError(
                f"Exec plugin '{config.command}' printed neither 'status.token' nor a "
                "client certificate"
            )
        if has_certificate:
            try:
                ClientCertificate.from_pem(
                    status.client_certificate_data.encode(),
                    status.client_key_data.encode(),
                ).validate()
            except CertificateLoadError as exc:
                raise ExecPluginOutputInvalidError(
                    f"Exec plugin '{config.command}' printed an unusable client certificate: {exc}"
                ) from exc

        return Credential(
            token=status.token or None,
            expires_at=status.expiration_timestamp,
            client_certificate_data=status.client_certificate_data,
            client_key_data=status.client_key_data,
        )


def _excerpt(stream: Any) -> str:
    if not stream:
        return ""
    if isinstance(stream, bytes):
        stream = stream.decode("utf-8", errors="replace")
    return stream.strip()[-_STDERR_EXCERPT:]
