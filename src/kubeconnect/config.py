"""Configuration management: kubeconfig discovery and loading, user settings.

This module handles every file kubeconnect reads or writes:

* **Kubeconfig discovery** -- :func:`locate_kubeconfig` applies the usual
  precedence: an explicit path, then the ``KUBECONFIG`` list, then
  ``~/.kube/config``.
* **Kubeconfig loading** -- :func:`load_kubeconfig` parses each file with
  PyYAML, validates it into a :class:`~kubeconnect.models.ConfigDocument`,
  resolves relative file references against the file's directory and
  merges the documents (first file wins per name).
* **User settings** -- a single :class:`~kubeconnect.models.GlobalConfig`
  JSON file in the XDG config directory (``~/.kubeconnect/`` on macOS and
  Windows), written atomically.
* **Precedence resolution** -- :func:`resolve_context_name` and
  :func:`in_cluster_environment` read the process environment so the
  resolver does not have to.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Mapping, Optional, Sequence

import yaml
from pydantic import ValidationError

from kubeconnect.exceptions import ConfigError
from kubeconnect.models import ConfigDocument, GlobalConfig, InClusterEnvironment

_APP_NAME = "kubeconnect"
_CONFIG_FILENAME = "config.json"

KUBECONFIG_ENV = "KUBECONFIG"
CONTEXT_ENV = "KUBECONNECT_CONTEXT"
SERVICE_HOST_ENV = "KUBERNETES_SERVICE_HOST"
SERVICE_PORT_ENV = "KUBERNETES_SERVICE_PORT"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/kubeconnect/`` (default
    ``~/.config/kubeconnect/``). On macOS/Windows: ``~/.kubeconnect/``.
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_CONFIG_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".config"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file lives next to *path* so ``os.replace`` is a rename
    on the same filesystem; it is removed if anything fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load user settings, or defaults if the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist user settings atomically."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Kubeconfig discovery ---


def home_directory(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return the directory that holds ``.kube``.

    On Windows ``HOME`` is honoured first, then ``HOMEDRIVE`` + ``HOMEPATH``,
    then ``USERPROFILE``, matching kubectl.
    """
    env = os.environ if environ is None else environ
    if os.name == "nt":
        if env.get("HOME"):
            return Path(env["HOME"])
        if env.get("HOMEDRIVE") and env.get("HOMEPATH"):
            return Path(env["HOMEDRIVE"] + env["HOMEPATH"])
        if env.get("USERPROFILE"):
            return Path(env["USERPROFILE"])
    return Path.home()


def default_kubeconfig_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    return home_directory(environ) / ".kube" / "config"


def locate_kubeconfig(
    explicit: Optional[str | Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> list[Path]:
    """Return the kubeconfig files to load, highest precedence first.

    Precedence:
        1. *explicit* (the ``--kubeconfig`` flag)
        2. ``KUBECONFIG``, an ``os.pathsep``-separated list
        3. ``~/.kube/config``
    """
    if explicit:
        return [Path(explicit).expanduser()]
    env = os.environ if environ is None else environ
    listed = env.get(KUBECONFIG_ENV, "")
    paths = [Path(p).expanduser() for p in listed.split(os.pathsep) if p.strip()]
    if paths:
        return paths
    return [default_kubeconfig_path(env)]


# --- Kubeconfig loading ---


def load_kubeconfig_file(path: Path) -> ConfigDocument:
    """Parse and validate one kubeconfig file.

    Relative file references inside the document are made absolute against
    the file's directory.

    Raises:
        ConfigError: If the file cannot be read, is not valid YAML/JSON, or
            does not describe a kubeconfig.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read kubeconfig {path}: {exc}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid kubeconfig {path}: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid kubeconfig {path}: expected a mapping at the top level")
    try:
        document = ConfigDocument.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid kubeconfig {path}: {exc}") from exc
    return _resolve_relative_paths(document, path.parent)


def load_kubeconfig(paths: Sequence[Path]) -> ConfigDocument:
    """Load and merge the kubeconfig files in *paths*.

    A single path must exist. In a list, missing files are skipped as long
    as at least one exists. Earlier files win when names collide.

    Raises:
        ConfigError: If no file can be found, or any file fails to load.
    """
    if len(paths) == 1 and not paths[0].is_file():
        raise ConfigError(f"Kubeconfig not found: {paths[0]}")

    merged: Optional[ConfigDocument] = None
    for path in paths:
        if not path.is_file():
            continue
        document = load_kubeconfig_file(path)
        merged = document if merged is None else merged.merge(document)

    if merged is None:
        listed = ", ".join(str(p) for p in paths)
        raise ConfigError(f"None of the kubeconfig files exist: {listed}")
    return merged


def _absolute(value: Optional[str], base_dir: Path) -> Optional[str]:
    if not value:
        return value
    path = Path(value).expanduser()
    if path.is_absolute():
        return str(path)
    return str(base_dir / path)


def _resolve_relative_paths(document: ConfigDocument, base_dir: Path) -> ConfigDocument:
    for cluster in document.clusters:
        body = cluster.cluster
        body.certificate_authority = _absolute(body.certificate_authority, base_dir)
    for user in document.users:
        body = user.user
        body.client_certificate = _absolute(body.client_certificate, base_dir)
        body.client_key = _absolute(body.client_key, base_dir)
        body.token_file = _absolute(body.token_file, base_dir)
        # Bare command names are looked up on PATH; only paths are rebased.
        if body.exec is not None and body.exec.command and (
            "/" in body.exec.command or os.sep in body.exec.command
        ):
            body.exec.command = _absolute(body.exec.command, base_dir) or body.exec.command
    return document


# --- Precedence resolution ---


def resolve_context_name(
    cli_context: Optional[str] = None,
    global_config: Optional[GlobalConfig] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """Pick the context name to resolve.

    Precedence (high to low):
        1. CLI flag (``--context``)
        2. ``KUBECONNECT_CONTEXT`` environment variable
        3. ``default_context`` from the user settings

    Returns ``None`` when none is set, so the kubeconfig's
    ``current-context`` applies.
    """
    if cli_context:
        return cli_context
    env = os.environ if environ is None else environ
    env_context = env.get(CONTEXT_ENV)
    if env_context:
        return env_context
    if global_config is not None and global_config.default_context:
        return global_config.default_context
    return None


def in_cluster_environment(
    environ: Optional[Mapping[str, str]] = None,
    service_account_path: Optional[str] = None,
) -> InClusterEnvironment:
    """Capture the pod-local bootstrap inputs from the environment.

    Missing variables become empty strings;
    :func:`~kubeconnect.resolver.resolve_in_cluster` rejects them.
    """
    env = os.environ if environ is None else environ
    values = {
        "service_host": env.get(SERVICE_HOST_ENV, ""),
        "service_port": env.get(SERVICE_PORT_ENV, ""),
    }
    if service_account_path:
        values["service_account_path"] = service_account_path
    return InClusterEnvironment(**values)


def is_running_in_cluster(environ: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if environ is None else environ
    return bool(env.get(SERVICE_HOST_ENV) and env.get(SERVICE_PORT_ENV))
