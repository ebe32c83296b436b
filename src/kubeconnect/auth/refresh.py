"""Single-flight refresh for strategies whose credentials expire.

:class:`SingleFlight` collapses concurrent refresh attempts into one call:
the first caller runs the refresh, later callers block on a
:class:`threading.Event` until it finishes and receive the same result or
error. Nothing is cached in the flight itself, so a failed refresh is
retried by the next caller.

:class:`RefreshingStrategy` builds on it to give the ``token_provider`` and
``exec_plugin`` strategies a shared cache-then-refresh path.
"""

from __future__ import annotations

import logging
import threading
from abc import abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Generic, Optional, TypeVar

from kubeconnect.auth.base import AuthStrategy, utcnow
from kubeconnect.exceptions import CredentialRefreshError, ExecPluginError
from kubeconnect.models import Credential

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_REFRESH_MARGIN = timedelta(seconds=60)
"""Credentials expiring within this lead time are treated as already expired."""


class _Flight(Generic[T]):
    """One in-progress call and its eventual outcome."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: Optional[T] = None
        self.error: Optional[BaseException] = None


class SingleFlight(Generic[T]):
    """Run at most one call at a time; concurrent callers share its outcome.

    Example::

        flight = SingleFlight()
        credential = flight.do(fetch_credential, timeout=30)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current: Optional[_Flight[T]] = None

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return self._current is not None

    def do(self, fn: Callable[[], T], timeout: Optional[float] = None) -> T:
        """Run *fn*, or wait for the run already in progress.

        Args:
            fn: The call to run when no other caller is running one.
            timeout: Seconds to wait for another caller's run. ``None``
                waits indefinitely. Ignored by the caller that runs *fn*.

        Returns:
            The value returned by *fn* (this caller's run or the shared one).

        Raises:
            CredentialRefreshError: If waiting exceeded *timeout*.
            Exception: Whatever *fn* raised, re-raised to every waiter.
        """
        with self._lock:
            flight = self._current
            leader = flight is None
            if flight is None:
                flight = _Flight()
                self._current = flight

        if leader:
            try:
                flight.result = fn()
            except BaseException as exc:
                flight.error = exc
            finally:
                with self._lock:
                    self._current = None
                flight.done.set()
        elif not flight.done.wait(timeout):
            raise CredentialRefreshError(
                f"Timed out after {timeout}s waiting for a credential refresh in progress"
            )

        if flight.error is not None:
            raise flight.error
        return flight.result  # type: ignore[return-value]


class RefreshingStrategy(AuthStrategy):
    """Base for strategies that cache an expiring credential.

    Subclasses implement :meth:`fetch_credential`, which runs the credential
    helper. The cached credential is served until it comes within
    *refresh_margin* of its expiry.

    Args:
        initial: A credential to serve before the first refresh (e.g. a token
            cached in the kubeconfig).
        refresh_margin: Lead time before expiry at which a refresh starts.
    """

    def __init__(
        self,
        initial: Optional[Credential] = None,
        refresh_margin: timedelta = DEFAULT_REFRESH_MARGIN,
    ) -> None:
        self._credential = initial
        self.refresh_margin = refresh_margin
        self._flight: SingleFlight[Credential] = SingleFlight()

    @property
    def refreshable(self) -> bool:
        return True

    @property
    def cached_credential(self) -> Optional[Credential]:
        return self._credential

    @property
    def wait_timeout(self) -> Optional[float]:
        """Default seconds to wait on another caller's refresh (``None``: forever)."""
        return None

    @abstractmethod
    def fetch_credential(self) -> Credential:
        """Obtain a new credential from the external source.

        Raises:
            ExecPluginError: If the helper process fails or its output is
                unusable.
        """
        ...

    def resolve_credential(
        self,
        now: Optional[datetime] = None,
        timeout: Optional[float] = None,
    ) -> Credential:
        now = now or utcnow()
        cached = self._credential
        if cached is not None and not cached.needs_refresh(now, self.refresh_margin):
            return cached
        if timeout is None:
            timeout = self.wait_timeout
        return self._flight.do(lambda: self._refresh_if_stale(now), timeout=timeout)

    def _refresh_if_stale(self, now: datetime) -> Credential:
        # Another caller may have refreshed between our cache check and
        # winning the flight.
        cached = self._credential
        if cached is not None and not cached.needs_refresh(now, self.refresh_margin):
            return cached
        logger.debug("Refreshing %s credential", self.auth_type)
        try:
            credential = self.fetch_credential()
        except ExecPluginError as exc:
            logger.warning("Credential refresh for %s failed: %s", self.auth_type, exc)
            raise CredentialRefreshError(
                f"Failed to refresh {self.auth_type} credential: {exc}", cause=exc
            ) from exc
        self._credential = credential
        if credential.expires_at is not None:
            logger.debug("New %s credential expires at %s", self.auth_type, credential.expires_at)
        return credential

    def invalidate(self) -> None:
        self._credential = None

    def _copy_state_to(self, other: RefreshingStrategy) -> RefreshingStrategy:
        """Give *other* its own copy of the cached credential.

        The flight guard is not shared: clones refresh independently.
        """
        if self._credential is not None:
            other._credential = self._credential.model_copy()
        return other
