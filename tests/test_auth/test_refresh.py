"""Tests for single-flight refresh of expiring credentials."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import Any

import pytest

from kubeconnect.auth.executor import CredentialPluginExecutor
from kubeconnect.auth.refresh import SingleFlight
from kubeconnect.exceptions import CredentialRefreshError, ExecPluginError
from kubeconnect.models import ExecConfig
from kubeconnect.strategies import ExecPluginStrategy
from conftest import FakeProcess, exec_credential_json

NOW = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)


# ---- Helpers ----


class GatedProcess(FakeProcess):
    """FakeProcess that blocks until :attr:`gate` is set."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.started = threading.Event()
        self.gate = threading.Event()

    def __call__(self, argv, env, timeout):
        self.started.set()
        self.gate.wait(5)
        return super().__call__(argv, env, timeout)


def _run_in_threads(
    count: int, target
) -> tuple[list[Any], list[BaseException], list[threading.Thread]]:
    results: list[Any] = []
    errors: list[BaseException] = []
    lock = threading.Lock()

    def _worker() -> None:
        try:
            value = target()
        except BaseException as exc:
            with lock:
                errors.append(exc)
        else:
            with lock:
                results.append(value)

    threads = [threading.Thread(target=_worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    return results, errors, threads


def _join(threads: list[threading.Thread]) -> None:
    for thread in threads:
        thread.join(5)
        assert not thread.is_alive()


# ---------------------------------------------------------------------------
# SingleFlight
# ---------------------------------------------------------------------------


class TestSingleFlight:
    def test_returns_value(self) -> None:
        assert SingleFlight().do(lambda: 42) == 42

    def test_error_is_not_cached(self) -> None:
        flight: SingleFlight[int] = SingleFlight()
        calls = []

        def _fail() -> int:
            calls.append(1)
            raise ValueError("nope")

        with pytest.raises(ValueError):
            flight.do(_fail)
        assert flight.do(lambda: 7) == 7
        assert len(calls) == 1
        assert flight.in_flight is False

    def test_waiter_shares_leader_result(self) -> None:
        flight: SingleFlight[str] = SingleFlight()
        gate = threading.Event()
        waiter_calls = []

        def _leader() -> str:
            gate.wait(5)
            return "leader"

        def _waiter() -> str:
            waiter_calls.append(1)
            return "waiter"

        leader_results, _, leader_threads = _run_in_threads(1, lambda: flight.do(_leader))
        deadline = time.monotonic() + 5
        while not flight.in_flight and time.monotonic() < deadline:
            time.sleep(0.01)

        waiter_results, _, waiter_threads = _run_in_threads(3, lambda: flight.do(_waiter))
        time.sleep(0.2)
        gate.set()
        _join(leader_threads + waiter_threads)

        assert leader_results == ["leader"]
        assert waiter_results == ["leader", "leader", "leader"]
        assert waiter_calls == []

    def test_waiter_receives_leader_error(self) -> None:
        flight: SingleFlight[str] = SingleFlight()
        gate = threading.Event()

        def _leader() -> str:
            gate.wait(5)
            raise ExecPluginError("helper failed")

        _, leader_errors, leader_threads = _run_in_threads(1, lambda: flight.do(_leader))
        deadline = time.monotonic() + 5
        while not flight.in_flight and time.monotonic() < deadline:
            time.sleep(0.01)

        _, waiter_errors, waiter_threads = _run_in_threads(2, lambda: flight.do(lambda: "x"))
        time.sleep(0.2)
        gate.set()
        _join(leader_threads + waiter_threads)

        assert len(leader_errors) == 1
        assert len(waiter_errors) == 2
        assert all(isinstance(e, ExecPluginError) for e in waiter_errors)

    def test_waiter_timeout(self) -> None:
        flight: SingleFlight[str] = SingleFlight()
        gate = threading.Event()
        _, _, leader_threads = _run_in_threads(1, lambda: flight.do(lambda: gate.wait(5) and "ok"))
        deadline = time.monotonic() + 5
        while not flight.in_flight and time.monotonic() < deadline:
            time.sleep(0.01)

        try:
            with pytest.raises(CredentialRefreshError, match="Timed out"):
                flight.do(lambda: "never", timeout=0.05)
        finally:
            gate.set()
            _join(leader_threads)


# ---------------------------------------------------------------------------
# Strategies under concurrency
# ---------------------------------------------------------------------------


class TestConcurrentRefresh:
    def test_concurrent_requests_run_plugin_once(self) -> None:
        process = GatedProcess(stdout=exec_credential_json("xyz", "2099-01-01T00:00:00Z"))
        strategy = ExecPluginStrategy(
            ExecConfig(api_version="client.authentication.k8s.io/v1", command="get-token"),
            executor=CredentialPluginExecutor(run_process=process, environ={}),
        )

        results, errors, threads = _run_in_threads(
            8, lambda: strategy.resolve_credential(NOW).token
        )
        assert process.started.wait(5)
        time.sleep(0.2)
        process.gate.set()
        _join(threads)

        assert errors == []
        assert results == ["xyz"] * 8
        assert process.call_count == 1

    def test_concurrent_failure_reported_to_all_and_retried(self) -> None:
        process = GatedProcess(returncode=1, stderr="denied")
        strategy = ExecPluginStrategy(
            ExecConfig(api_version="client.authentication.k8s.io/v1", command="get-token"),
            executor=CredentialPluginExecutor(run_process=process, environ={}),
        )

        _, errors, threads = _run_in_threads(4, lambda: strategy.resolve_credential(NOW))
        assert process.started.wait(5)
        time.sleep(0.2)
        process.gate.set()
        _join(threads)

        assert len(errors) == 4
        assert all(isinstance(e, CredentialRefreshError) for e in errors)
        assert strategy.cached_credential is None

        process.returncode = 0
        process.stdout = exec_credential_json()
        before = process.call_count
        assert strategy.resolve_credential(NOW).token == "xyz"
        assert process.call_count == before + 1
