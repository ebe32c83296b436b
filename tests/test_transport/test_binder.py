"""Tests for binding strategies to HTTP and WebSocket transports."""

from __future__ import annotations

import logging
import ssl

import httpx
import pytest

from kubeconnect.auth.executor import CredentialPluginExecutor
from kubeconnect.certificates import ClientCertificate
from kubeconnect.exceptions import CertificateLoadError, CredentialRefreshError
from kubeconnect.models import ExecConfig
from kubeconnect.options import ConnectionOptions
from kubeconnect.strategies import (
    AnonymousStrategy,
    BearerTokenStrategy,
    ClientCertificateStrategy,
    ExecPluginStrategy,
)
from kubeconnect.transport import StrategyAuth, TlsPolicyError, TransportBinder, WebSocketOptions
from kubeconnect.transport.binder import load_client_certificate_into
from conftest import FakeProcess, cert_pem, exec_credential_json, key_pem

ENDPOINT = "https://10.0.0.1:6443"


# ---- Helpers ----


def _options(**kwargs) -> ConnectionOptions:
    kwargs.setdefault("endpoint", ENDPOINT)
    return ConnectionOptions(**kwargs)


def _exec_strategy(process: FakeProcess) -> ExecPluginStrategy:
    return ExecPluginStrategy(
        ExecConfig(api_version="client.authentication.k8s.io/v1", command="get-token"),
        executor=CredentialPluginExecutor(run_process=process, environ={}),
    )


class SequenceProcess(FakeProcess):
    """Returns a different ExecCredential token on every call."""

    def __call__(self, argv, env, timeout):
        self.stdout = exec_credential_json(f"token-{self.call_count + 1}", None)
        return super().__call__(argv, env, timeout)


def _ca_subjects(context: ssl.SSLContext) -> list[str]:
    names = []
    for cert in context.get_ca_certs():
        for rdn in cert.get("subject", ()):
            for key, value in rdn:
                if key == "commonName":
                    names.append(value)
    return names


# ---------------------------------------------------------------------------
# Request credentials
# ---------------------------------------------------------------------------


class TestApply:
    def test_bearer_headers(self) -> None:
        binder = TransportBinder(_options(strategy=BearerTokenStrategy("abc123")))
        assert binder.handshake_headers() == {"Authorization": "Bearer abc123"}

    def test_anonymous_headers(self) -> None:
        assert TransportBinder(_options()).handshake_headers() == {}

    def test_client_certificate_not_duplicated(self, pki) -> None:
        certificate = ClientCertificate(pki.client_cert, pki.client_key)
        binder = TransportBinder(
            _options(
                strategy=ClientCertificateStrategy(certificate),
                client_certificate=certificate,
            )
        )
        assert binder.client_certificates() == [certificate]

    def test_exec_issued_certificate(self, pki) -> None:
        process = FakeProcess(
            stdout=exec_credential_json(
                token=None,
                clientCertificateData=cert_pem(pki.client_cert).decode(),
                clientKeyData=key_pem(pki.client_key).decode(),
            )
        )
        binder = TransportBinder(_options(strategy=_exec_strategy(process)))
        certificates = binder.client_certificates()
        assert len(certificates) == 1
        assert certificates[0].certificate == pki.client_cert

    def test_exec_issued_certificate_in_ssl_context(self, pki) -> None:
        process = FakeProcess(
            stdout=exec_credential_json(
                token=None,
                clientCertificateData=cert_pem(pki.client_cert).decode(),
                clientKeyData=key_pem(pki.client_key).decode(),
            )
        )
        binder = TransportBinder(_options(strategy=_exec_strategy(process), ca_certificate=pki.ca))
        context = binder.ssl_context()
        assert context.verify_mode == ssl.CERT_REQUIRED
        assert len(binder.client_certificates()) == 1
        assert process.call_count == 1

    def test_exec_issued_mismatched_pair(self, pki) -> None:
        process = FakeProcess(
            stdout=exec_credential_json(
                token=None,
                clientCertificateData=cert_pem(pki.client_cert).decode(),
                clientKeyData=key_pem(pki.other_key).decode(),
            )
        )
        binder = TransportBinder(_options(strategy=_exec_strategy(process)))
        with pytest.raises(CredentialRefreshError, match="unusable client certificate"):
            binder.ssl_context()
        with pytest.raises(CredentialRefreshError):
            binder.client_certificates()
        assert process.call_count == 2


class TestStrategyAuth:
    def test_applies_strategy_to_each_request(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get("Authorization"))
            return httpx.Response(200)

        auth = StrategyAuth(BearerTokenStrategy("abc123"))
        with httpx.Client(transport=httpx.MockTransport(handler), auth=auth) as client:
            client.get(f"{ENDPOINT}/version")
            client.get(f"{ENDPOINT}/version")
        assert seen == ["Bearer abc123", "Bearer abc123"]

    def test_401_refreshes_and_retries_once(self) -> None:
        process = SequenceProcess()
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers["Authorization"])
            if request.headers["Authorization"] == "Bearer token-1":
                return httpx.Response(401)
            return httpx.Response(200, json={"ok": True})

        auth = StrategyAuth(_exec_strategy(process))
        with httpx.Client(transport=httpx.MockTransport(handler), auth=auth) as client:
            response = client.get(f"{ENDPOINT}/api")
        assert response.status_code == 200
        assert seen == ["Bearer token-1", "Bearer token-2"]
        assert process.call_count == 2

    def test_401_retried_only_once(self) -> None:
        process = SequenceProcess()
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.headers["Authorization"])
            return httpx.Response(401)

        auth = StrategyAuth(_exec_strategy(process))
        with httpx.Client(transport=httpx.MockTransport(handler), auth=auth) as client:
            response = client.get(f"{ENDPOINT}/api")
        assert response.status_code == 401
        assert len(calls) == 2

    def test_static_strategy_not_retried(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(401)

        auth = StrategyAuth(BearerTokenStrategy("abc123"))
        with httpx.Client(transport=httpx.MockTransport(handler), auth=auth) as client:
            assert client.get(f"{ENDPOINT}/api").status_code == 401
        assert calls == [1]


# ---------------------------------------------------------------------------
# TLS
# ---------------------------------------------------------------------------


class TestCertificateValidator:
    def test_none_without_ca(self) -> None:
        assert TransportBinder(_options()).certificate_validator() is None

    def test_with_ca(self, pki) -> None:
        validator = TransportBinder(_options(ca_certificate=pki.ca)).certificate_validator()
        assert validator(TlsPolicyError.UNKNOWN_ROOT, pki.leaf, [pki.intermediate]) is True
        assert validator(TlsPolicyError.UNKNOWN_ROOT, pki.rogue_leaf, []) is False
        assert validator(TlsPolicyError.NAME_MISMATCH, pki.leaf, [pki.intermediate]) is False

    def test_every_bundle_certificate_is_an_anchor(self, pki) -> None:
        validator = TransportBinder(
            _options(ca_certificate=pki.rogue_ca, extra_ca_certificates=(pki.ca,))
        ).certificate_validator()
        assert validator(TlsPolicyError.UNKNOWN_ROOT, pki.direct_leaf, []) is True
        assert validator(TlsPolicyError.UNKNOWN_ROOT, pki.leaf, [pki.intermediate]) is True

    def test_insecure_accepts_everything(self, pki, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="kubeconnect.transport.binder"):
            validator = TransportBinder(_options(allow_insecure=True)).certificate_validator()
        assert validator(TlsPolicyError.OTHER, pki.rogue_leaf, []) is True
        assert "TLS verification is disabled" in caplog.text


class TestSslContext:
    def test_default_verifies(self) -> None:
        context = TransportBinder(_options()).ssl_context()
        assert context.verify_mode == ssl.CERT_REQUIRED
        assert context.check_hostname is True

    def test_ca_added_to_trust_store(self, pki) -> None:
        context = TransportBinder(_options(ca_certificate=pki.ca)).ssl_context()
        assert "test-ca" in _ca_subjects(context)
        assert context.verify_mode == ssl.CERT_REQUIRED

    def test_ca_bundle_added_to_trust_store(self, pki) -> None:
        context = TransportBinder(
            _options(ca_certificate=pki.rogue_ca, extra_ca_certificates=(pki.ca,))
        ).ssl_context()
        subjects = _ca_subjects(context)
        assert "rogue-ca" in subjects
        assert "test-ca" in subjects

    def test_insecure_without_ca(self) -> None:
        context = TransportBinder(_options(allow_insecure=True)).ssl_context()
        assert context.verify_mode == ssl.CERT_NONE
        assert context.check_hostname is False

    def test_insecure_with_ca_still_verifies(self, pki) -> None:
        context = TransportBinder(
            _options(ca_certificate=pki.ca, allow_insecure=True)
        ).ssl_context()
        assert context.verify_mode == ssl.CERT_REQUIRED

    def test_client_certificate_loaded(self, pki) -> None:
        certificate = ClientCertificate(pki.client_cert, pki.client_key)
        TransportBinder(
            _options(
                strategy=ClientCertificateStrategy(certificate),
                client_certificate=certificate,
            )
        ).ssl_context()

    def test_mismatched_client_key(self, pki) -> None:
        context = ssl.create_default_context()
        with pytest.raises(CertificateLoadError):
            load_client_certificate_into(
                context, ClientCertificate(pki.client_cert, pki.other_key)
            )

    def test_missing_client_key(self, pki) -> None:
        with pytest.raises(CertificateLoadError):
            load_client_certificate_into(
                ssl.create_default_context(), ClientCertificate(pki.client_cert)
            )


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------


class TestWebSocketOptions:
    def test_from_options(self, pki) -> None:
        options = _options(strategy=BearerTokenStrategy("abc123"), ca_certificate=pki.ca)
        socket_options = WebSocketOptions.from_options(options)

        assert socket_options.request_headers["authorization"] == "Bearer abc123"
        assert socket_options.client_certificates == []
        assert socket_options.server_certificate_validator is not None
        assert isinstance(socket_options.ssl_context, ssl.SSLContext)
        assert socket_options.send_buffer_size == 2048
        assert socket_options.receive_buffer_size == 2048
        assert socket_options.keep_alive_interval == 5.0
        assert socket_options.requested_subprotocols == []

    def test_exec_credential_fixed_before_handshake(self) -> None:
        process = SequenceProcess()
        options = _options(strategy=_exec_strategy(process))
        socket_options = TransportBinder(options).websocket_options()
        assert socket_options.request_headers["Authorization"] == "Bearer token-1"
        assert process.call_count == 1

    def test_anonymous_has_no_validator(self) -> None:
        socket_options = TransportBinder(_options(strategy=AnonymousStrategy())).websocket_options()
        assert socket_options.server_certificate_validator is None
        assert "authorization" not in socket_options.request_headers
