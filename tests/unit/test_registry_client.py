"""Tests for the registry client module."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from reachability.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from reachability.config import Config
from reachability.ledger import ReachabilityLedger
from reachability.registry_client import (
    DEFAULT_REPORT_METHOD,
    HttpRegistryClient,
    RegistryClient,
    RegistryClientError,
)
from reachability.reporter import ReachabilityReporter
from reachability.types import Channel
from tests.helpers import FakeClock, MockRegistryClient, make_peer

Handler = Callable[[httpx.Request], httpx.Response]


def _client(handler: Handler, clock: FakeClock | None = None) -> HttpRegistryClient:
    breaker = CircuitBreaker(
        "registry",
        CircuitBreakerConfig(failure_threshold=2, recovery_timeout=30.0, half_open_max_calls=1),
        time_func=clock or FakeClock(),
    )
    return HttpRegistryClient(
        "http://registry:22023/",
        transport=httpx.MockTransport(handler),
        circuit_breaker=breaker,
    )


def _ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {"status": "OK"}})


class TestProtocol:
    def test_implementations_satisfy_protocol(self) -> None:
        assert isinstance(_client(_ok), RegistryClient)
        assert isinstance(MockRegistryClient(), RegistryClient)


class TestReportPeerReachability:
    def test_sends_json_rpc_request(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _ok(request)

        peer = make_peer(9)
        with _client(handler) as client:
            assert client.report_peer_reachability(peer, False) is True
            client.report_peer_reachability(peer, True)

        assert len(seen) == 2
        assert seen[0].method == "POST"
        assert str(seen[0].url) == "http://registry:22023/json_rpc"
        body = json.loads(seen[0].content)
        assert body == {
            "jsonrpc": "2.0",
            "id": 1,
            "method": DEFAULT_REPORT_METHOD,
            "params": {"type": "reachability", "pubkey": peer.hex(), "passed": False},
        }
        assert json.loads(seen[1].content)["id"] == 2
        assert json.loads(seen[1].content)["params"]["passed"] is True

    def test_status_not_ok_is_declined(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"result": {"status": "Unknown pubkey"}})

        assert _client(handler).report_peer_reachability(make_peer(1), True) is False

    def test_json_rpc_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": {"code": -32601, "message": "no such method"}})

        client = _client(handler)
        with pytest.raises(RegistryClientError, match="no such method"):
            client.report_peer_reachability(make_peer(1), False)
        assert client.circuit_breaker.state == CircuitState.CLOSED

    def test_http_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="boom")

        with pytest.raises(RegistryClientError, match="status 500"):
            _client(handler).report_peer_reachability(make_peer(1), False)

    def test_connect_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RegistryClientError, match="request failed"):
            _client(handler).report_peer_reachability(make_peer(1), False)

    def test_invalid_json_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="not json")

        with pytest.raises(RegistryClientError, match="invalid JSON"):
            _client(handler).report_peer_reachability(make_peer(1), False)

    @pytest.mark.parametrize("body", [[], ["OK"], "OK", 1])
    def test_non_object_response_raises(self, body: object) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=body)

        client = _client(handler)
        with pytest.raises(RegistryClientError, match="not an object"):
            client.report_peer_reachability(make_peer(1), True)
        assert client.circuit_breaker.get_status()["failure_count"] == 1

    def test_reporter_survives_non_object_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=["OK"])

        peer = make_peer(2)
        ledger = ReachabilityLedger(config=Config(), time_func=FakeClock())
        reporter = ReachabilityReporter(ledger, _client(handler))
        reporter.process_test_result(peer, Channel.MESSAGING, False)

        assert reporter.process_test_result(peer, Channel.MESSAGING, True) is None
        assert peer in ledger


class TestCircuitBreakerIntegration:
    def test_open_breaker_fails_fast(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(503)

        client = _client(handler)
        for _ in range(2):
            with pytest.raises(RegistryClientError):
                client.report_peer_reachability(make_peer(1), False)
        assert client.circuit_breaker.is_open

        with pytest.raises(RegistryClientError, match="circuit breaker is open"):
            client.report_peer_reachability(make_peer(1), False)
        assert calls == 2

    def test_recovers_after_timeout(self) -> None:
        clock = FakeClock()
        failing = True

        def handler(request: httpx.Request) -> httpx.Response:
            if failing:
                return httpx.Response(503)
            return _ok(request)

        client = _client(handler, clock)
        for _ in range(2):
            with pytest.raises(RegistryClientError):
                client.report_peer_reachability(make_peer(1), False)

        failing = False
        clock.advance(30)

        assert client.report_peer_reachability(make_peer(1), False) is True
        assert client.circuit_breaker.state == CircuitState.CLOSED


class TestClose:
    def test_close_is_idempotent(self) -> None:
        client = _client(_ok)
        client.report_peer_reachability(make_peer(1), True)

        client.close()
        client.close()

        assert client._client is None
