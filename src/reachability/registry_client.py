"""Client seam for submitting reachability reports to the registry daemon.

``RegistryClient`` is the interface the reporter depends on. ``HttpRegistryClient``
implements it as a JSON-RPC 2.0 call over HTTP, using a pooled ``httpx.Client``
and a circuit breaker so an unresponsive registry fails fast.
"""

from __future__ import annotations

import itertools
from typing import Any, Protocol, Self, runtime_checkable

import httpx

from reachability.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from reachability.config import DEFAULT_REGISTRY_TIMEOUT
from reachability.logging import get_logger
from reachability.types import PeerKey

logger = get_logger(__name__)

JSON_RPC_PATH = "/json_rpc"
DEFAULT_REPORT_METHOD = "report_peer_status"


class RegistryClientError(Exception):
    """Raised when a report could not be delivered to the registry."""


@runtime_checkable
class RegistryClient(Protocol):
    """Submits peer reachability reports to the registry."""

    def report_peer_reachability(self, peer: PeerKey, reachable: bool) -> bool:
        """Report ``peer`` as reachable or unreachable.

        Args:
            peer: Reported peer.
            reachable: True for a GOOD report, False for a BAD report.

        Returns:
            True if the registry accepted the report.

        Raises:
            RegistryClientError: If the report could not be delivered.
        """
        ...  # pragma: no cover


class HttpRegistryClient:
    """JSON-RPC registry client over HTTP.

    Each report is a ``POST {base_url}/json_rpc`` with body::

        {"jsonrpc": "2.0", "id": <n>, "method": "report_peer_status",
         "params": {"type": "reachability", "pubkey": "<hex>", "passed": <bool>}}

    A result with ``"status": "OK"`` counts as accepted.
    """

    def __init__(
        self,
        base_url: str,
        method: str = DEFAULT_REPORT_METHOD,
        timeout: float = DEFAULT_REGISTRY_TIMEOUT,
        circuit_breaker: CircuitBreaker | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the registry client.

        Args:
            base_url: Registry RPC base URL (e.g., "http://127.0.0.1:22023").
            method: JSON-RPC method name used for reachability reports.
            timeout: Request timeout in seconds.
            circuit_breaker: Breaker guarding the registry. If not provided,
                creates one configured from the environment.
            transport: Optional httpx transport, mainly for tests.
        """
        self.base_url = base_url.rstrip("/")
        self.method = method
        self.timeout = httpx.Timeout(timeout)
        self._transport = transport
        self._client: httpx.Client | None = None
        self._request_ids = itertools.count(1)
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            service_name="registry",
            config=CircuitBreakerConfig.from_env(),
        )

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, transport=self._transport)
        return self._client

    def report_peer_reachability(self, peer: PeerKey, reachable: bool) -> bool:
        """Submit a reachability report for ``peer``.

        Raises:
            RegistryClientError: If the breaker is open, the request fails, or
                the registry answers with a JSON-RPC error.
        """
        if not self._circuit_breaker.allow_request():
            raise RegistryClientError(
                f"Registry circuit breaker is open - registry may be unavailable. "
                f"State: {self._circuit_breaker.state.value}"
            )

        payload: dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": self.method,
            "params": {"type": "reachability", "pubkey": peer.hex(), "passed": reachable},
        }
        url = f"{self.base_url}{JSON_RPC_PATH}"

        logger.debug("Reporting %s as %s", peer, "reachable" if reachable else "unreachable")

        try:
            response = self._get_client().post(url, json=payload)
            response.raise_for_status()
            data: Any = response.json()
        except httpx.TimeoutException as e:
            self._circuit_breaker.record_failure(e)
            raise RegistryClientError(f"Registry report timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            self._circuit_breaker.record_failure(e)
            raise RegistryClientError(
                f"Registry report failed with status {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            self._circuit_breaker.record_failure(e)
            raise RegistryClientError(f"Registry report request failed: {e}") from e
        except ValueError as e:
            self._circuit_breaker.record_failure(e)
            raise RegistryClientError(f"Registry returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            self._circuit_breaker.record_failure()
            raise RegistryClientError(
                f"Registry returned a JSON-RPC response that is not an object: {data!r}"
            )

        self._circuit_breaker.record_success()

        error = data.get("error")
        if error:
            message = error.get("message", error) if isinstance(error, dict) else error
            raise RegistryClientError(f"Registry rejected report: {message}")

        result = data.get("result") or {}
        accepted = isinstance(result, dict) and result.get("status") == "OK"
        if not accepted:
            logger.warning("Registry did not accept report for %s: %s", peer, result)
        return accepted

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
