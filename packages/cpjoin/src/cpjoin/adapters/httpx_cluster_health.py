"""HTTPX-based implementation of the ClusterHealthPort.

Probes the API server's ``/healthz`` endpoint through the floating address.
The API server certificate is signed by the cluster CA, which a joining
node does not trust yet, so certificate verification is disabled the same
way ``curl -k`` would.
"""

from __future__ import annotations

import logging

import httpx

from cpjoin.adapters.ports import ClusterHealthPort

logger = logging.getLogger(__name__)


class HTTPXClusterHealth:
    """HTTPX-based adapter for the API health endpoint.

    Network failures and non-200 answers are reported as unhealthy rather
    than raised, so callers can treat the probe as a plain predicate.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 30.0,
        path: str = "/healthz",
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the health adapter.

        Args:
            endpoint: ``host:port`` of the API, usually the VIP endpoint.
            timeout: Request timeout in seconds. Defaults to 30.0.
            path: Health endpoint path. Defaults to "/healthz".
            client: Optional httpx.Client for dependency injection (testing).
                   If not provided, a new client is created per probe.
        """
        self._url = f"https://{endpoint}{path}"
        self._timeout = timeout
        self._client = client

    @property
    def url(self) -> str:
        return self._url

    def healthz(self) -> bool:
        """Check whether the endpoint answers 200 with body "ok"."""
        try:
            if self._client is not None:
                response = self._client.get(self._url, timeout=self._timeout)
            else:
                with httpx.Client(verify=False, timeout=self._timeout) as client:
                    response = client.get(self._url)
        except httpx.RequestError as e:
            logger.debug("health probe %s failed: %s", self._url, e)
            return False

        return response.status_code == 200 and response.text.strip() == "ok"


# Runtime protocol check
assert isinstance(HTTPXClusterHealth("127.0.0.1:6443"), ClusterHealthPort)
