import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class ConnectivityGate(ABC):
    """Answers whether network-dependent actions may be attempted."""

    @abstractmethod
    async def is_reachable(self) -> bool:
        ...


class HttpConnectivityGate(ConnectivityGate):
    """Reachable when the backend health endpoint answers at all."""

    def __init__(self, base_url: str, timeout: float = 5.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def is_reachable(self) -> bool:
        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                await client.get("/health")
        except httpx.HTTPError as e:
            logger.info("Backend unreachable: %s", e.__class__.__name__)
            return False
        return True
