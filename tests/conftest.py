from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from mcpbridge.dispatch import CallDispatcher


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def mock_dispatcher() -> Callable[[Callable[[httpx.Request], httpx.Response]], CallDispatcher]:
    """Build a dispatcher whose HTTP traffic is answered by ``handler``."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> CallDispatcher:
        transport = httpx.MockTransport(handler)
        return CallDispatcher(http_client_factory=lambda **kwargs: httpx.AsyncClient(transport=transport, **kwargs))

    return factory
