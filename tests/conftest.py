"""
Shared fixtures: a fake transport for chain tests and an httpx.MockTransport
backed fetcher for end-to-end cookie tests.
"""

import httpx
import pytest

from requester.config import RequesterConfig
from requester.fetcher import HTTPFetcher


class FakeTransport:
    """Records perform() calls; URLs in ``fail`` raise httpx.ConnectError."""

    def __init__(self, fail=(), statuses=None, on_perform=None):
        self.calls = []
        self.fail = set(fail)
        self.statuses = statuses or {}
        self.on_perform = on_perform

    async def perform(self, method, uri, session, headers, data=None):
        self.calls.append({
            'method': method,
            'uri': uri,
            'session': session,
            'headers': headers,
            'data': data,
        })
        if self.on_perform is not None:
            self.on_perform(uri)
        request = httpx.Request(method, uri)
        if uri in self.fail:
            raise httpx.ConnectError(f"connection refused: {uri}", request=request)
        return httpx.Response(self.statuses.get(uri, 200), request=request, text=uri)

    @property
    def uris(self):
        return [call['uri'] for call in self.calls]


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def settings():
    return RequesterConfig(user_agent='TestAgent/1.0')


@pytest.fixture
def mock_fetcher():
    """Build an HTTPFetcher whose requests go to ``handler``."""
    def build(handler, settings=None):
        return HTTPFetcher(settings=settings, transport=httpx.MockTransport(handler))
    return build
