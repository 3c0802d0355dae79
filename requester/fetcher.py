"""
HTTP transport for the request chain, built on httpx.

Performs a single request against a Session: applies its cookies, sends,
stores any Set-Cookie values back into it. Transport failures raise httpx
exceptions; HTTP error statuses are returned as ordinary responses.
"""

import time
from typing import Any, Dict, Union

import httpx
import structlog

from .config import RequesterConfig
from .session import Session

logger = structlog.get_logger(__name__)

REDIRECT_STATUSES = (301, 302, 303, 307, 308)

Body = Union[Dict[str, Any], str, bytes, None]


class HTTPFetcher:
    def __init__(self, settings: RequesterConfig = None, transport: httpx.AsyncBaseTransport = None):
        """Initialize the HTTP fetcher.

        Args:
            settings: Timeout and redirect limits. Defaults to RequesterConfig().
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests.
        """
        settings = settings or RequesterConfig()
        self.timeout = settings.timeout
        self.max_redirects = settings.max_redirects

        # Redirects and cookies are handled here against the Session, not by the client
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=False,
            transport=transport,
        )

    async def perform(
        self,
        method: str,
        uri: str,
        session: Session,
        headers: Dict[str, str],
        data: Body = None,
    ) -> httpx.Response:
        """Send one request and return the response with its body read.

        GET requests follow redirects up to ``max_redirects``; every hop carries
        the session's cookies for its own URL.
        """
        request = self._build_request(method, uri, headers, data)
        start_time = time.time()
        redirects = 0

        while True:
            session.apply(request)
            logger.debug("request_sent", method=request.method, url=str(request.url))
            response = await self._client.send(request)
            session.extract(response)

            if not self._should_follow(request, response):
                break

            redirects += 1
            if redirects > self.max_redirects:
                raise httpx.TooManyRedirects(
                    f"Exceeded maximum allowed redirects ({self.max_redirects})",
                    request=request,
                )
            location = response.url.join(response.headers['location'])
            request = self._build_request('GET', str(location), self._redirect_headers(headers))

        logger.debug(
            "response_received",
            method=method,
            url=uri,
            status_code=response.status_code,
            redirects=redirects,
            fetch_time=round(time.time() - start_time, 4),
        )
        return response

    def _build_request(self, method: str, uri: str, headers: Dict[str, str], data: Body = None) -> httpx.Request:
        kwargs = {}
        if isinstance(data, (str, bytes)):
            kwargs['content'] = data
        elif data is not None:
            kwargs['data'] = data

        return httpx.Request(
            method,
            uri,
            headers=headers,
            extensions={'timeout': httpx.Timeout(self.timeout).as_dict()},
            **kwargs,
        )

    def _should_follow(self, request: httpx.Request, response: httpx.Response) -> bool:
        return (
            request.method == 'GET'
            and response.status_code in REDIRECT_STATUSES
            and 'location' in response.headers
        )

    def _redirect_headers(self, headers: Dict[str, str]) -> Dict[str, str]:
        dropped = {'content-type', 'content-length', 'cookie'}
        return {k: v for k, v in headers.items() if k.lower() not in dropped}

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self) -> "HTTPFetcher":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

