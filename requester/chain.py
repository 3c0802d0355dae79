"""
Requester: chain HTTP requests together, keeping the session alive by
persisting cookies between them.

Every request is sent with the configured browser User-Agent. Requests run
one after another in the order they were added, and nothing runs until
run() is awaited (or start() schedules it). The first transport failure
stops the chain.

Example:

    async with Requester() as rq:
        rq.get('http://example.com/login', 'login-page') \\
          .post('http://example.com/account', {
              'username': 'user@example.com',
              'password': 'password',
          }, 'login', {'headers': {'X-My-Header': 'Auth'}})

        error = await rq.run()
        print(rq.responses['login'].status_code)

The POST is only sent after the GET finished without a transport error, and
rq.responses['login'] holds the httpx.Response of the second request.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import structlog

from .config import RequesterConfig
from .errors import CookieRejectedError, RequesterError
from .fetcher import Body, HTTPFetcher
from .session import Session

logger = structlog.get_logger(__name__)

Step = Callable[[], Awaitable[None]]
DoneCallback = Callable[[Optional[BaseException]], Any]

FORM_CONTENT_TYPE = 'application/x-www-form-urlencoded'

# Exceptions that stop a chain and are handed to the completion callback
CHAIN_ERRORS = (httpx.RequestError, RequesterError)


class Requester:
    """Sequential request chain sharing one cookie Session."""

    def __init__(self, cookies: Session = None, transport=None, settings: RequesterConfig = None):
        """
        Args:
            cookies: Session to reuse, e.g. another Requester's get_cookies().
                     A fresh empty Session is created when omitted.
            transport: Object with an async perform(method, uri, session,
                       headers, data) method. Defaults to an HTTPFetcher.
            settings: User agent, default headers and cookie error policy.
        """
        self.settings = settings or RequesterConfig()
        self._owns_transport = transport is None
        self.transport = transport or HTTPFetcher(self.settings)
        self.responses: Dict[str, Optional[httpx.Response]] = {}

        self._cookies = cookies if cookies is not None else Session()
        self._queue: List[Step] = []
        self._executing = False
        self._complete = False

    def get(self, uri: str, name: str = None, options: Dict[str, Any] = None) -> "Requester":
        """Queue a GET request.

        Args:
            uri: URL to request.
            name: Optional key the response is stored under in ``responses``.
            options: Optional dict; ``headers`` is the only supported key.
        """
        headers = self._build_headers(options)
        return self._enqueue(self._request_step('GET', uri, headers, name))

    def post(self, uri: str, data: Body, name: str = None, options: Dict[str, Any] = None) -> "Requester":
        """Queue a POST request sending ``data`` as a form-encoded body."""
        headers = self._build_headers(options, content_type=FORM_CONTENT_TYPE)
        return self._enqueue(self._request_step('POST', uri, headers, name, data))

    def set_cookie(self, cookie: str, hostname: str, options: Dict[str, Any] = None) -> "Requester":
        """Queue a step that stores a raw cookie string in the session.

        Example:

            rq.set_cookie('MyCookie=Cookie', 'http://hostname.com')

        A rejected cookie is ignored unless ``fail_on_cookie_error`` is set,
        in which case it stops the chain with CookieRejectedError.
        """
        options = dict(options or {})

        async def step():
            try:
                self._cookies.set_cookie(cookie, hostname, options)
            except CookieRejectedError as e:
                if self.settings.fail_on_cookie_error:
                    raise
                logger.debug("cookie_ignored", url=hostname, reason=e.reason)

        return self._enqueue(step)

    def _enqueue(self, step: Step) -> "Requester":
        self._queue.append(step)
        return self

    def _build_headers(self, options: Dict[str, Any] = None, content_type: str = None) -> Dict[str, str]:
        """Merge headers for a request; later assignments win.

        default headers -> options['headers'] -> Content-Type (POST) -> User-Agent
        """
        headers = dict(self.settings.default_headers)
        if options and options.get('headers'):
            headers.update(options['headers'])
        if content_type is not None:
            _assign(headers, 'Content-Type', content_type)
        _assign(headers, 'User-Agent', self.settings.user_agent)
        return headers

    def _request_step(self, method: str, uri: str, headers: Dict[str, str], name: str = None, data: Body = None) -> Step:
        async def step():
            response = None
            try:
                response = await self.transport.perform(method, uri, self._cookies, headers, data)
            finally:
                if isinstance(name, str) and name:
                    self.responses[name] = response

        return step

    async def run(self, on_done: DoneCallback = None) -> Optional[BaseException]:
        """Execute the queued steps in order.

        Stops at the first step raising a transport or cookie error. The
        error (None on success) is passed to ``on_done`` and returned.
        ``on_done`` may be a plain function or a coroutine function.
        """
        self._executing = True
        self._complete = False

        error = None
        logger.debug("chain_started", steps=len(self._queue))
        try:
            for index, step in enumerate(list(self._queue)):
                try:
                    await step()
                except CHAIN_ERRORS as e:
                    logger.debug("step_failed", index=index, error=repr(e))
                    error = e
                    break
        finally:
            self._executing = False
        self._complete = True

        logger.debug("chain_completed", success=error is None)
        if on_done is not None:
            result = on_done(error)
            if inspect.isawaitable(result):
                await result
        return error

    def start(self, on_done: DoneCallback = None) -> "asyncio.Task":
        """Schedule run() on the running event loop and return the task."""
        return asyncio.ensure_future(self.run(on_done))

    def is_executing(self) -> bool:
        return self._executing

    def is_complete(self) -> bool:
        return self._complete

    def get_cookies(self) -> Session:
        return self._cookies

    async def aclose(self):
        """Close the fetcher this Requester created, if any."""
        if self._owns_transport:
            await self.transport.aclose()

    async def __aenter__(self) -> "Requester":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    def __len__(self):
        return len(self._queue)

    def __repr__(self):
        return (
            f"<Requester steps={len(self._queue)} executing={self._executing} "
            f"complete={self._complete}>"
        )


def _assign(headers: Dict[str, str], key: str, value: str):
    """Set ``key`` replacing any existing header of the same name, any case."""
    for existing in [k for k in headers if k.lower() == key.lower()]:
        del headers[existing]
    headers[key] = value
