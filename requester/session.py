"""
Cookie session shared by every step of a request chain.

A Session wraps an httpx.Cookies jar. The fetcher applies it to each outgoing
request and extracts Set-Cookie headers from each response, so cookies set by
one step are sent by the next. Handing a Session to a new Requester carries
the cookie state over to that chain.
"""

import time
from http.cookiejar import Cookie, http2time
from http.cookies import CookieError, SimpleCookie
from typing import Any, Dict, Iterator, Optional
from urllib.parse import urlparse

import httpx
import structlog

from .errors import CookieRejectedError

logger = structlog.get_logger(__name__)


def _default_path(path: str) -> str:
    """Directory of the request path, as browsers compute it for cookies."""
    if not path or not path.startswith('/'):
        return '/'
    directory = path[:path.rfind('/')]
    return directory or '/'


def _domain_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith('.' + domain)


def _expiry(morsel, now: float) -> Optional[int]:
    """Absolute expiry from Max-Age (preferred) or Expires, None for session cookies."""
    max_age = morsel['max-age']
    if max_age != '':
        try:
            return int(now + int(max_age))
        except ValueError:
            pass
    if morsel['expires']:
        return http2time(morsel['expires'])
    return None


class Session:
    def __init__(self, cookies: httpx.Cookies = None):
        self.cookies = cookies if cookies is not None else httpx.Cookies()

    def set_cookie(self, cookie: str, url: str, options: Dict[str, Any] = None):
        """Store a raw cookie string for the host of ``url``.

        ``url`` may be a full URL or a bare hostname. Supported options:
        ``loose`` skips the domain check, ``path`` is used when the cookie
        carries no Path attribute.

        Raises CookieRejectedError when the cookie cannot be parsed or is not
        allowed for the host.
        """
        options = options or {}
        parsed = urlparse(url if '://' in url else f'http://{url}')
        host = (parsed.hostname or '').lower()
        if not host:
            raise CookieRejectedError(cookie, url, "no hostname")

        jar = SimpleCookie()
        try:
            jar.load(cookie)
        except CookieError as e:
            raise CookieRejectedError(cookie, url, f"unparseable cookie: {e}")
        if not jar:
            raise CookieRejectedError(cookie, url, "no cookie found")

        now = time.time()
        for morsel in jar.values():
            domain = morsel['domain'].lstrip('.').lower()
            if domain:
                if not options.get('loose') and not _domain_matches(host, domain):
                    raise CookieRejectedError(
                        cookie, url, f"domain {domain} does not match host {host}"
                    )
                # Explicit Domain attribute: valid for subdomains too
                cookie_domain = '.' + domain
            else:
                cookie_domain = host

            path = morsel['path'] or options.get('path') or _default_path(parsed.path)
            expires = _expiry(morsel, now)

            if expires is not None and expires <= now:
                self._discard(morsel.key, cookie_domain, path)
                logger.debug("cookie_expired", name=morsel.key, domain=cookie_domain, path=path)
                continue

            self.cookies.jar.set_cookie(Cookie(
                version=0,
                name=morsel.key,
                value=morsel.value,
                port=None,
                port_specified=False,
                domain=cookie_domain,
                domain_specified=bool(domain),
                domain_initial_dot=cookie_domain.startswith('.'),
                path=path,
                path_specified=True,
                secure=bool(morsel['secure']),
                expires=expires,
                discard=expires is None,
                comment=None,
                comment_url=None,
                rest={'HttpOnly': None} if morsel['httponly'] else {},
            ))
            logger.debug("cookie_set", name=morsel.key, domain=cookie_domain, path=path)

    def _discard(self, name: str, domain: str, path: str):
        try:
            self.cookies.jar.clear(domain, path, name)
        except KeyError:
            pass

    def apply(self, request: httpx.Request):
        """Add the Cookie header matching ``request`` unless one is already set."""
        self.cookies.set_cookie_header(request)

    def extract(self, response: httpx.Response):
        """Store cookies set by ``response``."""
        self.cookies.extract_cookies(response)

    def get(self, name: str, domain: str = None) -> Optional[str]:
        for cookie in self.cookies.jar:
            if cookie.name != name:
                continue
            if domain is None or _domain_matches(domain.lower(), cookie.domain.lstrip('.')):
                return cookie.value
        return None

    def clear(self):
        self.cookies.clear()

    def __len__(self):
        return len(self.cookies.jar)

    def __iter__(self) -> Iterator[str]:
        return (cookie.name for cookie in self.cookies.jar)

    def __repr__(self):
        return f"<Session cookies={len(self)}>"
