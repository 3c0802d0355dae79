"""
Errors raised by the request chain.

Transport failures are httpx's own exceptions (httpx.RequestError and its
subclasses) and are passed through untouched.
"""


class RequesterError(Exception):
    """Base class for errors raised by this package."""


class CookieRejectedError(RequesterError):
    """The session refused to store a cookie."""

    def __init__(self, cookie: str, url: str, reason: str):
        self.cookie = cookie
        self.url = url
        self.reason = reason
        super().__init__(f"Cookie rejected for {url}: {reason}")


class FlowError(RequesterError):
    """A flow file could not be loaded or is malformed."""
