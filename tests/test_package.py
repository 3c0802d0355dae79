"""
Tests for the package's public surface.
"""

import requester


def test_exported_names_resolve():
    for name in requester.__all__:
        assert getattr(requester, name) is not None


def test_default_requester_builds_its_own_fetcher():
    rq = requester.Requester()

    assert isinstance(rq.transport, requester.HTTPFetcher)
    assert isinstance(rq.get_cookies(), requester.Session)
