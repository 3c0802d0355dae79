"""
End-to-end tests for HTTPFetcher through httpx.MockTransport.
"""

import httpx
import pytest

from requester.chain import Requester
from requester.config import RequesterConfig
from requester.session import Session


@pytest.mark.asyncio
async def test_cookie_from_first_response_sent_with_second(mock_fetcher):
    seen = []

    def handler(request):
        seen.append(request.headers.get('cookie'))
        if request.url.path == '/login':
            return httpx.Response(200, headers={'Set-Cookie': 'sid=abc123; Path=/'})
        return httpx.Response(200, text='dashboard')

    fetcher = mock_fetcher(handler)
    rq = Requester(transport=fetcher)
    rq.get('http://shop.example.com/login', 'login').get('http://shop.example.com/dashboard', 'dashboard')

    error = await rq.run()
    await fetcher.aclose()

    assert error is None
    assert seen == [None, 'sid=abc123']
    assert rq.responses['dashboard'].text == 'dashboard'
    assert rq.get_cookies().get('sid') == 'abc123'


@pytest.mark.asyncio
async def test_handed_off_session_sends_cookies(mock_fetcher):
    seen = []

    def handler(request):
        seen.append(request.headers.get('cookie'))
        return httpx.Response(200, headers={'Set-Cookie': 'sid=s1; Path=/'})

    fetcher = mock_fetcher(handler)
    first = Requester(transport=fetcher)
    first.get('http://shop.example.com/')
    await first.run()

    second = Requester(first.get_cookies(), transport=fetcher)
    second.get('http://shop.example.com/account')
    await second.run()
    await fetcher.aclose()

    assert seen == [None, 'sid=s1']


@pytest.mark.asyncio
async def test_post_sends_form_body(mock_fetcher):
    captured = {}

    def handler(request):
        captured['body'] = request.content
        captured['content_type'] = request.headers['content-type']
        captured['user_agent'] = request.headers['user-agent']
        return httpx.Response(201)

    fetcher = mock_fetcher(handler)
    rq = Requester(transport=fetcher, settings=RequesterConfig(user_agent='TestAgent/1.0'))
    rq.post('http://shop.example.com/users/sign_in', {'user': 'me', 'commit': 'Sign in'}, 'login')

    await rq.run()
    await fetcher.aclose()

    assert captured['body'] == b'user=me&commit=Sign+in'
    assert captured['content_type'] == 'application/x-www-form-urlencoded'
    assert captured['user_agent'] == 'TestAgent/1.0'
    assert rq.responses['login'].status_code == 201


@pytest.mark.asyncio
async def test_string_body_sent_verbatim(mock_fetcher):
    captured = {}

    def handler(request):
        captured['body'] = request.content
        return httpx.Response(200)

    fetcher = mock_fetcher(handler)
    await fetcher.perform('POST', 'http://shop.example.com/', Session(), {}, 'a=1&b=2')
    await fetcher.aclose()

    assert captured['body'] == b'a=1&b=2'


@pytest.mark.asyncio
async def test_get_follows_redirects_with_cookies(mock_fetcher):
    seen = []

    def handler(request):
        seen.append((request.url.path, request.headers.get('cookie')))
        if request.url.path == '/start':
            return httpx.Response(302, headers={
                'Location': '/landing',
                'Set-Cookie': 'hop=1; Path=/',
            })
        return httpx.Response(200, text='landed')

    fetcher = mock_fetcher(handler)
    response = await fetcher.perform('GET', 'http://shop.example.com/start', Session(), {'User-Agent': 'x'})
    await fetcher.aclose()

    assert response.status_code == 200
    assert response.text == 'landed'
    assert seen == [('/start', None), ('/landing', 'hop=1')]


@pytest.mark.asyncio
async def test_post_redirect_is_returned(mock_fetcher):
    def handler(request):
        return httpx.Response(302, headers={'Location': '/elsewhere'})

    fetcher = mock_fetcher(handler)
    response = await fetcher.perform('POST', 'http://shop.example.com/form', Session(), {}, {'a': '1'})
    await fetcher.aclose()

    assert response.status_code == 302


@pytest.mark.asyncio
async def test_too_many_redirects_fails_chain(mock_fetcher):
    def handler(request):
        return httpx.Response(302, headers={'Location': '/loop'})

    fetcher = mock_fetcher(handler, RequesterConfig(max_redirects=3))
    rq = Requester(transport=fetcher)
    rq.get('http://shop.example.com/loop', 'loop').get('http://shop.example.com/never')

    error = await rq.run()
    await fetcher.aclose()

    assert isinstance(error, httpx.TooManyRedirects)
    assert rq.responses['loop'] is None


@pytest.mark.asyncio
async def test_server_error_is_returned_not_raised(mock_fetcher):
    def handler(request):
        return httpx.Response(500, text='boom')

    fetcher = mock_fetcher(handler)
    rq = Requester(transport=fetcher)
    rq.get('http://shop.example.com/', 'home')

    error = await rq.run()
    await fetcher.aclose()

    assert error is None
    assert rq.responses['home'].status_code == 500


@pytest.mark.asyncio
async def test_connect_error_stops_chain(mock_fetcher):
    calls = []

    def handler(request):
        calls.append(request.url.path)
        if request.url.path == '/down':
            raise httpx.ConnectError('connection refused', request=request)
        return httpx.Response(200)

    fetcher = mock_fetcher(handler)
    rq = Requester(transport=fetcher)
    rq.get('http://shop.example.com/up').get('http://shop.example.com/down').get('http://shop.example.com/after')

    error = await rq.run()
    await fetcher.aclose()

    assert isinstance(error, httpx.ConnectError)
    assert calls == ['/up', '/down']
