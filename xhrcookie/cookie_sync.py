from contextlib import contextmanager
import logging
import typing

from xhrcookie.cookie_codec import HTTP_SCHEMES, SECURE_SCHEME, RequestUrl, format_cookie_pair, is_http_only
from xhrcookie.cookie_jar import SyncCookieJar

logger = logging.getLogger(__name__)


class CookieRequest(typing.Protocol):
    '''
    what the sync functions need from a request object
    '''

    def set_disable_header_check(self, state:bool): ...
    def set_request_header(self, name:str, value:str): ...
    def get_request_header(self, name:str) -> str|None: ...
    def get_response_header(self, name:str) -> str|list[str]|None: ...


def _log_level(request:CookieRequest) -> int:
    return logging.INFO if getattr(request, "debug", False) else logging.DEBUG


@contextmanager
def relaxed_header_check(request:CookieRequest):
    '''
    `Cookie` and `Set-Cookie` are forbidden header names, so the header check of the request is turned off
    while the block runs, and put back the way it was afterwards, even if the block raises
    '''

    previous_state = bool(getattr(request, "disable_header_check", False))

    request.set_disable_header_check(True)
    try:
        yield request
    finally:
        request.set_disable_header_check(previous_state)


def sync_send(url:RequestUrl, request:CookieRequest, jar:SyncCookieJar):
    '''
    add the cookies of the jar that apply to `url` to the `Cookie` request header

    cookies are appended after whatever the header already holds, separated by `; `. Secure cookies are left out
    unless the URL is https, HttpOnly cookies are left out unless the URL is http or https. If there is nothing
    to send the header is not set at all.

    :param url: the URL the request goes to
    :param request: the request, before it is sent
    :param jar: the jar to take the cookies from
    '''

    with relaxed_header_check(request):

        cookie_header = request.get_request_header("Cookie") or ""

        for iter_cookie in jar.get_cookies(url.href):

            if iter_cookie.secure and url.scheme != SECURE_SCHEME:
                continue

            if is_http_only(iter_cookie) and url.scheme not in HTTP_SCHEMES:
                continue

            if cookie_header:
                cookie_header += "; "

            cookie_header += format_cookie_pair(iter_cookie)

        if cookie_header:
            logger.log(_log_level(request), "send cookie(s) to `%s`: `%s`", url.href, cookie_header)
            request.set_request_header("Cookie", cookie_header)


def sync_recv(url:RequestUrl, request:CookieRequest, jar:SyncCookieJar):
    '''
    store every cookie of the `Set-Cookie` response header(s) in the jar, scoped to `url`

    a malformed value is skipped without affecting the others

    :param url: the URL the response came from
    :param request: the request, once the response headers have arrived
    :param jar: the jar to store the cookies in
    '''

    with relaxed_header_check(request):

        set_cookie_values = request.get_response_header("Set-Cookie")

        if not set_cookie_values:
            return

        if isinstance(set_cookie_values, str):
            set_cookie_values = [set_cookie_values]

        for iter_value in set_cookie_values:

            stored_cookie = jar.set_cookie(iter_value, url.href)

            if stored_cookie is not None:
                logger.log(_log_level(request), "received cookie from `%s`: `%s`", url.href, stored_cookie)
            else:
                logger.debug("the Set-Cookie value `%s` from `%s` did not store a cookie", iter_value, url.href)
