from http.cookiejar import Cookie, CookieJar, CookiePolicy, DefaultCookiePolicy, parse_ns_headers, eff_request_host, request_path
from urllib.parse import urlsplit
import email.message
import logging
import typing
import urllib.request

logger = logging.getLogger(__name__)

HTTP_SCHEMES = ("http", "https")
SECURE_SCHEME = "https"


class CookieParseError(ValueError):
    '''
    raised when a `Set-Cookie` header value can't be turned into a cookie
    '''


class RequestUrl(typing.NamedTuple):
    '''
    a URL decomposed into the parts the cookie rules care about
    '''

    scheme:str
    host:str
    path:str
    href:str


def parse_url(url:str) -> RequestUrl:
    '''
    decompose an absolute URL

    :param url: the URL the request is made to
    :return: a RequestUrl with a lower case scheme and host, and a path that is at least `/`
    :raises ValueError: if the URL has no scheme or no host
    '''

    split_result = urlsplit(url)

    if not split_result.scheme or not split_result.hostname:
        raise ValueError(f"`{url}` is not an absolute URL with a scheme and a host")

    return RequestUrl(
        scheme=split_result.scheme.lower(),
        host=split_result.hostname.lower(),
        path=split_result.path or "/",
        href=url)


def request_for_url(url:str) -> urllib.request.Request:
    '''
    the http.cookiejar policies check cookies against a urllib.request.Request, this
    creates one for a URL

    :param url: the full URL
    :return: a GET urllib.request.Request object for that URL
    '''

    return urllib.request.Request(
        url,
        data=None,
        headers={},
        origin_req_host=None,
        unverifiable=False,
        method="GET")


def default_path(request_path:str) -> str:
    '''
    the path a cookie gets when its `Set-Cookie` header has no Path attribute,
    everything up to (but not including) the right most `/` of the request path

    :param request_path: the path of the request URL
    :return: the default cookie path, `/` if there is nothing left
    '''

    if not request_path.startswith("/"):
        return "/"

    index = request_path.rfind("/")
    if index == 0:
        return "/"

    return request_path[:index]


def is_http_only(cookie:Cookie) -> bool:
    '''
    http.cookiejar keeps HttpOnly as a non standard attribute, with whatever case the server
    sent it in

    :param cookie: the cookie to check
    :return: True if the cookie has the HttpOnly attribute
    '''

    return any(iter_key.lower() == "httponly" for iter_key in cookie._rest)


def format_cookie_pair(cookie:Cookie) -> str:
    '''
    :param cookie: the cookie to serialize
    :return: `name=value`, the form a cookie takes in a `Cookie` request header
    '''

    if cookie.value is None:
        return cookie.name

    return f"{cookie.name}={cookie.value}"


class SetCookieResponse:
    '''
    the smallest response object CookieJar.make_cookies() accepts, it only calls `info()`
    to get at the headers
    '''

    def __init__(self, set_cookie_values:typing.Iterable[str]):

        self._headers = email.message.Message()
        for iter_value in set_cookie_values:
            self._headers["Set-Cookie"] = iter_value

    def info(self) -> email.message.Message:
        return self._headers


class _ParsingCookieJar(CookieJar):
    '''
    a throwaway jar that is only used for CookieJar.make_cookies()

    make_cookies() calls `clear(domain, path, name)` when a cookie arrives already expired and then
    drops it, so the jar the cookie is meant for never sees it. record those as expired cookies
    instead, so that whoever stores the result decides whether the removal is allowed
    '''

    def __init__(self, policy:CookiePolicy):
        super().__init__(policy)
        self.expired_cookies:list[Cookie] = list()

    def clear(self, domain=None, path=None, name=None):

        self.expired_cookies.append(Cookie(
            version=0,
            name=name,
            value="",
            port=None,
            port_specified=False,
            domain=domain,
            domain_specified=domain.startswith("."),
            domain_initial_dot=domain.startswith("."),
            path=path,
            path_specified=True,
            secure=False,
            expires=0,
            discard=False,
            comment=None,
            comment_url=None,
            rest={},
            rfc2109=False))


def parse_set_cookie(raw_value:str, url:str, policy:CookiePolicy|None=None) -> Cookie:
    '''
    parse one `Set-Cookie` header value into a cookie scoped to the URL it came from

    a missing Domain attribute makes the cookie host-only for the URL's host, a missing Path attribute
    makes it default to the directory of the URL's path. A cookie that is already expired
    (Expires in the past, or Max-Age <= 0) is still returned, with `expires` in the past, so the
    caller can remove the stored cookie with the same domain, path and name.

    :param raw_value: the header value, like `sid=abc; Path=/; Secure; HttpOnly`
    :param url: the URL of the response the header came from
    :param policy: the policy whose `netscape` / `rfc2965` switches decide how the header is read
    :return: the Cookie
    :raises CookieParseError: if the value is empty, has no cookie name or no `=`
    '''

    if raw_value is None or not raw_value.strip():
        raise CookieParseError("empty Set-Cookie value")

    attrs_set = parse_ns_headers([raw_value])

    if not attrs_set:
        raise CookieParseError(f"Set-Cookie value `{raw_value}` has no cookie name")

    name, value = attrs_set[0][0]
    if value is None:
        raise CookieParseError(f"Set-Cookie value `{raw_value}` has no `=` after the cookie name `{name}`")

    request = request_for_url(url)
    parsing_jar = _ParsingCookieJar(policy if policy is not None else DefaultCookiePolicy())

    cookie_list = parsing_jar.make_cookies(SetCookieResponse([raw_value]), request)

    if cookie_list:
        return cookie_list[0]

    if parsing_jar.expired_cookies:
        logger.debug("the cookie `%s` from `%s` arrived already expired", name, url)
        return parsing_jar.expired_cookies[0]

    raise CookieParseError(f"Set-Cookie value `{raw_value}` has an invalid attribute")


def normalize_cookie(cookie:Cookie, url:str) -> Cookie:
    '''
    fill in the domain and path of a cookie that was created without them, the same way they
    are derived for a `Set-Cookie` header without Domain and Path attributes

    :param cookie: the cookie, it isn't modified
    :param url: the URL the cookie is set for
    :return: a copy of the cookie with the domain and path filled in
    '''

    request = request_for_url(url)
    _, erhn = eff_request_host(request)

    domain_specified = cookie.domain_specified
    domain = cookie.domain
    if not domain:
        domain = erhn
        domain_specified = False

    path_specified = cookie.path_specified
    path = cookie.path
    if not path:
        # escaped, the form http.cookiejar matches cookie paths against
        path = default_path(request_path(request))
        path_specified = False

    return Cookie(
        version=cookie.version,
        name=cookie.name,
        value=cookie.value,
        port=cookie.port,
        port_specified=cookie.port_specified,
        domain=domain,
        domain_specified=domain_specified,
        domain_initial_dot=domain.startswith("."),
        path=path,
        path_specified=path_specified,
        secure=cookie.secure,
        expires=cookie.expires,
        discard=cookie.discard,
        comment=cookie.comment,
        comment_url=cookie.comment_url,
        rest=dict(cookie._rest),
        rfc2109=cookie.rfc2109)
