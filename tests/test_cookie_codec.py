from xhrcookie.cookie_codec import \
(
    CookieParseError,
    default_path,
    format_cookie_pair,
    is_http_only,
    normalize_cookie,
    parse_set_cookie,
    parse_url
)
from tests.testing_util import create_simple_cookie

import time

import pytest


class TestParseUrl():

    def test_parts_are_lower_cased_and_path_defaults(self):

        url = parse_url("HTTPS://A.Test:8443/Some/Path?q=1")

        assert url.scheme == "https"
        assert url.host == "a.test"
        assert url.path == "/Some/Path"
        assert url.href == "HTTPS://A.Test:8443/Some/Path?q=1"

        assert parse_url("http://example.com").path == "/"

    @pytest.mark.parametrize("url", ["/relative/path", "example.com/foo", "file:///etc/hosts"])
    def test_not_absolute(self, url:str):

        with pytest.raises(ValueError):
            parse_url(url)


class TestDefaultPath():

    @pytest.mark.parametrize("request_path,expected", [
        ("", "/"),
        ("/", "/"),
        ("/foo", "/"),
        ("/foo/", "/foo"),
        ("/foo/bar", "/foo"),
        ("foo", "/"),
    ])
    def test_default_path(self, request_path:str, expected:str):

        assert default_path(request_path) == expected


class TestParseSetCookie():
    '''
    parse_set_cookie turns one Set-Cookie value into a cookie scoped to the URL it came from
    '''

    def test_host_only_secure_cookie(self):

        cookie = parse_set_cookie("sid=abc; Secure", "https://a.test/")

        assert cookie.name == "sid"
        assert cookie.value == "abc"
        assert cookie.domain == "a.test"
        assert not cookie.domain_specified
        assert cookie.path == "/"
        assert cookie.secure
        assert cookie.expires is None
        assert cookie.discard
        assert not is_http_only(cookie)

    def test_domain_and_path_attributes(self):

        cookie = parse_set_cookie("d=1; Domain=example.com; Path=/x", "http://www.example.com/a/b")

        assert cookie.domain == ".example.com"
        assert cookie.domain_specified
        assert cookie.path == "/x"
        assert cookie.path_specified

    def test_path_defaults_to_request_directory(self):

        cookie = parse_set_cookie("p=1", "http://example.com/docs/index.html")

        assert cookie.path == "/docs"
        assert not cookie.path_specified

    @pytest.mark.parametrize("raw_value", ["h=1; HttpOnly", "h=1; httponly", "h=1; HTTPONLY; Path=/"])
    def test_http_only_any_case(self, raw_value:str):

        assert is_http_only(parse_set_cookie(raw_value, "http://example.com/"))

    def test_max_age_sets_expiry(self):

        cookie = parse_set_cookie("m=1; Max-Age=3600", "http://example.com/")

        assert not cookie.discard
        assert abs(cookie.expires - (time.time() + 3600)) < 60
        assert not cookie.is_expired()

    @pytest.mark.parametrize("raw_value", [
        "gone=; Max-Age=0",
        "gone=x; Max-Age=-5",
        "gone=x; Expires=Thu, 01 Jan 1970 00:00:00 GMT",
    ])
    def test_already_expired(self, raw_value:str):
        '''
        an expired cookie still comes back, with the identity of the cookie it removes
        '''

        cookie = parse_set_cookie(raw_value, "http://example.com/")

        assert cookie.name == "gone"
        assert cookie.domain == "example.com"
        assert cookie.path == "/"
        assert cookie.is_expired()

    @pytest.mark.parametrize("raw_value", [
        "",
        "   ",
        "no-equals-sign",
        "=value-without-name",
        "; Path=/",
        "a=1; Max-Age=soon",
    ])
    def test_malformed(self, raw_value:str):

        with pytest.raises(CookieParseError):
            parse_set_cookie(raw_value, "http://example.com/")

    def test_parse_error_is_a_value_error(self):

        assert issubclass(CookieParseError, ValueError)


class TestFormatting():

    def test_format_cookie_pair(self):

        assert format_cookie_pair(create_simple_cookie("a", "1", "example.com")) == "a=1"
        assert format_cookie_pair(create_simple_cookie("empty", "", "example.com")) == "empty="

    def test_normalize_cookie_fills_domain_and_path(self):

        incomplete_cookie = create_simple_cookie("a", "1", "")
        incomplete_cookie.path = ""
        incomplete_cookie._rest = {"HttpOnly": None}

        cookie = normalize_cookie(incomplete_cookie, "http://Example.com/foo/bar")

        assert cookie.domain == "example.com"
        assert not cookie.domain_specified
        assert cookie.path == "/foo"
        assert is_http_only(cookie)

        # the passed in cookie is left alone
        assert incomplete_cookie.domain == ""
        assert incomplete_cookie.path == ""

    def test_normalize_cookie_escapes_default_path(self):

        incomplete_cookie = create_simple_cookie("a", "1", "")
        incomplete_cookie.path = ""

        cookie = normalize_cookie(incomplete_cookie, "http://example.com/a b/c")

        assert cookie.path == "/a%20b"
        assert cookie.path == parse_set_cookie("a=1", "http://example.com/a b/c").path
