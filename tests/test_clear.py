from tests.fixtures import in_memory_sqlite_cookie_store
from xhrcookie.sqlite_cookie_store import SqliteCookieStore
from tests.testing_util import \
(
    assert_cookie_equality,
    create_dummy_request,
    create_simple_cookie
)

import pytest


class TestClear():
    '''
    a class that will specialize in tests for the overriden method
    clear()
    '''

    @pytest.fixture
    def populated_store(self, in_memory_sqlite_cookie_store:SqliteCookieStore) -> SqliteCookieStore:
        '''
        a store holding four cookies:

        * `a` under example.com and `/`
        * `c` and `e` under example.com and `/foo/bar`
        * `g` under a.example.com and `/`
        '''

        in_memory_sqlite_cookie_store.set_cookies([
            create_simple_cookie("a", "b", "example.com"),
            create_simple_cookie("c", "d", "example.com", path="/foo/bar"),
            create_simple_cookie("e", "f", "example.com", path="/foo/bar"),
            create_simple_cookie("g", "h", "a.example.com")])

        assert len(in_memory_sqlite_cookie_store) == 4

        return in_memory_sqlite_cookie_store

    def _names_for(self, store:SqliteCookieStore, domain:str, url:str) -> list[str]:

        cookie_list = store._cookies_for_domain(domain, create_dummy_request(url, "GET"))
        return sorted(iter_cookie.name for iter_cookie in cookie_list)

    def test_clear_no_arguments(self, populated_store:SqliteCookieStore):
        '''
        test clear() with no arguments which clears all cookies
        '''

        populated_store.clear()

        assert len(populated_store) == 0
        assert self._names_for(populated_store, "example.com", "https://example.com/foo/bar") == []
        assert self._names_for(populated_store, "a.example.com", "https://a.example.com") == []

    def test_clear_one_argument_domain_provided(self, populated_store:SqliteCookieStore):
        '''
        clear() with a domain only removes the cookies stored under exactly that domain, not its subdomains
        '''

        populated_store.clear(domain="example.com")

        assert len(populated_store) == 1
        assert self._names_for(populated_store, "example.com", "https://example.com/foo/bar") == []
        assert self._names_for(populated_store, "a.example.com", "https://a.example.com") == ["g"]

    def test_clear_two_arguments_domain_path_provided(self, populated_store:SqliteCookieStore):

        # `/` is a prefix of `/foo/bar`, so all three example.com cookies apply to that URL
        assert self._names_for(populated_store, "example.com", "https://example.com/foo/bar") == ["a", "c", "e"]

        populated_store.clear(domain="example.com", path="/")

        assert len(populated_store) == 3
        assert self._names_for(populated_store, "example.com", "https://example.com/") == []
        assert self._names_for(populated_store, "example.com", "https://example.com/foo/bar") == ["c", "e"]

        populated_store.clear(domain="example.com", path="/foo/bar")

        assert len(populated_store) == 1
        assert self._names_for(populated_store, "example.com", "https://example.com/foo/bar") == []

    def test_clear_three_arguments_domain_path_name_provided(self, populated_store:SqliteCookieStore):

        populated_store.clear(domain="example.com", path="/foo/bar", name="c")

        assert len(populated_store) == 3

        remaining = populated_store._cookies_for_domain(
            "example.com", create_dummy_request("https://example.com/foo/bar", "GET"))
        remaining_sorted = sorted(remaining, key=lambda x: x.path + x.name)

        assert len(remaining_sorted) == 2
        assert_cookie_equality(remaining_sorted[0], create_simple_cookie("a", "b", "example.com"))
        assert_cookie_equality(remaining_sorted[1], create_simple_cookie("e", "f", "example.com", path="/foo/bar"))

    def test_clear_missing_cookie_raises_key_error(self, populated_store:SqliteCookieStore):
        '''
        like http.cookiejar.CookieJar.clear(), asking for a cookie by name that isn't there raises KeyError
        '''

        with pytest.raises(KeyError):
            populated_store.clear(domain="example.com", path="/", name="does-not-exist")

        assert len(populated_store) == 4

    def test_clear_incomplete_arguments(self, populated_store:SqliteCookieStore):

        with pytest.raises(ValueError):
            populated_store.clear(domain="example.com", name="a")

        with pytest.raises(ValueError):
            populated_store.clear(path="/")
