from tests.fixtures import in_memory_sqlite_cookie_store
from xhrcookie.sqlite_cookie_store import SqliteCookieStore
from tests.testing_util import \
(
    assert_cookie_equality,
    create_dummy_request,
    create_simple_cookie
)


class TestCookiesForDomain():
    '''
    a class that will specialize in tests for the overriden method
    _cookies_for_domain
    '''

    def test_single_cookie(
        self,
        in_memory_sqlite_cookie_store:SqliteCookieStore):

        test_cookie = create_simple_cookie("a", "b", "example.com")

        in_memory_sqlite_cookie_store.set_cookie(test_cookie)

        cookie_list = in_memory_sqlite_cookie_store._cookies_for_domain(
            "example.com", create_dummy_request("https://example.com", "GET"))

        assert len(cookie_list) == 1
        assert_cookie_equality(cookie_list[0], test_cookie)

    def test_only_exact_domain_is_looked_up(
        self,
        in_memory_sqlite_cookie_store:SqliteCookieStore):
        '''
        _cookies_for_domain looks at the cookies stored under exactly one domain, walking the
        parent domains is _cookies_for_request's job
        '''

        test_cookie_one = create_simple_cookie("a", "b", "example.com")
        test_cookie_two = create_simple_cookie("c", "d", "a.example.com")

        in_memory_sqlite_cookie_store.set_cookies([test_cookie_one, test_cookie_two])

        domain_two_result = in_memory_sqlite_cookie_store._cookies_for_domain(
            "a.example.com", create_dummy_request("https://a.example.com", "GET"))

        assert len(domain_two_result) == 1
        assert_cookie_equality(domain_two_result[0], test_cookie_two)

    def test_secure_and_path_rules(
        self,
        in_memory_sqlite_cookie_store:SqliteCookieStore):
        '''
        the policy checks run on every row: a secure cookie is not returned over http,
        and a cookie for `/foo` is not returned for `/foobar`
        '''

        secure_cookie = create_simple_cookie("s", "1", "example.com")
        secure_cookie.secure = True

        path_cookie = create_simple_cookie("p", "2", "example.com", path="/foo")

        in_memory_sqlite_cookie_store.set_cookies([secure_cookie, path_cookie])

        def names_for(url:str) -> list[str]:
            return sorted(iter_cookie.name for iter_cookie in in_memory_sqlite_cookie_store._cookies_for_domain(
                "example.com", create_dummy_request(url, "GET")))

        assert names_for("http://example.com/foo/x") == ["p"]
        assert names_for("https://example.com/foo") == ["p", "s"]
        assert names_for("https://example.com/foobar") == ["s"]
