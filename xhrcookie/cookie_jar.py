from http.cookiejar import Cookie, CookieJar, CookiePolicy
import copy
import logging
import threading
import time
import typing

from xhrcookie.cookie_codec import CookieParseError, normalize_cookie, parse_set_cookie, request_for_url
from xhrcookie.cookie_policy import XhrCookiePolicy
from xhrcookie.sqlite_cookie_store import SqliteCookieStore

logger = logging.getLogger(__name__)


def _copy_cookie(cookie:Cookie) -> Cookie:
    '''
    a copy that shares nothing mutable with `cookie`, the non standard attributes (HttpOnly, ...)
    live in the `_rest` dict, which copy.copy() would share
    '''

    copied_cookie = copy.copy(cookie)
    copied_cookie._rest = dict(cookie._rest)
    return copied_cookie


class SyncCookieJar:
    '''
    the cookie jar that the XMLHttpRequest wrapper reads from before a request is sent and writes to
    once the response headers arrive

    the cookies themselves live in a backing store, which is any http.cookiejar.CookieJar: an in memory
    CookieJar by default, or a SqliteCookieStore (or a MozillaCookieJar, ...) handed to `set_store()`.
    every access to the store happens while holding this jar's lock, so two mutations never interleave
    even when requests complete on different threads.
    '''

    def __init__(self, store:CookieJar|None=None, policy:CookiePolicy|None=None):
        '''
        constructor

        :param store: the backing store, an empty in memory CookieJar if not given
        :param policy: the CookiePolicy that decides what is stored and returned, an XhrCookiePolicy if not given.
        the policy is also installed on the store
        '''

        self._lock = threading.RLock()
        self._policy:CookiePolicy = policy if policy is not None else XhrCookiePolicy()

        if store is None:
            store = CookieJar(self._policy)

        self._store:CookieJar = self._checked_store(store)

    @property
    def store(self) -> CookieJar:
        return self._store

    @property
    def policy(self) -> CookiePolicy:
        return self._policy

    def _checked_store(self, store:CookieJar) -> CookieJar:
        '''
        make sure a store can back this jar, and install our policy on it

        :param store: the store to check
        :return: the store
        :raises TypeError: if the store is not a http.cookiejar.CookieJar
        :raises RuntimeError: if the store is a SqliteCookieStore that is not connected
        '''

        if not isinstance(store, CookieJar):
            raise TypeError(f"a cookie store must be a http.cookiejar.CookieJar, got `{type(store).__name__}`")

        if isinstance(store, SqliteCookieStore) and not store.connected:
            raise RuntimeError(f"the store `{store}` is not connected, call connect() on it first")

        store.set_policy(self._policy)

        return store

    def _update_now(self) -> int:

        # http.cookiejar checks expiry against `_now` on both the store and the policy
        now = int(time.time())
        self._store._now = now
        self._policy._now = now
        return now

    def set_cookie(self, cookie:Cookie|str, request_url:str) -> Cookie|None:
        '''
        store a cookie that was received from `request_url`

        :param cookie: either a http.cookiejar.Cookie, or the raw value of a `Set-Cookie` header. A cookie without
        a domain becomes host-only for the host of `request_url`, a cookie without a path gets the default path
        of `request_url`
        :param request_url: the URL of the response that set the cookie
        :return: a copy of the cookie that was stored, or None if nothing was stored because the value
        was malformed, the policy refused it or it was already expired (which removes the stored cookie
        with the same domain, path and name)
        '''

        if isinstance(cookie, str):
            try:
                cookie = parse_set_cookie(cookie, request_url, self._policy)
            except CookieParseError as e:
                logger.debug("ignoring a malformed cookie from `%s`: %s", request_url, e)
                return None
        else:
            cookie = normalize_cookie(cookie, request_url)

        request = request_for_url(request_url)

        with self._lock:

            now = self._update_now()

            if not self._policy.set_ok(cookie, request):
                logger.debug("the policy refused the cookie `%s` for domain `%s` from `%s`",
                    cookie.name, cookie.domain, request_url)
                return None

            if cookie.is_expired(now):
                logger.debug("the cookie `%s` for domain `%s` and path `%s` is expired, removing it",
                    cookie.name, cookie.domain, cookie.path)
                try:
                    self._store.clear(cookie.domain, cookie.path, cookie.name)
                except KeyError:
                    # usually there was no stored cookie to remove
                    pass
                return None

            logger.debug("storing the cookie `%s` for domain `%s` and path `%s`",
                cookie.name, cookie.domain, cookie.path)

            self._store.set_cookie(cookie)

        return _copy_cookie(cookie)

    def get_cookies(self, request_url:str) -> list[Cookie]:
        '''
        the cookies that apply to a URL: the domain matches the host, the path is a prefix of the URL's path,
        and it isn't expired. Secure cookies are only returned for https URLs.

        :param request_url: the URL a request is about to be sent to
        :return: copies of the matching cookies, longest path first, otherwise in the order they were stored
        '''

        request = request_for_url(request_url)

        with self._lock:
            self._update_now()
            cookie_list = self._store._cookies_for_request(request)

        cookie_list.sort(key=lambda x: len(x.path), reverse=True)

        return [_copy_cookie(iter_cookie) for iter_cookie in cookie_list]

    def clone_from(self, store:CookieJar):
        '''
        replace the backing store of this jar with `store`

        this is a full substitution and not a merge: afterwards the jar holds exactly the cookies that are in
        `store`, and every later set_cookie() goes into `store`

        :param store: the new backing store
        :raises TypeError: if the store is not a http.cookiejar.CookieJar
        :raises RuntimeError: if the store is a SqliteCookieStore that is not connected
        '''

        with self._lock:
            self._store = self._checked_store(store)

        logger.info("cookie jar is now backed by `%s`", store)

    def set_store(self, store:CookieJar):
        '''
        swap the backing store, see clone_from()
        '''

        self.clone_from(store)

    def clear(self, domain:str|None=None, path:str|None=None, name:str|None=None):
        '''
        Clear some cookies, with the same arguments as http.cookiejar.CookieJar.clear()

        :raises KeyError: if no matching cookie exists
        '''

        with self._lock:
            self._store.clear(domain, path, name)

    def clear_session_cookies(self):
        with self._lock:
            self._store.clear_session_cookies()

    def clear_expired_cookies(self):
        with self._lock:
            self._store.clear_expired_cookies()

    def __iter__(self) -> typing.Iterator[Cookie]:

        with self._lock:
            cookie_list = [_copy_cookie(iter_cookie) for iter_cookie in self._store]

        return iter(cookie_list)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} store={self._store!r} />"


_default_cookie_jar:SyncCookieJar|None = None
_default_cookie_jar_lock = threading.Lock()

def default_cookie_jar() -> SyncCookieJar:
    '''
    the process wide cookie jar that every CookieXMLHttpRequest uses unless it is given its own,
    created the first time it is asked for

    :return: the shared SyncCookieJar
    '''

    global _default_cookie_jar

    with _default_cookie_jar_lock:
        if _default_cookie_jar is None:
            logger.debug("creating the default cookie jar")
            _default_cookie_jar = SyncCookieJar()

        return _default_cookie_jar
