import logging
import pathlib
import urllib.request

import pytest

from xhrcookie.cookie_jar import SyncCookieJar
from xhrcookie.sqlite_cookie_store import SqliteCookieStore
from tests.cookie_serving_http_server import CookieServingHttpServer


logging.basicConfig(level="DEBUG", format="%(asctime)s %(threadName)-10s %(name)-20s %(levelname)-8s: %(message)s")


@pytest.fixture(scope="function")
def database_path(tmp_path_factory:pytest.TempPathFactory) -> pathlib.Path:
    ''' a fixture to return a path suitable to store the database in. this will use a temporary path
    provided by the tmp_path_factory fixture, and is scoped currently to be 'function', so it will be a new database
    every time.

    https://docs.pytest.org/en/latest/how-to/tmp_path.html#the-tmp-path-factory-fixture
    '''
    fn = tmp_path_factory.mktemp("data") / "cookiedb.sqlite3"

    return fn


@pytest.fixture
def in_memory_sqlite_cookie_store() -> SqliteCookieStore:
    ''' a fixture to set up a SqliteCookieStore with a database that is only in RAM
    '''

    store = SqliteCookieStore(database_path=":memory:")
    store.connect()

    yield store

    store.close()


@pytest.fixture
def sqlite_cookie_store(database_path) -> SqliteCookieStore:
    ''' a fixture to set up a SqliteCookieStore with a database saved to a path
    returned by the database_path fixture
    '''

    store = SqliteCookieStore(database_path=database_path)
    store.connect()

    yield store

    store.close()


@pytest.fixture
def cookie_jar() -> SyncCookieJar:
    ''' a SyncCookieJar backed by an in memory http.cookiejar.CookieJar, with the default XhrCookiePolicy
    '''

    return SyncCookieJar()


@pytest.fixture
def cookie_server() -> CookieServingHttpServer:
    ''' a CookieServingHttpServer running in a background thread for the duration of the test
    '''

    server = CookieServingHttpServer()
    server.start()

    yield server

    server.stop()


@pytest.fixture
def opener() -> urllib.request.OpenerDirector:
    ''' an urllib opener that ignores any proxy configured in the environment, the tests only
    talk to 127.0.0.1
    '''

    return urllib.request.build_opener(urllib.request.ProxyHandler({}))
