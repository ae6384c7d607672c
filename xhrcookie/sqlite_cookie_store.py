from contextlib import contextmanager
from http.cookiejar import CookieJar, CookiePolicy, Cookie, request_host, eff_request_host
from os import PathLike
import json
import logging
import sqlite3
import time
import typing
import urllib.request

import publicsuffixlist
from typing_extensions import override

from xhrcookie import sql_statements as sql_statements

logger = logging.getLogger(__name__)

class SqliteCookieStore(CookieJar):
    '''
    a http.cookiejar.CookieJar that keeps its cookies in a SQLite database instead of in memory

    handing one to `SyncCookieJar.set_store()` makes the cookies that CookieXMLHttpRequest sends and
    receives outlive the process. Only the methods a SyncCookieJar calls hit the database directly,
    the rest of CookieJar (extract_cookies, add_cookie_header, ...) works on top of them.
    '''

    def __init__(self, database_path:PathLike|str, policy:CookiePolicy|None=None):
        '''
        constructor, call connect() before using the store

        :param database_path: a file path (str or pathlib.Path), created if it doesn't exist, or `:memory:`
        for a database that only lives as long as the connection
        :param policy: the CookiePolicy, a DefaultCookiePolicy if not given
        :raises ValueError: if the path is empty
        '''

        if not database_path:
            raise ValueError("database_path cannot be empty")

        super().__init__(policy)

        self._public_suffix_list = publicsuffixlist.PublicSuffixList()
        self._refresh_now()

        self.database_path:PathLike|str = database_path
        self.sqlite_connection:sqlite3.Connection|None = None

    def _refresh_now(self):

        # http.cookiejar compares expiry against `_now` on the jar and the policy, not time.time()
        self._now = int(time.time())
        self._policy._now = self._now

    @property
    def connected(self) -> bool:
        return self.sqlite_connection is not None

    @contextmanager
    def _cursor(self) -> typing.Iterator[sqlite3.Cursor]:
        '''
        a cursor inside a transaction, committed when the block ends and rolled back if it raises

        :raises RuntimeError: if connect() wasn't called
        '''

        if self.sqlite_connection is None:
            raise RuntimeError(f"the sqlite database at `{self.database_path}` is not connected, call connect() first")

        cursor = self.sqlite_connection.cursor()
        try:
            yield cursor
        except Exception:
            logger.exception("error while using the sqlite database at `%s`, rolling back", self.database_path)
            self.sqlite_connection.rollback()
            raise
        else:
            self.sqlite_connection.commit()
        finally:
            cursor.close()

    def connect(self):
        '''
        open the database and create the cookie table if needed

        the connection may be used from any thread, whoever shares the store between threads serializes
        the calls (SyncCookieJar holds its lock around every one)
        '''

        logger.debug("Connecting to the sqlite database at the path `%s`", self.database_path)

        self.sqlite_connection = sqlite3.connect(database=self.database_path, check_same_thread=False)
        self.sqlite_connection.row_factory = sqlite3.Row

        with self._cursor() as cursor:

            journal_mode = cursor.execute(sql_statements.TURN_WAL_MODE_ON).fetchone()[0]
            logger.debug("journal mode of `%s` is `%s`", self.database_path, journal_mode)

            cursor.execute(sql_statements.CREATE_TABLE_STATEMENT_COOKIE_TABLE)
            cursor.execute(sql_statements.CREATE_COOKIE_TABLE_DOMAIN_INDEX_STATEMENT)

        logger.info("Connected to the sqlite database at the path `%s`", self.database_path)

    def close(self):
        ''' commit and close the database, connect() can be called again afterwards '''

        if self.sqlite_connection is None:
            return

        logger.debug("closing the sqlite database at `%s`", self.database_path)

        self.sqlite_connection.commit()
        self.sqlite_connection.close()
        self.sqlite_connection = None

    def _select_cookies(self, statement:str, params:dict, request:urllib.request.Request) -> list[Cookie]:
        '''
        run a SELECT against the cookie table and keep the cookies the policy would return for `request`

        :param statement: one of the SELECT statements in sql_statements
        :param params: its named parameters
        :param request: the request the cookies would be sent with
        :return: the cookies that passed, in insertion order
        '''

        result_list = list()

        with self._cursor() as cursor:

            for iter_row in cursor.execute(statement, params):

                iter_cookie = self._cookie_from_row(iter_row)

                # return_ok covers version, verifiability, secure, expires, port and domain, but not the path
                if (self._policy.path_return_ok(iter_cookie.path, request)
                    and self._policy.return_ok(iter_cookie, request)):
                    result_list.append(iter_cookie)
                else:
                    logger.debug("not returning the cookie `%s` of domain `%s`, refused by the policy",
                        iter_cookie.name, iter_cookie.domain)

        return result_list

    @override
    def _cookies_for_domain(self, domain:str, request:urllib.request.Request) -> list[Cookie]:
        '''
        override of a private method, the cookies stored under exactly `domain` that may be sent with `request`

        :param domain: the cookie domain, compared with string equality
        :param request: the request the cookies would be sent with
        :return: the list of cookies, empty if the policy refuses the domain as a whole
        '''

        self._refresh_now()

        if not self._policy.domain_return_ok(domain, request):
            return list()

        result_list = self._select_cookies(
            sql_statements.SELECT_COOKIES_BY_DOMAIN_STATEMENT, {"domain": domain}, request)

        logger.debug("`%s` cookie(s) for the domain `%s`", len(result_list), domain)

        return result_list

    @override
    def _cookies_for_request(self, request:urllib.request.Request) -> list[Cookie]:
        '''
        override of a private method, every cookie that may be sent with `request`

        CookieJar walks every domain it knows about, here the database is asked for the cookies of
        every domain under the registrable domain ("private suffix", see https://publicsuffix.org)
        of the request host:

        * a.example.com -> %example.com
        * a.example.co.uk -> %example.co.uk

        the LIKE pattern also matches `notexample.com`, the policy's domain checks drop those

        :param request: the request the cookies would be sent with
        :return: the list of cookies
        '''

        self._refresh_now()

        hostname = request_host(request)
        private_suffix = self._public_suffix_list.privatesuffix(hostname)

        if not private_suffix:
            # `localhost`, a bare TLD, ...: only what that exact host set goes back to it
            _, erhn = eff_request_host(request)

            logger.debug("`%s` has no private suffix, only looking at the cookies of `%s`", hostname, erhn)

            return self._cookies_for_domain(erhn, request)

        domain_pattern = f"%{private_suffix}"

        logger.debug("looking up the cookies for `%s` with the pattern `%s`", hostname, domain_pattern)

        candidate_list = self._select_cookies(
            sql_statements.SELECT_COOKIES_BY_DOMAIN_LIKE_STATEMENT, {"domain_pattern": domain_pattern}, request)

        return [iter_cookie for iter_cookie in candidate_list
            if self._policy.domain_return_ok(iter_cookie.domain, request)]

    @override
    def set_cookie(self, cookie:Cookie):
        '''
        store a cookie without asking the policy, replacing the cookie with the same domain, path and name
        '''

        self.set_cookies([cookie])

    def set_cookies(self, cookie_list:typing.Iterable[Cookie]):
        '''
        store several cookies in one transaction, see set_cookie()

        :param cookie_list: the cookies
        '''

        row_list = [self._row_from_cookie(iter_cookie) for iter_cookie in cookie_list]

        with self._cursor() as cursor:
            cursor.executemany(sql_statements.UPSERT_COOKIE_STATEMENT, row_list)

        logger.debug("stored `%s` cookie(s)", len(row_list))

    def _delete(self, statement:str, params:dict|None=None) -> int:
        '''
        run one of the DELETE statements

        :return: the number of deleted cookies
        '''

        with self._cursor() as cursor:
            deleted_count = cursor.execute(statement, params or dict()).rowcount

        logger.debug("deleted `%s` cookie(s) with `%s`", deleted_count, params)

        return deleted_count

    @override
    def clear(self, domain=None, path=None, name=None):
        '''
        delete cookies, with the arguments of CookieJar.clear():

        * nothing: every cookie
        * domain: the cookies of that exact domain (`example.com` leaves `a.example.com` alone)
        * domain and path: the cookies of that domain and path
        * domain, path and name: that one cookie

        :raises ValueError: for a name without domain and path, or a path without domain
        :raises KeyError: if the cookie given by domain, path and name doesn't exist
        '''

        if name is not None:
            if domain is None or path is None:
                raise ValueError("domain and path must be given to remove a cookie by name")

            deleted_count = self._delete(sql_statements.DELETE_COOKIE_BY_DOMAIN_PATH_AND_NAME,
                {"domain": domain, "path": path, "name": name})

            if deleted_count == 0:
                raise KeyError(name)

        elif path is not None:
            if domain is None:
                raise ValueError("domain must be given to remove cookies by path")

            self._delete(sql_statements.DELETE_COOKIES_BY_DOMAIN_AND_PATH, {"domain": domain, "path": path})

        elif domain is not None:
            self._delete(sql_statements.DELETE_COOKIES_BY_DOMAIN, {"domain": domain})

        else:
            self._delete(sql_statements.DELETE_ALL_COOKIES)

    @override
    def clear_session_cookies(self):
        ''' delete every cookie that has `discard` set '''

        self._delete(sql_statements.DELETE_SESSION_COOKIES)

    def clear_expired_cookies_from_time(self, expires_time:int):
        '''
        delete every cookie with an `expires` at or before `expires_time`, cookies without one are kept

        :param expires_time: seconds since the epoch
        '''

        self._delete(sql_statements.DELETE_EXPIRED_COOKIES, {"expires_val": expires_time})

    @override
    def clear_expired_cookies(self):
        ''' delete every cookie that expired by now '''

        self.clear_expired_cookies_from_time(int(time.time()))

    def __iter__(self) -> typing.Iterator[Cookie]:
        '''
        every cookie in insertion order, fetched from the database `COOKIE_BATCH_SIZE` rows at a time
        '''

        last_id = 0

        while True:

            with self._cursor() as cursor:
                row_list = cursor.execute(sql_statements.SELECT_COOKIE_BATCH_STATEMENT, {"last_id": last_id}).fetchall()

            if not row_list:
                return

            for iter_row in row_list:
                yield self._cookie_from_row(iter_row)

            last_id = row_list[-1]["id"]

    def __len__(self) -> int:

        with self._cursor() as cursor:
            count_row = cursor.execute(sql_statements.COUNT_ENTRIES_IN_COOKIE_TABLE_STATEMENT).fetchone()

        return count_row[sql_statements.COUNT_ENTRIES_IN_COOKIE_TABLE_KEY]

    @staticmethod
    def _row_from_cookie(cookie:Cookie) -> dict[str, typing.Any]:

        row = {iter_column: getattr(cookie, iter_column) for iter_column in sql_statements.COOKIE_COLUMNS
            if iter_column != "rest"}
        row["rest"] = json.dumps(cookie._rest)

        return row

    @staticmethod
    def _cookie_from_row(row:sqlite3.Row) -> Cookie:

        kwargs = dict()

        for iter_column in sql_statements.COOKIE_COLUMNS:
            kwargs[iter_column] = row[iter_column]
            if iter_column in sql_statements.COOKIE_BOOLEAN_COLUMNS:
                kwargs[iter_column] = bool(kwargs[iter_column])

        kwargs["rest"] = json.loads(row["rest"]) if row["rest"] else dict()

        return Cookie(**kwargs)

    def __repr__(self) -> str:
        # CookieJar's repr lists every cookie, which would read the whole database
        return f"<{self.__class__.__name__} database_path={self.database_path!s} />"

    def __str__(self) -> str:
        return self.__repr__()
