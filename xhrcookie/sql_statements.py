

TABLE_NAME_V1 = "xhrcookie_cookies_v1"

'''
the columns of the cookie table, one per http.cookiejar.Cookie constructor argument

`rest` holds the non standard attributes (HttpOnly, SameSite, ...) as a JSON object, the
same way http.cookiejar.Cookie keeps them in `_rest`

>>> jar = http.cookiejar.CookieJar()
>>> jar.make_cookies(response, request)
[Cookie(version=0, name='sid', value='abc', port=None, port_specified=False, domain='a.test',
    domain_specified=False, domain_initial_dot=False, path='/', path_specified=True, secure=True, expires=None,
    discard=True, comment=None, comment_url=None, rest={'HttpOnly': None}, rfc2109=False)]
'''
COOKIE_COLUMNS:tuple[str, ...] = (
    "version",
    "name",
    "value",
    "port",
    "port_specified",
    "domain",
    "domain_specified",
    "domain_initial_dot",
    "path",
    "path_specified",
    "secure",
    "expires",
    "discard",
    "comment",
    "comment_url",
    "rest",
    "rfc2109",
)

'''
the columns sqlite stores as 0 / 1 that are booleans on the Cookie
'''
COOKIE_BOOLEAN_COLUMNS = frozenset([
    "port_specified",
    "domain_specified",
    "domain_initial_dot",
    "path_specified",
    "secure",
    "discard",
    "rfc2109",
])

'''
a cookie is identified by (domain, path, name), so that triple is UNIQUE
'''
CREATE_TABLE_STATEMENT_COOKIE_TABLE:str = \
f'''
CREATE TABLE IF NOT EXISTS "{TABLE_NAME_V1}"  (
    "id" INTEGER NOT NULL,
    "version" INTEGER NOT NULL,
    "name" TEXT NOT NULL,
    "value" TEXT,
    "port" TEXT,
    "port_specified" INTEGER NOT NULL,
    "domain" TEXT NOT NULL,
    "domain_specified" INTEGER NOT NULL,
    "domain_initial_dot" INTEGER NOT NULL,
    "path" TEXT NOT NULL,
    "path_specified" INTEGER NOT NULL,
    "secure" INTEGER NOT NULL,
    "expires" INTEGER,
    "discard" INTEGER NOT NULL,
    "comment" TEXT,
    "comment_url" TEXT,
    "rest" TEXT NOT NULL,
    "rfc2109" INTEGER NOT NULL,
    PRIMARY KEY("id" AUTOINCREMENT),
    UNIQUE("domain", "path", "name")
);
'''

CREATE_COOKIE_TABLE_DOMAIN_INDEX_STATEMENT:str = \
f'''
CREATE INDEX IF NOT EXISTS "domain_idx" ON "{TABLE_NAME_V1}" ("domain");
'''

'''
insert a cookie, or overwrite every column of the stored cookie with the same domain, path and name.
the row keeps its id, so a replaced cookie keeps its place in the iteration order
see https://www.sqlite.org/lang_upsert.html
'''
_COLUMN_NAMES = ", ".join(f'"{iter_column}"' for iter_column in COOKIE_COLUMNS)
_COLUMN_PARAMETERS = ", ".join(f":{iter_column}" for iter_column in COOKIE_COLUMNS)
_COLUMN_UPDATES = ", ".join(f'"{iter_column}" = excluded."{iter_column}"' for iter_column in COOKIE_COLUMNS)

UPSERT_COOKIE_STATEMENT:str = \
f'''
INSERT INTO "{TABLE_NAME_V1}" ({_COLUMN_NAMES})
VALUES ({_COLUMN_PARAMETERS})
ON CONFLICT("domain", "path", "name") DO UPDATE SET {_COLUMN_UPDATES};
'''

COUNT_ENTRIES_IN_COOKIE_TABLE_KEY = "count_value"

COUNT_ENTRIES_IN_COOKIE_TABLE_STATEMENT:str = \
f'''
SELECT COUNT(id) AS {COUNT_ENTRIES_IN_COOKIE_TABLE_KEY} FROM "{TABLE_NAME_V1}";
'''

'''
how many rows __iter__ fetches at a time
'''
COOKIE_BATCH_SIZE:int = 1000

'''
the next batch of rows after the row with the id `:last_id`, in insertion order. Paging on the id
instead of an OFFSET means rows deleted between two batches don't shift the next batch
'''
SELECT_COOKIE_BATCH_STATEMENT:str = \
f'''
SELECT * FROM "{TABLE_NAME_V1}"
WHERE id > :last_id
ORDER BY id
LIMIT {COOKIE_BATCH_SIZE}
'''

SELECT_COOKIES_BY_DOMAIN_STATEMENT:str = \
f'''
SELECT * FROM "{TABLE_NAME_V1}"
WHERE domain == :domain
ORDER BY id
'''

'''
every cookie whose domain ends with a pattern, see
https://sqlite.org/lang_expr.html#the_like_glob_regexp_match_and_extract_operators
'''
SELECT_COOKIES_BY_DOMAIN_LIKE_STATEMENT:str = \
f'''
SELECT * FROM "{TABLE_NAME_V1}"
WHERE domain LIKE :domain_pattern
ORDER BY id
'''

'''
see https://www.sqlite.org/wal.html
'''
TURN_WAL_MODE_ON:str = \
'''
PRAGMA journal_mode=WAL;
'''

DELETE_ALL_COOKIES:str = \
f'''
DELETE FROM "{TABLE_NAME_V1}"
'''

DELETE_COOKIES_BY_DOMAIN:str = \
f'''
DELETE FROM "{TABLE_NAME_V1}" WHERE domain == :domain
'''

DELETE_COOKIES_BY_DOMAIN_AND_PATH:str = \
f'''
DELETE FROM "{TABLE_NAME_V1}" WHERE domain == :domain AND path == :path
'''

DELETE_COOKIE_BY_DOMAIN_PATH_AND_NAME:str = \
f'''
DELETE FROM "{TABLE_NAME_V1}" WHERE domain == :domain AND path == :path AND name == :name
'''

'''
session cookies are the ones with `discard` set
'''
DELETE_SESSION_COOKIES:str = \
f'''
DELETE FROM "{TABLE_NAME_V1}" WHERE discard == 1
'''

DELETE_EXPIRED_COOKIES:str = \
f'''
DELETE FROM "{TABLE_NAME_V1}" WHERE (expires NOTNULL AND expires <= :expires_val)
'''
