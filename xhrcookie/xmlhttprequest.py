from email.message import Message
import base64
import logging
import typing
import urllib.error
import urllib.request

logger = logging.getLogger(__name__)

UNSENT = 0
OPENED = 1
HEADERS_RECEIVED = 2
LOADING = 3
DONE = 4

'''
request headers a page is not allowed to set, see https://fetch.spec.whatwg.org/#forbidden-request-header
'''
FORBIDDEN_REQUEST_HEADERS = frozenset([
    "accept-charset",
    "accept-encoding",
    "access-control-request-headers",
    "access-control-request-method",
    "connection",
    "content-length",
    "content-transfer-encoding",
    "cookie",
    "cookie2",
    "date",
    "dnt",
    "expect",
    "host",
    "keep-alive",
    "origin",
    "referer",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
    "via",
])

FORBIDDEN_REQUEST_HEADER_PREFIXES = ("proxy-", "sec-")

'''
response headers a page is not allowed to read
'''
FORBIDDEN_RESPONSE_HEADERS = frozenset(["set-cookie", "set-cookie2"])

FORBIDDEN_METHODS = frozenset(["CONNECT", "TRACE", "TRACK"])


class InvalidStateError(Exception):
    '''
    raised when a method is called in a ready state that doesn't allow it
    '''


class XMLHttpRequest:
    '''
    a blocking XMLHttpRequest style HTTP client built on urllib.request

    `send()` performs the whole request before it returns, firing `readystatechange` for every state
    the request goes through: OPENED (again, now that the send flag is set), HEADERS_RECEIVED, LOADING and DONE.
    Then `load` on success, or `error` on a network failure.
    '''

    UNSENT = UNSENT
    OPENED = OPENED
    HEADERS_RECEIVED = HEADERS_RECEIVED
    LOADING = LOADING
    DONE = DONE

    def __init__(self, opener:urllib.request.OpenerDirector|None=None, timeout:float|None=None):
        '''
        constructor

        :param opener: the urllib OpenerDirector that performs the request, `urllib.request.build_opener()` if not given.
        it should not carry a HTTPCookieProcessor, cookies are the job of CookieXMLHttpRequest
        :param timeout: socket timeout in seconds passed on to the opener
        '''

        self._opener = opener if opener is not None else urllib.request.build_opener()
        self.timeout = timeout

        self._listeners:dict[str, list[typing.Callable]] = dict()
        self.onreadystatechange:typing.Callable|None = None

        self._disable_header_check = False
        self._reset()

    def _reset(self):

        self._ready_state = UNSENT
        self._method:str|None = None
        self._url:str|None = None
        self._user:str|None = None
        self._password:str|None = None
        self._request_headers:dict[str, tuple[str, str]] = dict()
        self._send_flag = False
        self._error_flag = False
        self._response_headers:Message|None = None
        self.status = 0
        self.status_text = ""
        self.response_url = ""
        self._response_body = b""

    @property
    def ready_state(self) -> int:
        return self._ready_state

    @property
    def disable_header_check(self) -> bool:
        return self._disable_header_check

    def set_disable_header_check(self, state:bool):
        '''
        turn the forbidden header name checks of set_request_header() and get_response_header() off (True)
        or back on (False)
        '''

        self._disable_header_check = bool(state)

    def add_event_listener(self, event:str, callback:typing.Callable):
        '''
        :param event: `readystatechange`, `load`, `error` or `abort`
        :param callback: called with this request object
        '''

        self._listeners.setdefault(event, list()).append(callback)

    def remove_event_listener(self, event:str, callback:typing.Callable):

        listener_list = self._listeners.get(event, list())
        if callback in listener_list:
            listener_list.remove(callback)

    def dispatch_event(self, event:str):

        if event == "readystatechange" and self.onreadystatechange is not None:
            self.onreadystatechange(self)

        for iter_callback in list(self._listeners.get(event, list())):
            iter_callback(self)

    def _set_state(self, state:int):

        self._ready_state = state
        self.dispatch_event("readystatechange")

    def open(self, method:str, url:str, async_:bool=True, user:str|None=None, password:str|None=None):
        '''
        start a new request, any previous one is forgotten

        :param method: the HTTP method
        :param url: the absolute URL
        :param async_: accepted for compatibility, send() always blocks
        :param user: the user name for basic authentication
        :param password: the password for basic authentication
        :raises ValueError: for the methods CONNECT, TRACE and TRACK
        '''

        method = method.upper()
        if method in FORBIDDEN_METHODS:
            raise ValueError(f"the method `{method}` is not allowed")

        self._reset()
        self._method = method
        self._url = url
        self._user = user
        self._password = password

        logger.debug("open `%s` `%s`", method, url)

        self._set_state(OPENED)

    def _is_allowed_request_header(self, name:str) -> bool:

        if self._disable_header_check:
            return True

        lowered_name = name.lower()
        return (lowered_name not in FORBIDDEN_REQUEST_HEADERS
            and not lowered_name.startswith(FORBIDDEN_REQUEST_HEADER_PREFIXES))

    def set_request_header(self, name:str, value:str) -> bool:
        '''
        set a request header, replacing any value set before

        :return: False if the header name is forbidden and the header check is enabled, the header is not set then
        :raises InvalidStateError: if open() wasn't called or send() already was
        '''

        if self._ready_state != OPENED or self._send_flag:
            raise InvalidStateError("set_request_header() can only be called after open() and before send()")

        if not self._is_allowed_request_header(name):
            logger.warning("Refused to set unsafe header `%s`", name)
            return False

        self._request_headers[name.lower()] = (name, str(value))
        return True

    def get_request_header(self, name:str) -> str|None:

        header = self._request_headers.get(name.lower())
        if header is None:
            return None
        return header[1]

    def send(self, data:str|bytes|None=None):
        '''
        perform the request

        HTTP error statuses are normal responses, only a failure to get any response sets `status` to 0 and
        fires `error`

        :param data: the request body, ignored for GET and HEAD
        :raises InvalidStateError: if open() wasn't called or send() already was
        '''

        if self._ready_state != OPENED or self._send_flag:
            raise InvalidStateError("send() can only be called once after open()")

        if self._method in ("GET", "HEAD"):
            data = None
        elif isinstance(data, str):
            data = data.encode("utf-8")

        self._send_flag = True
        self.dispatch_event("readystatechange")

        try:
            urllib_request = urllib.request.Request(
                self._url,
                data=data,
                headers={iter_name: iter_value for iter_name, iter_value in self._request_headers.values()},
                method=self._method)

            if self._user is not None:
                self._add_basic_auth(urllib_request)

            logger.debug("sending `%s` `%s` with the headers `%s`",
                self._method, self._url, urllib_request.header_items())

            response = self._opener.open(urllib_request, timeout=self.timeout) \
                if self.timeout is not None else self._opener.open(urllib_request)
        except urllib.error.HTTPError as e:
            response = e
        except (urllib.error.URLError, OSError, ValueError) as e:
            logger.debug("request to `%s` failed: %s", self._url, e)
            self._handle_network_error()
            return

        with response:

            if not self._send_flag:
                # aborted from a readystatechange listener
                return

            self.status = response.status
            self.status_text = response.reason or ""
            self.response_url = response.geturl()
            self._response_headers = response.headers

            self._set_state(HEADERS_RECEIVED)
            if not self._send_flag:
                return

            self._set_state(LOADING)
            self._response_body = response.read()

        self._send_flag = False
        self._set_state(DONE)
        self.dispatch_event("load")

    def _add_basic_auth(self, urllib_request:urllib.request.Request):

        credentials = f"{self._user}:{self._password or ''}".encode("utf-8")
        urllib_request.add_unredirected_header("Authorization", "Basic " + base64.b64encode(credentials).decode("ascii"))

    def _handle_network_error(self):

        self._send_flag = False
        self._error_flag = True
        self.status = 0
        self.status_text = ""
        self._response_headers = None
        self._response_body = b""
        self._set_state(DONE)
        self.dispatch_event("error")

    def abort(self):
        '''
        cancel the request, fires `readystatechange` (DONE) and `abort` if a request was in flight
        '''

        if self._ready_state in (OPENED, HEADERS_RECEIVED, LOADING) and self._send_flag:
            self._send_flag = False
            self._error_flag = True
            self._response_headers = None
            self._response_body = b""
            self._set_state(DONE)
            self.dispatch_event("abort")

        self._ready_state = UNSENT

    def get_response_header(self, name:str) -> str|list[str]|None:
        '''
        :param name: the header name, case insensitive
        :return: None if there is no such header (or it is forbidden while the header check is enabled),
        the list of values for `Set-Cookie`, otherwise the values joined with `, `
        '''

        if self._ready_state < HEADERS_RECEIVED or self._error_flag or self._response_headers is None:
            return None

        lowered_name = name.lower()
        if lowered_name in FORBIDDEN_RESPONSE_HEADERS and not self._disable_header_check:
            logger.debug("refusing to return the forbidden response header `%s`", name)
            return None

        value_list = self._response_headers.get_all(name)
        if not value_list:
            return None

        if lowered_name in FORBIDDEN_RESPONSE_HEADERS:
            return list(value_list)

        return ", ".join(value_list)

    def get_all_response_headers(self) -> str:

        if self._ready_state < HEADERS_RECEIVED or self._error_flag or self._response_headers is None:
            return ""

        return "".join(
            f"{iter_name}: {iter_value}\r\n" for iter_name, iter_value in self._response_headers.items()
            if self._disable_header_check or iter_name.lower() not in FORBIDDEN_RESPONSE_HEADERS)

    @property
    def response(self) -> bytes:
        return self._response_body

    @property
    def response_text(self) -> str:

        charset = "utf-8"
        if self._response_headers is not None:
            charset = self._response_headers.get_content_charset() or charset

        return self._response_body.decode(charset, errors="replace")
