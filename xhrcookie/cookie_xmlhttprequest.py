from dataclasses import dataclass
import logging
import typing

from xhrcookie import xmlhttprequest
from xhrcookie.cookie_codec import RequestUrl, parse_url
from xhrcookie.cookie_jar import SyncCookieJar, default_cookie_jar
from xhrcookie.cookie_sync import sync_recv, sync_send

logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    '''
    the state CookieXMLHttpRequest keeps for the request in flight
    '''

    url:RequestUrl|None = None
    sent_once:bool = False


class CookieXMLHttpRequest:
    '''
    a drop in replacement for XMLHttpRequest that sends the cookies of a cookie jar with every request and
    stores the cookies of every response in it

    it wraps a XMLHttpRequest: open() is intercepted to remember the URL, every other attribute and method is
    the wrapped request's. The cookies are synced from a `readystatechange` listener:

    * entering OPENED, the cookies of the jar are added to the `Cookie` header, once per open()
    * entering HEADERS_RECEIVED, the `Set-Cookie` headers of the response go into the jar

    a failure while syncing cookies is logged and never interrupts the request
    '''

    UNSENT = xmlhttprequest.UNSENT
    OPENED = xmlhttprequest.OPENED
    HEADERS_RECEIVED = xmlhttprequest.HEADERS_RECEIVED
    LOADING = xmlhttprequest.LOADING
    DONE = xmlhttprequest.DONE

    _OWN_ATTRIBUTES = frozenset(["_request", "_jar", "_context", "debug"])

    def __init__(self,
        jar:SyncCookieJar|None=None,
        request:xmlhttprequest.XMLHttpRequest|None=None,
        **kwargs):
        '''
        constructor

        :param jar: the cookie jar to use, the process wide `default_cookie_jar()` if not given
        :param request: the XMLHttpRequest to wrap, a new one is created if not given
        :param kwargs: passed to the XMLHttpRequest constructor when one is created
        '''

        self._request = request if request is not None else xmlhttprequest.XMLHttpRequest(**kwargs)
        self._jar = jar if jar is not None else default_cookie_jar()
        self._context = RequestContext()

        # log cookies sent and received at INFO instead of DEBUG
        self.debug = False

        self._request.add_event_listener("readystatechange", self._on_ready_state_change)

    @property
    def jar(self) -> SyncCookieJar:
        return self._jar

    @property
    def context(self) -> RequestContext:
        return self._context

    def __getattr__(self, name:str) -> typing.Any:
        # only called for attributes this class doesn't define itself
        if name == "_request":
            raise AttributeError(name)
        return getattr(self._request, name)

    def __setattr__(self, name:str, value:typing.Any):
        if name in self._OWN_ATTRIBUTES:
            object.__setattr__(self, name, value)
        else:
            setattr(self._request, name, value)

    def open(self, method:str, url:str, *args, **kwargs):
        '''
        remember the URL, then open the wrapped request, see XMLHttpRequest.open()
        '''

        try:
            self._context.url = parse_url(url)
        except ValueError as e:
            self._log_failure("not syncing cookies for `%s`: %s", url, e)
            self._context.url = None

        # a new open() is a new request, it gets its cookies again
        self._context.sent_once = False

        return self._request.open(method, url, *args, **kwargs)

    def _log_failure(self, msg:str, *args, exc_info:bool=False):

        level = logging.WARNING if self.debug else logging.DEBUG
        logger.log(level, msg, *args, exc_info=exc_info)

    def _on_ready_state_change(self, request:xmlhttprequest.XMLHttpRequest):

        url = self._context.url
        if url is None:
            return

        state = request.ready_state

        if state == self.OPENED:
            if not self._context.sent_once:
                self._context.sent_once = True
                try:
                    sync_send(url, self, self._jar)
                except Exception:
                    self._log_failure("sending cookies to `%s` failed", url.href, exc_info=True)

        elif state == self.HEADERS_RECEIVED:
            try:
                sync_recv(url, self, self._jar)
            except Exception:
                self._log_failure("receiving cookies from `%s` failed", url.href, exc_info=True)
