from http.cookiejar import Cookie, DefaultCookiePolicy
import logging
import time
import urllib.request

import publicsuffixlist

from xhrcookie.cookie_codec import HTTP_SCHEMES, is_http_only

logger = logging.getLogger(__name__)

class XhrCookiePolicy(DefaultCookiePolicy):
    '''
    the cookie policy the XMLHttpRequest wrapper uses by default

    on top of http.cookiejar.DefaultCookiePolicy:

    * a cookie set without a Domain attribute (host-only) is only returned for the exact host that set it
    * a cookie whose Domain attribute is a public suffix (`com`, `co.uk`, `github.io`, ...) is refused,
      see https://publicsuffix.org
    * a HttpOnly cookie is never returned for a request whose scheme is not http or https
    '''

    def __init__(self,
        blocked_domains=None,
        allowed_domains=None,
        strict_ns_domain=DefaultCookiePolicy.DomainStrictNonDomain,
        public_suffix_list:publicsuffixlist.PublicSuffixList|None=None,
        **kwargs):
        '''
        constructor

        :param blocked_domains: sequence of domains that cookies are never set for or returned to
        :param allowed_domains: if not None, the only domains cookies are set for or returned to
        :param strict_ns_domain: the http.cookiejar strictness flags, host-only matching by default
        :param public_suffix_list: an existing PublicSuffixList to reuse, one is created if not given
        :param kwargs: any other DefaultCookiePolicy keyword argument
        '''

        super().__init__(
            blocked_domains=blocked_domains,
            allowed_domains=allowed_domains,
            strict_ns_domain=strict_ns_domain,
            **kwargs)

        if public_suffix_list is None:
            public_suffix_list = publicsuffixlist.PublicSuffixList()

        self._public_suffix_list = public_suffix_list

        # CookieJar refreshes this before every use, set it so the policy also works on its own
        self._now = int(time.time())

    def set_ok_domain(self, cookie:Cookie, request:urllib.request.Request) -> bool:

        if not super().set_ok_domain(cookie, request):
            return False

        if cookie.domain_specified:

            undotted_domain = cookie.domain.lstrip(".")

            if self._public_suffix_list.is_public(undotted_domain):
                logger.debug("refusing the cookie `%s`, its domain `%s` is a public suffix",
                    cookie.name, cookie.domain)
                return False

        return True

    def return_ok(self, cookie:Cookie, request:urllib.request.Request) -> bool:

        if not super().return_ok(cookie, request):
            return False

        return self.return_ok_http_only(cookie, request)

    def return_ok_http_only(self, cookie:Cookie, request:urllib.request.Request) -> bool:

        if is_http_only(cookie) and request.type.lower() not in HTTP_SCHEMES:
            logger.debug("not returning the HttpOnly cookie `%s` for a `%s` request", cookie.name, request.type)
            return False

        return True
