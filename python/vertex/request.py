"""
The request and response objects passed through a middleware chain to a handler.
"""
import uuid
from functools import reduce
from typing import Callable, List, Mapping, Optional
from urllib.parse import parse_qs
from wsgiref.headers import Headers

from .utils import order_accepts, normalize_path, flatten_params
from .errors import reason_for

__all__ = [ "Request", "ResponseWriter", "REQUEST_ID_HEADER" ]

REQUEST_ID_HEADER = "X-Request-Id"
_FORM_CTYPE = "application/x-www-form-urlencoded"

class Request(object):
    """
    a wrapper around a WSGI environment giving convenient access to the request data.  A
    Request is created fresh for every incoming request and is not shared between threads.

    The ``params`` attribute holds the path parameters extracted when the route was resolved;
    ``user`` may be set by authenticating middleware.
    """

    def __init__(self, env: Mapping, params: Mapping=None):
        self.env = env
        self.params = params if params is not None else {}
        self.user = None

        self.method = env.get('HTTP_X_HTTP_METHOD_OVERRIDE') or env.get('REQUEST_METHOD', 'GET')
        self.method = self.method.upper()
        self.path = normalize_path(env.get('PATH_INFO', '/'))
        self.query = flatten_params(parse_qs(env.get('QUERY_STRING', '')))
        self._form = None

        self.request_id = env.get('HTTP_X_REQUEST_ID') or uuid.uuid4().hex

    def header(self, name: str, default: str=None) -> Optional[str]:
        """
        return the value of a request header (using its usual HTTP name, e.g. "Content-Type")
        """
        key = name.upper().replace('-', '_')
        if key in ('CONTENT_TYPE', 'CONTENT_LENGTH'):
            return self.env.get(key, default)
        return self.env.get('HTTP_' + key, default)

    @property
    def form(self) -> dict:
        """
        the parameters submitted as a URL-encoded form in the request body (empty if the body is
        not a form)
        """
        if self._form is None:
            self._form = {}
            ctype = self.env.get('CONTENT_TYPE', '')
            if ctype.startswith(_FORM_CTYPE) and 'wsgi.input' in self.env:
                try:
                    size = int(self.env.get('CONTENT_LENGTH') or 0)
                except ValueError:
                    size = 0
                if size > 0:
                    body = self.env['wsgi.input'].read(size)
                    self._form = flatten_params(parse_qs(body.decode('utf-8', 'replace')))
        return self._form

    def values(self) -> dict:
        """
        return all the named input values for the request:  query parameters, form values, and
        path parameters, where the later override the earlier.
        """
        out = dict(self.query)
        out.update(self.form)
        out.update(self.params)
        return out

    def get_accepts(self) -> List[str]:
        """
        return the content types the client will accept, ordered by preference, or an empty list
        if the client did not say.
        """
        accepts = self.env.get('HTTP_ACCEPT')
        if not accepts:
            return []
        return order_accepts(accepts)

    @property
    def is_secure(self) -> bool:
        """
        True if the request arrived over HTTPS, either directly or via a reverse proxy that says
        so through ``X-Forwarded-Proto``.
        """
        return self.env.get('wsgi.url_scheme') == 'https' or \
               self.env.get('HTTP_X_FORWARDED_PROTO', '').lower() == 'https'

    @property
    def base_url(self) -> str:
        """
        the scheme and host that the client used to reach this service
        """
        scheme = self.env.get('wsgi.url_scheme', 'http')
        host = self.env.get('HTTP_HOST')
        if not host:
            host = self.env.get('SERVER_NAME', 'localhost')
            port = str(self.env.get('SERVER_PORT', ''))
            if port and port != {'http': '80', 'https': '443'}.get(scheme):
                host += ':' + port
        return "%s://%s" % (scheme, host)

class ResponseWriter(object):
    """
    the sink that handlers and middleware write the response into.  Headers, status, and body
    are buffered until the dispatcher delivers them via :py:meth:`finish`.
    """

    def __init__(self, headers: Mapping=None):
        self.headers = Headers([])
        if headers:
            for name, value in headers.items():
                self.add_header(name, value)
        self.code = 200
        self.reason = reason_for(200)
        self._body = []

    def add_header(self, name: str, value: str):
        """
        add a header to the response; a header with the same name may be added more than once.

        :raises UnicodeEncodeError:  if name or value contain characters outside of ISO-8859-1
        """
        # HTTP headers do not support Unicode (see PEP 3333)
        name.encode("ISO-8859-1")
        value.encode("ISO-8859-1")
        self.headers.add_header(name, value)

    def set_header(self, name: str, value: str):
        """
        set a header, replacing any previously added values for it
        """
        del self.headers[name]
        self.add_header(name, value)

    def set_status(self, code: int, reason: str=None):
        self.code = code
        self.reason = reason or reason_for(code)

    def write(self, data, encoding: str='utf-8'):
        """
        append content to the response body
        :param data:  the content to add
                      :type data: str or bytes
        """
        if isinstance(data, str):
            data = data.encode(encoding)
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError("write(): content must be str or bytes")
        self._body.append(bytes(data))

    @property
    def body(self) -> bytes:
        return b''.join(self._body)

    def reset_body(self):
        """
        discard any content written to the body so far
        """
        self._body = []

    def finish(self, start_resp: Callable, ashead: bool=False) -> List[bytes]:
        """
        deliver the status and headers to the WSGI server and return the body
        """
        if self._body and 'Content-Length' not in self.headers:
            size = reduce(lambda x, b: x + len(b), self._body, 0)
            self.headers['Content-Length'] = str(size)
        start_resp("%d %s" % (self.code, self.reason), self.headers.items())
        if ashead:
            return []
        return self._body
