"""
The middleware capability, the construction of middleware chains, and a set of built-in
middleware.

A middleware is a step in the processing of a request that runs before (and around) the
handler.  It has the form ``handle(w, r, next)`` where ``next(w, r)`` invokes the rest of the
chain and returns its result.  A middleware may

  * add headers or content to the response writer, ``w``, before or after calling ``next``;
  * return the value of ``next(w, r)`` (or a modification of it); or
  * short-circuit the chain by not calling ``next`` at all, returning its own result or
    raising an error instead.  This is how authentication middleware rejects a request.

The chain for a request is built from the process-wide middleware, then the API's, then the
route's, so that they run in that order.
"""
import time, logging
from abc import ABCMeta, abstractmethod
from typing import Callable, List, Mapping

import jwt

from .errors import VertexError, ErrorCode, as_vertex_error

__all__ = [ "Middleware", "MiddlewareFunc", "as_middleware", "build_chain", "HeaderMiddleware",
            "SecureTransportMiddleware", "AuthKeyMiddleware", "JWTAuthMiddleware",
            "LoggingMiddleware" ]

class Middleware(metaclass=ABCMeta):
    """
    the base class for middleware implementations that carry configuration
    """

    @abstractmethod
    def handle(self, w, r, next: Callable):
        """
        process the request, usually by calling ``next(w, r)`` and returning its result
        """
        raise NotImplementedError()

class MiddlewareFunc(Middleware):
    """
    a Middleware that wraps a plain function of the form ``func(w, r, next)``
    """

    def __init__(self, func: Callable):
        if not callable(func):
            raise TypeError("MiddlewareFunc: not a callable: " + repr(func))
        self.func = func

    def handle(self, w, r, next: Callable):
        return self.func(w, r, next)

def as_middleware(mw) -> Middleware:
    """
    return the given middleware as a Middleware instance, wrapping plain functions as needed
    """
    if isinstance(mw, Middleware):
        return mw
    if callable(mw):
        return MiddlewareFunc(mw)
    raise TypeError("Not usable as middleware: " + repr(mw))

def _end_of_chain(w, r):
    return None

def _link(mw: Middleware, following: Callable) -> Callable:
    called = []

    def next(w, r):
        if called:
            raise RuntimeError("middleware called next() more than once")
        called.append(True)
        return following(w, r)

    def step(w, r):
        return mw.handle(w, r, next)

    return step

def build_chain(middleware: List, terminal: Callable=None) -> Callable:
    """
    compose middleware into a single function of the form ``chain(w, r)``.  The middleware run in
    the given order; the last receives ``terminal`` (usually the route's handler) as its
    ``next``.  Each ``next`` may be called at most once.

    :param list middleware:  the middleware to compose
    :param terminal:  the function ``terminal(w, r)`` ending the chain; if None, the end of the
                      chain simply returns None
    """
    chain = terminal or _end_of_chain
    for mw in reversed(list(middleware)):
        chain = _link(as_middleware(mw), chain)
    return chain

class HeaderMiddleware(Middleware):
    """
    add a fixed set of headers to every response
    """

    def __init__(self, headers: Mapping[str, str]):
        self.headers = dict(headers)

    def handle(self, w, r, next: Callable):
        for name, value in self.headers.items():
            w.add_header(name, str(value))
        return next(w, r)

class SecureTransportMiddleware(Middleware):
    """
    reject requests that did not arrive over HTTPS.  A request forwarded by a proxy with
    ``X-Forwarded-Proto: https`` is considered secure.
    """

    def handle(self, w, r, next: Callable):
        if r is not None and not r.is_secure:
            raise VertexError("Insecure access denied; use HTTPS", ErrorCode.INSECURE_ACCESS_DENIED)
        return next(w, r)

def _bearer_token(r):
    auth = (r.header("Authorization", "") if r is not None else "").split()
    if len(auth) < 2 or auth[0] != "Bearer" or not auth[1]:
        return None
    return auth[1]

class AuthKeyMiddleware(Middleware):
    """
    authenticate clients via a shared key presented as a Bearer token in the Authorization
    header.  The configuration is a list of objects, each with these properties:

    ``auth_key``
       _str_ (required).  A recognized opaque key
    ``user``
       _str_ (optional).  the identity to assign to the client presenting the key
    ``client``
       _str_ (optional).  a name for the client application

    On success, ``r.user`` is set to a dictionary with ``user`` and ``client`` properties.
    """

    def __init__(self, authorized: List[Mapping], log: logging.Logger=None):
        self.authorized = list(authorized)
        self.log = log or logging.getLogger("vertex.auth")

    def handle(self, w, r, next: Callable):
        token = _bearer_token(r)
        if not token:
            self.log.info("Client did not provide a Bearer authentication token")
            raise VertexError("Authentication required", ErrorCode.UNAUTHORIZED)

        for client in self.authorized:
            if client.get("auth_key") == token:
                r.user = { "user": client.get("user", "authorized"),
                           "client": client.get("client", "(unknown)") }
                return next(w, r)

        self.log.warning("Unrecognized auth token from client")
        raise VertexError("Unrecognized auth token", ErrorCode.UNAUTHORIZED)

class JWTAuthMiddleware(Middleware):
    """
    authenticate clients via a JSON Web Token presented as a Bearer token in the Authorization
    header.  On success, ``r.user`` is set to the token's claim set.
    """

    def __init__(self, key: str, algorithm: str="HS256", require_expiration: bool=True,
                 log: logging.Logger=None):
        """
        :param str key:        the secret shared with the token issuer
        :param str algorithm:  the signing algorithm expected
        :param bool require_expiration:  if True, tokens without an expiration time are rejected
        """
        self.key = key
        self.algorithm = algorithm
        self.require_expiration = require_expiration
        self.log = log or logging.getLogger("vertex.auth")

    def handle(self, w, r, next: Callable):
        token = _bearer_token(r)
        if not token:
            self.log.info("Client did not provide an authentication token")
            raise VertexError("Authentication required", ErrorCode.UNAUTHORIZED)

        try:
            claims = jwt.decode(token, self.key, algorithms=[self.algorithm])
        except jwt.InvalidTokenError as ex:
            self.log.warning("Invalid token can not be decoded: %s", str(ex))
            raise VertexError("Invalid authentication token", ErrorCode.UNAUTHORIZED)

        # expiration itself is checked by jwt.decode()
        if self.require_expiration and not claims.get('exp'):
            self.log.warning("Rejecting non-expiring token for user %s", claims.get('sub', "(unknown)"))
            raise VertexError("Non-expiring token rejected", ErrorCode.UNAUTHORIZED)

        r.user = claims
        return next(w, r)

class LoggingMiddleware(Middleware):
    """
    log each request along with its outcome and the time taken to produce it
    """

    def __init__(self, log: logging.Logger=None, level: int=logging.INFO):
        self.log = log or logging.getLogger("vertex.access")
        self.level = level

    def handle(self, w, r, next: Callable):
        start = time.time()
        meth, path = (r.method, r.path) if r is not None else ("-", "-")
        try:
            out = next(w, r)
        except Exception as ex:
            self.log.log(self.level, "%s %s -> %s (%.2f ms)", meth, path,
                         as_vertex_error(ex).code.name, (time.time() - start) * 1000)
            raise
        self.log.log(self.level, "%s %s -> OK (%.2f ms)", meth, path, (time.time() - start) * 1000)
        return out
