"""
Route declarations and the table used to resolve requests to them.

A route path is made up of literal segments and named placeholders (e.g. ``/users/{id}``).  A
placeholder matches any single non-empty path segment, and the matched value is bound to the
placeholder's name in the request's :py:class:`Params`.
"""
import re
from collections import namedtuple
from typing import Iterable, List, Mapping, Union

from .errors import VertexError, ErrorCode
from .utils import normalize_path
from .handlers import as_handler
from .middleware import as_middleware

__all__ = [ "Route", "Routes", "Params", "RouteTable", "Match", "format_path",
            "GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS" ]

GET = "GET"
POST = "POST"
PUT = "PUT"
DELETE = "DELETE"
PATCH = "PATCH"
HEAD = "HEAD"
OPTIONS = "OPTIONS"

_placeholder_re = re.compile(r'\{(\w+)\}')
_segment_ph_re = re.compile(r'^\{(\w+)\}$')

class Params(dict):
    """
    the values bound to a route's path placeholders for a single request
    """
    pass

def format_path(pattern: str, params: Mapping=None) -> str:
    """
    substitute placeholder values into a route path pattern.  Placeholders without a binding
    in ``params`` are left in place, so that partial substitution is possible.
    Substitution is a single pass over the pattern:  substituted values are inserted as-is and
    are not themselves scanned for placeholders.  Thus, formatting again is a no-op only if no
    value looks like a placeholder that another binding would fill.

    >>> format_path("/foo/{bar}/{baz}", {"bar": "x"})
    '/foo/x/{baz}'
    """
    if not params:
        return pattern

    def sub(m):
        name = m.group(1)
        if name in params:
            return str(params[name])
        return m.group(0)

    return _placeholder_re.sub(sub, pattern)

class Route(object):
    """
    a declaration of a resource path served by an API:  the path pattern, the HTTP methods
    allowed on it, the handler that produces its result, middleware specific to it, and an
    optional self-test (see :py:mod:`vertex.testing`).
    """

    def __init__(self, path: str, handler, methods: Union[str, Iterable[str]]=GET,
                 description: str="", middleware: List=None, test=None, renderer=None,
                 allow_head: bool=True):
        """
        :param str path:        the path pattern, relative to the API root (e.g. "/users/{id}")
        :param handler:         the Handler (or plain function) that handles requests
        :param methods:         the allowed HTTP method or methods
        :param str description: a short explanation of the route
        :param list middleware: middleware to run (after the global and API middleware) only for
                                this route
        :param TestDescriptor test:  a test to run via the API's test endpoints
        :param Renderer renderer:  a renderer to use instead of the API's renderer
        :param bool allow_head: if True (the default), HEAD requests are accepted wherever GET is
        :raises ValueError:  if the path has duplicate placeholder names or no methods are given
        """
        if isinstance(methods, str):
            methods = [methods]
        self.methods = frozenset(m.upper() for m in methods)
        if not self.methods:
            raise ValueError("Route %s: at least one HTTP method is required" % path)

        self.path = '/' + path.lstrip('/') if path else ''
        names = _placeholder_re.findall(self.path)
        if len(set(names)) != len(names):
            raise ValueError("Route %s: placeholder names must be unique" % path)
        self.placeholders = names

        self.handler = as_handler(handler)
        self.description = description
        self.middleware = [as_middleware(m) for m in (middleware or [])]
        self.test = test
        self.renderer = renderer
        self.allow_head = allow_head

    def allows(self, method: str) -> bool:
        method = method.upper()
        return method in self.methods or \
               (method == HEAD and self.allow_head and GET in self.methods)

    def __repr__(self):
        return "Route(%s %s)" % ("|".join(sorted(self.methods)), self.path)

Routes = list

Match = namedtuple("Match", ["route", "params", "api"])

class _Entry(object):

    def __init__(self, path: str, route: Route, api):
        self.path = normalize_path(path)
        self.route = route
        self.api = api
        self.segments = []
        for seg in self.path.strip('/').split('/'):
            m = _segment_ph_re.match(seg)
            self.segments.append((True, m.group(1)) if m else (False, seg))

    def match(self, segments: List[str]):
        if len(segments) != len(self.segments):
            return None
        params = Params()
        for (isph, val), seg in zip(self.segments, segments):
            if isph:
                if not seg:
                    return None
                params[val] = seg
            elif val != seg:
                return None
        return params

class RouteTable(object):
    """
    resolves a request method and path to the registered route that should handle it.  Routes
    are tried in registration order, and the first that matches both path and method wins.

    A table is filled while a server is being set up and only read afterward; thus, it can be
    shared freely among concurrently handled requests.
    """

    def __init__(self):
        self._entries = []

    def add(self, path: str, route: Route, api=None):
        """
        register a route under a full path.
        :param str path:   the full path pattern (i.e. including any API root prefix)
        :param Route route: the route to handle requests matching ``path``
        :param API     api: the API the route belongs to
        """
        self._entries.append(_Entry(path, route, api))

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter((e.path, e.route, e.api) for e in self._entries)

    def resolve(self, method: str, path: str) -> Match:
        """
        find the route that should handle a request.
        :return:  a (route, params, api) tuple
                  :rtype: Match
        :raises VertexError:  with code NOT_FOUND if no route matches the path, or with code
                              METHOD_NOT_ALLOWED if a route matches the path but not the method
        """
        segments = normalize_path(path).strip('/').split('/')
        pathmatched = False
        for entry in self._entries:
            params = entry.match(segments)
            if params is None:
                continue
            if entry.route.allows(method):
                return Match(entry.route, params, entry.api)
            pathmatched = True

        if pathmatched:
            raise VertexError("%s not supported on %s" % (method, path), ErrorCode.METHOD_NOT_ALLOWED)
        raise VertexError("No route found for %s" % path, ErrorCode.NOT_FOUND)
