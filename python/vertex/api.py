"""
The declaration of an API:  a named, versioned set of routes served beneath a common root path.
"""
from typing import List, Mapping

from .routing import Route
from .middleware import as_middleware, SecureTransportMiddleware
from .render import Renderer, JSONRenderer

__all__ = [ "API" ]

class API(object):
    """
    a bundle of routes served beneath a root path, together with the middleware and renderer
    that apply to all of them.  For example::

        api = API("/users", "users", "1.0", title="User API",
                  middleware=[LoggingMiddleware()],
                  routes=[ Route("/{id}", UserHandler(), GET, "get a user record",
                                 test=warning_test(check_user)) ])
    """

    def __init__(self, root: str, name: str, version: str="", title: str="", doc: str="",
                 middleware: List=None, routes: List[Route]=None, renderer: Renderer=None,
                 allow_insecure: bool=False, config: Mapping=None):
        """
        :param str root:     the path that all of this API's routes are served beneath
        :param str name:     a short name for the API (used in logs and configuration)
        :param str version:  the API's version
        :param str title:    a human-readable title
        :param str doc:      a description of the API
        :param list middleware:  middleware applied to every route in the API
        :param list routes:  the Route declarations
        :param Renderer renderer:  the renderer for results and errors; defaults to JSON
        :param bool allow_insecure:  if False, requests not made over HTTPS are rejected
        :param dict config:  the configuration data bound to this API
        """
        self.root = '/' + root.strip('/') if root.strip('/') else ''
        self.name = name
        self.version = version
        self.title = title or name
        self.doc = doc
        self.middleware = [as_middleware(m) for m in (middleware or [])]
        self.routes = list(routes or [])
        self.renderer = renderer or JSONRenderer()
        self.allow_insecure = allow_insecure
        self.config = config if config is not None else {}

    def full_path(self, route_path: str) -> str:
        """
        return the full path for a route path relative to this API's root
        """
        if not route_path or route_path == '/':
            return self.root or '/'
        return self.root + '/' + route_path.lstrip('/')

    def root_name(self) -> str:
        """
        the root path without surrounding slashes; this identifies the API in its test endpoint
        URLs (i.e. ``/test/{root_name}/{severity}``)
        """
        return self.root.strip('/')

    def chain_middleware(self) -> list:
        """
        return the API-level middleware to run for each of its routes
        """
        if self.allow_insecure:
            return list(self.middleware)
        return [SecureTransportMiddleware()] + self.middleware

    def renderer_for(self, route: Route) -> Renderer:
        return route.renderer or self.renderer

    def tested_routes(self, severity: str=None) -> List[Route]:
        """
        return the routes that have tests attached, optionally only those of a given severity
        """
        return [rt for rt in self.routes
                   if rt.test is not None and (severity is None or rt.test.severity == severity)]

    def __repr__(self):
        return "API(%s %s at %s)" % (self.name, self.version, self.root or '/')
