"""
A small framework for composing declarative HTTP APIs served via WSGI.

This package is organized into the following modules:

``errors``
    the error taxonomy: semantic error codes carried by framework errors and their mapping to
    HTTP status codes
``routing``
    route declarations and the table that resolves a request to a route and its path parameters
``handlers``
    the handler capability along with the declaration and binding of handler input parameters
``middleware``
    the middleware capability, chain construction, and a set of built-in middleware
``render``
    classes that serialize handler results and errors into response bodies
``dispatch``
    the WSGI application that ties the above together for each request
``testing``
    the harness that turns tests declared on routes into live HTTP endpoints
``server``
    a simple host for running one or more APIs
"""

try:
    from .version import __version__
except ImportError:
    __version__ = "(unset)"

class VertexException(Exception):
    """
    a general base class for exceptions raised by the vertex framework outside of handling a
    request (e.g. while configuring or starting a server).
    """
    pass

class ConfigurationException(VertexException):
    """
    an exception indicating that the configuration provided to a vertex component is missing
    required data or is otherwise invalid.
    """
    pass

class StateException(VertexException):
    """
    an exception indicating that an operation was requested at a point in a component's
    lifecycle where it is not allowed (e.g. adding an API to a server that is already serving).
    """
    pass

from .errors import (ErrorCode, VertexError, new_error, new_error_code, new_errorf, http_status,
                     is_hijacked, HIJACKED_ERROR)
from .routing import Route, Routes, Params, RouteTable, format_path, GET, POST, PUT, DELETE, HEAD
from .handlers import Handler, HandlerFunc, VoidHandler, Param
from .middleware import Middleware, MiddlewareFunc, build_chain
from .render import Renderer, RenderFunc, JSONRenderer, TextRenderer, NegotiatingRenderer
from .api import API
from .testing import TestContext, TestDescriptor, warning_test, critical_test, WARNING, CRITICAL
from .registry import register
from .server import Server
