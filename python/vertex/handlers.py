"""
The handler capability and the binding of request input to handlers.

A handler produces the result of a request:  it either returns a value (which is then rendered
into the response) or raises an exception (which is reported as an error).  A handler is
either an instance of a :py:class:`Handler` subclass (which can declare the input parameters
it needs as :py:class:`Param` class attributes) or a plain function wrapped in a
:py:class:`HandlerFunc`.  For example::

    class UserHandler(Handler):
        id = Param(required=True, type=int, doc="the user's identifier")
        verbose = Param(type=bool, default=False)

        def handle(self, w, r):
            return lookup_user(self.id, self.verbose)

When a request is dispatched to a Handler with declared parameters, a copy of the handler is
populated with values taken from the request's path parameters, form, and query string (see
:py:func:`bind_params`); if a required value is missing, the request fails with a
``BAD_REQUEST`` error without calling :py:meth:`~Handler.handle`.
"""
import copy
from abc import ABCMeta, abstractmethod
from typing import Callable, List, Mapping, Tuple

from .errors import VertexError, ErrorCode

__all__ = [ "Param", "Handler", "HandlerFunc", "VoidHandler", "bind_params", "as_handler",
            "terminal_for" ]

_true_vals = ("1", "true", "yes", "on", "y", "t")
_false_vals = ("0", "false", "no", "off", "n", "f")

class Param(object):
    """
    a declaration of a named input parameter for a Handler.  The parameter value is found on a
    bound handler as an attribute of the same name.
    """

    def __init__(self, name: str=None, required: bool=False, default=None, type: Callable=str,
                 doc: str=""):
        """
        :param str name:      the name of the request parameter; by default, the name of the
                              attribute this Param is assigned to
        :param bool required: if True, requests lacking this parameter are rejected
        :param default:       the value to set when an optional parameter is not provided
        :param type:          a function that converts the raw string value (e.g. int, float, bool)
        :param str doc:       a description of the parameter
        """
        self.name = name
        self.attr = name
        self.required = required
        self.default = default
        self.type = type
        self.doc = doc

    def __set_name__(self, owner, attr):
        self.attr = attr
        if not self.name:
            self.name = attr

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        return self.default

    def convert(self, raw: str):
        """
        convert a raw request value to the declared type
        :raises VertexError:  with the BAD_REQUEST code if the value cannot be converted
        """
        try:
            if self.type is bool:
                val = raw.strip().lower()
                if val in _true_vals:
                    return True
                if val in _false_vals:
                    return False
                raise ValueError(raw)
            return self.type(raw)
        except (TypeError, ValueError):
            raise VertexError("Invalid value for parameter %s: %s" % (self.name, raw),
                              ErrorCode.BAD_REQUEST)

    def __repr__(self):
        return "Param(%r, required=%s)" % (self.name, self.required)

class Handler(metaclass=ABCMeta):
    """
    the base class for handlers that hold configuration or declare input parameters
    """

    @classmethod
    def declared_params(cls) -> List[Param]:
        """
        return the Params declared on this handler class (including those inherited), in the
        order they were declared.
        """
        out = {}
        for klass in reversed(cls.__mro__):
            for attr, val in vars(klass).items():
                if isinstance(val, Param):
                    out[attr] = val
        return list(out.values())

    @abstractmethod
    def handle(self, w, r):
        """
        handle a request, returning the result to render.
        :param ResponseWriter w:  the response sink; it can be used to add headers or, for
                                  handlers that write their own response, the full content
        :param Request r:         the request being handled
        :raises VertexError:      to report a failure with a specific error code
        """
        raise NotImplementedError()

class HandlerFunc(Handler):
    """
    a Handler that wraps a plain function of the form ``func(w, r)``
    """

    def __init__(self, func: Callable):
        if not callable(func):
            raise TypeError("HandlerFunc: not a callable: " + repr(func))
        self.func = func

    def handle(self, w, r):
        return self.func(w, r)

    def __repr__(self):
        return "HandlerFunc(%s)" % getattr(self.func, '__name__', repr(self.func))

class VoidHandler(Handler):
    """
    a handler that does nothing and returns an empty object
    """
    def handle(self, w, r):
        return {}

def as_handler(handler) -> Handler:
    """
    return the given handler as a Handler instance, wrapping plain functions as needed
    """
    if isinstance(handler, Handler):
        return handler
    if isinstance(handler, type) and issubclass(handler, Handler):
        return handler()
    if callable(handler):
        return HandlerFunc(handler)
    raise TypeError("Not usable as a handler: " + repr(handler))

def bind_params(handler: Handler, values: Mapping[str, str]) -> Tuple[Handler, List[str]]:
    """
    populate a copy of the handler with the values of its declared parameters.

    :param Handler handler:  the handler declaring its parameters
    :param dict     values:  the raw request values by name
    :return:  the bound handler (the original if it declares no parameters) and the list of
              required parameter names that were missing from ``values``
    :raises VertexError:  with the BAD_REQUEST code if a value cannot be converted
    """
    params = handler.declared_params()
    if not params:
        return handler, []

    bound = copy.copy(handler)
    missing = []
    for p in params:
        raw = values.get(p.name)
        if raw is None or raw == "":
            if p.required:
                missing.append(p.name)
            setattr(bound, p.attr, copy.copy(p.default))
        else:
            setattr(bound, p.attr, p.convert(raw))
    return bound, missing

def terminal_for(handler: Handler) -> Callable:
    """
    return a function, ``next(w, r)``, that binds the request values to the handler and calls it;
    this serves as the end of a middleware chain.
    """
    def terminal(w, r):
        values = r.values() if r is not None else {}
        bound, missing = bind_params(handler, values)
        if missing:
            raise VertexError("Missing required parameters: " + ", ".join(missing),
                              ErrorCode.BAD_REQUEST)
        return bound.handle(w, r)
    return terminal
