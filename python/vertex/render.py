"""
Renderers serialize the outcome of handling a request (either the handler's result or an
error) into the response body.

Every renderer is given a :py:class:`ResponseEnvelope` describing the outcome.  The
:py:class:`JSONRenderer` treats success and failure asymmetrically:  a successful result is
written as the bare JSON encoding of the result value, while an error is written as the full
envelope object::

    {
      "errorString": "Missing required parameters: foo",
      "errorCode": -3,
      "processingTime": 0.12,
      "requestId": "4f0c...",
      "response": null
    }

Rendering failures are not propagated to the client as exceptions; the dispatcher catches them
and falls back to :py:func:`write_error`.
"""
import re, json
from abc import ABCMeta, abstractmethod
from collections import OrderedDict
from typing import Callable, List

from .errors import ErrorCode
from .formats import Format, FormatSupport, Unacceptable, UnsupportedFormat
from .request import Request, ResponseWriter

__all__ = [ "ResponseEnvelope", "Renderer", "RenderFunc", "JSONRenderer", "TextRenderer",
            "NegotiatingRenderer", "write_error" ]

class ResponseEnvelope(object):
    """
    a description of the outcome of handling a request
    """

    def __init__(self, response_object=None, error_string: str="OK", error_code: int=ErrorCode.OK,
                 processing_time: float=0, request_id: str=""):
        self.response_object = response_object
        self.error_string = error_string
        self.error_code = int(error_code)
        self.processing_time = processing_time
        self.request_id = request_id

    @property
    def is_error(self) -> bool:
        return self.error_code != ErrorCode.OK

    def to_dict(self):
        return OrderedDict([
            ("errorString",    self.error_string),
            ("errorCode",      self.error_code),
            ("processingTime", self.processing_time),
            ("requestId",      self.request_id),
            ("response",       self.response_object)
        ])

class Renderer(metaclass=ABCMeta):
    """
    the interface for classes that write a response envelope into the response body
    """
    format_name = None

    @abstractmethod
    def content_types(self) -> List[str]:
        """
        the content types this renderer produces; the first is its default
        """
        raise NotImplementedError()

    @abstractmethod
    def render(self, resp: ResponseEnvelope, w: ResponseWriter, r: Request):
        """
        write the given response into the response writer.  An exception raised here is treated
        as a render failure.
        """
        raise NotImplementedError()

class RenderFunc(Renderer):
    """
    a Renderer that wraps a plain function having the signature of :py:meth:`Renderer.render`
    """

    def __init__(self, func: Callable, *content_types: str, name: str=None):
        if not content_types:
            raise ValueError("RenderFunc: at least one content type is required")
        self._func = func
        self._ctypes = list(content_types)
        self.format_name = name or content_types[0].split('/')[-1]

    def content_types(self) -> List[str]:
        return list(self._ctypes)

    def render(self, resp: ResponseEnvelope, w: ResponseWriter, r: Request):
        return self._func(resp, w, r)

class JSONRenderer(Renderer):
    """
    render results as JSON.  If the request includes a ``callback`` query parameter, a successful
    result is wrapped as a JSONP function call (e.g. ``callback({...})``).
    """
    format_name = "json"
    CONTENT_TYPE = "application/json"
    JSONP_CONTENT_TYPE = "application/javascript"

    _callback_re = re.compile(r'^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$')

    def __init__(self, indent: int=None, callback_param: str="callback"):
        self.indent = indent
        self.callback_param = callback_param

    def content_types(self) -> List[str]:
        return [self.CONTENT_TYPE, "text/json"]

    def _jsonp_callback(self, r: Request):
        if not r or not self.callback_param:
            return None
        cb = r.query.get(self.callback_param)
        if cb and self._callback_re.match(cb):
            return cb
        return None

    def render(self, resp: ResponseEnvelope, w: ResponseWriter, r: Request):
        if resp.is_error:
            w.set_header("Content-Type", self.CONTENT_TYPE)
            w.write(json.dumps(resp.to_dict(), indent=self.indent))
            return

        payload = json.dumps(resp.response_object, indent=self.indent)
        cb = self._jsonp_callback(r)
        if cb:
            w.set_header("Content-Type", self.JSONP_CONTENT_TYPE)
            w.write("%s(%s)" % (cb, payload))
        else:
            w.set_header("Content-Type", self.CONTENT_TYPE)
            w.write(payload)

class TextRenderer(Renderer):
    """
    render results as plain text; this is intended for simple or diagnostic routes
    """
    format_name = "text"
    CONTENT_TYPE = "text/plain"

    def content_types(self) -> List[str]:
        return [self.CONTENT_TYPE]

    def render(self, resp: ResponseEnvelope, w: ResponseWriter, r: Request):
        w.set_header("Content-Type", self.CONTENT_TYPE + "; charset=utf-8")
        if resp.is_error:
            w.write(resp.error_string + "\n")
        elif isinstance(resp.response_object, bytes):
            w.write(resp.response_object)
        elif resp.response_object is not None:
            w.write(str(resp.response_object))

class NegotiatingRenderer(Renderer):
    """
    a renderer that delegates to one of several renderers according to the client's
    preference, expressed either with a query parameter (``format`` by default) or with the
    Accept header.  The first renderer is used when the client has no preference or when its
    preference cannot be satisfied.
    """

    def __init__(self, *renderers: Renderer, format_qp: str="format"):
        if not renderers:
            raise ValueError("NegotiatingRenderer: at least one renderer is required")
        self.format_qp = format_qp
        self._renderers = {}
        self._fmtsup = FormatSupport()
        for rndr in renderers:
            cts = rndr.content_types()
            name = rndr.format_name or cts[0]
            self._fmtsup.support(Format(name, cts[0]), cts)
            self._renderers[name] = rndr
        self._default = renderers[0]

    def content_types(self) -> List[str]:
        out = []
        for rndr in self._renderers.values():
            out.extend([c for c in rndr.content_types() if c not in out])
        return out

    def select(self, r: Request) -> Renderer:
        """
        return the renderer that best satisfies the client making the given request
        """
        if r is None:
            return self._default
        requested = []
        if self.format_qp and r.query.get(self.format_qp):
            requested = [r.query[self.format_qp]]
        try:
            fmt = self._fmtsup.select_format(requested, r.get_accepts())
        except (Unacceptable, UnsupportedFormat):
            return self._default
        if not fmt:
            return self._default
        return self._renderers[fmt.name]

    def render(self, resp: ResponseEnvelope, w: ResponseWriter, r: Request):
        return self.select(r).render(resp, w, r)

def write_error(w: ResponseWriter, message: str):
    """
    write a plain text error line into the response; this is the fallback used when a renderer
    fails.
    """
    w.set_status(500)
    w.set_header("Content-Type", "text/plain; charset=utf-8")
    w.write(message + "\n")
