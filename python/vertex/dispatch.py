"""
The WSGI application that dispatches requests to the routes of one or more APIs.

For each request, the :py:class:`Dispatcher`

  1. resolves the route from the request method and path (responding immediately with a 404 or
     405 error, without running any middleware, if none matches);
  2. builds the middleware chain:  the process-wide middleware, then the API's, then the
     route's, ending with the route's handler;
  3. runs the chain, timing it;
  4. renders the result (with status 200) or the error (with the status that its code maps
     to) using the API's renderer, unless the error indicates that the response was hijacked,
     in which case the response is delivered exactly as the handler wrote it.

The dispatcher is the only place where error codes are translated to HTTP status codes.
"""
import time, logging
from typing import Callable, List, Mapping

from .errors import VertexError, ErrorCode, http_status, is_hijacked
from .request import Request, ResponseWriter, REQUEST_ID_HEADER
from .routing import RouteTable, HEAD
from .handlers import terminal_for
from .middleware import as_middleware, build_chain, HeaderMiddleware
from .render import Renderer, JSONRenderer, ResponseEnvelope, write_error
from .testing import harness_routes, DEF_TIMEOUT

__all__ = [ "Dispatcher", "PROCESSING_TIME_HEADER" ]

PROCESSING_TIME_HEADER = "X-Vertex-ProcessingTime"

deflog = logging.getLogger("vertex").getChild("dispatch")

class Dispatcher(object):
    """
    a WSGI application serving a set of APIs.  The routes are fixed at construction time; the
    dispatcher can then handle any number of requests concurrently.

    This class looks for the following parameters in its configuration:

    ``include_headers``
        a dictionary of headers to add to every response
    ``harness``
        an object with a ``timeout`` property: the number of seconds the self-test harness waits
        for each request it makes (default: 10)
    """

    def __init__(self, apis: List, middleware: List=None, config: Mapping=None,
                 log: logging.Logger=None):
        """
        :param list apis:        the APIs to serve
        :param list middleware:  process-wide middleware to run for every route
        :param dict config:      the dispatcher configuration (see above)
        :param Logger log:       the Logger to use; defaults to "vertex.dispatch"
        """
        self.cfg = config if config is not None else {}
        self.log = log or deflog
        self.apis = list(apis)

        self.middleware = [as_middleware(m) for m in (middleware or [])]
        if self.cfg.get('include_headers'):
            self.middleware.insert(0, HeaderMiddleware(self.cfg['include_headers']))

        self.default_renderer = JSONRenderer()
        self.table = RouteTable()
        timeout = (self.cfg.get('harness') or {}).get('timeout', DEF_TIMEOUT)
        for api in self.apis:
            for route in api.routes:
                self.table.add(api.full_path(route.path), route, api)
        for api in self.apis:
            for path, route in harness_routes(api, timeout, self.log.getChild("harness")):
                self.table.add(path, route, None)

    def renderer_for_path(self, path: str) -> Renderer:
        """
        return the renderer of the API that serves the given path, or the default JSON renderer
        if no API does
        """
        for api in self.apis:
            if api.root and (path == api.root or path.startswith(api.root + '/')):
                return api.renderer
        return self.default_renderer

    def __call__(self, env: Mapping, start_resp: Callable):
        return self.handle_request(env, start_resp)

    def handle_request(self, env: Mapping, start_resp: Callable):
        r = Request(env)
        w = ResponseWriter()
        w.add_header(REQUEST_ID_HEADER, r.request_id)
        ashead = r.method == HEAD
        start = time.time()

        try:
            route, params, api = self.table.resolve(r.method, r.path)
        except VertexError as ex:
            self.log.debug("%s %s: %s", r.method, r.path, ex.message)
            self._respond(self.renderer_for_path(r.path), w, r, None, ex, start)
            return w.finish(start_resp, ashead)

        r.params = params
        mw = list(self.middleware)
        if api:
            mw.extend(api.chain_middleware())
        mw.extend(route.middleware)
        chain = build_chain(mw, terminal_for(route.handler))

        result, err = None, None
        try:
            result = chain(w, r)
        except VertexError as ex:
            err = ex
        except Exception as ex:
            self.log.exception("Unexpected failure handling %s %s: %s", r.method, r.path, str(ex))
            err = VertexError("Server failure", ErrorCode.GENERAL_FAILURE)

        if is_hijacked(err):
            return w.finish(start_resp, ashead)

        renderer = api.renderer_for(route) if api else (route.renderer or self.default_renderer)
        self._respond(renderer, w, r, result, err, start)
        return w.finish(start_resp, ashead)

    def _respond(self, renderer: Renderer, w: ResponseWriter, r: Request, result, err: VertexError,
                 start: float):
        elapsed = (time.time() - start) * 1000
        w.set_header(PROCESSING_TIME_HEADER, "%.3f" % elapsed)

        if err is not None:
            w.set_status(http_status(err.code) or 500)
            resp = ResponseEnvelope(None, err.message, err.code, elapsed, r.request_id)
        else:
            w.set_status(200)
            resp = ResponseEnvelope(result, "OK", ErrorCode.OK, elapsed, r.request_id)

        try:
            renderer.render(resp, w, r)
        except Exception as ex:
            self.log.exception("Failed to render response for %s: %s", r.path, str(ex))
            w.reset_body()
            write_error(w, "Failed rendering response: %s" % str(ex))
