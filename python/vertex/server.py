"""
A host for serving one or more APIs.

A :py:class:`Server` collects the APIs to serve and creates the WSGI application
(:py:class:`~vertex.dispatch.Dispatcher`) for them.  That application can be handed to any WSGI
container (see :py:meth:`Server.handler`), or the server can run it itself on a threading
development server (:py:meth:`Server.run` or :py:meth:`Server.start`).  Each request is handled
in its own thread; this is required for the self-test endpoints, which send requests back to
the same server.

APIs can only be added before the server begins serving; afterward, the set of routes is fixed
and can be read concurrently without locking.
"""
import threading, logging
from collections.abc import Mapping
from socketserver import ThreadingMixIn
from typing import List, Tuple
from wsgiref.simple_server import WSGIServer, WSGIRequestHandler, make_server

from . import StateException, ConfigurationException
from . import registry
from .dispatch import Dispatcher

__all__ = [ "Server", "parse_listen_addr" ]

deflog = logging.getLogger("vertex").getChild("server")

def parse_listen_addr(listen: str) -> Tuple[str, int]:
    """
    split an address of the form "host:port" (or ":port") into a host and an integer port
    """
    host, sep, port = str(listen).rpartition(':')
    if not sep:
        host, port = "", listen
    try:
        return host, int(port)
    except ValueError:
        raise ConfigurationException("Bad listen address: " + str(listen))

class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True

class _LoggingRequestHandler(WSGIRequestHandler):

    def log_message(self, format, *args):
        deflog.getChild("access").debug("%s - " + format, self.address_string(), *args)

class Server(object):
    """
    a server for a set of APIs
    """

    def __init__(self, listen: str=None, config: Mapping=None, log: logging.Logger=None,
                 middleware: List=None):
        """
        :param str listen:   the address to listen on (e.g. ":8686" or "localhost:8686"); if not
                             given, the ``server.listen`` configuration parameter is used,
                             defaulting to ":8686".
        :param dict config:  the full server configuration (see :py:mod:`vertex.config`)
        :param Logger log:   the Logger to use; default: "vertex.server"
        :param list middleware:  process-wide middleware applied to every route of every API
        """
        self.cfg = config if config is not None else {}
        self.log = log or deflog
        srvcfg = self.cfg.get('server', {})
        self.listen = listen or srvcfg.get('listen', ':8686')
        self.middleware = list(middleware or [])
        self.apis = []
        self._app = None
        self._httpd = None
        self._thread = None

    @property
    def serving(self) -> bool:
        """
        True once the WSGI application has been created, after which APIs may not be added
        """
        return self._app is not None

    def add_api(self, api):
        """
        add an API to be served
        :raises StateException:  if the server has already started serving
        """
        if self.serving:
            raise StateException("Cannot add API %s: server is already serving" % api.name)
        self.apis.append(api)
        self.log.info("Added API %s (version %s) at %s", api.name, api.version, api.root or '/')

    def init_apis(self):
        """
        build all APIs registered via :py:func:`vertex.registry.register` and add them
        """
        for api in registry.build_apis(self.cfg):
            self.add_api(api)

    def handler(self) -> Dispatcher:
        """
        return the WSGI application that serves the APIs.  After this is called, no further
        APIs can be added.
        """
        if self._app is None:
            registry.freeze()
            dcfg = dict(self.cfg.get('server', {}))
            if 'harness' in self.cfg:
                dcfg['harness'] = self.cfg['harness']
            self._app = Dispatcher(self.apis, self.middleware, dcfg, self.log.getChild("dispatch"))
        return self._app

    def _make_httpd(self):
        if self._httpd is not None:
            raise StateException("Server is already running")
        host, port = parse_listen_addr(self.listen)
        self._httpd = make_server(host, port, self.handler(), server_class=_ThreadingWSGIServer,
                                  handler_class=_LoggingRequestHandler)
        self.log.info("Listening on %s:%d", *self.address)
        return self._httpd

    @property
    def address(self) -> Tuple[str, int]:
        """
        the (host, port) the server is bound to, or None if it is not running
        """
        if self._httpd is None:
            return None
        return self._httpd.server_address[:2]

    @property
    def url(self) -> str:
        """
        the base URL for reaching the running server locally
        """
        if self._httpd is None:
            return None
        host, port = self.address
        if host in ("", "0.0.0.0", "::"):
            host = "127.0.0.1"
        return "http://%s:%d" % (host, port)

    def run(self):
        """
        serve requests until :py:meth:`stop` is called (from another thread)
        """
        httpd = self._httpd or self._make_httpd()
        try:
            httpd.serve_forever()
        finally:
            httpd.server_close()

    def start(self) -> threading.Thread:
        """
        start serving requests in a background thread, returning once the server is listening
        """
        self._make_httpd()
        self._thread = threading.Thread(target=self.run, name="vertex-server", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float=5):
        """
        stop serving requests
        """
        if self._httpd is None:
            return
        self._httpd.shutdown()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        else:
            self._httpd.server_close()
        self._httpd = None
        self.log.info("Server stopped")
