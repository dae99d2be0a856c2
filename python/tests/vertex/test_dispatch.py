import os, sys, json, logging, tempfile
import unittest as test
from wsgiref.headers import Headers

from vertex.dispatch import Dispatcher, PROCESSING_TIME_HEADER
from vertex.api import API
from vertex.routing import Route, GET, POST
from vertex.handlers import Handler, HandlerFunc, Param
from vertex.middleware import MiddlewareFunc
from vertex.render import RenderFunc, TextRenderer, JSONRenderer
from vertex.errors import VertexError, ErrorCode, new_error_code

tmpdir = tempfile.TemporaryDirectory(prefix="_test_dispatch.")
loghdlr = None
rootlog = None
def setUpModule():
    global loghdlr
    global rootlog
    rootlog = logging.getLogger()
    rootlog.setLevel(logging.DEBUG)
    loghdlr = logging.FileHandler(os.path.join(tmpdir.name,"test_dispatch.log"))
    loghdlr.setLevel(logging.DEBUG)
    loghdlr.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    rootlog.addHandler(loghdlr)

def tearDownModule():
    global loghdlr
    if loghdlr:
        if rootlog:
            rootlog.removeHandler(loghdlr)
            loghdlr.flush()
            loghdlr.close()
        loghdlr = None
    tmpdir.cleanup()

MW_HEADER = "X-Middleware-Message"

def mock_middleware(message):
    def mw(w, r, next):
        w.add_header(MW_HEADER, message)
        return next(w, r)
    return MiddlewareFunc(mw)

class MockHandler(Handler):
    foo = Param(required=True)
    bar = Param(required=True)

    def handle(self, w, r):
        return {"foo": self.foo, "bar": self.bar}

def hijacker(w, r):
    w.set_status(202)
    w.set_header("Content-Type", "text/plain")
    w.write("hijacked!")
    raise new_error_code("hijacked", ErrorCode.HIJACKED)

def blowup(w, r):
    raise KeyError("goob")

def refuse(w, r):
    raise VertexError("go away", ErrorCode.UNAUTHORIZED)

def bad_render(resp, w, r):
    raise RuntimeError("no can do")

def partial_render(resp, w, r):
    w.write("{\"half\": ")
    raise RuntimeError("ran out")

def mock_api(**kw):
    kw.setdefault("allow_insecure", True)
    return API("/mock", "mock", "1.0", title="Mock API",
               middleware=[mock_middleware("Private middleware")],
               routes=[
                   Route("/test", MockHandler(), [GET, POST], "a test route"),
                   Route("/items/{foo}", MockHandler(), GET, "path params"),
                   Route("/hijack", hijacker, GET),
                   Route("/blowup", blowup, GET),
                   Route("/refuse", refuse, GET),
                   Route("/text", lambda w, r: "plain", GET, renderer=TextRenderer()),
                   Route("/badrender", lambda w, r: "x", GET,
                         renderer=RenderFunc(bad_render, "text/plain")),
                   Route("/partial", lambda w, r: "x", GET,
                         renderer=RenderFunc(partial_render, "application/json"))
               ], **kw)

class TestDispatcher(test.TestCase):

    def start(self, status, headers=None, extup=None):
        self.status = status
        self.headers = Headers(list(headers or []))

    def setUp(self):
        self.status = None
        self.headers = None
        self.app = Dispatcher([mock_api()], [mock_middleware("Global middleware")])

    def call(self, path, qs="", method="GET", **extra):
        env = {
            'REQUEST_METHOD': method,
            'PATH_INFO': path,
            'QUERY_STRING': qs,
            'wsgi.url_scheme': "http",
            'SERVER_NAME': "localhost",
            'SERVER_PORT': "8686"
        }
        env.update(extra)
        return b''.join(self.app(env, self.start))

    def test_success(self):
        body = self.call("/mock/test", "foo=f&bar=b")
        self.assertEqual(self.status, "200 OK")
        self.assertEqual(json.loads(body), {"foo": "f", "bar": "b"})
        self.assertEqual(self.headers.get("Content-Type"), "application/json")
        self.assertEqual(self.headers.get("Content-Length"), str(len(body)))
        self.assertEqual(self.headers.get_all(MW_HEADER), ["Global middleware", "Private middleware"])
        self.assertTrue(self.headers.get("X-Request-Id"))
        self.assertGreaterEqual(float(self.headers.get(PROCESSING_TIME_HEADER)), 0.0)

    def test_path_params(self):
        body = self.call("/mock/items/ff", "bar=b")
        self.assertEqual(self.status, "200 OK")
        self.assertEqual(json.loads(body), {"foo": "ff", "bar": "b"})

    def test_request_id(self):
        self.call("/mock/test", "foo=f&bar=b", HTTP_X_REQUEST_ID="abc123")
        self.assertEqual(self.headers.get("X-Request-Id"), "abc123")

    def test_post_form(self):
        from io import BytesIO
        data = b"foo=f&bar=b"
        body = self.call("/mock/test", method="POST", CONTENT_TYPE="application/x-www-form-urlencoded",
                         CONTENT_LENGTH=str(len(data)), **{'wsgi.input': BytesIO(data)})
        self.assertEqual(self.status, "200 OK")
        self.assertEqual(json.loads(body), {"foo": "f", "bar": "b"})

    def test_missing_params(self):
        body = self.call("/mock/test", "foo=f")
        self.assertEqual(self.status, "400 Bad Request")
        data = json.loads(body)
        self.assertEqual(data["errorCode"], ErrorCode.BAD_REQUEST)
        self.assertIn("bar", data["errorString"])
        self.assertIsNone(data["response"])
        self.assertEqual(data["requestId"], self.headers.get("X-Request-Id"))
        self.assertEqual(self.headers.get_all(MW_HEADER), ["Global middleware", "Private middleware"])

    def test_not_found(self):
        body = self.call("/mock/goob")
        self.assertEqual(self.status, "404 Not Found")
        self.assertEqual(json.loads(body)["errorCode"], ErrorCode.NOT_FOUND)
        self.assertEqual(self.headers.get_all(MW_HEADER), [])

        self.call("/nowhere")
        self.assertEqual(self.status, "404 Not Found")

    def test_method_not_allowed(self):
        body = self.call("/mock/items/ff", method="DELETE")
        self.assertEqual(self.status, "405 Method Not Allowed")
        self.assertEqual(json.loads(body)["errorCode"], ErrorCode.METHOD_NOT_ALLOWED)
        self.assertEqual(self.headers.get_all(MW_HEADER), [])

    def test_head(self):
        body = self.call("/mock/test", "foo=f&bar=b", method="HEAD")
        self.assertEqual(self.status, "200 OK")
        self.assertEqual(body, b"")
        self.assertTrue(int(self.headers.get("Content-Length")) > 0)

    def test_hijack(self):
        body = self.call("/mock/hijack")
        self.assertEqual(self.status, "202 Accepted")
        self.assertEqual(body, b"hijacked!")
        self.assertEqual(self.headers.get("Content-Type"), "text/plain")
        self.assertIsNone(self.headers.get(PROCESSING_TIME_HEADER))

    def test_unexpected_error(self):
        body = self.call("/mock/blowup")
        self.assertEqual(self.status, "500 Internal Server Error")
        data = json.loads(body)
        self.assertEqual(data["errorCode"], ErrorCode.GENERAL_FAILURE)
        self.assertEqual(data["errorString"], "Server failure")

    def test_handler_error(self):
        body = self.call("/mock/refuse")
        self.assertEqual(self.status, "401 Unauthorized")
        self.assertEqual(json.loads(body)["errorString"], "go away")

    def test_route_renderer(self):
        body = self.call("/mock/text")
        self.assertEqual(self.status, "200 OK")
        self.assertEqual(body, b"plain")
        self.assertEqual(self.headers.get("Content-Type"), "text/plain; charset=utf-8")

    def test_render_failure(self):
        body = self.call("/mock/badrender")
        self.assertEqual(self.status, "500 Internal Server Error")
        self.assertEqual(body, b"Failed rendering response: no can do\n")
        self.assertEqual(self.headers.get("Content-Type"), "text/plain; charset=utf-8")

    def test_partial_render_failure(self):
        body = self.call("/mock/partial")
        self.assertEqual(self.status, "500 Internal Server Error")
        self.assertEqual(body, b"Failed rendering response: ran out\n")
        self.assertEqual(self.headers.get("Content-Length"), str(len(body)))

    def test_harness_head(self):
        body = self.call("/test/mock/critical", method="HEAD")
        self.assertEqual(self.status, "405 Method Not Allowed")
        self.assertEqual(body, b"")

    def test_jsonp(self):
        body = self.call("/mock/test", "foo=f&bar=b&callback=cb")
        self.assertEqual(self.status, "200 OK")
        self.assertTrue(body.startswith(b"cb("))

class TestDispatcherConfig(test.TestCase):

    def start(self, status, headers=None, extup=None):
        self.status = status
        self.headers = Headers(list(headers or []))

    def env(self, path, qs="", **extra):
        env = { 'REQUEST_METHOD': "GET", 'PATH_INFO': path, 'QUERY_STRING': qs,
                'wsgi.url_scheme': "http" }
        env.update(extra)
        return env

    def test_include_headers(self):
        app = Dispatcher([mock_api()], config={"include_headers": {"Access-Control-Allow-Origin": "*"}})
        app(self.env("/mock/test", "foo=f&bar=b"), self.start)
        self.assertEqual(self.headers.get("Access-Control-Allow-Origin"), "*")

        # headers are added even to errors from the handler
        app(self.env("/mock/test"), self.start)
        self.assertTrue(self.status.startswith("400"))
        self.assertEqual(self.headers.get("Access-Control-Allow-Origin"), "*")

    def test_insecure(self):
        app = Dispatcher([mock_api(allow_insecure=False)])
        body = b''.join(app(self.env("/mock/test", "foo=f&bar=b"), self.start))
        self.assertEqual(self.status, "403 Forbidden")
        self.assertEqual(json.loads(body)["errorCode"], ErrorCode.INSECURE_ACCESS_DENIED)

        body = b''.join(app(self.env("/mock/test", "foo=f&bar=b", **{'wsgi.url_scheme': "https"}),
                            self.start))
        self.assertEqual(self.status, "200 OK")
        body = b''.join(app(self.env("/mock/test", "foo=f&bar=b", HTTP_X_FORWARDED_PROTO="https"),
                            self.start))
        self.assertEqual(self.status, "200 OK")

    def test_routes(self):
        app = Dispatcher([mock_api(), API("/other", "other", routes=[Route("/", lambda w, r: 1)])])
        paths = [p for p, rt, api in app.table]
        self.assertIn("/mock/test", paths)
        self.assertIn("/other", paths)
        self.assertIn("/test/mock/warning", paths)
        self.assertIn("/test/mock/critical", paths)
        self.assertIn("/test/other/critical", paths)

    def test_harness_config(self):
        # a bare "harness:" in YAML loads as None
        app = Dispatcher([mock_api()], config={"harness": None})
        self.assertIn("/test/mock/warning", [p for p, rt, api in app.table])

        app = Dispatcher([mock_api()], config={"harness": {"timeout": 3}})
        route = app.table.resolve("GET", "/test/mock/warning").route
        self.assertEqual(route.handler.harness.timeout, 3)

    def test_renderer_for_path(self):
        rndr = TextRenderer()
        api = API("/txt", "txt", renderer=rndr, allow_insecure=True)
        app = Dispatcher([mock_api(), api])
        self.assertIs(app.renderer_for_path("/txt/goob"), rndr)
        self.assertIs(app.renderer_for_path("/txt"), rndr)
        self.assertIs(app.renderer_for_path("/txtx"), app.default_renderer)

        body = b''.join(app(self.env("/txt/goob"), self.start))
        self.assertTrue(self.status.startswith("404"))
        self.assertTrue(body.endswith(b"\n"))
        self.assertEqual(self.headers.get("Content-Type"), "text/plain; charset=utf-8")

    def test_api_renderer(self):
        api = API("/txt", "txt", renderer=TextRenderer(), allow_insecure=True,
                  routes=[Route("/hello", lambda w, r: "hello", GET),
                          Route("/json", lambda w, r: {"a": 1}, GET, renderer=JSONRenderer())])
        app = Dispatcher([api])

        body = b''.join(app(self.env("/txt/hello"), self.start))
        self.assertEqual(self.status, "200 OK")
        self.assertEqual(body, b"hello")
        self.assertEqual(self.headers.get("Content-Type"), "text/plain; charset=utf-8")

        body = b''.join(app(self.env("/txt/json"), self.start))
        self.assertEqual(json.loads(body), {"a": 1})
        self.assertEqual(self.headers.get("Content-Type"), "application/json")

        body = b''.join(app(self.env("/txt/goob"), self.start))
        self.assertTrue(self.status.startswith("404"))
        self.assertTrue(body.endswith(b"\n"))
        self.assertEqual(self.headers.get("Content-Type"), "text/plain; charset=utf-8")

if __name__ == '__main__':
    test.main()
