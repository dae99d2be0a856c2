"""
The self-test harness:  integration tests declared on routes that can be run on demand against
a live service via HTTP.

A test is attached to a route with a severity tag, usually via :py:func:`warning_test` or
:py:func:`critical_test`::

    def check_user(t):
        req = t.new_request("GET", {"id": "42"})
        user = t.json_request(req)
        if user.get("id") != 42:
            t.fail("wrong user returned: %s", user)

    Route("/users/{id}", UserHandler(), GET, test=critical_test(check_user))

For each API, the dispatcher exposes two endpoints, ``/test/{root}/warning`` and
``/test/{root}/critical``, where ``{root}`` is the API root without slashes.  Requesting one
runs every test of that severity in the API, in route order, issuing real HTTP requests back
to the service, and returns a plain text transcript marking each test ``[PASS]``, ``[FAIL]``,
or ``[SKIP]``.  The endpoint responds with 200 if no test failed and 500 otherwise; a failing
test never prevents the remaining tests from running.

A test procedure receives a :py:class:`TestContext`, which is created fresh for each test run;
procedures should keep any state they need local to the call.
"""
import time, logging
from collections import namedtuple
from typing import Callable, List, Mapping

import requests

from .errors import VertexError, ErrorCode
from .handlers import Handler
from .routing import Route, GET, HEAD, DELETE, format_path
from .render import TextRenderer

__all__ = [ "WARNING", "CRITICAL", "TestDescriptor", "warning_test", "critical_test",
            "TestFailure", "TestSkipped", "TestContext", "TestResult", "TestReport",
            "TestHarness", "HarnessHandler", "harness_routes" ]

WARNING = "warning"
CRITICAL = "critical"
SEVERITIES = (WARNING, CRITICAL)

PASS = "PASS"
FAIL = "FAIL"
SKIP = "SKIP"

DEF_TIMEOUT = 10
FORWARDED_PROTO_HEADER = "X-Forwarded-Proto"

class TestDescriptor(namedtuple("TestDescriptor", ["severity", "procedure"])):
    """
    a test attached to a route:  a severity tag and a procedure that takes a TestContext
    """
    __test__ = False
    __slots__ = ()

    def __new__(cls, severity: str, procedure: Callable):
        if not callable(procedure):
            raise TypeError("TestDescriptor: procedure is not callable")
        return super(TestDescriptor, cls).__new__(cls, severity, procedure)

def warning_test(procedure: Callable) -> TestDescriptor:
    """
    declare a test whose failure should be treated as a warning
    """
    return TestDescriptor(WARNING, procedure)

def critical_test(procedure: Callable) -> TestDescriptor:
    """
    declare a test whose failure indicates the service is not functioning
    """
    return TestDescriptor(CRITICAL, procedure)

class TestFailure(Exception):
    """
    raised by :py:meth:`TestContext.fail` to end a test procedure as failed
    """
    __test__ = False

class TestSkipped(Exception):
    """
    raised by :py:meth:`TestContext.skip` to end a test procedure without a verdict
    """
    __test__ = False

class TestContext(object):
    """
    the capabilities offered to a running test procedure:  building requests for the route
    under test, sending them to the live service, and recording the outcome.
    """
    __test__ = False

    def __init__(self, api, route: Route, base_url: str, session: requests.Session=None,
                 timeout: float=DEF_TIMEOUT, log: logging.Logger=None, secure: bool=False):
        self.api = api
        self.route = route
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout
        self.secure = secure
        self.log_lines = []
        self.last_response = None
        self._log = log or logging.getLogger("vertex.harness")

    def url(self, params: Mapping=None) -> str:
        """
        return the URL of the route under test with the given path parameters substituted
        """
        return self.base_url + self.api.full_path(format_path(self.route.path, params))

    def new_request(self, method: str=GET, params: Mapping=None, body=None,
                    headers: Mapping=None) -> requests.PreparedRequest:
        """
        build a request to the route under test.

        :param str method:  the HTTP method
        :param dict params: request parameters.  Values for the route's path placeholders are
                            substituted into the path; the rest are sent as query parameters
                            (for GET, HEAD, and DELETE) or as a URL-encoded form (otherwise).
                            A list value sends the parameter more than once.
        :param body:        content for the request body; if given, the remaining params are
                            sent in the query string.  A dict or list is sent as JSON.
        :param dict headers: extra request headers.  When the test run was triggered over HTTPS,
                             ``X-Forwarded-Proto: https`` is added unless given here.
        """
        params = dict(params or {})
        pathparams = dict((k, params.pop(k)) for k in self.route.placeholders if k in params)
        kw = { "headers": dict(headers or {}) }
        if self.secure:
            kw["headers"].setdefault(FORWARDED_PROTO_HEADER, "https")

        method = method.upper()
        if body is not None:
            kw['params'] = params
            if isinstance(body, (dict, list)):
                kw['json'] = body
            else:
                kw['data'] = body
        elif method in (GET, HEAD, DELETE):
            kw['params'] = params
        else:
            kw['data'] = params

        req = requests.Request(method, self.url(pathparams), **kw)
        return self.session.prepare_request(req)

    def do(self, req: requests.PreparedRequest) -> requests.Response:
        """
        send a request to the service and return its response
        """
        self._log.debug("harness request: %s %s", req.method, req.url)
        self.last_response = self.session.send(req, timeout=self.timeout)
        return self.last_response

    def json_request(self, req: requests.PreparedRequest, expect_status: int=200):
        """
        send a request, check its status, and return the decoded JSON body
        :raises TestFailure:  if the status is not as expected or the body is not JSON
        """
        resp = self.do(req)
        if expect_status is not None and resp.status_code != expect_status:
            self.fail("%s %s returned %s (expected %s)", req.method, req.url, resp.status_code,
                      expect_status)
        try:
            return resp.json()
        except ValueError as ex:
            self.fail("Response from %s is not JSON: %s", req.url, str(ex))

    def log(self, message: str, *args):
        """
        add a line to the transcript for this test
        """
        self.log_lines.append(message % args if args else message)

    def fail(self, message: str, *args):
        """
        end the test as failed with an explanation
        """
        raise TestFailure(message % args if args else message)

    def skip(self, message: str="skipped", *args):
        """
        end the test without passing or failing it
        """
        raise TestSkipped(message % args if args else message)

class TestResult(object):
    """
    the outcome of running one route's test
    """
    __test__ = False

    def __init__(self, route: Route, path: str, severity: str, status: str, message: str="",
                 log_lines: List[str]=None, elapsed: float=0.0):
        self.route = route
        self.path = path
        self.severity = severity
        self.status = status
        self.message = message
        self.log_lines = log_lines or []
        self.elapsed = elapsed

    @property
    def passed(self) -> bool:
        return self.status == PASS

    def format(self) -> str:
        meths = "|".join(sorted(self.route.methods))
        desc = self.route.description or self.route.path
        line = "[%s] %s %s %s: %s (%.1f ms)" % (self.status, self.severity, meths, self.path, desc,
                                                  self.elapsed)
        if self.message:
            line += " - " + self.message
        return "\n".join([line] + ["    " + l for l in self.log_lines])

class TestReport(object):
    """
    the results of running all of an API's tests of one severity
    """
    __test__ = False

    def __init__(self, api, severity: str, results: List[TestResult]=None):
        self.api = api
        self.severity = severity
        self.results = results or []

    def count(self, status: str) -> int:
        return len([r for r in self.results if r.status == status])

    @property
    def ok(self) -> bool:
        return self.count(FAIL) == 0

    def transcript(self) -> str:
        out = ["Testing %s API (version %s), severity: %s" %
               (self.api.name, self.api.version or "unknown", self.severity)]
        out.extend([r.format() for r in self.results])
        out.append("%d passed, %d failed, %d skipped" %
                   (self.count(PASS), self.count(FAIL), self.count(SKIP)))
        return "\n".join(out) + "\n"

class TestHarness(object):
    """
    runs the tests declared on an API's routes
    """
    __test__ = False

    def __init__(self, api, timeout: float=DEF_TIMEOUT, log: logging.Logger=None):
        self.api = api
        self.timeout = timeout
        self.log = log or logging.getLogger("vertex.harness")

    def run(self, severity: str, base_url: str, secure: bool=False) -> TestReport:
        """
        run every test of the given severity, in route order, against the service at
        ``base_url``.  If ``secure`` is True, the test requests are marked as forwarded from
        HTTPS, as the request that triggered the run was.
        """
        report = TestReport(self.api, severity)
        with requests.Session() as session:
            for route in self.api.tested_routes(severity):
                report.results.append(self.run_one(route, base_url, session, secure))
        self.log.info("%s %s tests: %d passed, %d failed", self.api.name, severity,
                      report.count(PASS), report.count(FAIL))
        return report

    def run_one(self, route: Route, base_url: str, session: requests.Session=None,
                secure: bool=False) -> TestResult:
        """
        run the test attached to a single route.  Any exception escaping the test procedure is
        recorded as a failure.
        """
        ctx = TestContext(self.api, route, base_url, session, self.timeout, self.log, secure)
        status, message = PASS, ""
        start = time.time()
        try:
            route.test.procedure(ctx)
        except TestFailure as ex:
            status, message = FAIL, str(ex)
        except TestSkipped as ex:
            status, message = SKIP, str(ex)
        except Exception as ex:
            self.log.exception("Test for %s raised an unexpected error", route.path)
            status, message = FAIL, "%s: %s" % (type(ex).__name__, str(ex))
        elapsed = (time.time() - start) * 1000

        if status == FAIL:
            self.log.warning("%s test failed for %s: %s", route.test.severity, route.path, message)
        return TestResult(route, self.api.full_path(route.path), route.test.severity, status,
                          message, ctx.log_lines, elapsed)

class HarnessHandler(Handler):
    """
    the handler behind an API's test endpoints.  It writes the transcript itself, with a status
    reflecting whether all tests passed, and so always ends with a hijacked error.
    """

    def __init__(self, harness: TestHarness, severity: str):
        self.harness = harness
        self.severity = severity

    def handle(self, w, r):
        report = self.harness.run(self.severity, r.base_url, r.is_secure)
        w.set_status(200 if report.ok else 500)
        w.set_header("Content-Type", TextRenderer.CONTENT_TYPE + "; charset=utf-8")
        w.write(report.transcript())
        raise VertexError("test transcript written", ErrorCode.HIJACKED)

def harness_routes(api, timeout: float=DEF_TIMEOUT, log: logging.Logger=None) -> List[tuple]:
    """
    return the (full path, Route) pairs for an API's test endpoints
    """
    harness = TestHarness(api, timeout, log)
    name = api.root_name() or api.name
    return [ ("/test/%s/%s" % (name, sev),
              Route("/test/%s/%s" % (name, sev), HarnessHandler(harness, sev), GET,
                    "run the %s tests of the %s API" % (sev, api.name), renderer=TextRenderer(),
                    allow_head=False))
             for sev in SEVERITIES ]
