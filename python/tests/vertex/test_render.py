import os, sys, json, logging
import unittest as test

from vertex import render
from vertex.render import (ResponseEnvelope, RenderFunc, JSONRenderer, TextRenderer,
                           NegotiatingRenderer, write_error)
from vertex.request import Request, ResponseWriter
from vertex.errors import ErrorCode

def make_request(qs="", accept=None):
    env = { 'REQUEST_METHOD': "GET", 'PATH_INFO': "/", 'QUERY_STRING': qs }
    if accept:
        env['HTTP_ACCEPT'] = accept
    return Request(env)

class TestEnvelope(test.TestCase):

    def test_ctor(self):
        resp = ResponseEnvelope("ello")
        self.assertEqual(resp.response_object, "ello")
        self.assertEqual(resp.error_string, "OK")
        self.assertEqual(resp.error_code, ErrorCode.OK)
        self.assertFalse(resp.is_error)

        resp = ResponseEnvelope(None, "nope", ErrorCode.NOT_FOUND, 1.5, "abc")
        self.assertTrue(resp.is_error)
        self.assertEqual(list(resp.to_dict().keys()),
                         ["errorString", "errorCode", "processingTime", "requestId", "response"])
        self.assertEqual(resp.to_dict()["errorCode"], -4)
        self.assertEqual(resp.to_dict()["requestId"], "abc")

class TestRenderFunc(test.TestCase):

    def test_render(self):
        def textrender(resp, w, r):
            w.set_header("Content-Type", "text/plain")
            w.write("testung\n")

        rndr = RenderFunc(textrender, "text/plain")
        self.assertEqual(rndr.content_types(), ["text/plain"])
        self.assertEqual(rndr.format_name, "plain")

        w = ResponseWriter()
        rndr.render(ResponseEnvelope({}), w, None)
        self.assertEqual(w.body, b"testung\n")
        self.assertEqual(w.headers.get("Content-Type"), "text/plain")

    def test_no_ctype(self):
        with self.assertRaises(ValueError):
            RenderFunc(lambda resp, w, r: None)

class TestJSONRenderer(test.TestCase):

    def setUp(self):
        self.rndr = JSONRenderer()

    def test_success(self):
        w = ResponseWriter()
        self.rndr.render(ResponseEnvelope("ello"), w, make_request())
        self.assertEqual(w.body, b'"ello"')
        self.assertEqual(w.headers.get("Content-Type"), "application/json")

        w = ResponseWriter()
        self.rndr.render(ResponseEnvelope({"foo": "f", "bar": "b"}), w, None)
        self.assertEqual(json.loads(w.body), {"foo": "f", "bar": "b"})

    def test_error(self):
        w = ResponseWriter()
        resp = ResponseEnvelope(None, "Missing required parameters: foo", ErrorCode.BAD_REQUEST,
                                0.5, "req1")
        self.rndr.render(resp, w, make_request())
        data = json.loads(w.body)
        self.assertEqual(data["errorString"], "Missing required parameters: foo")
        self.assertEqual(data["errorCode"], -3)
        self.assertEqual(data["processingTime"], 0.5)
        self.assertEqual(data["requestId"], "req1")
        self.assertIsNone(data["response"])

    def test_jsonp(self):
        w = ResponseWriter()
        self.rndr.render(ResponseEnvelope({"a": 1}), w, make_request("callback=handleIt"))
        self.assertEqual(w.body, b'handleIt({"a": 1})')
        self.assertEqual(w.headers.get("Content-Type"), "application/javascript")

        w = ResponseWriter()
        self.rndr.render(ResponseEnvelope({"a": 1}), w, make_request("callback=app.cb_2"))
        self.assertEqual(w.body, b'app.cb_2({"a": 1})')

    def test_bad_callback(self):
        w = ResponseWriter()
        self.rndr.render(ResponseEnvelope({"a": 1}), w, make_request("callback=alert(1);x"))
        self.assertEqual(w.body, b'{"a": 1}')
        self.assertEqual(w.headers.get("Content-Type"), "application/json")

    def test_jsonp_error(self):
        w = ResponseWriter()
        self.rndr.render(ResponseEnvelope(None, "nope", ErrorCode.NOT_FOUND), w,
                         make_request("callback=cb"))
        self.assertEqual(json.loads(w.body)["errorString"], "nope")

class TestTextRenderer(test.TestCase):

    def setUp(self):
        self.rndr = TextRenderer()

    def test_render(self):
        w = ResponseWriter()
        self.rndr.render(ResponseEnvelope("hello"), w, None)
        self.assertEqual(w.body, b"hello")
        self.assertEqual(w.headers.get("Content-Type"), "text/plain; charset=utf-8")

        w = ResponseWriter()
        self.rndr.render(ResponseEnvelope(b"raw"), w, None)
        self.assertEqual(w.body, b"raw")

        w = ResponseWriter()
        self.rndr.render(ResponseEnvelope(None), w, None)
        self.assertEqual(w.body, b"")

    def test_error(self):
        w = ResponseWriter()
        self.rndr.render(ResponseEnvelope(None, "wat", ErrorCode.GENERAL_FAILURE), w, None)
        self.assertEqual(w.body, b"wat\n")

class TestNegotiatingRenderer(test.TestCase):

    def setUp(self):
        self.rndr = NegotiatingRenderer(JSONRenderer(), TextRenderer())

    def test_content_types(self):
        self.assertEqual(self.rndr.content_types(),
                         ["application/json", "text/json", "text/plain"])

    def test_select(self):
        self.assertIsInstance(self.rndr.select(None), JSONRenderer)
        self.assertIsInstance(self.rndr.select(make_request()), JSONRenderer)
        self.assertIsInstance(self.rndr.select(make_request("format=text")), TextRenderer)
        self.assertIsInstance(self.rndr.select(make_request(accept="text/plain")), TextRenderer)
        self.assertIsInstance(self.rndr.select(make_request(accept="text/plain;q=0.5, text/json")),
                              JSONRenderer)
        self.assertIsInstance(self.rndr.select(make_request(accept="*/*")), JSONRenderer)

    def test_fallback(self):
        self.assertIsInstance(self.rndr.select(make_request("format=xml")), JSONRenderer)
        self.assertIsInstance(self.rndr.select(make_request(accept="image/png")), JSONRenderer)

    def test_render(self):
        w = ResponseWriter()
        self.rndr.render(ResponseEnvelope("hello"), w, make_request(accept="text/plain"))
        self.assertEqual(w.body, b"hello")

        w = ResponseWriter()
        self.rndr.render(ResponseEnvelope("hello"), w, make_request())
        self.assertEqual(w.body, b'"hello"')

    def test_empty(self):
        with self.assertRaises(ValueError):
            NegotiatingRenderer()

class TestWriteError(test.TestCase):

    def test_write_error(self):
        w = ResponseWriter()
        write_error(w, "watwat")
        self.assertEqual(w.code, 500)
        self.assertEqual(w.body, b"watwat\n")
        self.assertEqual(w.headers.get("Content-Type"), "text/plain; charset=utf-8")

if __name__ == '__main__':
    test.main()
