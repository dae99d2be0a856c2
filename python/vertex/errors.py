"""
The vertex error taxonomy.

Handlers and middleware signal failure by raising an exception.  Errors raised by the framework
(and, preferably, by handlers) are :py:class:`VertexError` instances which carry a semantic
:py:class:`ErrorCode`.  The :py:mod:`~vertex.dispatch` layer is the only place where these codes
are translated into HTTP status codes (via :py:func:`http_status`); any other exception that
escapes a handler is treated as a :py:attr:`ErrorCode.GENERAL_FAILURE`.

One code is special:  :py:attr:`ErrorCode.HIJACKED` indicates that the handler (or a middleware)
has already written the complete response itself, and the framework must not write anything
further.
"""
from enum import IntEnum
from http.client import responses as _std_reasons
from typing import Optional

__all__ = [ "ErrorCode", "VertexError", "new_error", "new_error_code", "new_errorf", "http_status",
            "is_hijacked", "as_vertex_error", "HIJACKED_ERROR" ]

class ErrorCode(IntEnum):
    """
    the semantic categories of errors recognized by the framework.  The value of each is what
    is reported as the ``errorCode`` in error responses.
    """
    OK                     =  1
    GENERAL_FAILURE        = -1
    UNAUTHORIZED           = -2
    BAD_REQUEST            = -3
    NOT_FOUND              = -4
    METHOD_NOT_ALLOWED     = -5
    INSECURE_ACCESS_DENIED = -6
    HIJACKED               = -9999

_status_for_code = {
    ErrorCode.OK:                      200,
    ErrorCode.GENERAL_FAILURE:         500,
    ErrorCode.UNAUTHORIZED:            401,
    ErrorCode.BAD_REQUEST:             400,
    ErrorCode.NOT_FOUND:               404,
    ErrorCode.METHOD_NOT_ALLOWED:      405,
    ErrorCode.INSECURE_ACCESS_DENIED:  403,
    ErrorCode.HIJACKED:                None
}

_reasons = {
    200: "OK",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    500: "Internal Server Error"
}

class VertexError(Exception):
    """
    an error raised while handling a request that carries a semantic error code.
    """

    def __init__(self, message: str, code: ErrorCode=ErrorCode.GENERAL_FAILURE):
        """
        :param str  message:  a description of the problem; this is returned to the client as
                              the error string
        :param ErrorCode code:  the category of the error which determines the HTTP status
        """
        super(VertexError, self).__init__(message)
        self.message = message
        self.code = ErrorCode(code)

    @property
    def status(self) -> Optional[int]:
        """
        the HTTP status that this error should be reported with (or None for hijacked responses)
        """
        return http_status(self.code)

    def __repr__(self):
        return "VertexError(%r, %s)" % (self.message, self.code.name)

def new_error(message: str) -> VertexError:
    """
    return a new error with the :py:attr:`~ErrorCode.GENERAL_FAILURE` code
    """
    return VertexError(message)

def new_error_code(message: str, code: ErrorCode) -> VertexError:
    """
    return a new error carrying the given code
    """
    return VertexError(message, code)

def new_errorf(fmt: str, *args) -> VertexError:
    """
    return a new :py:attr:`~ErrorCode.GENERAL_FAILURE` error whose message is built from a
    %-style format string
    """
    if args:
        fmt = fmt % args
    return VertexError(fmt)

def http_status(code: ErrorCode) -> Optional[int]:
    """
    return the HTTP status code that corresponds to the given error code.  None is returned for
    :py:attr:`~ErrorCode.HIJACKED` as no status should be written for it.  Unrecognized codes
    map to 500.
    """
    try:
        return _status_for_code[ErrorCode(code)]
    except ValueError:
        return 500

def reason_for(status: int) -> str:
    """
    return a short reason phrase to accompany an HTTP status
    """
    return _reasons.get(status) or _std_reasons.get(status, "Error")

def is_hijacked(err: Exception) -> bool:
    """
    return True if the given error indicates that the response was already fully written
    by the handler.  False is returned for None and for any error not carrying the
    :py:attr:`~ErrorCode.HIJACKED` code.
    """
    return isinstance(err, VertexError) and err.code == ErrorCode.HIJACKED

def as_vertex_error(err: Exception) -> VertexError:
    """
    return the given exception as a VertexError, wrapping it as a general failure if necessary
    """
    if isinstance(err, VertexError):
        return err
    return VertexError(str(err) or type(err).__name__)

# raise this (or a fresh hijacked error) after writing the full response
HIJACKED_ERROR = VertexError("response hijacked by handler", ErrorCode.HIJACKED)
