"""
Bookkeeping for the output formats an API can produce and for choosing among them based on
what a client asks for.
"""
import re
from collections import namedtuple
from typing import List, Optional

from .utils import is_content_type, match_accept

__all__ = [ "Format", "FormatSupport", "Unacceptable", "UnsupportedFormat" ]

class UnsupportedFormat(Exception):
    """
    the client explicitly requested (e.g. via a ``format`` query parameter) a format that is not
    supported.
    """
    pass

class Unacceptable(Exception):
    """
    none of the supported formats produce a content type that the client will accept
    """
    pass

Format = namedtuple("Format", ["name", "ctype"])

class FormatSupport(object):
    """
    a registry of supported formats that can select the format best matching a client's
    request.  A format is known by its logical name (e.g. "json") and by the content types
    that it can be delivered as.
    """

    def __init__(self):
        self._byname = {}
        self._byctype = {}
        self._deffmt = None

    def support(self, format: Format, ctypes: List[str]=None, asdefault: bool=False):
        """
        register a format as supported.

        :param Format format:  the format to support
        :param list  ctypes:   additional content types that, when requested, should select this
                               format; the format's own ``ctype`` is always included.
        :param bool asdefault: if True, make this the format returned when the client expresses
                               no preference.  The first format registered is the default until
                               another is explicitly made so.
        :raises ValueError:    if the name or one of the content types is already registered
        """
        ctypes = list(ctypes or [])
        if format.ctype not in ctypes:
            ctypes.insert(0, format.ctype)
        if format.name in self._byname:
            raise ValueError("Format already registered as supported: " + format.name)
        taken = [c for c in ctypes if c in self._byctype]
        if taken:
            raise ValueError("Content types already supported by a registered format: " + str(taken))

        self._byname[format.name] = format
        for ct in ctypes:
            self._byctype[ct] = format
        if asdefault or not self._deffmt:
            self._deffmt = format

    @property
    def names(self) -> List[str]:
        return list(self._byname.keys())

    def default_format(self) -> Optional[Format]:
        """
        the format to return when the client has not indicated a preference
        """
        return self._deffmt

    def match(self, label: str) -> Optional[Format]:
        """
        return the supported format corresponding to a format name or content type (which may be
        a wildcard like "text/*"), or None if there is no match.
        """
        if label in ('*', '*/*'):
            return self.default_format()
        if not is_content_type(label):
            return self._byname.get(label)

        if label.endswith('/*'):
            if self._deffmt and match_accept(self._deffmt.ctype, label):
                return self._deffmt
            for ct, fmt in self._byctype.items():
                if match_accept(ct, label):
                    return fmt
            return None

        fmt = self._byctype.get(label)
        if fmt:
            fmt = Format(fmt.name, label)
        return fmt

    def select_format(self, formats: List[str], accepts: List[str]) -> Optional[Format]:
        """
        pick the supported format that best satisfies the client.  Explicitly requested formats
        take precedence over the Accept header, but they must still be acceptable to it.

        :param list formats:  format names or content types requested explicitly, in order of
                              preference
        :param list accepts:  the content types from the Accept header, ordered by preference
        :return: the selected Format, or None if the client expressed no preference
        :raises UnsupportedFormat:  if none of the explicitly requested formats is supported
        :raises Unacceptable:       if no supported format satisfies the Accept header
        """
        accepts = [a for a in (accepts or []) if a]
        anything = not accepts or any(a in ('*', '*/*') for a in accepts)

        if formats:
            found = [f for f in (self.match(label) for label in formats) if f]
            if not found:
                raise UnsupportedFormat("Unsupported format requested: " + ", ".join(formats))
            for fmt in found:
                if anything or any(match_accept(fmt.ctype, a) for a in accepts):
                    return fmt
            raise Unacceptable("format parameter is inconsistent with Accept header")

        if accepts:
            for label in accepts:
                fmt = self.match(label)
                if fmt:
                    return fmt
            raise Unacceptable("No given Accept types supported")

        return None
