"""
small helper functions for interpreting parts of an HTTP request
"""
import re
from typing import List, Mapping, Union

__all__ = [ 'is_content_type', 'match_accept', 'order_accepts', 'normalize_path', 'flatten_params' ]

_qval_re = re.compile(r';\s*q=(\d+(\.\d+)?)')

def is_content_type(label: str) -> bool:
    """
    return True if the given format label looks like a MIME type (i.e. contains a '/') rather
    than a logical format name (like "json").
    """
    return '/' in label

def match_accept(ctype: str, accepted: str):
    """
    compare a content type to a value from an Accept header, allowing either to be a wildcard
    of the form "type/*".  The more specific of the two is returned if they match; otherwise,
    None is returned.
    """
    if ctype == accepted or accepted in ('*', '*/*'):
        return ctype
    if accepted.endswith('/*') and ctype.startswith(accepted[:-1]):
        return ctype
    if ctype.endswith('/*') and accepted.startswith(ctype[:-1]):
        return accepted
    return None

def order_accepts(accepts: Union[str, List[str]]) -> List[str]:
    """
    return the MIME types given in one or more Accept header values ordered by their q-values.
    The q-values are dropped from the output, and types with a q-value of zero are excluded.
    Types with equal q-values keep the order given by the client.
    """
    if isinstance(accepts, str):
        accepts = [accepts]
    vals = []
    for a in accepts:
        vals.extend([v.strip() for v in a.split(',') if v.strip()])

    ranked = []
    for v in vals:
        q = 1.0
        m = _qval_re.search(v)
        if m:
            q = float(m.group(1))
        ranked.append((re.sub(r';.*$', '', v).strip(), q))

    ranked.sort(key=lambda a: a[1], reverse=True)
    return [a[0] for a in ranked if a[1] > 0]

def normalize_path(path: str) -> str:
    """
    collapse repeated slashes and drop any trailing slash (except for the root path, "/")
    """
    path = re.sub(r'/+', '/', '/' + (path or ''))
    if len(path) > 1:
        path = path.rstrip('/')
    return path

def flatten_params(params: Mapping[str, List[str]]) -> dict:
    """
    reduce the multi-valued output of ``urllib.parse.parse_qs`` to single values; where a
    parameter was given more than once, the last value wins.
    """
    return dict((k, v[-1]) for k, v in params.items() if v)
