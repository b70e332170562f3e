"""
Common utility functions for oaschema.
"""

import json
import math
import os
from typing import Any
from urllib.parse import urljoin, urlparse

from jsoncomparison import NO_DIFF, Compare

URL_SCHEMES = ('http', 'https', 'file')


def is_number(value: Any) -> bool:
    """True for JSON numbers. Booleans are not numbers."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_integral(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value) and value.is_integer()


def json_equal(a: Any, b: Any) -> bool:
    """Compares two JSON values, keeping booleans apart from numbers."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if is_number(a) and is_number(b):
        return a == b
    if isinstance(a, dict) and isinstance(b, dict):
        if a.keys() != b.keys():
            return False
        return all(json_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(json_equal(x, y) for x, y in zip(a, b))
    if type(a) is not type(b):
        return False
    return a == b


def _normalize(value: Any) -> Any:
    if isinstance(value, float) and is_integral(value):
        return int(value)
    if isinstance(value, dict):
        return {k: _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def canonical_json(value: Any) -> str:
    """Serializes a JSON value so that equal values produce equal text."""
    return json.dumps(_normalize(value), sort_keys=True, separators=(',', ':'), ensure_ascii=False)


def structurally_equal(a: Any, b: Any) -> bool:
    """Deep comparison of two decoded documents or fragments."""
    if a is b:
        return True
    if type(a) is not type(b):
        return False
    if not isinstance(a, (dict, list)):
        return json_equal(a, b)
    return Compare().check(a, b) == NO_DIFF and Compare().check(b, a) == NO_DIFF


def is_url(location: str) -> bool:
    return urlparse(location).scheme in URL_SCHEMES


def resolve_location(base: str, uri: str) -> str:
    """Resolves a reference URI against the location of the referring document.

    Locations are either URLs or file system paths. An empty base stands for
    the current working directory.
    """
    if not uri:
        return base
    if is_url(uri):
        return uri
    if os.path.isabs(uri):
        return os.path.normpath(uri)
    if base and is_url(base):
        return urljoin(base, uri)
    base_dir = os.path.dirname(base) if base else os.getcwd()
    return os.path.normpath(os.path.join(base_dir, uri))


def split_ref(ref: str):
    """Splits a reference into its URI and fragment parts.

    Returns:
        tuple: (uri, fragment). The fragment has no leading '#'.
    """
    uri, _, fragment = ref.partition('#')
    return uri, fragment
