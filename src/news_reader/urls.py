# news_reader/urls.py
from __future__ import annotations

import re
from typing import Any, Mapping, Optional, Union
from urllib.parse import quote, urlencode

PathParams = Mapping[str, Union[str, int]]
QueryParams = Mapping[str, Any]

_TRAILING_SLASHES = re.compile(r"/+$")


def encode_component(value: Any) -> str:
    # same reserved set as JavaScript's encodeURIComponent
    return quote(str(value), safe="-_.!~*'()")


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def substitute_params(path: str, params: Optional[PathParams]) -> str:
    """
    Replaces ``:key`` tokens with URL-encoded values.

    /users/:id + {"id": 42} -> /users/42

    Tokens with no matching key are left in place.
    """
    url = path
    for key, value in (params or {}).items():
        token = re.compile(rf":{re.escape(key)}(?![A-Za-z0-9_])")
        encoded = encode_component(value)
        url = token.sub(lambda _m: encoded, url)
    return url


def join_base_url(base_url: str, path: str) -> str:
    """Exactly one slash between base and path."""
    base = _TRAILING_SLASHES.sub("", base_url or "")
    clean_path = path if path.startswith("/") else f"/{path}"
    return f"{base}{clean_path}"


def build_query_string(query: Optional[QueryParams]) -> str:
    pairs = []
    for key, value in (query or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, _stringify(v)) for v in value)
        else:
            pairs.append((key, _stringify(value)))
    return urlencode(pairs)


def build_url(
    path: str,
    *,
    base_url: str = "",
    use_base_url: bool = True,
    params: Optional[PathParams] = None,
    query: Optional[QueryParams] = None,
) -> str:
    """
    Path params -> base URL -> query string.

    build_url("/posts/:slug", base_url="https://api.example/", params={"slug": "hello"},
              query={"tags": ["a", "b"]})
      -> "https://api.example/posts/hello?tags=a&tags=b"
    """
    url = substitute_params(path, params)

    if use_base_url and not url.startswith("http"):
        url = join_base_url(base_url, url)

    query_string = build_query_string(query)
    if query_string:
        url += ("&" if "?" in url else "?") + query_string
    return url
