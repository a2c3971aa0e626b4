r"""Query string encoding utilities.

Parameters are encoded as UTF-8 with ``+`` for space, ``=`` between key
and value, and ``&`` between pairs. A list or tuple value produces one
pair per element, in order.
"""

from __future__ import annotations

__all__ = ["append_query", "encode_params"]

from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

if TYPE_CHECKING:
    from collections.abc import Mapping


def _param_value(value: Any) -> str:
    return "" if value is None else str(value)


def encode_params(params: Mapping[str, Any]) -> str:
    """Encode a parameter mapping as a URL-encoded query string.

    Args:
        params: The parameters. A value may be a scalar or a list/tuple
            of values for multi-valued parameters. ``None`` is encoded
            as an empty value.

    Returns:
        The encoded query string, without a leading ``?``.

    Example:
        ```pycon
        >>> from davexec.utils.query import encode_params
        >>> encode_params({"q": "a b", "m": ["abc", 1]})
        'q=a+b&m=abc&m=1'
        >>> encode_params({"empty": None})
        'empty='

        ```
    """
    pairs: list[tuple[str, str]] = []
    for name, value in params.items():
        if isinstance(value, (list, tuple)):
            pairs.extend((name, _param_value(item)) for item in value)
        else:
            pairs.append((name, _param_value(value)))
    return urlencode(pairs, encoding="utf-8")


def append_query(uri: str, params: Mapping[str, Any]) -> str:
    """Append encoded parameters to the query component of a URI.

    Args:
        uri: The target URI, with or without a query component. A
            fragment stays at the end.
        params: The parameters to append. An empty mapping leaves the
            URI unchanged.

    Returns:
        The URI with the parameters appended.

    Example:
        ```pycon
        >>> from davexec.utils.query import append_query
        >>> append_query("http://host/path", {"a": 1})
        'http://host/path?a=1'
        >>> append_query("http://host/path?x=y", {"a": 1})
        'http://host/path?x=y&a=1'
        >>> append_query("http://host/path#top", {"a": 1})
        'http://host/path?a=1#top'

        ```
    """
    if not params:
        return uri
    base, hash_mark, fragment = uri.partition("#")
    if "?" not in base:
        separator = "?"
    elif base.endswith(("?", "&")):
        separator = ""
    else:
        separator = "&"
    return f"{base}{separator}{encode_params(params)}{hash_mark}{fragment}"
