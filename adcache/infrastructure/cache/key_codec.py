"""
Cache and rate-limit key construction.

Key shape:
    <namespace>:<version>:<clientId>:<sortedParamString>

Namespace and version come first so a schema change can be invalidated with
a single prefix deletion (`meta:campaigns:v1:`), and the client segment comes
next so one client's entries can be dropped together (`meta:campaigns:v1:42:`).

Every segment is percent-escaped, which keeps separators out of user input:
`("a:b", [])` and `("a", ["b"])` can never produce the same key. Long
parameter strings are replaced by a SHA-256 digest to bound key length.
"""

import hashlib
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import quote

from adcache.core.config.constants import (
    HASHED_SEGMENT_PREFIX,
    KEY_SEPARATOR,
    MAX_PARAM_SEGMENT_LENGTH,
)

Parts = Mapping[str, Any] | Iterable[Any] | None


def _segment(value: Any) -> str:
    """Render one input as an escaped segment; None becomes empty."""
    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return quote(str(value), safe="")


def _value_segment(value: Any) -> str:
    """Mapping values that are collections are sets too (e.g. account id lists)."""
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(sorted(_segment(v) for v in value))
    return _segment(value)


def _param_string(parts: Parts) -> str:
    if parts is None:
        return ""

    if isinstance(parts, Mapping):
        pairs = sorted((_segment(k), _value_segment(v)) for k, v in parts.items())
        rendered = "&".join(f"{k}={v}" for k, v in pairs)
    elif isinstance(parts, (str, bytes)):
        rendered = _segment(parts)
    else:
        # Parameters are a set: order of arrival must not change the key
        rendered = ",".join(sorted(_segment(p) for p in parts))

    if len(rendered) > MAX_PARAM_SEGMENT_LENGTH:
        digest = hashlib.sha256(rendered.encode("utf-8")).hexdigest()
        return f"{HASHED_SEGMENT_PREFIX}{digest}"
    return rendered


class KeyCodec:
    """
    Deterministic key builder.

    No randomness and no clock, so keys are stable across restarts and
    identical across processes. Malformed input is never rejected: the worst
    outcome of a bad key is a cache miss.

    Usage:
        codec = KeyCodec(version="v2")
        key = codec.build_key("meta:campaigns", user_id, {"accounts": ids, "range": "all"})
        await store.delete_by_prefix(codec.build_prefix("meta:campaigns", user_id))
    """

    def __init__(self, version: str = "v1"):
        self._version = _segment(version)

    @property
    def version(self) -> str:
        return self._version

    def build_key(self, namespace: str, client_id: Any, parts: Parts = None) -> str:
        """
        Build `<namespace>:<version>:<clientId>:<sortedParamString>`.

        Namespace is kept verbatim apart from escaping of characters outside
        the key alphabet; colons inside it are allowed and act as sub-namespaces.
        """
        return KEY_SEPARATOR.join(
            (
                self._namespace(namespace),
                self._version,
                _segment(client_id),
                _param_string(parts),
            )
        )

    def build_prefix(self, namespace: str, client_id: Any = None) -> str:
        """
        Prefix matching every key of a namespace, or of one client in it.

        The trailing separator prevents `client4` from matching `client42`.
        """
        segments = [self._namespace(namespace), self._version]
        if client_id is not None:
            segments.append(_segment(client_id))
        return KEY_SEPARATOR.join(segments) + KEY_SEPARATOR

    @staticmethod
    def _namespace(namespace: str) -> str:
        return quote(str(namespace or ""), safe=":")


_default_codec: KeyCodec | None = None


def get_key_codec() -> KeyCodec:
    """Codec using the configured CACHE_KEY_VERSION."""
    global _default_codec

    if _default_codec is None:
        from adcache.core.config.settings import get_settings

        _default_codec = KeyCodec(version=get_settings().cache.CACHE_KEY_VERSION)

    return _default_codec


def build_key(namespace: str, client_id: Any, parts: Parts = None) -> str:
    """Shortcut for get_key_codec().build_key(...)."""
    return get_key_codec().build_key(namespace, client_id, parts)
