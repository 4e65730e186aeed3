"""
Quarry cache — result cache keys.

A result key identifies one SELECT by its SQL text and bound parameters:

    sha1(sql + md5(param_1) + md5(param_2) + ...)

Each parameter is hashed together with its type name, so ``1`` and ``"1"``
produce different keys.
"""

from __future__ import annotations

import hashlib
from typing import Any, Optional, Sequence


class ResultKeyBuilder:
    """
    Builds fixed-length keys for cached statement results.

    Pattern: ``{prefix}{sha1_hex}``
    """

    def __init__(self, prefix: str = ""):
        self._prefix = prefix

    @staticmethod
    def param_digest(value: Any) -> str:
        token = f"{type(value).__name__}:{value!r}"
        return hashlib.md5(token.encode("utf-8")).hexdigest()

    def build(self, sql: str, params: Optional[Sequence[Any]] = None) -> str:
        raw = sql + "".join(self.param_digest(p) for p in params or ())
        return self._prefix + hashlib.sha1(raw.encode("utf-8")).hexdigest()


_default_builder = ResultKeyBuilder()


def result_key(sql: str, params: Optional[Sequence[Any]] = None) -> str:
    """Cache key for one statement execution."""
    return _default_builder.build(sql, params)
