"""
Quarry cache — Pluggable serializers for backends that store bytes.

Supports JSON (default), pickle (keeps Python types such as dates and
Decimals intact) and msgpack (compact, optional dependency).
"""

from __future__ import annotations

import json
import logging
import pickle
from typing import Any

logger = logging.getLogger("quarry.cache.serializers")


class JsonCacheSerializer:
    """
    JSON serializer — safe and human-readable.

    Values that JSON cannot represent are stored as ``str()``, so cached
    dates come back as strings.
    """

    def serialize(self, value: Any) -> bytes:
        try:
            return json.dumps(value, default=str, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError, OverflowError) as e:
            logger.warning(f"JSON serialization failed: {e}")
            raise

    def deserialize(self, data: bytes) -> Any:
        try:
            return json.loads(bytes(data).decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"JSON deserialization failed: {e}")
            raise


class PickleCacheSerializer:
    """
    Pickle serializer — round-trips arbitrary row values.

    WARNING: Only use with trusted storage. Pickle can execute
    arbitrary code during deserialization.
    """

    def serialize(self, value: Any) -> bytes:
        try:
            return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            logger.warning(f"Pickle serialization failed: {e}")
            raise

    def deserialize(self, data: bytes) -> Any:
        try:
            return pickle.loads(bytes(data))
        except (pickle.UnpicklingError, EOFError) as e:
            logger.warning(f"Pickle deserialization failed: {e}")
            raise


class MsgpackCacheSerializer:
    """
    MessagePack serializer — compact binary.

    Requires `msgpack` package: pip install quarry[msgpack]
    """

    def serialize(self, value: Any) -> bytes:
        import msgpack
        try:
            return msgpack.packb(value, use_bin_type=True, default=str)
        except (TypeError, ValueError) as e:
            logger.warning(f"Msgpack serialization failed: {e}")
            raise

    def deserialize(self, data: bytes) -> Any:
        import msgpack
        try:
            return msgpack.unpackb(bytes(data), raw=False)
        except (msgpack.UnpackException, ValueError) as e:
            logger.warning(f"Msgpack deserialization failed: {e}")
            raise


SERIALIZERS = {
    "json": JsonCacheSerializer,
    "pickle": PickleCacheSerializer,
    "msgpack": MsgpackCacheSerializer,
}


def get_serializer(name: str = "json"):
    """
    Factory for serializer instances.

    Args:
        name: "json", "pickle", or "msgpack"
    """
    cls = SERIALIZERS.get(name)
    if cls is None:
        raise ValueError(f"Unknown serializer: {name}. Options: {list(SERIALIZERS)}")
    return cls()
