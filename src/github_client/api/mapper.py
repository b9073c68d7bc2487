"""
JSON mapping between response bodies and Python values.

A *shape* describes what a body is decoded into:

- ``None``: the parsed JSON value as is
- a class exposing a ``from_api`` classmethod (resource wrappers)
- any other callable taking the parsed JSON value, like the
  ``create_*_from_api`` style converters
"""

import json
import logging
from typing import Any, Callable, Optional, Union

from .errors import DecodeError

logger = logging.getLogger(__name__)

Shape = Optional[Union[type, Callable[[Any], Any]]]


class JsonMapper:
    """Decode response bodies into shapes and encode request bodies."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def parse(self, body: bytes) -> Any:
        """
        Parse raw bytes into JSON values.

        Raises:
            DecodeError: If the body is not valid JSON
        """
        if not body or not body.strip():
            return None
        try:
            return json.loads(body.decode(self.encoding))
        except (UnicodeDecodeError, ValueError) as e:
            snippet = body[:200].decode(self.encoding, errors="replace")
            raise DecodeError(f"Malformed JSON body: {e} ({snippet!r})") from e

    def convert(self, value: Any, shape: Shape) -> Any:
        """
        Convert an already parsed JSON value into ``shape``.

        Raises:
            DecodeError: If the value does not fit the shape
        """
        if shape is None or value is None:
            return value
        factory = getattr(shape, "from_api", shape)
        try:
            return factory(value)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            name = getattr(shape, "__name__", repr(shape))
            raise DecodeError(f"Response does not match {name}: {e}", response_data=value) from e

    def decode(self, body: bytes, shape: Shape = None) -> Any:
        return self.convert(self.parse(body), shape)

    def encode(self, value: Any) -> bytes:
        """Serialize a structured request body."""
        try:
            return json.dumps(value, default=_default).encode(self.encoding)
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Request body is not JSON serializable: {e}") from e


def _default(value: Any) -> Any:
    if hasattr(value, "to_api"):
        return value.to_api()
    if hasattr(value, "__dict__"):
        return {k: v for k, v in vars(value).items() if not k.startswith("_")}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
