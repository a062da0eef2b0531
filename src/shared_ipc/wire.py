"""Message shapes exchanged between execution contexts.

Two shapes exist on the wire, both plain dicts so that any one-way
primitive can carry them:

    call:   {"call": str, "data"?: any, "handle"?: number, "source": str}
    result: {"data"?: any, "error"?: str, "handle": number, "source": str}

A call without a handle is a notification. A result carries exactly one of
``data`` or ``error``.

The ``is_*`` predicates are total: they accept anything and return a bool.
The dataclasses are used to build outgoing messages and to read validated
incoming ones.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

from shared_ipc.error import MalformedMessage

CALL_KEYS: Final[frozenset[str]] = frozenset({"call", "data", "handle", "source"})
CALL_REQUIRED_KEYS: Final[frozenset[str]] = frozenset({"call", "source"})
RESULT_KEYS: Final[frozenset[str]] = frozenset({"data", "error", "handle", "source"})
RESULT_REQUIRED_KEYS: Final[frozenset[str]] = frozenset({"handle", "source"})


def is_int_not_bool(x: object) -> bool:
    """Check if x is an int but not a bool.

    ``bool`` is a subclass of ``int``; ``True`` must never alias handle 1.
    """
    return isinstance(x, int) and not isinstance(x, bool)


def is_valid_handle(x: object) -> bool:
    """Return whether x is a finite, non-bool number."""
    if is_int_not_bool(x):
        return True
    return isinstance(x, float) and math.isfinite(x)


def _has_shape(obj: Mapping[Any, Any], allowed: frozenset[str], required: frozenset[str]) -> bool:
    keys = set(obj.keys())
    return required <= keys and keys <= allowed


def is_call_message(obj: Any) -> bool:
    """Return whether ``obj`` is a well-formed call message."""
    if not isinstance(obj, Mapping):
        return False
    if not _has_shape(obj, CALL_KEYS, CALL_REQUIRED_KEYS):
        return False

    call = obj["call"]
    if not isinstance(call, str) or not call:
        return False

    handle = obj.get("handle")
    if handle is not None and not is_valid_handle(handle):
        return False

    return isinstance(obj["source"], str)


def is_result_message(obj: Any) -> bool:
    """Return whether ``obj`` is a well-formed result message.

    ``data`` counts as present whenever its key is, since ``None`` is a
    legitimate result. ``error`` counts as present only with a non-None
    value, and must then be a string.
    """
    if not isinstance(obj, Mapping):
        return False
    if not _has_shape(obj, RESULT_KEYS, RESULT_REQUIRED_KEYS):
        return False

    has_data = "data" in obj
    error = obj.get("error")
    if has_data == (error is not None):
        return False
    if error is not None and not isinstance(error, str):
        return False

    if not is_valid_handle(obj["handle"]):
        return False

    return isinstance(obj["source"], str)


@dataclass(frozen=True, slots=True)
class CallMessage:
    """A remote invocation, or a notification when ``handle`` is None."""

    call: str
    source: str
    data: Any = None
    handle: int | float | None = None

    @property
    def is_notification(self) -> bool:
        return self.handle is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire dict, omitting absent optional fields."""
        result: dict[str, Any] = {"call": self.call, "source": self.source}
        if self.data is not None:
            result["data"] = self.data
        if self.handle is not None:
            result["handle"] = self.handle
        return result

    @staticmethod
    def from_dict(obj: Any) -> CallMessage:
        """Parse a wire dict, raising MalformedMessage if it is not a call."""
        if not is_call_message(obj):
            raise MalformedMessage(f"Not a valid IPC call message: {obj!r}")
        return CallMessage(
            call=obj["call"],
            source=obj["source"],
            data=obj.get("data"),
            handle=obj.get("handle"),
        )


@dataclass(frozen=True, slots=True)
class ResultMessage:
    """The reply to a call that carried a handle."""

    handle: int | float
    source: str
    data: Any = None
    error: str | None = None

    @classmethod
    def success(cls, handle: int | float, data: Any, source: str) -> ResultMessage:
        return cls(handle=handle, source=source, data=data)

    @classmethod
    def failure(cls, handle: int | float, error: str, source: str) -> ResultMessage:
        return cls(handle=handle, source=source, error=error)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire dict; exactly one of data/error is emitted."""
        result: dict[str, Any] = {"handle": self.handle, "source": self.source}
        if self.error is not None:
            result["error"] = self.error
        else:
            result["data"] = self.data
        return result

    @staticmethod
    def from_dict(obj: Any) -> ResultMessage:
        """Parse a wire dict, raising MalformedMessage if it is not a result."""
        if not is_result_message(obj):
            raise MalformedMessage(f"Not a valid IPC result message: {obj!r}")
        error = obj.get("error")
        return ResultMessage(
            handle=obj["handle"],
            source=obj["source"],
            data=None if error is not None else obj.get("data"),
            error=error,
        )


IpcMessage = CallMessage | ResultMessage


def parse_message(obj: Any) -> IpcMessage:
    """Classify and parse an inbound payload.

    Raises:
        MalformedMessage: If obj is neither a call nor a result message
    """
    if is_call_message(obj):
        return CallMessage.from_dict(obj)
    if is_result_message(obj):
        return ResultMessage.from_dict(obj)
    raise MalformedMessage(
        f"Received IPC data is neither a call nor a result message: {obj!r}"
    )


def serialize_message(message: Mapping[str, Any]) -> str:
    """Serialize a wire dict to JSON text for text-based transports."""
    return json.dumps(message, separators=(",", ":"), allow_nan=False)


def deserialize_message(text: str | bytes) -> Any:
    """Parse JSON text from a text-based transport.

    The result is not validated; pass it to the router, which classifies it.

    Raises:
        MalformedMessage: If the text is not valid JSON
    """
    try:
        return json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedMessage(f"Received IPC text is not valid JSON: {e}") from e
