"""Destination resolution.

A destination names another execution context. It comes in three tagged
variants, each with its own resolution rule:

- ENDPOINT: the target is the endpoint itself.
- FRAME: the target hosts a nested endpoint (``content_window``).
- CONTEXT: there is no explicit endpoint; the host context's global send
  is used instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from shared_ipc.error import InvalidDestination
from shared_ipc.types import MessageEndpoint, NestedEndpoint

logger = logging.getLogger(__name__)


class DestinationKind(str, Enum):
    ENDPOINT = "endpoint"
    FRAME = "frame"
    CONTEXT = "context"


@dataclass(frozen=True, slots=True)
class Destination:
    """A tagged reference to another execution context."""

    kind: DestinationKind
    target: Any = None

    @classmethod
    def endpoint(cls, endpoint: MessageEndpoint) -> Destination:
        return cls(DestinationKind.ENDPOINT, endpoint)

    @classmethod
    def frame(cls, frame: Any) -> Destination:
        """Address the endpoint hosted by ``frame.content_window``."""
        return cls(DestinationKind.FRAME, frame)

    @classmethod
    def context(cls) -> Destination:
        """Address whoever the host context's global send reaches."""
        return cls(DestinationKind.CONTEXT)


def as_destination(value: Destination | MessageEndpoint | None) -> Destination:
    """Wrap a bare endpoint as an ENDPOINT destination.

    Destinations pass through untouched. ``None`` is wrapped too and fails
    at resolution time.
    """
    if isinstance(value, Destination):
        return value
    return Destination.endpoint(value)


def _resolve_endpoint(dest: Destination) -> MessageEndpoint | None:
    if dest.target is None:
        raise InvalidDestination("Invalid postMessage target: endpoint is None")
    return dest.target


def _resolve_frame(dest: Destination) -> MessageEndpoint | None:
    if dest.target is None:
        raise InvalidDestination("Invalid postMessage target: frame is None")
    if not isinstance(dest.target, NestedEndpoint):
        raise InvalidDestination(
            f"Invalid postMessage target: {type(dest.target).__name__} "
            "exposes no content_window"
        )
    nested = dest.target.content_window
    if nested is None:
        raise InvalidDestination(
            "Invalid postMessage target: frame has no content window"
        )
    return nested


def _resolve_context(dest: Destination) -> MessageEndpoint | None:
    return None


_RESOLVERS = {
    DestinationKind.ENDPOINT: _resolve_endpoint,
    DestinationKind.FRAME: _resolve_frame,
    DestinationKind.CONTEXT: _resolve_context,
}


def resolve_destination(dest: Destination) -> MessageEndpoint | None:
    """Return the concrete endpoint for a destination.

    Returns None only for CONTEXT destinations, meaning "use the host
    context's global send".

    Raises:
        InvalidDestination: If no usable endpoint can be obtained
    """
    endpoint = _RESOLVERS[dest.kind](dest)
    logger.debug("Resolved %s destination to %r", dest.kind.value, endpoint)
    return endpoint
