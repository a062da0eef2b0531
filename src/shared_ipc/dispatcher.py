"""Outbound dispatch: one validated, one-way send per message."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from shared_ipc.error import InvalidMessage, NoValidTransport
from shared_ipc.types import HostContext, MessageEndpoint, WindowEndpoint
from shared_ipc.wire import is_call_message, is_result_message

logger = logging.getLogger(__name__)


def post(
    endpoint: MessageEndpoint | None,
    message: Mapping[str, Any],
    host: HostContext,
) -> None:
    """Send ``message`` to ``endpoint`` using the right calling convention.

    Window-like endpoints are sent to with a target origin equal to the
    host's origin. Other endpoints are sent to directly. With no usable
    endpoint, the host context's global send is the last resort.

    Raises:
        InvalidMessage: If message is neither a call nor a result message
        NoValidTransport: If no send capability is available, or a window
            endpoint is addressed from a host without an origin
    """
    if not (is_call_message(message) or is_result_message(message)):
        raise InvalidMessage(f"Invalid IPC message structure: {message!r}")

    if endpoint is not None and isinstance(endpoint, WindowEndpoint):
        if host.origin is None:
            raise NoValidTransport(
                "Invalid postMessage target: window endpoints require the host "
                "context's origin"
            )
        logger.debug("Posting to window endpoint with target_origin=%s", host.origin)
        endpoint.post_message(message, target_origin=host.origin)
    elif endpoint is not None and callable(getattr(endpoint, "post_message", None)):
        endpoint.post_message(message)
    elif host.can_post:
        logger.debug("Posting through host context global send")
        host.post_message(message)
    else:
        raise NoValidTransport("Invalid postMessage target: No valid method found")
