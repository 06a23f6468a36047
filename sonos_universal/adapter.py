"""
Adapter Layer for Sonos Universal
Message field naming for the older message shape and translation of
controller results into host calls (send, status, error).
"""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from sonos_universal.status import failure, success

log = logging.getLogger(__name__)


def message_field_names(compatibility_mode: bool) -> Tuple[str, str]:
    """
    Field carrying the command and field carrying the value.

    Older messages put the command in payload and the value in topic.

    Returns:
        (cmd_name, state_name)
    """
    if compatibility_mode:
        return 'payload', 'topic'
    return 'topic', 'payload'


class HostAdapter:
    """
    Delivers controller results to the host.

    On success the merged message is sent and the status turns green
    (ok:<command>). On failure nothing is sent, the error is reported with
    the message and the status turns red (error: <command> - <short>).
    """

    def __init__(self, send: Optional[Callable] = None, status: Optional[Callable] = None,
                 error: Optional[Callable] = None):
        """
        Args:
            send: Called with the outbound message
            status: Called with the status dict (fill, shape, text)
            error: Called with the error text and the message
        """
        self._send = send
        self._status = status
        self._error = error
        self.last_status: Dict[str, Any] = {}

    def set_status(self, status: Dict[str, Any]):
        self.last_status = status
        if self._status:
            self._status(status)

    def clear_status(self):
        self.set_status({})

    def deliver(self, result) -> Dict[str, Any]:
        """
        Report one controller Result.

        Returns:
            The status dict that was set
        """
        if result.ok:
            if self._send:
                self._send(result.msg)
            self.set_status(success(result.command))
        else:
            status = failure(result.command, result.status, result.details)
            if self._error:
                self._error(f"{result.command}:{result.status} :: Details: {result.details}",
                            result.msg)
            self.set_status(status)
        return self.last_status
