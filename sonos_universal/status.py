"""
Error and Status Reporting for Sonos Universal
Turns any failure into a short status label plus details, and builds the
status shown by the host for success and failure.
"""

import errno
import logging
from typing import Any, Dict, Optional, Tuple

import requests
from soco.exceptions import SoCoUPnPException

from sonos_universal.errors import SonosUniversalError
from sonos_universal.helper import get_error_code_from_envelope, get_error_message

log = logging.getLogger(__name__)

# UPnP device architecture, same table SoCo's Service carries
UPNP_ERRORS = {
    400: "Bad Request",
    401: "Invalid Action",
    402: "Invalid Args",
    404: "Invalid Var",
    412: "Precondition Failed",
    501: "Action Failed",
    600: "Argument Value Invalid",
    601: "Argument Value Out of Range",
    602: "Optional Action Not Implemented",
    603: "Out Of Memory",
    604: "Human Intervention Required",
    605: "String Argument Too Long",
    606: "Action Not Authorized",
    607: "Signature Failure",
    608: "Signature Missing",
    609: "Not Encrypted",
    610: "Invalid Sequence",
    611: "Invalid Control URL",
    612: "No Such Session",
}

# AVTransport service specific codes
AVTRANSPORT_ERRORS = {
    701: "Transition not available",
    702: "No contents",
    703: "Read error",
    704: "Format not supported for playback",
    705: "Transport is locked",
    706: "Write error",
    707: "Media is protected or not writeable",
    708: "Format not supported for recording",
    709: "Media is full",
    710: "Seek mode not supported",
    711: "Illegal seek target",
    712: "Play mode not supported",
    713: "Record quality not supported",
    714: "Illegal MIME-Type",
    715: 'Content "BUSY"',
    716: "Resource Not found",
    717: "Play speed not supported",
    718: "Invalid InstanceID",
    737: "No DNS Server",
    738: "Bad Domain Name",
    739: "Server Error",
}

NETWORK_ERRORS = {
    errno.ECONNREFUSED: ('Player refused to connect', 'Validate players ip address'),
    errno.EHOSTUNREACH: ('Player is unreachable', 'Validate players ip address / power on'),
    errno.ETIMEDOUT: ('Request timed out', 'Validate players IP address / power on'),
}


def _find_errno(error: BaseException) -> Optional[int]:
    """errno of the error or of an OSError wrapped inside it (requests, urllib3)"""
    seen = set()
    pending = [error]
    while pending:
        current = pending.pop(0)
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, OSError) and current.errno in NETWORK_ERRORS:
            return current.errno
        pending.extend(arg for arg in getattr(current, 'args', ())
                       if isinstance(arg, BaseException))
        pending.append(getattr(current, 'reason', None))
        pending.append(current.__cause__)
        pending.append(current.__context__)
    return None


def _upnp_error_code(error: SoCoUPnPException) -> str:
    if error.error_code:
        return str(error.error_code).strip()
    error_xml = error.error_xml
    if isinstance(error_xml, bytes):
        error_xml = error_xml.decode('utf-8', errors='replace')
    return get_error_code_from_envelope(error_xml)


def describe_error(error: BaseException) -> Tuple[str, str]:
    """
    Classify a failure for the status display.

    Args:
        error: Any exception raised while processing a message

    Returns:
        (short, details) - never raises
    """
    try:
        if isinstance(error, SonosUniversalError):
            return error.short, 'none'
        if isinstance(error, SoCoUPnPException):
            code = _upnp_error_code(error)
            return (f"statusCode 500 & upnpError {code}",
                    get_error_message(code, UPNP_ERRORS, AVTRANSPORT_ERRORS))
        if isinstance(error, (OSError, requests.exceptions.RequestException)):
            code = _find_errno(error)
            if code is not None:
                return NETWORK_ERRORS[code]
            if isinstance(error, (requests.exceptions.Timeout, TimeoutError)):
                return NETWORK_ERRORS[errno.ETIMEDOUT]
        return str(error) or error.__class__.__name__, repr(error)
    except Exception as e:
        log.debug(f"Status: could not describe {error.__class__.__name__}: {e}")
        return 'Unknown error/ exception', error.__class__.__name__


# ============================================================================
# STATUS
# ============================================================================

def success(command: str) -> Dict[str, Any]:
    log.debug(f"OK: {command}")
    return {'fill': 'green', 'shape': 'dot', 'text': f"ok:{command}"}


def failure(command: str, short: str, details: str) -> Dict[str, Any]:
    """Log the failure and build the red status"""
    log.error(f"{command}:{short} :: Details: {details}")
    return {'fill': 'red', 'shape': 'dot', 'text': f"error: {command} - {short}"}
