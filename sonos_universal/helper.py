"""
Validation Utilities for Sonos Universal
Checks presence, type, range and syntax of message fields with optional
defaulting. Every failure raises with the package prefix.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Pattern

from sonos_universal.errors import (
    ERROR_PREFIX,
    InvalidInputError,
    MissingFieldError,
)


PLAYER_WITH_TV = ['Sonos Beam', 'Sonos Playbar', 'Sonos Playbase', 'Sonos Arc']

# hh:mm:ss, hours 00 to 19
REGEX_TIME = re.compile(r'^(([0-1][0-9]):([0-5][0-9]):([0-5][0-9]))$')
REGEX_TIME_DELTA = re.compile(r'^([-+]?([0-1][0-9]):([0-5][0-9]):([0-5][0-9]))$')
REGEX_IP = re.compile(
    r'^(?:(25[0-5]|2[0-4][0-9]|1[0-9][0-9]|[1-9][0-9]|[0-9])(\.(?!$)|$)){4}$')
REGEX_HTTP = re.compile(r'^(http|https)://.+$')
REGEX_SERIAL = re.compile(r'^([0-9a-fA-F][0-9a-fA-F]-){5}[0-9a-fA-F][0-9a-fA-F]:')
REGEX_RADIO_ID = re.compile(r'^([s][0-9]+)$')
REGEX_4DIGITSSIGN = re.compile(r'^[-+]?\d{1,4}$')
REGEX_ANYCHAR = re.compile(r'.+')
REGEX_QUEUEMODES = re.compile(
    r'^(NORMAL|REPEAT_ONE|REPEAT_ALL|SHUFFLE|SHUFFLE_NOREPEAT|SHUFFLE_REPEAT_ONE)$',
    re.IGNORECASE)
# comma separated player names, letters and digits joined by single : - . _ or blank
REGEX_CSV = re.compile(
    r'^[^\W_]+([: \-._]?[^\W_]+)*(,[^\W_]+([: \-._]?[^\W_]+)*)*$')

HTML_ENCODE = {'<': '&lt;', '>': '&gt;', "'": '&apos;', '"': '&quot;', '&': '&amp;'}
HTML_DECODE = {value: key for key, value in HTML_ENCODE.items()}
_REGEX_HTML_ENCODE = re.compile('[<>\'"&]')
_REGEX_HTML_DECODE = re.compile('&(lt|gt|apos|quot|amp);')


# ============================================================================
# PRESENCE CHECKS
# ============================================================================

def is_truthy(value: Any) -> bool:
    """True unless value is None or a non finite number"""
    if value is None:
        return False
    if isinstance(value, float) and not math.isfinite(value):
        return False
    return True


def is_truthy_and_not_empty_string(value: Any) -> bool:
    return is_truthy(value) and value != ''


def get_nested_property(obj: Any, path: List[str]) -> Any:
    """
    Walk a key path into nested dictionaries.

    Returns:
        The value at the end of the path or None if any step is missing
    """
    for key in path:
        if not isinstance(obj, dict) or key not in obj:
            return None
        obj = obj[key]
    return obj


def is_valid_property(obj: Any, path: List[str]) -> bool:
    return is_truthy(get_nested_property(obj, path))


def is_valid_property_not_empty_string(obj: Any, path: List[str]) -> bool:
    return is_truthy_and_not_empty_string(get_nested_property(obj, path))


# ============================================================================
# FIELD COERCION
# ============================================================================

def is_on_off(msg: Dict, name: str, meaning: str) -> bool:
    """
    Validate an on/off field.

    Args:
        msg: Incoming message
        name: Field name
        meaning: Human readable field meaning used in error messages

    Returns:
        True for "on", False for "off" (case insensitive)
    """
    if not is_valid_property(msg, [name]):
        raise InvalidInputError(f"{meaning} ({name}) is missing/invalid")
    value = msg[name]
    if not isinstance(value, str):
        raise InvalidInputError(f"{meaning} ({name}) is not string")
    if value.lower() not in ('on', 'off'):
        raise InvalidInputError(f"{meaning} ({name}) is not on/off")
    return value.lower() == 'on'


def string_to_valid_integer(msg: Dict, name: str, minimum: int, maximum: int,
                            meaning: str, default: Optional[int] = None) -> int:
    """
    Validate and convert an integer field, given as number or string.

    Strings must be signed digits only (at most 4 digits). The range check is
    inclusive. A missing field raises unless a default is given; the default
    is returned as is, even outside of [minimum, maximum].

    Args:
        msg: Incoming message
        name: Field name
        minimum: Lowest accepted value
        maximum: Highest accepted value, must be greater than minimum
        meaning: Human readable field meaning used in error messages
        default: Value used when the field is missing; None makes it required

    Returns:
        Validated integer
    """
    if not isinstance(minimum, int) or not isinstance(maximum, int):
        raise ValueError(f"{meaning} min/max must be integer")
    if minimum >= maximum:
        raise ValueError(f"{meaning} max must be greater then min")

    if not is_valid_property(msg, [name]):
        if default is None:
            raise MissingFieldError(f"{meaning} ({name}) is missing/invalid")
        if not isinstance(default, int) or isinstance(default, bool):
            raise ValueError(f"{meaning} default is not integer")
        return default

    value = msg[name]
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise InvalidInputError(f"{meaning} ({name}) is not type string/number")
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidInputError(f"{meaning} ({name}) is not integer")
        value = int(value)
    elif isinstance(value, str):
        if not REGEX_4DIGITSSIGN.match(value):
            raise InvalidInputError(
                f"{meaning} ({name} >>{value}) is not 4 signed digits only")
        value = int(value)

    if not minimum <= value <= maximum:
        raise InvalidInputError(f"{meaning} ({name} >>{value}) is out of range")
    return value


def string_valid_regex(msg: Dict, name: str, regex: Pattern, meaning: str,
                       default: Optional[str] = None) -> str:
    """
    Validate a string field against a regular expression.

    Returns:
        The field value, or default if the field is missing and a default is given
    """
    if not is_valid_property(msg, [name]):
        if default is None:
            raise MissingFieldError(f"{meaning} ({name}) is missing/invalid")
        return default
    value = msg[name]
    if not isinstance(value, str):
        raise InvalidInputError(f"{meaning} ({name}) is not type string")
    if not regex.search(value):
        raise InvalidInputError(
            f"{meaning} ({name} >>{value}) has wrong syntax - regular expression")
    return value


def is_valid_boolean(msg: Dict, name: str, meaning: str, default: bool) -> bool:
    """Optional boolean field: missing returns default, anything but bool raises"""
    if not is_valid_property(msg, [name]):
        return default
    value = msg[name]
    if not isinstance(value, bool):
        raise InvalidInputError(f"{meaning} ({name}) is not boolean")
    return value


# ============================================================================
# CONVERSIONS
# ============================================================================

def encode_html(text: str) -> str:
    """Replace < > ' " & with named entities in one pass"""
    if not isinstance(text, str) or text == '':
        raise InvalidInputError("encode html: input is not a non empty string")
    return _REGEX_HTML_ENCODE.sub(lambda match: HTML_ENCODE[match.group(0)], text)


def decode_html(text: str) -> str:
    """Replace the five named entities with their characters in one pass"""
    if not isinstance(text, str) or text == '':
        raise InvalidInputError("decode html: input is not a non empty string")
    return _REGEX_HTML_DECODE.sub(lambda match: HTML_DECODE[match.group(0)], text)


def hhmmss_to_msec(hhmmss: str) -> int:
    """Convert hh:mm:ss to milliseconds. Caller validates the format."""
    hours, minutes, seconds = hhmmss.split(':')
    return (int(hours) * 3600 + int(minutes) * 60 + int(seconds)) * 1000


def get_error_code_from_envelope(data: Optional[str]) -> str:
    """Text between <errorCode> and </errorCode>, empty string if absent"""
    error_code = ''
    if is_truthy_and_not_empty_string(data):
        start = data.find('<errorCode>')
        end = data.find('</errorCode>')
        if start >= 0:
            start += len('<errorCode>')
            if end > start:
                error_code = data[start:end]
    return error_code.strip()


def get_error_message(error_code: str, upnp_errors: Dict[int, str],
                      service_errors: Optional[Dict[int, str]] = None) -> str:
    """Look up error text, service specific table first"""
    if not is_truthy_and_not_empty_string(error_code):
        return 'unknown error'
    try:
        code = int(error_code)
    except ValueError:
        return 'unknown error'
    if service_errors and code in service_errors:
        return service_errors[code]
    return upnp_errors.get(code, 'unknown error')


# ============================================================================
# COMMON REQUEST PROPERTIES
# ============================================================================

@dataclass
class ValidatedProperties:
    """Defaulted view of the optional fields most commands accept"""
    player_name: str = ''
    volume: int = -1           # -1: do not touch volume
    same_volume: bool = True
    clear_queue: bool = True


def validated_group_properties(msg: Dict) -> ValidatedProperties:
    """
    Validate playerName, volume, sameVolume and clearQueue.

    Raises:
        InvalidInputError: sameVolume is true but no volume is given
    """
    player_name = string_valid_regex(msg, 'playerName', REGEX_ANYCHAR, 'player name', '')
    volume = string_to_valid_integer(msg, 'volume', 0, 100, 'volume', -1)
    same_volume = True
    if is_valid_property(msg, ['sameVolume']):
        same_volume = is_valid_boolean(msg, 'sameVolume', 'sameVolume', True)
        if same_volume and volume == -1:
            raise InvalidInputError("sameVolume (sameVolume) is true but volume is not specified")
    clear_queue = is_valid_boolean(msg, 'clearQueue', 'clearQueue', True)
    return ValidatedProperties(player_name, volume, same_volume, clear_queue)
