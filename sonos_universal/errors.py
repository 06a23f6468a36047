"""
Exceptions for Sonos Universal
Every message carries the package prefix so status reporting can tell
our own failures apart from library and network errors.
"""

ERROR_PREFIX = "sonos-universal: "


class SonosUniversalError(Exception):
    """Base class for all errors raised by this package"""

    def __init__(self, message: str):
        if not message.startswith(ERROR_PREFIX):
            message = f"{ERROR_PREFIX}{message}"
        super().__init__(message)

    @property
    def short(self) -> str:
        """Message without the package prefix"""
        return str(self)[len(ERROR_PREFIX):]


class MissingFieldError(SonosUniversalError):
    """A required message field is absent"""


class InvalidInputError(SonosUniversalError):
    """A message field has the wrong type, syntax or range"""


class PlayerNotFoundError(SonosUniversalError):
    """No household member matches the given player name"""


class GroupNotFoundError(SonosUniversalError):
    """The anchor player is not part of any reported group"""


class UnknownCommandError(SonosUniversalError):
    """Command is not in the dispatch table"""


class DiscoveryError(SonosUniversalError):
    """Discovery could not produce a usable player address"""
