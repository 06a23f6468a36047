"""
Universal Controller for Sonos Universal
Resolves the anchor player once at setup and runs exactly one command
handler per inbound message.
"""

import copy
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import soco  # type: ignore

from sonos_universal.adapter import message_field_names
from sonos_universal.commands import create_command
from sonos_universal.discovery import DISCOVERY_TIMEOUT, discover_by_serial
from sonos_universal.errors import DiscoveryError
from sonos_universal.helper import REGEX_IP, REGEX_SERIAL, is_truthy_and_not_empty_string
from sonos_universal.status import describe_error
from sonos_universal.transport import SonosPlayer, SonosTransport

log = logging.getLogger(__name__)

SETUP_FUNCTION = 'create and subscribe'
DEFAULT_FUNCTION = 'processing input msg'


@dataclass
class NodeConfig:
    """
    Node configuration.

    ipaddress wins over serialnum, at least one must be valid. command
    'message' takes the command from each message, anything else is used
    for every message. A non empty state replaces the message value field.
    """
    ipaddress: str = ''
    serialnum: str = ''
    command: str = 'message'
    state: Any = None
    compatibility_mode: bool = False
    discovery_timeout: int = DISCOVERY_TIMEOUT


@dataclass
class Result:
    """Outcome of one message: merged message on success, labels on failure"""
    ok: bool
    command: str
    msg: Dict[str, Any] = field(default_factory=dict)
    status: str = ''
    details: str = ''


class UniversalController:
    """
    Stateless per message: handlers keep nothing between calls. Messages
    may be processed concurrently, nothing serialises access to a player.
    """

    def __init__(self, config: NodeConfig, transport: Optional[SonosTransport] = None,
                 discover: Optional[Callable] = None):
        """
        Args:
            config: Node configuration
            transport: External capability boundary, SonosTransport if not given
            discover: Network scan, soco.discover if not given
        """
        self.config = config
        self.transport = transport or SonosTransport()
        self.discover = discover or soco.discover
        self.cmd_name, self.state_name = message_field_names(config.compatibility_mode)
        self.anchor: Optional[SonosPlayer] = None
        self.setup_error: Optional[Result] = None

        self._stats_lock = threading.Lock()
        self.stats = {
            'processed': 0,
            'errors': 0,
            'commands': {},
        }

    # ========================================================================
    # SETUP
    # ========================================================================

    def setup(self) -> Result:
        """
        Resolve the anchor player: static address, or discovery by serial.

        Returns:
            Result of the setup step, also kept in setup_error on failure
        """
        try:
            self.anchor = SonosPlayer(self._resolve_address())
        except Exception as e:
            short, details = describe_error(e)
            self.setup_error = Result(False, SETUP_FUNCTION, status=short, details=details)
            return self.setup_error
        self.setup_error = None
        log.info(f"Controller: anchor player {self.anchor.host}")
        return Result(True, SETUP_FUNCTION)

    def _resolve_address(self) -> str:
        ipaddress = self.config.ipaddress
        if isinstance(ipaddress, str) and REGEX_IP.match(ipaddress):
            return ipaddress
        serialnum = self.config.serialnum
        if not (isinstance(serialnum, str) and REGEX_SERIAL.match(serialnum)):
            raise DiscoveryError("both ipaddress and serial number are invalid/missing")
        try:
            found = discover_by_serial(serialnum, self.config.discovery_timeout,
                                       discover=self.discover, transport=self.transport)
        except Exception as e:
            log.debug(f"Controller: discovery failed: {e}")
            raise DiscoveryError("could not figure out ip address (discovery)") from e
        if found is None:
            raise DiscoveryError("could not find any player by serial")
        return found

    # ========================================================================
    # MESSAGES
    # ========================================================================

    def process_message(self, msg: Dict[str, Any]) -> Result:
        """
        Run the command of one message.

        Args:
            msg: Inbound message, not modified

        Returns:
            Result with the merged outbound message on success, short status
            and details on failure
        """
        msg = copy.deepcopy(msg)
        try:
            if self.anchor is None:
                if self.setup_error is not None:
                    raise DiscoveryError(f"node setup failed - {self.setup_error.status}")
                raise DiscoveryError("node setup was not run")
            command = create_command(self.config.command, msg, self.cmd_name,
                                     self.state_name, self.config.state)
            log.debug(f"Controller: processing {command}")
            fragment = command.execute(self.transport, msg, self.anchor)
        except Exception as e:
            name = msg.get('nrcspCmd')
            if not is_truthy_and_not_empty_string(name):
                name = DEFAULT_FUNCTION
            short, details = describe_error(e)
            log.debug(f"Controller: {name} failed", exc_info=True)
            self._count(name, False)
            return Result(False, name, msg, short, details)

        msg.update(fragment or {})
        self._count(command.name, True)
        return Result(True, command.name, msg)

    def _count(self, name: str, ok: bool):
        with self._stats_lock:
            self.stats['processed'] += 1
            if not ok:
                self.stats['errors'] += 1
            self.stats['commands'][name] = self.stats['commands'].get(name, 0) + 1

    def get_stats(self) -> Dict[str, Any]:
        """Copy of the statistics, safe to serialise"""
        with self._stats_lock:
            stats = copy.deepcopy(self.stats)
        stats['anchor'] = self.anchor.host if self.anchor else None
        return stats
