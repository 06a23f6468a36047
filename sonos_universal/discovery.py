"""
Discovery Helper for Sonos Universal
Finds player addresses by serial number and lists the household for setup.
"""

import logging
from typing import Callable, Dict, List, Optional

import soco  # type: ignore

from sonos_universal.errors import DiscoveryError
from sonos_universal.groups import GroupMember, get_all_groups_sorted
from sonos_universal.helper import is_truthy_and_not_empty_string
from sonos_universal.transport import SonosPlayer, SonosTransport

log = logging.getLogger(__name__)

DISCOVERY_TIMEOUT = 4  # seconds


def discover_by_serial(serial: str, timeout: int = DISCOVERY_TIMEOUT,
                       discover: Callable = soco.discover,
                       transport: Optional[SonosTransport] = None) -> Optional[str]:
    """
    Scan the network and compare every player's serial number.

    Args:
        serial: Serial number as printed on the player, e.g. 00-0E-58-FE-3A-EA:5
        timeout: Scan window in seconds
        discover: Discovery function returning a set of SoCo instances or None
        transport: Used for the device description fetch

    Returns:
        Address of the first matching player, None if nothing matched in time.
        Errors fetching a candidate's description propagate.
    """
    transport = transport or SonosTransport()
    log.debug(f"Discovery: searching player with serial {serial}")
    # satellites and the right speaker of a pair carry their own serial
    devices = discover(timeout=timeout, include_invisible=True) or set()
    target = serial.strip().upper()
    for device in devices:
        properties = transport.get_device_properties(
            SonosPlayer(device.ip_address).base_url)
        serial_num = properties.get('serialNum')
        if is_truthy_and_not_empty_string(serial_num) and serial_num.strip().upper() == target:
            log.info(f"Discovery: found {serial} at {device.ip_address}")
            return device.ip_address
    log.debug(f"Discovery: time out without a player matching {serial}")
    return None


def discover_one_player(timeout: int = DISCOVERY_TIMEOUT,
                        discover: Callable = soco.discover) -> str:
    """Address of any one player, raises DiscoveryError if there is none"""
    devices = discover(timeout=timeout)
    if not devices:
        raise DiscoveryError("could not find any player")
    device = next(iter(devices))
    log.debug(f"Discovery: first player {device.ip_address}")
    return device.ip_address


def _household_members(timeout: int, discover: Callable,
                       transport: SonosTransport) -> List[GroupMember]:
    # the first player reports the complete household
    first = discover_one_player(timeout, discover)
    groups = get_all_groups_sorted(transport, SonosPlayer(first))
    members = [member for group in groups for member in group]
    log.debug(f"Discovery: household has {len(members)} players")
    return members


def discover_all_with_host(timeout: int = DISCOVERY_TIMEOUT,
                           discover: Callable = soco.discover,
                           transport: Optional[SonosTransport] = None) -> List[Dict[str, str]]:
    """Label/value pairs with the player address as value"""
    transport = transport or SonosTransport()
    return [{'label': f"{member.host_name} for {member.name}", 'value': member.host_name}
            for member in _household_members(timeout, discover, transport)]


def discover_all_with_serial(timeout: int = DISCOVERY_TIMEOUT,
                             discover: Callable = soco.discover,
                             transport: Optional[SonosTransport] = None) -> List[Dict[str, str]]:
    """Label/value pairs with the serial number as value"""
    transport = transport or SonosTransport()
    result = []
    for member in _household_members(timeout, discover, transport):
        serial_num = transport.get_device_properties(member.base_url)['serialNum']
        result.append({'label': f"{serial_num} for {member.name}", 'value': serial_num})
    return result
