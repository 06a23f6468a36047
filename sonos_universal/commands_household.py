"""
Household Commands for Sonos Universal
Grouping, stereo pairs and Sonos playlists across the whole household.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from sonos_universal.commands_group import resolve_group
from sonos_universal.errors import InvalidInputError, MissingFieldError, PlayerNotFoundError
from sonos_universal.groups import get_all_groups_sorted, get_all_player_list
from sonos_universal.helper import (
    REGEX_ANYCHAR, REGEX_CSV, is_valid_boolean, is_valid_property, string_valid_regex,
)
from sonos_universal.transport import AVTRANSPORT, DEVICE_PROPERTIES

log = logging.getLogger(__name__)

# a new coordinator needs some time before others can join
BECOME_COORDINATOR_WAIT = 0.5


def _become_standalone(transport, base_url: str):
    transport.execute_action(base_url, AVTRANSPORT, 'BecomeCoordinatorOfStandaloneGroup',
                             {'InstanceID': 0})


def _join(transport, base_url: str, coordinator_uuid: str):
    transport.execute_action(base_url, AVTRANSPORT, 'SetAVTransportURI',
                             {'InstanceID': 0, 'CurrentURI': f"x-rincon:{coordinator_uuid}",
                              'CurrentURIMetaData': ''})


def _all_members(transport, anchor) -> List[Dict[str, Any]]:
    """Raw attributes of every member, invisible ones included"""
    all_groups = transport.get_all_groups(anchor)
    if not isinstance(all_groups, list):
        raise InvalidInputError("all groups data is not array")
    return [member for group in all_groups for member in group.get('ZoneGroupMember', [])]


def _base_url_from_location(location: str) -> str:
    return f"http://{urlparse(location).netloc}"


# ============================================================================
# GROUPING
# ============================================================================

def household_create_group(transport, msg, state_name, cmd_name, anchor):
    """
    Create a group from a comma separated player list, first player
    becomes coordinator. Players already grouped correctly are left alone.
    """
    player_list = string_valid_regex(msg, state_name, REGEX_CSV, 'player list')
    names = player_list.split(',')
    if len(set(names)) < len(names):
        raise InvalidInputError("list includes a player multiple times")

    players = get_all_player_list(transport, anchor)
    by_name = {}
    for player in players:
        # first match wins on duplicate names
        by_name.setdefault(player.name, player)
    for name in names:
        if name not in by_name:
            raise PlayerNotFoundError(f"could not find player: {name}")

    new_coordinator = by_name[names[0]]
    if new_coordinator.is_coordinator:
        for player in players:
            if player.name not in names:
                if player.group_index == new_coordinator.group_index:
                    _become_standalone(transport, player.base_url)
            elif player.group_index != new_coordinator.group_index:
                _join(transport, player.base_url, new_coordinator.uuid)
    else:
        _become_standalone(transport, new_coordinator.base_url)
        time.sleep(BECOME_COORDINATOR_WAIT)
        for name in names[1:]:
            _join(transport, by_name[name].base_url, new_coordinator.uuid)
    log.info(f"Household: created group {player_list}")
    return {}


def household_separate_group(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    for member in group.members[1:]:
        _become_standalone(transport, member.base_url)
    return {}


def household_get_groups(transport, msg, state_name, cmd_name, anchor):
    groups = get_all_groups_sorted(transport, anchor)
    return {'payload': [[member.to_dict() for member in members] for members in groups]}


def household_test_player(transport, msg, state_name, cmd_name, anchor):
    """True if a player with that name is part of the household"""
    if not is_valid_property(msg, [state_name]):
        raise MissingFieldError(f"player name ({state_name}) is missing/invalid")
    name = msg[state_name]
    if not isinstance(name, str) or name == '':
        raise InvalidInputError(f"player name ({state_name}) is not string or empty")
    found = any(member.get('ZoneName') == name for member in _all_members(transport, anchor))
    return {'payload': found}


# ============================================================================
# STEREO PAIRS
# ============================================================================

def household_create_stereopair(transport, msg, state_name, cmd_name, anchor):
    left_name = string_valid_regex(msg, state_name, REGEX_ANYCHAR, 'player name left')
    right_name = string_valid_regex(msg, 'playerNameRight', REGEX_ANYCHAR, 'player name right')
    left_uuid = ''
    right_uuid = ''
    left_base_url = ''
    for member in _all_members(transport, anchor):
        name = member.get('ZoneName')
        if name == right_name:
            right_uuid = member.get('UUID', '')
        if name == left_name:
            left_uuid = member.get('UUID', '')
            left_base_url = _base_url_from_location(member.get('Location', ''))
    if left_uuid == '':
        raise PlayerNotFoundError("player name left was not found")
    if right_uuid == '':
        raise PlayerNotFoundError("player name right was not found")
    transport.execute_action(left_base_url, DEVICE_PROPERTIES, 'CreateStereoPair',
                             {'ChannelMapSet': f"{left_uuid}:LF,LF;{right_uuid}:RF,RF"})
    return {}


def _left_of_pair(members: List[Dict[str, Any]], left_name: str) -> Tuple[str, str, Optional[str]]:
    """uuid, base url and right uuid of the left player of a stereo pair"""
    for member in members:
        if member.get('ZoneName') != left_name:
            continue
        uuid = member.get('UUID', '')
        channel_map = member.get('ChannelMapSet') or ''
        if uuid and channel_map.startswith(uuid):
            if ';' not in channel_map:
                raise InvalidInputError("channelmap is in error - could not get right uuid")
            right_uuid = channel_map.split(';')[1].replace(':RF,RF', '')
            return uuid, _base_url_from_location(member.get('Location', '')), right_uuid
    return '', '', None


def household_separate_stereopair(transport, msg, state_name, cmd_name, anchor):
    left_name = string_valid_regex(msg, state_name, REGEX_ANYCHAR, 'player name left')
    left_uuid, left_base_url, right_uuid = _left_of_pair(_all_members(transport, anchor), left_name)
    if left_uuid == '':
        raise PlayerNotFoundError("player name left was not found")
    if not right_uuid:
        raise PlayerNotFoundError("player name right was not found")
    transport.execute_action(left_base_url, DEVICE_PROPERTIES, 'SeparateStereoPair',
                             {'ChannelMapSet': f"{left_uuid}:LF,LF;{right_uuid}:RF,RF"})
    return {}


# ============================================================================
# SONOS PLAYLISTS
# ============================================================================

def household_get_sonosplaylists(transport, msg, state_name, cmd_name, anchor):
    return {'payload': transport.get_sonos_playlists(anchor.base_url)}


def household_remove_sonosplaylist(transport, msg, state_name, cmd_name, anchor):
    title = string_valid_regex(msg, state_name, REGEX_ANYCHAR, 'title')
    ignore_not_exists = is_valid_boolean(msg, 'ignoreNotExists', 'ignoreNotExists', True)
    playlists = transport.get_sonos_playlists(anchor.base_url)
    playlist_id = next((playlist['id'] for playlist in playlists
                        if playlist['title'] == title), '')
    if playlist_id == '':
        if not ignore_not_exists:
            raise InvalidInputError("no Sonos playlist title matching search string")
        log.debug(f"Household: playlist {title} does not exist, ignored")
        return {}
    transport.remove_sonos_playlist(anchor.base_url, playlist_id)
    return {}
