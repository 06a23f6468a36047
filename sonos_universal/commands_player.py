"""
Player Commands for Sonos Universal
Handlers addressing one player, independent of its role in the group.
"""

import logging
from typing import Any, Dict

from sonos_universal.commands_group import on_off, resolve_group
from sonos_universal.errors import InvalidInputError, MissingFieldError
from sonos_universal.groups import GroupMember, get_group_member_data
from sonos_universal.helper import (
    PLAYER_WITH_TV, REGEX_ANYCHAR, is_on_off, is_valid_property_not_empty_string,
    string_to_valid_integer, string_valid_regex,
)
from sonos_universal.notifications import set_av_transport_uri, set_volume
from sonos_universal.transport import AVTRANSPORT, HT_CONTROL, RENDERING_CONTROL

log = logging.getLogger(__name__)

EQ_TYPES = {
    'player.get.dialoglevel': 'DialogLevel',
    'player.get.nightmode': 'NightMode',
    'player.get.subgain': 'SubGain',
    'player.set.dialoglevel': 'DialogLevel',
    'player.set.nightmode': 'NightMode',
    'player.set.subgain': 'SubGain',
}


def _rendering(transport, member: GroupMember, action: str, args: Dict[str, Any]):
    return transport.execute_action(member.base_url, RENDERING_CONTROL, action,
                                    dict({'InstanceID': 0}, **args))


def _check_tv_player(transport, member: GroupMember):
    properties = transport.get_device_properties(member.base_url)
    if not is_valid_property_not_empty_string(properties, ['modelName']):
        raise InvalidInputError("Sonos player model name undefined")
    if properties['modelName'] not in PLAYER_WITH_TV:
        raise InvalidInputError("selected player does not support TV")


# ============================================================================
# PLAYER QUERIES
# ============================================================================

def player_get_bass(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    return {'payload': int(_rendering(transport, group.player, 'GetBass', {}))}


def player_get_treble(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    return {'payload': int(_rendering(transport, group.player, 'GetTreble', {}))}


def player_get_volume(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    volume = _rendering(transport, group.player, 'GetVolume', {'Channel': 'Master'})
    return {'payload': int(volume)}


def player_get_mutestate(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    state = _rendering(transport, group.player, 'GetMute', {'Channel': 'Master'})
    return {'payload': on_off(state)}


def player_get_loudness(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    loudness = _rendering(transport, group.player, 'GetLoudness', {'Channel': 'Master'})
    if loudness in (None, ''):
        raise InvalidInputError("player response is undefined")
    return {'payload': on_off(loudness)}


def player_get_eq(transport, msg, state_name, cmd_name, anchor):
    """Night mode, dialog level or sub gain of a TV capable player"""
    eq_type = EQ_TYPES[msg[cmd_name]]
    validated, group = resolve_group(transport, msg, anchor)
    _check_tv_player(transport, group.player)
    value = _rendering(transport, group.player, 'GetEQ', {'EQType': eq_type})
    if value in (None, ''):
        raise InvalidInputError("player response is undefined")
    if eq_type == 'SubGain':
        return {'payload': int(value)}
    return {'payload': on_off(value)}


def player_get_led(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    led_on = transport.player(group.player.host_name).status_light
    return {'payload': 'on' if led_on else 'off'}


def player_get_properties(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    properties = dict(transport.get_device_properties(group.player.base_url))
    if not properties:
        raise InvalidInputError("player response is undefined")
    properties['uuid'] = properties.get('UDN', '')[len('uuid:'):]
    properties['playerName'] = properties.get('roomName', '')
    return {'payload': properties}


def player_get_queue(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    return {'payload': transport.get_queue(group.player.base_url)}


def player_get_role(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    if len(group.members) == 1:
        role = 'standalone'
    elif group.player_index == 0:
        role = 'coordinator'
    else:
        role = 'joiner'
    return {'payload': role, 'playerName': group.player.name}


# ============================================================================
# PLAYER GROUPING
# ============================================================================

def player_become_standalone(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    transport.execute_action(group.player.base_url, AVTRANSPORT,
                             'BecomeCoordinatorOfStandaloneGroup', {'InstanceID': 0})
    return {}


def player_leave_group(transport, msg, state_name, cmd_name, anchor):
    return player_become_standalone(transport, msg, state_name, cmd_name, anchor)


def player_join_group(transport, msg, state_name, cmd_name, anchor):
    """Join the group of the player named in the value field"""
    group_player_name = string_valid_regex(msg, state_name, REGEX_ANYCHAR, 'group player name')
    target_group = get_group_member_data(transport, anchor, group_player_name)
    validated, group = resolve_group(transport, msg, anchor)
    # already coordinator of that group: nothing to do
    if group.player.name != target_group.coordinator.name:
        set_av_transport_uri(transport, group.player, f"x-rincon:{target_group.coordinator.uuid}")
    return {}


# ============================================================================
# PLAYER PLAYBACK
# ============================================================================

def player_play_avtransport(transport, msg, state_name, cmd_name, anchor):
    uri = string_valid_regex(msg, state_name, REGEX_ANYCHAR, 'uri')
    validated, group = resolve_group(transport, msg, anchor)
    set_av_transport_uri(transport, group.player, uri)
    player = transport.player(group.player.host_name)
    player.play()
    if validated.volume != -1:
        player.volume = validated.volume
    return {}


def player_play_tv(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    properties = transport.get_device_properties(group.player.base_url)
    service_list = (properties.get('serviceList') or {}).get('service') or []
    if isinstance(service_list, dict):
        service_list = [service_list]
    if not any(service.get('controlURL') == HT_CONTROL for service in service_list):
        raise InvalidInputError("Sonos player is not TV enabled")
    rincon = properties.get('UDN', '')[len('uuid:'):]
    set_av_transport_uri(transport, group.player, f"x-sonos-htastream:{rincon}:spdif")
    if validated.volume != -1:
        set_volume(transport, group.player, validated.volume)
    return {}


# ============================================================================
# PLAYER SETTINGS
# ============================================================================

def player_adjust_volume(transport, msg, state_name, cmd_name, anchor):
    adjustment = string_to_valid_integer(msg, state_name, -100, 100, 'adjust volume')
    validated, group = resolve_group(transport, msg, anchor)
    transport.player(group.player.host_name).set_relative_volume(adjustment)
    return {}


def player_set_volume(transport, msg, state_name, cmd_name, anchor):
    volume = string_to_valid_integer(msg, state_name, 0, 100, 'volume')
    player_name = string_valid_regex(msg, 'playerName', REGEX_ANYCHAR, 'player name', '')
    group = get_group_member_data(transport, anchor, player_name)
    set_volume(transport, group.player, volume)
    return {}


def player_set_bass(transport, msg, state_name, cmd_name, anchor):
    bass = string_to_valid_integer(msg, state_name, -10, 10, 'set bass')
    validated, group = resolve_group(transport, msg, anchor)
    _rendering(transport, group.player, 'SetBass', {'DesiredBass': bass})
    return {}


def player_set_treble(transport, msg, state_name, cmd_name, anchor):
    treble = string_to_valid_integer(msg, state_name, -10, 10, 'set treble')
    validated, group = resolve_group(transport, msg, anchor)
    _rendering(transport, group.player, 'SetTreble', {'DesiredTreble': treble})
    return {}


def player_set_eq(transport, msg, state_name, cmd_name, anchor):
    """Night mode and dialog level take on/off, sub gain -15 to 15"""
    eq_type = EQ_TYPES[msg[cmd_name]]
    if eq_type == 'SubGain':
        value = string_to_valid_integer(msg, state_name, -15, 15, 'subgain')
    else:
        value = 1 if is_on_off(msg, state_name, eq_type.lower()) else 0
    validated, group = resolve_group(transport, msg, anchor)
    _check_tv_player(transport, group.player)
    _rendering(transport, group.player, 'SetEQ', {'EQType': eq_type, 'DesiredValue': value})
    return {}


def player_set_led(transport, msg, state_name, cmd_name, anchor):
    led_on = is_on_off(msg, state_name, 'led state')
    validated, group = resolve_group(transport, msg, anchor)
    transport.player(group.player.host_name).status_light = led_on
    return {}


def player_set_loudness(transport, msg, state_name, cmd_name, anchor):
    loudness = is_on_off(msg, state_name, 'loudness state')
    validated, group = resolve_group(transport, msg, anchor)
    _rendering(transport, group.player, 'SetLoudness',
               {'Channel': 'Master', 'DesiredLoudness': loudness})
    return {}


def player_set_mutestate(transport, msg, state_name, cmd_name, anchor):
    mute = is_on_off(msg, state_name, 'mute state')
    validated, group = resolve_group(transport, msg, anchor)
    _rendering(transport, group.player, 'SetMute', {'Channel': 'Master', 'DesiredMute': mute})
    return {}


def player_execute_action(transport, msg, state_name, cmd_name, anchor):
    """Any SOAP action: value is {endpoint, action, inArgs}"""
    request = msg.get(state_name)
    if not is_valid_property_not_empty_string(request, ['endpoint']):
        raise MissingFieldError(f"endpoint ({state_name}.endpoint) is missing")
    if not is_valid_property_not_empty_string(request, ['action']):
        raise MissingFieldError(f"action ({state_name}.action) is missing")
    in_args = request.get('inArgs') or {}
    if not isinstance(in_args, dict):
        raise InvalidInputError(f"inArgs ({state_name}.inArgs) is not object")
    validated, group = resolve_group(transport, msg, anchor)
    result = transport.execute_action(group.player.base_url, request['endpoint'],
                                      request['action'], in_args)
    return {'payload': result}
