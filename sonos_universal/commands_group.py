"""
Group Commands for Sonos Universal
Handlers addressing the group of a player through its coordinator.

All handlers share the signature (transport, msg, state_name, cmd_name, anchor)
and return the fragment merged into the outbound message.
"""

import logging
from typing import Any, Dict, Tuple

from sonos_universal.errors import InvalidInputError, MissingFieldError, PlayerNotFoundError
from sonos_universal.groups import GroupSnapshot, get_group_member_data
from sonos_universal.helper import (
    REGEX_ANYCHAR, REGEX_HTTP, REGEX_QUEUEMODES, REGEX_RADIO_ID, REGEX_TIME,
    REGEX_TIME_DELTA, ValidatedProperties, is_on_off, is_valid_boolean,
    is_valid_property, is_valid_property_not_empty_string, string_to_valid_integer,
    string_valid_regex, validated_group_properties,
)
from sonos_universal.notifications import (
    DEFAULT_DURATION, create_group_snapshot, get_playback_state,
    play_group_notification, play_joiner_notification, restore_group_snapshot,
    set_av_transport_uri,
)
from sonos_universal.transport import (
    AVTRANSPORT, GROUP_RENDERING_CONTROL, get_music_service_id,
    get_music_service_name, get_radio_id,
)

log = logging.getLogger(__name__)

SPOTIFY_PREFIXES = (
    'spotify:track:',
    'spotify:album:',
    'spotify:playlist:',
    'spotify:user:spotify:playlist:',
)

TUNEIN_URI = 'x-sonosapi-stream:{radio_id}?sid=254&flags=8224&sn=0'
TUNEIN_METADATA = (
    '<DIDL-Lite xmlns:dc="http://purl.org/dc/elements/1.1/" '
    'xmlns:upnp="urn:schemas-upnp-org:metadata-1-0/upnp/" '
    'xmlns:r="urn:schemas-rinconnetworks-com:metadata-1-0/" '
    'xmlns="urn:schemas-upnp-org:metadata-1-0/DIDL-Lite/">'
    '<item id="F00092020{radio_id}" parentID="L" restricted="true">'
    '<dc:title>tunein</dc:title>'
    '<upnp:class>object.item.audioItem.audioBroadcast</upnp:class>'
    '<desc id="cdudn" nameSpace="urn:schemas-rinconnetworks-com:metadata-1-0/">'
    'SA_RINCON65031_</desc></item></DIDL-Lite>'
)


# ============================================================================
# SHARED STEPS
# ============================================================================

def resolve_group(transport, msg: Dict, anchor) -> Tuple[ValidatedProperties, GroupSnapshot]:
    validated = validated_group_properties(msg)
    group = get_group_member_data(transport, anchor, validated.player_name)
    return validated, group


def check_same_volume(validated: ValidatedProperties, group: GroupSnapshot):
    if not validated.same_volume and len(group.members) == 1:
        raise InvalidInputError("sameVolume is nonsense: player is standalone")


def apply_volume(transport, validated: ValidatedProperties, group: GroupSnapshot):
    """Set volume on all members (sameVolume) or only on the addressed player"""
    if validated.volume == -1:
        return
    targets = group.members if validated.same_volume else [group.player]
    for member in targets:
        transport.player(member.host_name).volume = validated.volume


def queue_items(transport, group: GroupSnapshot):
    items = transport.get_queue(group.coordinator.base_url)
    if len(items) == 0:
        raise InvalidInputError("queue is empty")
    return items


def select_queue(transport, group: GroupSnapshot):
    coordinator = group.coordinator
    set_av_transport_uri(transport, coordinator, f"x-rincon-queue:{coordinator.uuid}#0")


def on_off(value: Any) -> str:
    return 'on' if value == '1' else 'off'


def notification_options(msg: Dict, uri: str, validated: ValidatedProperties) -> Dict[str, Any]:
    options = {
        'uri': uri,
        'volume': validated.volume,
        'sameVolume': validated.same_volume,
        'automaticDuration': True,
        'duration': DEFAULT_DURATION,
    }
    if is_valid_property(msg, ['duration']):
        duration = msg['duration']
        if not isinstance(duration, str):
            raise InvalidInputError("duration (duration) is not a string")
        if not REGEX_TIME.match(duration):
            raise InvalidInputError("duration (duration) is not format hh:mm:ss")
        options['duration'] = duration
        options['automaticDuration'] = False
    return options


# ============================================================================
# COORDINATOR AND JOINER
# ============================================================================

def coordinator_delegate(transport, msg, state_name, cmd_name, anchor):
    """Hand coordination to another member of the same group"""
    new_coordinator_name = string_valid_regex(msg, state_name, REGEX_ANYCHAR, 'player name')
    validated, group = resolve_group(transport, msg, anchor)
    if group.player_index != 0:
        raise InvalidInputError("player must be coordinator")
    index = next((i for i, member in enumerate(group.members)
                  if member.name == new_coordinator_name), -1)
    if index == -1:
        raise PlayerNotFoundError("could not find player name in current group")
    if index == 0:
        raise InvalidInputError("new coordinator must be different from current coordinator")
    transport.execute_action(group.player.base_url, AVTRANSPORT, 'DelegateGroupCoordinationTo',
                             {'InstanceID': 0, 'NewCoordinator': group.members[index].uuid,
                              'RejoinGroup': True})
    return {}


def joiner_play_notification(transport, msg, state_name, cmd_name, anchor):
    uri = string_valid_regex(msg, state_name, REGEX_ANYCHAR, 'uri')
    validated, group = resolve_group(transport, msg, anchor)
    if group.player_index == 0:
        raise InvalidInputError("player (playerName) is not a joiner")
    options = notification_options(msg, uri, validated)
    play_joiner_notification(transport, group.coordinator, group.player, options)
    return {}


# ============================================================================
# GROUP QUERIES
# ============================================================================

def group_get_actions(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    actions = transport.execute_action(group.coordinator.base_url, AVTRANSPORT,
                                       'GetCurrentTransportActions', {'InstanceID': 0})
    return {'payload': actions}


def group_get_crossfade(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    state = transport.execute_action(group.coordinator.base_url, AVTRANSPORT,
                                     'GetCrossfadeMode', {'InstanceID': 0})
    return {'payload': on_off(state)}


def group_get_members(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    return {'payload': group.members_as_dicts()}


def group_get_mutestate(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    state = transport.execute_action(group.coordinator.base_url, GROUP_RENDERING_CONTROL,
                                     'GetGroupMute', {'InstanceID': 0})
    return {'payload': on_off(state)}


def group_get_playbackstate(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    return {'payload': get_playback_state(transport, group.coordinator)}


def group_get_queue(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    return {'payload': transport.get_queue(group.coordinator.base_url)}


def group_get_sleeptimer(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    result = transport.execute_action(group.coordinator.base_url, AVTRANSPORT,
                                      'GetRemainingSleepTimerDuration', {'InstanceID': 0})
    remaining = result.get('RemainingSleepTimerDuration', '') if isinstance(result, dict) else result
    return {'payload': remaining or 'no time set'}


def group_get_state(transport, msg, state_name, cmd_name, anchor):
    """Playback state, volume, mute and source of the group in one object"""
    validated, group = resolve_group(transport, msg, anchor)
    coordinator = group.coordinator
    playbackstate = get_playback_state(transport, coordinator)
    mute = transport.execute_action(coordinator.base_url, GROUP_RENDERING_CONTROL,
                                    'GetGroupMute', {'InstanceID': 0})
    volume = transport.execute_action(coordinator.base_url, GROUP_RENDERING_CONTROL,
                                      'GetGroupVolume', {'InstanceID': 0})
    media = transport.execute_action(coordinator.base_url, AVTRANSPORT,
                                     'GetMediaInfo', {'InstanceID': 0})
    if not isinstance(media, dict):
        raise InvalidInputError("current media data is invalid")
    uri = media.get('CurrentURI') or ''
    settings = transport.execute_action(coordinator.base_url, AVTRANSPORT,
                                        'GetTransportSettings', {'InstanceID': 0})
    return {
        'payload': {
            'playbackstate': playbackstate,
            'coordinatorName': coordinator.name,
            'volume': int(volume),
            'muteState': on_off(mute),
            'tvActivated': uri.startswith('x-sonos-htastream'),
            'queueActivated': uri.startswith('x-rincon-queue'),
            'queueMode': settings.get('PlayMode', ''),
            'members': group.members_as_dicts(),
            'size': len(group.members),
            'id': group.group_id,
            'name': group.group_name,
        }
    }


def group_get_trackplus(transport, msg, state_name, cmd_name, anchor):
    """Current track plus media, position and music service info"""
    validated, group = resolve_group(transport, msg, anchor)
    coordinator = group.coordinator
    track = transport.player(coordinator.host_name).get_current_track_info()
    if not track:
        raise InvalidInputError("current track data is invalid")

    art_uri = track.get('album_art') or ''
    if art_uri.startswith('/getaa'):
        art_uri = coordinator.base_url + art_uri

    artist = 'unknown'
    title = 'unknown'
    if is_valid_property_not_empty_string(track, ['artist']):
        artist = track['artist']
        if is_valid_property_not_empty_string(track, ['title']):
            title = track['title']
    elif is_valid_property_not_empty_string(track, ['title']):
        # radio streams report "artist - title" as title
        if track['title'].find(' - ') > 0:
            artist, title = track['title'].split(' - ')[:2]
        else:
            title = track['title']

    media = transport.execute_action(coordinator.base_url, AVTRANSPORT,
                                     'GetMediaInfo', {'InstanceID': 0})
    if not isinstance(media, dict):
        raise InvalidInputError("current media data is invalid")
    uri = media.get('CurrentURI') or ''
    station_art_uri = ''
    if uri.startswith('x-sonosapi-stream'):
        station_art_uri = f"{coordinator.base_url}/getaa?s=1&u={uri}"

    position = transport.execute_action(coordinator.base_url, AVTRANSPORT,
                                        'GetPositionInfo', {'InstanceID': 0})
    if not isinstance(position, dict):
        raise InvalidInputError("current position data is invalid")
    sid = get_music_service_id(uri)
    if sid == '':
        sid = get_music_service_id(position.get('TrackURI') or '')

    return {
        'payload': {
            'trackData': track,
            'artist': artist,
            'title': title,
            'artUri': art_uri,
            'mediaData': media,
            'queueActivated': uri.startswith('x-rincon-queue'),
            'radioId': get_radio_id(uri),
            'serviceId': sid,
            'serviceName': get_music_service_name(sid),
            'stationArtUri': station_art_uri,
            'positionData': position,
        }
    }


def group_get_volume(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    volume = transport.execute_action(group.coordinator.base_url, GROUP_RENDERING_CONTROL,
                                      'GetGroupVolume', {'InstanceID': 0})
    return {'payload': int(volume)}


# ============================================================================
# GROUP PLAYBACK CONTROL
# ============================================================================

def group_next_track(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    transport.player(group.coordinator.host_name).next()
    return {}


def group_previous_track(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    transport.player(group.coordinator.host_name).previous()
    return {}


def group_pause(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    transport.player(group.coordinator.host_name).pause()
    return {}


def group_stop(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    transport.player(group.coordinator.host_name).stop()
    return {}


def group_toggle_playback(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    player = transport.player(group.coordinator.host_name)
    if get_playback_state(transport, group.coordinator) == 'playing':
        player.pause()
    else:
        player.play()
    return {}


def group_play(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    check_same_volume(validated, group)
    transport.player(group.coordinator.host_name).play()
    apply_volume(transport, validated, group)
    return {}


def group_play_export(transport, msg, state_name, cmd_name, anchor):
    """Play an exported item: {uri, metadata, queue}"""
    export = msg.get(state_name)
    if not is_valid_property_not_empty_string(export, ['uri']):
        raise MissingFieldError("uri is missing")
    if not isinstance(export.get('queue'), bool):
        raise MissingFieldError("queue identifier is missing")
    validated, group = resolve_group(transport, msg, anchor)
    check_same_volume(validated, group)
    coordinator = group.coordinator
    metadata = export.get('metadata') or ''
    if export['queue']:
        if validated.clear_queue:
            transport.player(coordinator.host_name).clear_queue()
        transport.execute_action(coordinator.base_url, AVTRANSPORT, 'AddURIToQueue',
                                 {'InstanceID': 0, 'EnqueuedURI': export['uri'],
                                  'EnqueuedURIMetaData': metadata,
                                  'DesiredFirstTrackNumberEnqueued': 0,
                                  'EnqueueAsNext': 0})
        select_queue(transport, group)
    else:
        set_av_transport_uri(transport, coordinator, export['uri'], metadata)
    transport.player(coordinator.host_name).play()
    apply_volume(transport, validated, group)
    return {}


def group_play_notification(transport, msg, state_name, cmd_name, anchor):
    uri = string_valid_regex(msg, state_name, REGEX_ANYCHAR, 'uri')
    validated, group = resolve_group(transport, msg, anchor)
    options = notification_options(msg, uri, validated)
    play_group_notification(transport, group.members, options)
    return {}


def group_play_queue(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    check_same_volume(validated, group)
    queue_items(transport, group)
    select_queue(transport, group)
    transport.player(group.coordinator.host_name).play()
    apply_volume(transport, validated, group)
    return {}


def group_play_snap(transport, msg, state_name, cmd_name, anchor):
    """Restore a snapshot created by group.create.snap"""
    if not is_valid_property(msg, [state_name]):
        raise MissingFieldError(f"snapshot ({state_name}) is missing")
    snapshot = msg[state_name]
    if not isinstance(snapshot, dict):
        raise InvalidInputError(f"snapshot ({state_name}) is not object")
    validated, group = resolve_group(transport, msg, anchor)
    restore_group_snapshot(transport, group.members, snapshot)
    if snapshot.get('wasPlaying'):
        transport.player(group.coordinator.host_name).play()
    return {}


def group_play_streamhttp(transport, msg, state_name, cmd_name, anchor):
    uri = string_valid_regex(msg, state_name, REGEX_HTTP, 'uri')
    validated, group = resolve_group(transport, msg, anchor)
    check_same_volume(validated, group)
    coordinator = group.coordinator
    set_av_transport_uri(transport, coordinator, f"x-rincon-mp3radio://{uri}")
    transport.execute_action(coordinator.base_url, AVTRANSPORT, 'Play',
                             {'InstanceID': 0, 'Speed': '1'})
    apply_volume(transport, validated, group)
    return {}


def group_play_track(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    items = queue_items(transport, group)
    position = string_to_valid_integer(msg, state_name, 1, max(len(items), 2),
                                       'position in queue')
    if position > len(items):
        raise InvalidInputError(f"position in queue ({state_name} >>{position}) is out of range")
    select_queue(transport, group)
    transport.execute_action(group.coordinator.base_url, AVTRANSPORT, 'Seek',
                             {'InstanceID': 0, 'Unit': 'TRACK_NR', 'Target': str(position)})
    transport.player(group.coordinator.host_name).play()
    apply_volume(transport, validated, group)
    return {}


def group_play_tunein(transport, msg, state_name, cmd_name, anchor):
    radio_id = string_valid_regex(msg, state_name, REGEX_RADIO_ID, 'radio id')
    validated, group = resolve_group(transport, msg, anchor)
    check_same_volume(validated, group)
    transport.player(group.coordinator.host_name).play_uri(
        TUNEIN_URI.format(radio_id=radio_id),
        meta=TUNEIN_METADATA.format(radio_id=radio_id))
    apply_volume(transport, validated, group)
    return {}


# ============================================================================
# GROUP QUEUE
# ============================================================================

def group_clear_queue(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    transport.player(group.coordinator.host_name).clear_queue()
    return {}


def group_queue_uri(transport, msg, state_name, cmd_name, anchor):
    uri = string_valid_regex(msg, state_name, REGEX_ANYCHAR, 'uri')
    validated, group = resolve_group(transport, msg, anchor)
    transport.player(group.coordinator.host_name).add_uri_to_queue(uri)
    return {}


def group_queue_urispotify(transport, msg, state_name, cmd_name, anchor):
    uri = string_valid_regex(msg, state_name, REGEX_ANYCHAR, 'spotify uri')
    if not uri.startswith(SPOTIFY_PREFIXES):
        raise InvalidInputError("not supported type of spotify uri")
    validated, group = resolve_group(transport, msg, anchor)
    transport.queue_share_link(group.coordinator.base_url, uri)
    return {}


def group_remove_tracks(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    items = queue_items(transport, group)
    last = len(items)
    # single item queues still need max > min
    position = string_to_valid_integer(msg, state_name, 1, max(last, 2), 'position in queue')
    number_of_tracks = string_to_valid_integer(msg, 'numberOfTracks', 1, max(last, 2),
                                               'number of tracks', 1)
    if position > last:
        raise InvalidInputError(f"position in queue ({state_name} >>{position}) is out of range")
    if number_of_tracks > last:
        raise InvalidInputError(f"number of tracks (numberOfTracks >>{number_of_tracks}) is out of range")
    transport.execute_action(group.coordinator.base_url, AVTRANSPORT, 'RemoveTrackRangeFromQueue',
                             {'InstanceID': 0, 'UpdateID': 0, 'StartingIndex': position,
                              'NumberOfTracks': number_of_tracks})
    return {}


def group_save_queue(transport, msg, state_name, cmd_name, anchor):
    title = string_valid_regex(msg, state_name, REGEX_ANYCHAR, 'title')
    validated, group = resolve_group(transport, msg, anchor)
    queue_items(transport, group)
    transport.execute_action(group.coordinator.base_url, AVTRANSPORT, 'SaveQueue',
                             {'InstanceID': 0, 'Title': title, 'ObjectID': ''})
    return {}


def group_set_queuemode(transport, msg, state_name, cmd_name, anchor):
    mode = string_valid_regex(msg, state_name, REGEX_QUEUEMODES, 'queue mode')
    validated, group = resolve_group(transport, msg, anchor)
    queue_items(transport, group)
    media = transport.execute_action(group.coordinator.base_url, AVTRANSPORT,
                                     'GetMediaInfo', {'InstanceID': 0})
    if not is_valid_property_not_empty_string(media, ['CurrentURI']):
        raise InvalidInputError("CurrentUri is invalid")
    if not media['CurrentURI'].startswith('x-rincon-queue'):
        raise InvalidInputError("queue is not activated")
    transport.execute_action(group.coordinator.base_url, AVTRANSPORT, 'SetPlayMode',
                             {'InstanceID': 0, 'NewPlayMode': mode.upper()})
    return {}


# ============================================================================
# GROUP SETTINGS
# ============================================================================

def group_adjust_volume(transport, msg, state_name, cmd_name, anchor):
    adjustment = string_to_valid_integer(msg, state_name, -100, 100, 'adjust volume')
    validated, group = resolve_group(transport, msg, anchor)
    new_volume = transport.execute_action(group.coordinator.base_url, GROUP_RENDERING_CONTROL,
                                          'SetRelativeGroupVolume',
                                          {'InstanceID': 0, 'Adjustment': adjustment})
    return {'newVolume': new_volume}


def group_set_volume(transport, msg, state_name, cmd_name, anchor):
    volume = string_to_valid_integer(msg, state_name, 0, 100, 'new volume')
    validated, group = resolve_group(transport, msg, anchor)
    transport.execute_action(group.coordinator.base_url, GROUP_RENDERING_CONTROL,
                             'SetGroupVolume', {'InstanceID': 0, 'DesiredVolume': volume})
    return {}


def group_set_mutestate(transport, msg, state_name, cmd_name, anchor):
    mute = is_on_off(msg, state_name, 'mute state')
    validated, group = resolve_group(transport, msg, anchor)
    transport.execute_action(group.coordinator.base_url, GROUP_RENDERING_CONTROL,
                             'SetGroupMute', {'InstanceID': 0, 'DesiredMute': mute})
    return {}


def group_set_crossfade(transport, msg, state_name, cmd_name, anchor):
    crossfade = is_on_off(msg, state_name, 'crossfade state')
    validated, group = resolve_group(transport, msg, anchor)
    transport.execute_action(group.coordinator.base_url, AVTRANSPORT,
                             'SetCrossfadeMode', {'InstanceID': 0, 'CrossfadeMode': crossfade})
    return {}


def group_set_sleeptimer(transport, msg, state_name, cmd_name, anchor):
    duration = string_valid_regex(msg, state_name, REGEX_TIME, 'timer duration')
    validated, group = resolve_group(transport, msg, anchor)
    transport.execute_action(group.coordinator.base_url, AVTRANSPORT, 'ConfigureSleepTimer',
                             {'InstanceID': 0, 'NewSleepTimerDuration': duration})
    return {}


def group_cancel_sleeptimer(transport, msg, state_name, cmd_name, anchor):
    validated, group = resolve_group(transport, msg, anchor)
    transport.execute_action(group.coordinator.base_url, AVTRANSPORT, 'ConfigureSleepTimer',
                             {'InstanceID': 0, 'NewSleepTimerDuration': ''})
    return {}


def group_seek(transport, msg, state_name, cmd_name, anchor):
    target = string_valid_regex(msg, state_name, REGEX_TIME, 'seek time')
    validated, group = resolve_group(transport, msg, anchor)
    transport.execute_action(group.coordinator.base_url, AVTRANSPORT, 'Seek',
                             {'InstanceID': 0, 'Unit': 'REL_TIME', 'Target': target})
    return {}


def group_seek_delta(transport, msg, state_name, cmd_name, anchor):
    target = string_valid_regex(msg, state_name, REGEX_TIME_DELTA, 'relative seek time')
    validated, group = resolve_group(transport, msg, anchor)
    transport.execute_action(group.coordinator.base_url, AVTRANSPORT, 'Seek',
                             {'InstanceID': 0, 'Unit': 'TIME_DELTA', 'Target': target})
    return {}


# ============================================================================
# SNAPSHOTS
# ============================================================================

def group_create_snap(transport, msg, state_name, cmd_name, anchor):
    snap_volumes = is_valid_boolean(msg, 'snapVolumes', 'snapVolumes indicator', False)
    snap_mutestates = is_valid_boolean(msg, 'snapMutestates', 'snapMutestates indicator', False)
    validated, group = resolve_group(transport, msg, anchor)
    snapshot = create_group_snapshot(transport, group.members, snap_volumes, snap_mutestates)
    return {'payload': snapshot}


def group_create_volumesnap(transport, msg, state_name, cmd_name, anchor):
    """Group volume snapshot, needed before relative group volume changes"""
    validated, group = resolve_group(transport, msg, anchor)
    transport.execute_action(group.coordinator.base_url, GROUP_RENDERING_CONTROL,
                             'SnapshotGroupVolume', {'InstanceID': 0})
    return {}
