"""
Snapshots and Notifications for Sonos Universal
Capture and restore group state, play a notification on a group or a
single joiner and return to what was playing before.
"""

import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional

from sonos_universal.errors import InvalidInputError
from sonos_universal.groups import GroupMember
from sonos_universal.helper import hhmmss_to_msec
from sonos_universal.transport import AVTRANSPORT, RENDERING_CONTROL

log = logging.getLogger(__name__)

DEFAULT_DURATION = '00:00:05'
WAIT_ADJUSTMENT_MS = 2000
# players report track duration as h:mm:ss
REGEX_TRACK_DURATION = re.compile(r'^\d{1,2}:[0-5]\d:[0-5]\d$')

PLAYBACK_STATES = {
    'PLAYING': 'playing',
    'PAUSED_PLAYBACK': 'paused',
    'STOPPED': 'stopped',
    'TRANSITIONING': 'transitioning',
    'NO_MEDIA_PRESENT': 'no_media',
}


def get_playback_state(transport, member: GroupMember) -> str:
    """playing, paused, stopped, transitioning or no_media"""
    info = transport.player(member.host_name).get_current_transport_info()
    state = info.get('current_transport_state', '')
    return PLAYBACK_STATES.get(state, state.lower())


def set_volume(transport, member: GroupMember, volume: int):
    transport.execute_action(member.base_url, RENDERING_CONTROL, 'SetVolume',
                             {'InstanceID': 0, 'Channel': 'Master', 'DesiredVolume': volume})


def set_av_transport_uri(transport, member: GroupMember, uri: str, metadata: str = ''):
    transport.execute_action(member.base_url, AVTRANSPORT, 'SetAVTransportURI',
                             {'InstanceID': 0, 'CurrentURI': uri, 'CurrentURIMetaData': metadata})


# ============================================================================
# SNAPSHOT
# ============================================================================

def create_group_snapshot(transport, members: List[GroupMember],
                          snap_volumes: bool = False,
                          snap_mutestates: bool = False) -> Dict[str, Any]:
    """
    Capture playback state of the coordinator and optionally volume and
    mute state of every member.

    Args:
        transport: SonosTransport
        members: Group members, coordinator first
        snap_volumes: Capture member volumes
        snap_mutestates: Capture member mute states

    Returns:
        JSON serialisable snapshot, input for restore_group_snapshot
    """
    members_data = []
    for member in members:
        volume = -1
        mutestate = None
        if snap_volumes:
            volume = int(transport.execute_action(
                member.base_url, RENDERING_CONTROL, 'GetVolume',
                {'InstanceID': 0, 'Channel': 'Master'}))
        if snap_mutestates:
            mute = transport.execute_action(
                member.base_url, RENDERING_CONTROL, 'GetMute',
                {'InstanceID': 0, 'Channel': 'Master'})
            mutestate = 'on' if mute == '1' else 'off'
        members_data.append({
            'hostName': member.host_name,
            'baseUrl': member.base_url,
            'uuid': member.uuid,
            'name': member.name,
            'volume': volume,
            'mutestate': mutestate,
        })

    coordinator = members[0]
    playbackstate = get_playback_state(transport, coordinator)
    media = transport.execute_action(coordinator.base_url, AVTRANSPORT, 'GetMediaInfo',
                                     {'InstanceID': 0})
    position = transport.execute_action(coordinator.base_url, AVTRANSPORT, 'GetPositionInfo',
                                        {'InstanceID': 0})
    snapshot = {
        'membersData': members_data,
        'playbackstate': playbackstate,
        'wasPlaying': playbackstate in ('playing', 'transitioning'),
        'CurrentURI': media.get('CurrentURI') or '',
        'CurrentURIMetaData': media.get('CurrentURIMetaData') or '',
        'NrTracks': int(media.get('NrTracks') or 0),
        'Track': int(position.get('Track') or 0),
        'RelTime': position.get('RelTime') or '',
    }
    log.debug(f"Snapshot: {snapshot['playbackstate']} {snapshot['CurrentURI']}")
    return snapshot


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_snapshot(snapshot: Any):
    """Raises InvalidInputError for a snapshot that can not be replayed"""
    if not isinstance(snapshot, dict) or not isinstance(snapshot.get('membersData'), list):
        raise InvalidInputError("snapshot is invalid - membersData missing")
    for name in ('CurrentURI', 'CurrentURIMetaData', 'RelTime'):
        if not isinstance(snapshot.get(name) or '', str):
            raise InvalidInputError(f"snapshot is invalid - {name} is not string")
    for name in ('NrTracks', 'Track'):
        if name in snapshot and not _is_int(snapshot[name]):
            raise InvalidInputError(f"snapshot is invalid - {name} is not integer")
    for data in snapshot['membersData']:
        if not isinstance(data, dict):
            raise InvalidInputError("snapshot is invalid - member data is not object")
        base_url = data.get('baseUrl')
        if not isinstance(base_url, str) or base_url == '':
            raise InvalidInputError("snapshot is invalid - member baseUrl missing")
        if not _is_int(data.get('volume', -1)):
            raise InvalidInputError(f"snapshot is invalid - volume of {base_url} is not integer")
        if data.get('mutestate') not in (None, 'on', 'off'):
            raise InvalidInputError(f"snapshot is invalid - mutestate of {base_url} is not on/off")


def restore_group_snapshot(transport, members: List[GroupMember], snapshot: Dict[str, Any]):
    """
    Replay a snapshot: stream or queue position on the coordinator, then
    volume and mute state per member. Resuming playback is up to the caller.
    The whole snapshot is validated before the first action.
    """
    validate_snapshot(snapshot)

    coordinator = members[0]
    uri = snapshot.get('CurrentURI') or ''
    if uri != '':
        set_av_transport_uri(transport, coordinator, uri, snapshot.get('CurrentURIMetaData') or '')
        if uri.startswith('x-rincon-queue') and snapshot.get('NrTracks', 0) > 0:
            transport.execute_action(coordinator.base_url, AVTRANSPORT, 'Seek',
                                     {'InstanceID': 0, 'Unit': 'TRACK_NR',
                                      'Target': str(snapshot.get('Track', 1))})
            rel_time = snapshot.get('RelTime') or ''
            if rel_time not in ('', 'NOT_IMPLEMENTED'):
                transport.execute_action(coordinator.base_url, AVTRANSPORT, 'Seek',
                                         {'InstanceID': 0, 'Unit': 'REL_TIME', 'Target': rel_time})

    for data in snapshot['membersData']:
        if data.get('volume', -1) != -1:
            transport.execute_action(data['baseUrl'], RENDERING_CONTROL, 'SetVolume',
                                     {'InstanceID': 0, 'Channel': 'Master',
                                      'DesiredVolume': data['volume']})
        if data.get('mutestate') is not None:
            transport.execute_action(data['baseUrl'], RENDERING_CONTROL, 'SetMute',
                                     {'InstanceID': 0, 'Channel': 'Master',
                                      'DesiredMute': data['mutestate'] == 'on'})


# ============================================================================
# NOTIFICATIONS
# ============================================================================

def notification_wait_ms(transport, member: GroupMember, options: Dict[str, Any]) -> int:
    """Explicit duration, or track duration plus adjustment, or the default"""
    if options.get('automaticDuration', True):
        position = transport.execute_action(member.base_url, AVTRANSPORT, 'GetPositionInfo',
                                            {'InstanceID': 0})
        duration = position.get('TrackDuration', '') if isinstance(position, dict) else ''
        if REGEX_TRACK_DURATION.match(duration or '') and hhmmss_to_msec(duration) > 0:
            return hhmmss_to_msec(duration) + WAIT_ADJUSTMENT_MS
        log.debug(f"Notification: no track duration ({duration!r}), using default")
    return hhmmss_to_msec(options.get('duration') or DEFAULT_DURATION)


def play_group_notification(transport, members: List[GroupMember], options: Dict[str, Any],
                            sleep: Optional[Callable] = None):
    """
    Play a notification on the whole group and restore the previous state.

    Args:
        transport: SonosTransport
        members: Group members, coordinator first
        options: uri, volume (-1 keeps volume), sameVolume,
                 automaticDuration, duration (hh:mm:ss)
        sleep: Wait function in seconds, time.sleep if not given
    """
    sleep = sleep or time.sleep
    coordinator = members[0]
    volume = options.get('volume', -1)
    snapshot = create_group_snapshot(transport, members, snap_volumes=volume != -1)

    set_av_transport_uri(transport, coordinator, options['uri'])
    if volume != -1:
        targets = members if options.get('sameVolume', True) else [coordinator]
        for member in targets:
            set_volume(transport, member, volume)
    transport.player(coordinator.host_name).play()
    log.info(f"Notification: playing {options['uri']} on group of {coordinator.name}")

    try:
        sleep(notification_wait_ms(transport, coordinator, options) / 1000)
    finally:
        try:
            restore_group_snapshot(transport, members, snapshot)
            if snapshot['wasPlaying']:
                transport.player(coordinator.host_name).play()
        except Exception:
            log.error(f"Notification: restore failed, stopping {coordinator.name}")
            transport.player(coordinator.host_name).stop()
            raise


def play_joiner_notification(transport, coordinator: GroupMember, joiner: GroupMember,
                             options: Dict[str, Any], sleep: Optional[Callable] = None):
    """
    Play a notification on a single joiner, then let it rejoin its group.

    The joiner leaves the group while the notification plays; the group
    itself keeps playing.
    """
    sleep = sleep or time.sleep
    volume = options.get('volume', -1)
    previous_volume = -1
    if volume != -1:
        previous_volume = int(transport.execute_action(
            joiner.base_url, RENDERING_CONTROL, 'GetVolume',
            {'InstanceID': 0, 'Channel': 'Master'}))

    set_av_transport_uri(transport, joiner, options['uri'])
    if volume != -1:
        set_volume(transport, joiner, volume)
    transport.player(joiner.host_name).play()
    log.info(f"Notification: playing {options['uri']} on joiner {joiner.name}")

    try:
        sleep(notification_wait_ms(transport, joiner, options) / 1000)
    finally:
        try:
            set_av_transport_uri(transport, joiner, f"x-rincon:{coordinator.uuid}")
            if previous_volume != -1:
                set_volume(transport, joiner, previous_volume)
        except Exception:
            log.error(f"Notification: rejoin failed, stopping {joiner.name}")
            transport.player(joiner.host_name).stop()
            raise
