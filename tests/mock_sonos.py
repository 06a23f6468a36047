"""
Mock Sonos Household for Testing
Simulates players and the transport boundary without requiring real hardware
"""

import copy
from typing import Any, Callable, Dict, List, Optional


KITCHEN = '192.168.1.10'
LIVING = '192.168.1.11'
BATH = '192.168.1.12'
OFFICE = '192.168.1.20'
DEN = '192.168.1.30'
DEN_RIGHT = '192.168.1.31'


def base_url(host: str) -> str:
    return f"http://{host}:1400"


def member(host: str, uuid: str, name: str, **extra) -> Dict[str, str]:
    """ZoneGroupMember attributes as parsed from ZoneGroupState"""
    attributes = {
        'UUID': uuid,
        'Location': f"http://{host}:1400/xml/device_description.xml",
        'ZoneName': name,
    }
    attributes.update(extra)
    return attributes


def household() -> List[Dict[str, Any]]:
    """
    Kitchen coordinates Living and Bath (reported out of order),
    Office is standalone, Den is the left player of a stereo pair.
    """
    return [
        {
            'ID': 'RINCON_000E58KITCHEN01400:31',
            'Coordinator': 'RINCON_000E58KITCHEN01400',
            'ZoneGroupMember': [
                member(LIVING, 'RINCON_000E58LIVING001400', 'Living'),
                member(KITCHEN, 'RINCON_000E58KITCHEN01400', 'Kitchen'),
                member(BATH, 'RINCON_000E58BATH00001400', 'Bath'),
            ],
        },
        {
            'ID': 'RINCON_000E58FE3AEA01400:7',
            'Coordinator': 'RINCON_000E58FE3AEA01400',
            'ZoneGroupMember': [
                member(OFFICE, 'RINCON_000E58FE3AEA01400', 'Office'),
            ],
        },
        {
            'ID': 'RINCON_000E58DEN0LF01400:3',
            'Coordinator': 'RINCON_000E58DEN0LF01400',
            'ZoneGroupMember': [
                member(DEN, 'RINCON_000E58DEN0LF01400', 'Den',
                       ChannelMapSet='RINCON_000E58DEN0LF01400:LF,LF;RINCON_000E58DEN0RF01400:RF,RF'),
                member(DEN_RIGHT, 'RINCON_000E58DEN0RF01400', 'Den',
                       ChannelMapSet='RINCON_000E58DEN0LF01400:LF,LF;RINCON_000E58DEN0RF01400:RF,RF',
                       Invisible='1'),
            ],
        },
    ]


# Read actions answer like a quiet household by default
DEFAULT_RESPONSES = {
    'GetVolume': '20',
    'GetMute': '0',
    'GetGroupVolume': '30',
    'GetGroupMute': '0',
    'GetCrossfadeMode': '1',
    'GetBass': '2',
    'GetTreble': '-1',
    'GetLoudness': '1',
    'GetEQ': '1',
    'GetCurrentTransportActions': 'Set, Stop, Pause, Play, Next, Previous',
    'GetRemainingSleepTimerDuration': {'RemainingSleepTimerDuration': '',
                                       'CurrentSleepTimerGeneration': '0'},
    'GetTransportSettings': {'PlayMode': 'NORMAL', 'RecQualityMode': 'NOT_IMPLEMENTED'},
    'GetMediaInfo': {
        'NrTracks': '4',
        'CurrentURI': 'x-rincon-queue:RINCON_000E58KITCHEN01400#0',
        'CurrentURIMetaData': '',
    },
    'GetPositionInfo': {
        'Track': '2',
        'TrackDuration': '0:03:10',
        'TrackURI': 'x-sonos-spotify:spotify%3atrack%3a1?sid=9&flags=8224&sn=1',
        'RelTime': '0:01:05',
    },
    'SetRelativeGroupVolume': '40',
}


class MockSonos:
    """
    Mock Sonos speaker for testing.
    Simulates the SoCo primitives the command handlers use.
    """

    def __init__(self, ip_address=KITCHEN, player_name="Test Speaker"):
        self.ip_address = ip_address
        self.player_name = player_name

        # Playback state
        self.state = "STOPPED"
        self.current_uri: Optional[str] = None
        self.current_track_info = {
            'title': 'Song 2',
            'artist': 'Artist 2',
            'album': 'Album',
            'album_art': '/getaa?s=1&u=x-sonos-spotify',
            'position': '0:01:05',
            'playlist_position': '2',
            'duration': '0:03:10',
            'uri': 'x-sonos-spotify:spotify%3atrack%3a1?sid=9&flags=8224&sn=1',
            'metadata': '',
        }
        self._volume = 20
        self._status_light = False

        # Call tracking for assertions
        self.call_log: List[tuple] = []

    @property
    def volume(self):
        return self._volume

    @volume.setter
    def volume(self, value):
        self._volume = max(0, min(100, value))
        self.call_log.append(('set_volume', value))

    @property
    def status_light(self):
        return self._status_light

    @status_light.setter
    def status_light(self, value):
        self._status_light = value
        self.call_log.append(('set_status_light', value))

    def set_relative_volume(self, adjustment: int):
        self.call_log.append(('set_relative_volume', adjustment))
        self._volume = max(0, min(100, self._volume + adjustment))
        return self._volume

    def play_uri(self, uri: str, meta: str = ''):
        """Play a URI"""
        self.call_log.append(('play_uri', uri))
        self.current_uri = uri
        self.state = "PLAYING"

    def play(self):
        """Resume playback"""
        self.call_log.append(('play',))
        self.state = "PLAYING"

    def pause(self):
        self.call_log.append(('pause',))
        self.state = "PAUSED_PLAYBACK"

    def stop(self):
        self.call_log.append(('stop',))
        self.state = "STOPPED"

    def next(self):
        self.call_log.append(('next',))

    def previous(self):
        self.call_log.append(('previous',))

    def clear_queue(self):
        self.call_log.append(('clear_queue',))

    def add_uri_to_queue(self, uri: str):
        self.call_log.append(('add_uri_to_queue', uri))
        return 1

    def get_current_transport_info(self):
        """Get transport state"""
        return {
            'current_transport_state': self.state,
            'current_transport_status': 'OK',
            'current_transport_speed': '1',
        }

    def get_current_track_info(self):
        return self.current_track_info.copy()

    def reset_call_log(self):
        """Clear call log"""
        self.call_log.clear()

    def get_call_count(self, method_name: str) -> int:
        """Count how many times a method was called"""
        return sum(1 for call in self.call_log if call[0] == method_name)

    def was_called_with(self, method_name: str, *args) -> bool:
        """Check if method was called with specific arguments"""
        target = (method_name,) + args
        return target in self.call_log


class MockTransport:
    """
    Mock of SonosTransport.

    Every execute_action call is recorded in calls as
    (base_url, endpoint, action, args). Reads of topology, queue and
    playlists are not actions and are not recorded there.
    """

    def __init__(self, groups: Optional[List[Dict[str, Any]]] = None):
        self.groups = groups if groups is not None else household()
        self.calls: List[tuple] = []
        self.responses: Dict[str, Any] = {}
        self.errors: Dict[str, Exception] = {}
        self.queues: Dict[str, List[Dict[str, str]]] = {}
        self.playlists: Dict[str, List[Dict[str, str]]] = {}
        self.device_properties: Dict[str, Dict[str, Any]] = {}
        self.players: Dict[str, MockSonos] = {}
        self.removed_playlists: List[tuple] = []
        self.share_links: List[tuple] = []
        self.topology_reads = 0

    def player(self, host: str) -> MockSonos:
        if host not in self.players:
            self.players[host] = MockSonos(ip_address=host)
        return self.players[host]

    def execute_action(self, base_url: str, endpoint: str, action: str,
                       args: Optional[Dict[str, Any]] = None):
        self.calls.append((base_url, endpoint, action, dict(args or {})))
        if action in self.errors:
            raise self.errors[action]
        response = self.responses.get(action, DEFAULT_RESPONSES.get(action, True))
        if callable(response):
            return response(base_url, args)
        return copy.deepcopy(response)

    def get_all_groups(self, anchor) -> List[Dict[str, Any]]:
        self.topology_reads += 1
        return copy.deepcopy(self.groups)

    def get_device_properties(self, base_url: str) -> Dict[str, Any]:
        if base_url in self.device_properties:
            return copy.deepcopy(self.device_properties[base_url])
        return {
            'modelName': 'Sonos One',
            'roomName': 'Kitchen',
            'serialNum': '00-0E-58-KI-TC-HE:1',
            'UDN': 'uuid:RINCON_000E58KITCHEN01400',
            'serviceList': {'service': []},
        }

    def get_queue(self, base_url: str) -> List[Dict[str, str]]:
        return list(self.queues.get(base_url, []))

    def get_sonos_playlists(self, base_url: str) -> List[Dict[str, str]]:
        return list(self.playlists.get(base_url, []))

    def remove_sonos_playlist(self, base_url: str, item_id: str) -> bool:
        self.removed_playlists.append((base_url, item_id))
        return True

    def queue_share_link(self, base_url: str, uri: str) -> int:
        self.share_links.append((base_url, uri))
        return 1

    # ========================================================================
    # ASSERTION HELPERS
    # ========================================================================

    def actions(self) -> List[str]:
        """Action names in call order"""
        return [call[2] for call in self.calls]

    def calls_for(self, action: str) -> List[tuple]:
        return [call for call in self.calls if call[2] == action]

    def reset_calls(self):
        self.calls.clear()
        for player in self.players.values():
            player.reset_call_log()


def queue_of(count: int) -> List[Dict[str, str]]:
    """Queue items as returned by SonosTransport.get_queue"""
    return [{'id': f"Q:0/{i}", 'title': f"Song {i}", 'artist': 'Artist', 'album': 'Album',
             'albumArtUri': '', 'uri': f"x-file-cifs://nas/song{i}.mp3"}
            for i in range(1, count + 1)]


class FakeDevice:
    """What soco.discover yields: only ip_address is used"""

    def __init__(self, ip_address: str):
        self.ip_address = ip_address


def fake_discover(*addresses: str) -> Callable:
    """Discovery function returning the given addresses, None if there are none"""
    def discover(timeout=5, **kwargs):
        if not addresses:
            return None
        return [FakeDevice(address) for address in addresses]
    return discover
