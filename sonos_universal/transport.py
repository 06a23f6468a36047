"""
SONOS Transport for Sonos Universal
Thin layer over SoCo: arbitrary SOAP actions, household topology,
device description, queue and Sonos playlist access.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

import requests
import xmltodict
import soco  # type: ignore
from soco import services  # type: ignore
from soco.plugins.sharelink import ShareLinkPlugin  # type: ignore
from soco.xml import XML  # type: ignore

log = logging.getLogger(__name__)

DEFAULT_PORT = 1400
DEVICE_DESCRIPTION_PATH = '/xml/device_description.xml'
REQUEST_TIMEOUT = 10
QUEUE_PAGE_SIZE = 100

# Endpoints used by the command handlers
AVTRANSPORT = '/MediaRenderer/AVTransport/Control'
RENDERING_CONTROL = '/MediaRenderer/RenderingControl/Control'
GROUP_RENDERING_CONTROL = '/MediaRenderer/GroupRenderingControl/Control'
DEVICE_PROPERTIES = '/DeviceProperties/Control'
HT_CONTROL = '/HTControl/Control'

MUSIC_SERVICES = {
    '2': 'Deezer',
    '9': 'Spotify',
    '12': 'Spotify',
    '31': 'Qobuz',
    '160': 'SoundCloud',
    '174': 'TIDAL',
    '201': 'Amazon Music',
    '204': 'Apple Music',
    '212': 'Plex',
    '254': 'TuneIn',
    '284': 'YouTube Music',
    '303': 'Sonos Radio',
}


@dataclass
class SonosPlayer:
    """Anchor player as configured for the node"""
    host: str
    port: int = DEFAULT_PORT

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


def host_from_url(url: str) -> str:
    """Hostname part of http://host:port/..."""
    return urlparse(url).hostname or ''


def get_radio_id(uri: str) -> str:
    """TuneIn station id (s12345) of a stream uri, empty if none"""
    if uri.startswith('x-sonosapi-stream:'):
        match = re.search(r'x-sonosapi-stream:(s[0-9]+)', uri)
        if match:
            return match.group(1)
    return ''


def get_music_service_id(uri: str) -> str:
    match = re.search(r'[?&]sid=(\d+)', uri or '')
    return match.group(1) if match else ''


def get_music_service_name(sid: str) -> str:
    if sid == '':
        return ''
    return MUSIC_SERVICES.get(sid, 'unknown')


def parse_zone_group_state(zone_group_state: str) -> List[Dict[str, Any]]:
    """
    Parse the ZoneGroupState XML into a list of raw groups.

    Returns:
        List of {'ID', 'Coordinator', 'ZoneGroupMember': [attributes, ...]}.
        Home theater satellites are reported as invisible members.
    """
    tree = XML.fromstring(zone_group_state.encode('utf-8'))
    zone_groups = tree.find('ZoneGroups')
    if zone_groups is None:
        zone_groups = tree

    groups = []
    for group_element in zone_groups.findall('ZoneGroup'):
        members = []
        for member_element in group_element.findall('ZoneGroupMember'):
            members.append(dict(member_element.attrib))
            for satellite in member_element.findall('Satellite'):
                attributes = dict(satellite.attrib)
                attributes['Invisible'] = '1'
                members.append(attributes)
        groups.append({
            'ID': group_element.attrib.get('ID', ''),
            'Coordinator': group_element.attrib.get('Coordinator', ''),
            'ZoneGroupMember': members,
        })
    return groups


def _didl_to_dict(item) -> Dict[str, str]:
    resources = getattr(item, 'resources', None) or []
    return {
        'id': item.item_id,
        'title': getattr(item, 'title', ''),
        'artist': getattr(item, 'creator', ''),
        'album': getattr(item, 'album', ''),
        'albumArtUri': getattr(item, 'album_art_uri', ''),
        'uri': resources[0].uri if resources else '',
    }


class SonosTransport:
    """
    External capability boundary. Every network call of the command
    handlers goes through one instance of this class.
    """

    def __init__(self, timeout: int = REQUEST_TIMEOUT):
        self.timeout = timeout

    def player(self, host: str):
        """SoCo instance for primitive operations (play, pause, volume ...)"""
        return soco.SoCo(host)

    def execute_action(self, base_url: str, endpoint: str, action: str,
                       args: Optional[Dict[str, Any]] = None) -> Union[str, Dict, bool]:
        """
        Send one SOAP action to an arbitrary control endpoint.

        Args:
            base_url: http://host:port of the player
            endpoint: Control url, e.g. /MediaRenderer/AVTransport/Control
            action: Action name, e.g. SetRelativeGroupVolume
            args: Input arguments in order; booleans are sent as 1/0

        Returns:
            The single out argument value, a dict of out arguments, or True
            when the action has none

        Raises:
            SoCoUPnPException: The player answered with a SOAP fault
        """
        parts = endpoint.strip('/').split('/')
        service_type = parts[-2] if len(parts) > 1 else parts[0]
        device = self.player(host_from_url(base_url))
        service_class = getattr(services, service_type, None)
        if isinstance(service_class, type) and issubclass(service_class, services.Service):
            service = service_class(device)
        else:
            service = services.Service(device)
        service.service_type = service_type
        service.base_url = base_url.rstrip('/')
        service.control_url = endpoint

        arguments = []
        for name, value in (args or {}).items():
            if isinstance(value, bool):
                value = '1' if value else '0'
            arguments.append((name, value))

        log.debug(f"execute {action} on {base_url}{endpoint} with {arguments}")
        result = service.send_command(action, args=arguments)
        if isinstance(result, dict):
            if len(result) == 1:
                return next(iter(result.values()))
            if len(result) == 0:
                return True
        return result

    def get_all_groups(self, anchor: SonosPlayer) -> List[Dict[str, Any]]:
        """Household topology as reported by the anchor player"""
        device = self.player(anchor.host)
        response = device.zoneGroupTopology.GetZoneGroupState()
        return parse_zone_group_state(response['ZoneGroupState'])

    def get_device_properties(self, base_url: str) -> Dict[str, Any]:
        """
        Device description of one player.

        Returns:
            The <device> element as dict (modelName, serialNum, UDN, roomName,
            serviceList ...)
        """
        response = requests.get(f"{base_url.rstrip('/')}{DEVICE_DESCRIPTION_PATH}",
                                timeout=self.timeout)
        response.raise_for_status()
        description = xmltodict.parse(response.text)
        return description['root']['device']

    def get_queue(self, base_url: str) -> List[Dict[str, str]]:
        """Complete SONOS queue of a player"""
        device = self.player(host_from_url(base_url))
        items: List[Dict[str, str]] = []
        while True:
            batch = device.get_queue(start=len(items), max_items=QUEUE_PAGE_SIZE,
                                     full_album_art_uri=True)
            items.extend(_didl_to_dict(item) for item in batch)
            if len(batch) == 0 or len(items) >= batch.total_matches:
                break
        return items

    def get_sonos_playlists(self, base_url: str) -> List[Dict[str, str]]:
        device = self.player(host_from_url(base_url))
        playlists = device.get_sonos_playlists(complete_result=True)
        return [_didl_to_dict(playlist) for playlist in playlists]

    def remove_sonos_playlist(self, base_url: str, item_id: str) -> bool:
        device = self.player(host_from_url(base_url))
        return device.remove_sonos_playlist(item_id)

    def queue_share_link(self, base_url: str, uri: str) -> int:
        """Add a music service share link (Spotify, TIDAL) to the queue"""
        device = self.player(host_from_url(base_url))
        return ShareLinkPlugin(device).add_share_link_to_queue(uri)
