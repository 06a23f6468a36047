"""
Group/Topology Resolver for Sonos Universal
Turns the raw household topology into ordered member lists, coordinator first.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List
from urllib.parse import urlparse

from sonos_universal.errors import GroupNotFoundError, PlayerNotFoundError
from sonos_universal.transport import DEFAULT_PORT, SonosPlayer

log = logging.getLogger(__name__)


@dataclass
class GroupMember:
    """One player of a group, built fresh from every topology fetch"""
    host_name: str
    port: int
    uuid: str
    name: str
    invisible: bool = False

    @property
    def base_url(self) -> str:
        return f"http://{self.host_name}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hostName': self.host_name,
            'port': self.port,
            'baseUrl': self.base_url,
            'uuid': self.uuid,
            'name': self.name,
            'invisible': self.invisible,
        }


@dataclass
class HouseholdMember(GroupMember):
    """Group member plus its position in the household"""
    group_index: int = 0
    is_coordinator: bool = False


@dataclass
class GroupSnapshot:
    """
    Resolved group for one command.
    members[0] is the coordinator, player_index addresses the requested player.
    """
    members: List[GroupMember]
    player_index: int
    group_id: str
    group_name: str

    @property
    def coordinator(self) -> GroupMember:
        return self.members[0]

    @property
    def player(self) -> GroupMember:
        return self.members[self.player_index]

    def members_as_dicts(self) -> List[Dict[str, Any]]:
        return [member.to_dict() for member in self.members]


def _member_from_attributes(attributes: Dict[str, str]) -> GroupMember:
    location = urlparse(attributes.get('Location', ''))
    return GroupMember(
        host_name=location.hostname or '',
        port=location.port or DEFAULT_PORT,
        uuid=attributes.get('UUID', ''),
        name=attributes.get('ZoneName', ''),
        invisible=attributes.get('Invisible') == '1',
    )


def sorted_group_array(all_groups: List[Dict[str, Any]], group_index: int) -> List[GroupMember]:
    """
    Members of one group, coordinator first, others in reported order.
    Invisible members are included and flagged.
    """
    group = all_groups[group_index]
    coordinator_uuid = group.get('Coordinator', '')
    members = [_member_from_attributes(attributes)
               for attributes in group.get('ZoneGroupMember', [])]
    coordinator = [member for member in members if member.uuid == coordinator_uuid]
    others = [member for member in members if member.uuid != coordinator_uuid]
    return coordinator + others


def group_name(members: List[GroupMember]) -> str:
    if not members:
        return ''
    if len(members) == 1:
        return members[0].name
    return f"{members[0].name} + {len(members) - 1}"


def get_group_member_data(transport, anchor: SonosPlayer, player_name: str = '') -> GroupSnapshot:
    """
    Resolve the group of a player.

    Args:
        transport: SonosTransport
        anchor: Configured player, used for the topology fetch
        player_name: Player to look for; empty means the anchor itself

    Returns:
        GroupSnapshot with visible members only, coordinator at index 0

    Raises:
        PlayerNotFoundError: No visible member is named player_name
        GroupNotFoundError: The anchor is not part of any group
    """
    all_groups = transport.get_all_groups(anchor)
    for group_index, group in enumerate(all_groups):
        members = [member for member in sorted_group_array(all_groups, group_index)
                   if not member.invisible]
        for player_index, member in enumerate(members):
            if player_name == '':
                found = member.host_name == anchor.host
            else:
                # first match wins on duplicate names
                found = member.name == player_name
            if found:
                log.debug(f"resolved {player_name or anchor.host} to group {group.get('ID')} index {player_index}")
                return GroupSnapshot(
                    members=members,
                    player_index=player_index,
                    group_id=group.get('ID', ''),
                    group_name=group_name(members),
                )

    if player_name != '':
        raise PlayerNotFoundError(f"could not find player: {player_name}")
    raise GroupNotFoundError(f"could not find group of player {anchor.host}")


def get_all_groups_sorted(transport, anchor: SonosPlayer) -> List[List[GroupMember]]:
    """All groups of the household, visible members only"""
    all_groups = transport.get_all_groups(anchor)
    result = []
    for group_index in range(len(all_groups)):
        members = [member for member in sorted_group_array(all_groups, group_index)
                   if not member.invisible]
        result.append(members)
    return result


def get_all_player_list(transport, anchor: SonosPlayer) -> List[HouseholdMember]:
    """Flat list of all visible household players with their group index"""
    players = []
    for group_index, members in enumerate(get_all_groups_sorted(transport, anchor)):
        for member_index, member in enumerate(members):
            players.append(HouseholdMember(
                host_name=member.host_name,
                port=member.port,
                uuid=member.uuid,
                name=member.name,
                invisible=member.invisible,
                group_index=group_index,
                is_coordinator=member_index == 0,
            ))
    return players
