"""
Command System for Sonos Universal
Static dispatch table from command name to handler and command resolution
for incoming messages.
"""

import re
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Optional

from sonos_universal import commands_group as group
from sonos_universal import commands_household as household
from sonos_universal import commands_player as player
from sonos_universal.errors import MissingFieldError, UnknownCommandError
from sonos_universal.helper import is_valid_property_not_empty_string

REGEX_PREFIX = re.compile(r'^(household|group|player|joiner|coordinator)\.')
DEFAULT_PREFIX = 'group.'
COMMAND_FROM_MESSAGE = 'message'

# lexical order, ascending
COMMAND_TABLE = MappingProxyType({
    'coordinator.delegate': group.coordinator_delegate,
    'group.adjust.volume': group.group_adjust_volume,
    'group.cancel.sleeptimer': group.group_cancel_sleeptimer,
    'group.clear.queue': group.group_clear_queue,
    'group.create.snap': group.group_create_snap,
    'group.create.volumesnap': group.group_create_volumesnap,
    'group.get.actions': group.group_get_actions,
    'group.get.crossfade': group.group_get_crossfade,
    'group.get.members': group.group_get_members,
    'group.get.mutestate': group.group_get_mutestate,
    'group.get.playbackstate': group.group_get_playbackstate,
    'group.get.queue': group.group_get_queue,
    'group.get.sleeptimer': group.group_get_sleeptimer,
    'group.get.state': group.group_get_state,
    'group.get.trackplus': group.group_get_trackplus,
    'group.get.volume': group.group_get_volume,
    'group.next.track': group.group_next_track,
    'group.pause': group.group_pause,
    'group.play': group.group_play,
    'group.play.export': group.group_play_export,
    'group.play.notification': group.group_play_notification,
    'group.play.queue': group.group_play_queue,
    'group.play.snap': group.group_play_snap,
    'group.play.streamhttp': group.group_play_streamhttp,
    'group.play.track': group.group_play_track,
    'group.play.tunein': group.group_play_tunein,
    'group.previous.track': group.group_previous_track,
    'group.queue.uri': group.group_queue_uri,
    'group.queue.urispotify': group.group_queue_urispotify,
    'group.remove.tracks': group.group_remove_tracks,
    'group.save.queue': group.group_save_queue,
    'group.seek': group.group_seek,
    'group.seek.delta': group.group_seek_delta,
    'group.set.crossfade': group.group_set_crossfade,
    'group.set.mutestate': group.group_set_mutestate,
    'group.set.queuemode': group.group_set_queuemode,
    'group.set.sleeptimer': group.group_set_sleeptimer,
    'group.set.volume': group.group_set_volume,
    'group.stop': group.group_stop,
    'group.toggle.playback': group.group_toggle_playback,
    'household.create.group': household.household_create_group,
    'household.create.stereopair': household.household_create_stereopair,
    'household.get.groups': household.household_get_groups,
    'household.get.sonosplaylists': household.household_get_sonosplaylists,
    'household.remove.sonosplaylist': household.household_remove_sonosplaylist,
    'household.separate.group': household.household_separate_group,
    'household.separate.stereopair': household.household_separate_stereopair,
    'household.test.player': household.household_test_player,
    'joiner.play.notification': group.joiner_play_notification,
    'player.adjust.volume': player.player_adjust_volume,
    'player.become.standalone': player.player_become_standalone,
    'player.execute.action': player.player_execute_action,
    'player.get.bass': player.player_get_bass,
    'player.get.dialoglevel': player.player_get_eq,
    'player.get.led': player.player_get_led,
    'player.get.loudness': player.player_get_loudness,
    'player.get.mutestate': player.player_get_mutestate,
    'player.get.nightmode': player.player_get_eq,
    'player.get.properties': player.player_get_properties,
    'player.get.queue': player.player_get_queue,
    'player.get.role': player.player_get_role,
    'player.get.subgain': player.player_get_eq,
    'player.get.treble': player.player_get_treble,
    'player.get.volume': player.player_get_volume,
    'player.join.group': player.player_join_group,
    'player.leave.group': player.player_leave_group,
    'player.play.avtransport': player.player_play_avtransport,
    'player.play.tv': player.player_play_tv,
    'player.set.bass': player.player_set_bass,
    'player.set.dialoglevel': player.player_set_eq,
    'player.set.led': player.player_set_led,
    'player.set.loudness': player.player_set_loudness,
    'player.set.mutestate': player.player_set_mutestate,
    'player.set.nightmode': player.player_set_eq,
    'player.set.subgain': player.player_set_eq,
    'player.set.treble': player.player_set_treble,
    'player.set.volume': player.player_set_volume,
})


@dataclass
class Command:
    """
    A resolved command, ready to run against one anchor player.
    """
    name: str
    handler: Callable
    cmd_name: str = 'topic'
    state_name: str = 'payload'
    timestamp: float = field(default_factory=time.time)

    def __repr__(self):
        return f"Command({self.name})"

    def execute(self, transport, msg: Dict[str, Any], anchor) -> Dict[str, Any]:
        return self.handler(transport, msg, self.state_name, self.cmd_name, anchor)


def normalize_command(command: str) -> str:
    """Lower case, bare verbs become group commands"""
    command = command.lower()
    if not REGEX_PREFIX.match(command):
        command = f"{DEFAULT_PREFIX}{command}"
    return command


def resolve_command(config_command: Optional[str], msg: Dict[str, Any], cmd_name: str) -> str:
    """
    Command name from node configuration, or from the message when the
    configuration says 'message'.

    Raises:
        MissingFieldError: Command field missing or empty
        UnknownCommandError: Command not in the dispatch table
    """
    if config_command and config_command != COMMAND_FROM_MESSAGE:
        command = normalize_command(str(config_command))
    else:
        if not is_valid_property_not_empty_string(msg, [cmd_name]):
            raise MissingFieldError(f"command ({cmd_name}) is undefined/invalid")
        command = normalize_command(str(msg[cmd_name]))
    if command not in COMMAND_TABLE:
        raise UnknownCommandError(f"command is invalid >>{command}")
    return command


def create_command(config_command: Optional[str], msg: Dict[str, Any],
                   cmd_name: str = 'topic', state_name: str = 'payload',
                   config_state: Any = None) -> Command:
    """
    Resolve the command of a message and apply configured overrides.

    The resolved name is written back to the command field and to
    nrcspCmd, since get commands overwrite the value field. A configured
    state (string, number or boolean) replaces the value field.

    Returns:
        Command bound to its handler
    """
    name = resolve_command(config_command, msg, cmd_name)
    msg['nrcspCmd'] = name
    msg[cmd_name] = name
    if isinstance(config_state, (str, int, float, bool)) and config_state != '':
        msg[state_name] = config_state
    return Command(name, COMMAND_TABLE[name], cmd_name, state_name)
