"""
Tests for Discovery Helper
"""

import pytest
from sonos_universal.discovery import (
    discover_all_with_host, discover_all_with_serial, discover_by_serial,
    discover_one_player,
)
from sonos_universal.errors import DiscoveryError
from tests.mock_sonos import DEN_RIGHT, KITCHEN, OFFICE, FakeDevice, MockTransport, base_url, fake_discover

OFFICE_SERIAL = '00-0E-58-FE-3A-EA:5'


@pytest.fixture
def transport():
    transport = MockTransport()
    transport.device_properties[base_url(OFFICE)] = {'serialNum': OFFICE_SERIAL, 'roomName': 'Office'}
    return transport


class TestDiscoverBySerial:
    """Test serial number search"""

    def test_found(self, transport):
        found = discover_by_serial(OFFICE_SERIAL, 1, discover=fake_discover(KITCHEN, OFFICE),
                                   transport=transport)
        assert found == OFFICE

    def test_case_and_blanks_ignored(self, transport):
        found = discover_by_serial(' 00-0e-58-fe-3a-ea:5 ', 1,
                                   discover=fake_discover(OFFICE), transport=transport)
        assert found == OFFICE

    def test_not_found(self, transport):
        assert discover_by_serial('00-0E-58-00-00-00:1', 1, discover=fake_discover(KITCHEN, OFFICE),
                                  transport=transport) is None

    def test_nothing_discovered(self, transport):
        assert discover_by_serial(OFFICE_SERIAL, 1, discover=fake_discover(),
                                  transport=transport) is None

    def test_timeout_passed(self, transport):
        seen = []

        def discover(timeout=5, **kwargs):
            seen.append(timeout)
            return None

        discover_by_serial(OFFICE_SERIAL, 7, discover=discover, transport=transport)
        assert seen == [7]

    def test_invisible_player_found(self, transport):
        right_serial = '00-0E-58-DE-0R-F0:8'
        transport.device_properties[base_url(DEN_RIGHT)] = {'serialNum': right_serial}

        def discover(timeout=5, include_invisible=False, **kwargs):
            if include_invisible:
                return {FakeDevice(KITCHEN), FakeDevice(DEN_RIGHT)}
            return {FakeDevice(KITCHEN)}

        found = discover_by_serial(right_serial, 1, discover=discover, transport=transport)
        assert found == DEN_RIGHT


class TestHouseholdLists:
    """Test household lists for setup"""

    def test_one_player(self):
        assert discover_one_player(1, fake_discover(OFFICE, KITCHEN)) == OFFICE

    def test_no_player(self):
        with pytest.raises(DiscoveryError):
            discover_one_player(1, fake_discover())

    def test_all_with_host(self, transport):
        players = discover_all_with_host(1, fake_discover(KITCHEN), transport)
        assert [p['value'] for p in players] == \
            [KITCHEN, '192.168.1.11', '192.168.1.12', OFFICE, '192.168.1.30']
        assert players[0]['label'] == f"{KITCHEN} for Kitchen"

    def test_all_with_serial(self, transport):
        players = discover_all_with_serial(1, fake_discover(KITCHEN), transport)
        assert {'label': f"{OFFICE_SERIAL} for Office", 'value': OFFICE_SERIAL} in players
        assert len(players) == 5
