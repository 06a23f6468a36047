"""
Tests for the HTTP Command Node
"""

import json
import threading

import pytest
import requests
import server
from sonos_universal.controller import NodeConfig
from tests.mock_sonos import KITCHEN, MockTransport, fake_discover

# local server only, ignore proxy settings
http = requests.Session()
http.trust_env = False


@pytest.fixture
def node():
    """Server on a free local port, anchored at the mock Kitchen player"""
    transport = MockTransport()
    server.setup(NodeConfig(ipaddress=KITCHEN), transport=transport,
                 discover=fake_discover(KITCHEN))
    httpd = server.ThreadingHTTPServer(('127.0.0.1', 0), server.apihandler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{httpd.server_address[1]}", transport
    httpd.shutdown()
    httpd.server_close()


class TestFormatReturn:
    """Test response formatting"""

    def test_none(self):
        assert json.loads(server.formatreturn(None)) == {"status": "OK"}

    def test_dict(self):
        assert json.loads(server.formatreturn({"a": 1})) == {"a": 1}

    def test_value(self):
        assert json.loads(server.formatreturn("done")) == {"status": "done"}


class TestCounters:
    """Test server counters under concurrent requests"""

    def test_count_from_threads(self):
        before = server.serverstats['errors']

        def bump():
            for _ in range(1000):
                server.count('errors')

        threads = [threading.Thread(target=bump) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert server.serverstats['errors'] == before + 8000

    def test_concurrent_posts(self, node):
        url, transport = node
        before = server.serverstats['posts']

        def post():
            session = requests.Session()
            session.trust_env = False
            for _ in range(5):
                session.post(f"{url}/message", json={'topic': 'get.volume'}, timeout=5)

        threads = [threading.Thread(target=post) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert server.serverstats['posts'] == before + 20
        assert http.get(f"{url}/stats", timeout=5).json()['controller']['processed'] == 20


class TestMessages:
    """Test POST /message"""

    def test_command(self, node):
        url, transport = node
        response = http.post(f"{url}/message", json={'topic': 'get.volume'}, timeout=5)
        assert response.status_code == 200
        assert response.json()['payload'] == 30
        assert response.json()['nrcspCmd'] == 'group.get.volume'
        status = http.get(f"{url}/status", timeout=5).json()
        assert status['text'] == 'ok:group.get.volume'

    def test_failure(self, node):
        url, transport = node
        response = http.post(f"{url}/message", json={'topic': 'play', 'playerName': 'Garage'},
                             timeout=5)
        assert response.status_code == 400
        assert response.json() == {'error': 'could not find player: Garage', 'details': 'none',
                                   'command': 'group.play'}
        status = http.get(f"{url}/status", timeout=5).json()
        assert status == {'fill': 'red', 'shape': 'dot',
                          'text': 'error: group.play - could not find player: Garage'}

    def test_invalid_json(self, node):
        url, transport = node
        response = http.post(f"{url}/message", data=b'{topic', timeout=5)
        assert response.status_code == 400
        assert response.json()['error'] == 'message is not valid JSON'

    def test_not_an_object(self, node):
        url, transport = node
        response = http.post(f"{url}/message", json=['play'], timeout=5)
        assert response.status_code == 400
        assert response.json()['details'] == 'list'
        assert transport.calls == []

    def test_unknown_path(self, node):
        url, transport = node
        assert http.post(f"{url}/play", json={}, timeout=5).status_code == 404


class TestQueries:
    """Test GET endpoints"""

    def test_stats(self, node):
        url, transport = node
        http.post(f"{url}/message", json={'topic': 'get.mutestate'}, timeout=5)
        stats = http.get(f"{url}/stats", timeout=5).json()
        assert stats['sonos-universal'] == server.BUILD
        assert stats['controller']['processed'] == 1
        assert stats['controller']['anchor'] == KITCHEN

    def test_discover_hosts(self, node):
        url, transport = node
        found = http.get(f"{url}/discover/hosts", timeout=5).json()
        assert found[0] == {'label': f"{KITCHEN} for Kitchen", 'value': KITCHEN}
        assert len(found) == 5

    def test_stopthread(self, node):
        url, transport = node
        assert http.get(f"{url}/stopthread", timeout=5).json() == {"status": "OK"}

    def test_not_found(self, node):
        url, transport = node
        response = http.get(f"{url}/nothing", timeout=5)
        assert response.status_code == 404
        assert response.json()['details'] == '/nothing'
