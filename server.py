# Sonos Universal - HTTP Command Node for Sonos Households
# -*- coding: utf-8 -*-
"""
HTTP command node for the Sonos WiFi Speaker System. Accepts JSON messages
naming a command (group.play, player.set.volume, household.create.group ...)
and answers with the message merged with the command result.

Description
    Server listens on local TCP 8002. One anchor player is configured by
    ip address or by serial number; every other player of the household
    is reached through it.

    Setup - edit defaults below or send as environmental variables
    Install - pip3 install -e .
    Run - python3 server.py
    Test - curl -d '{"topic": "get.state"}' http://localhost:8002/message

Credits:
    * https://github.com/SoCo/SoCo

"""

# Modules
import threading
import time
import logging
import json
import requests
import resource
import sys
import os
from http.server import BaseHTTPRequestHandler, HTTPServer
from socketserver import ThreadingMixIn
import soco # type: ignore

from sonos_universal.adapter import HostAdapter
from sonos_universal.controller import NodeConfig, UniversalController
from sonos_universal.discovery import DISCOVERY_TIMEOUT, discover_all_with_host, discover_all_with_serial
from sonos_universal.status import describe_error

BUILD = "0.1.0"

# Defaults
APIPORT = 8002
DEBUGMODE = False
MAXPAYLOAD = 64000           # Reject message if above this size (snapshots are big)

# Environment config
SONOS_IPADDRESS = os.getenv("SONOS_IPADDRESS", "")
SONOS_SERIALNUM = os.getenv("SONOS_SERIALNUM", "")
SONOS_COMMAND = os.getenv("SONOS_COMMAND", "message")
SONOS_STATE = os.getenv("SONOS_STATE", None)
COMPATIBILITY_MODE = os.getenv("COMPATIBILITY_MODE", "False").lower() in ("true", "1", "yes")
DISCOVERY_TIMEOUT = int(os.getenv("DISCOVERY_TIMEOUT", str(DISCOVERY_TIMEOUT)))
APIPORT = int(os.getenv("APIPORT", str(APIPORT)))
DEBUGMODE = os.getenv("DEBUGMODE", str(DEBUGMODE)).lower() in ("true", "1", "yes")

# Logging
log = logging.getLogger(__name__)
logging.basicConfig(format='%(levelname)s:%(message)s',level=logging.INFO)
log.setLevel(logging.INFO)
if DEBUGMODE:
    logging.getLogger().setLevel(logging.DEBUG)
    log.setLevel(logging.DEBUG)

# Global Stats
serverstats = {}
serverstats['sonos-universal'] = BUILD
serverstats['soco'] = soco.__version__
serverstats['gets'] = 0
serverstats['posts'] = 0
serverstats['errors'] = 0
serverstats['ts'] = int(time.time())         # Timestamp for Now
serverstats['start'] = int(time.time())      # Timestamp for Start
statslock = threading.Lock()

# Global Variables
running = True
controller = None
adapter = None


def build_config():
    """Node configuration from environment"""
    return NodeConfig(
        ipaddress=SONOS_IPADDRESS,
        serialnum=SONOS_SERIALNUM,
        command=SONOS_COMMAND or "message",
        state=SONOS_STATE,
        compatibility_mode=COMPATIBILITY_MODE,
        discovery_timeout=DISCOVERY_TIMEOUT,
    )


def setup(config, transport=None, discover=None):
    """Create controller and adapter, resolve the anchor player"""
    global controller, adapter
    controller = UniversalController(config, transport=transport, discover=discover)
    adapter = HostAdapter()
    result = controller.setup()
    if result.ok:
        adapter.clear_status()
    else:
        adapter.deliver(result)
    return result

# Helpful Functions

def count(key):
    """Thread-safe increment of a server counter"""
    with statslock:
        serverstats[key] = serverstats[key] + 1


def formatreturn(value):
    if value is None:
        result = {"status": "OK"}
    elif type(value) is dict:
        result = value
    else:
        result = {"status": value}
    return(json.dumps(result))


# Handlers

class ThreadingHTTPServer(ThreadingMixIn, HTTPServer):
    daemon_threads = True
    pass

## API Server Handler

class apihandler(BaseHTTPRequestHandler):
    def log_message(self, format, *args):
        if DEBUGMODE:
            sys.stderr.write("%s - - [%s] %s\n" %
                         (self.address_string(),
                          self.log_date_time_string(),
                          format%args))
        else:
            pass

    def address_string(self):
        # replace function to avoid lookup delays
        host, hostport = self.client_address[:2]
        return host

    def handle(self):
        """Handle multiple requests if necessary, suppressing connection reset errors."""
        try:
            super().handle()
        except (ConnectionResetError, BrokenPipeError) as e:
            log.debug(f"Connection closed by client: {e}")

    def send_json(self, code, message):
        self.send_response(code)
        self.send_header('Content-type', 'application/json')
        self.send_header('Content-Length', str(len(message.encode("utf8"))))
        self.end_headers()
        try:
            # try to send payload
            self.wfile.write(bytes(message, "utf8"))
        except Exception as e:
            # if it fails, log error and continue
            log.debug("Error sending payload: {}".format(e))

    def do_GET(self):
        code = 200
        if self.path == '/stats':
            # Give Internal Stats
            with statslock:
                serverstats['ts'] = int(time.time())
                serverstats['mem'] = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
                serverstats['controller'] = controller.get_stats()
                message = json.dumps(serverstats)
        elif self.path == '/status':
            # Last node status (green ok / red error)
            message = formatreturn(adapter.last_status)
        elif self.path in ('/discover/hosts', '/discover/serials'):
            try:
                if self.path == '/discover/hosts':
                    found = discover_all_with_host(DISCOVERY_TIMEOUT, controller.discover, controller.transport)
                else:
                    found = discover_all_with_serial(DISCOVERY_TIMEOUT, controller.discover, controller.transport)
                message = json.dumps(found)
            except Exception as e:
                short, details = describe_error(e)
                log.error(f"Discovery failed: {short} :: Details: {details}")
                code = 500
                message = formatreturn({"error": short, "details": details})
        elif self.path == '/stopthread':
            # Wake up server loop on shutdown
            message = formatreturn(None)
        else:
            code = 404
            message = formatreturn({"error": "404 Error", "details": self.path})

        # Counts
        if code != 200:
            count('errors')
        count('gets')
        self.send_json(code, message)

    def do_POST(self):
        count('posts')
        if self.path != '/message':
            count('errors')
            self.send_json(404, formatreturn({"error": "404 Error", "details": self.path}))
            return

        length = int(self.headers.get('Content-Length', 0) or 0)
        if length > MAXPAYLOAD:
            count('errors')
            self.send_json(413, formatreturn({"error": "message too large",
                                              "details": f"{length} > {MAXPAYLOAD}"}))
            return
        try:
            msg = json.loads(self.rfile.read(length) or b'{}')
        except ValueError as e:
            count('errors')
            self.send_json(400, formatreturn({"error": "message is not valid JSON",
                                              "details": str(e)}))
            return
        if type(msg) is not dict:
            count('errors')
            self.send_json(400, formatreturn({"error": "message is not a JSON object",
                                              "details": type(msg).__name__}))
            return

        result = controller.process_message(msg)
        adapter.deliver(result)
        if result.ok:
            self.send_json(200, json.dumps(result.msg))
        else:
            count('errors')
            self.send_json(400, formatreturn({"error": result.status, "details": result.details,
                                              "command": result.command}))

# Threads

def api(port):
    """
    API Server - Thread to listen for messages on port
    """
    global running
    log.info("Started API server thread on %d", port)

    with ThreadingHTTPServer(('', port), apihandler) as server:
        try:
            while running:
                server.handle_request()
        except Exception as e:
            log.debug(f"CANCEL: {e}")
    log.info('api Exit')

# MAIN Thread
if __name__ == "__main__":
    log.info(
        "Sonos Universal [v%s - SoCo %s] - HTTP Command Node"
        % (BUILD, soco.__version__)
    )

    result = setup(build_config())
    if not result.ok:
        log.error(f"Setup failed: {result.status} - messages will be rejected")

    # creating thread
    apiServer = threading.Thread(target=api, args=(APIPORT,))
    apiServer.start()
    log.info(" - API Endpoint on http://localhost:%d/message" % APIPORT)

    try:
        while(True):
            time.sleep(2)
    except (KeyboardInterrupt, SystemExit):
        running = False
        # Close down thread
        requests.get("http://localhost:%d/stopthread" % APIPORT)
        log.info("End")

    # threads completely executed
    log.info("Done!")
