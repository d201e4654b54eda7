#!/usr/bin/env python3
"""
GitHub Release Tracker Web Server

A small JSON API over the tracker, plus a background thread that syncs all
tracked repositories on a fixed interval.
"""

import http.server
import json
import logging
import re
import threading
import urllib.parse
from contextlib import contextmanager
from http import HTTPStatus
from typing import Callable, Optional

from .app import ReleaseTracker, build_client, run_sync, split_full_name
from .config import Config, configure_logging, load_configuration
from .db_factory import get_database_manager
from .exceptions import NotFound, RemoteError, SyncFailed, TransportError

logger = logging.getLogger(__name__)

MAX_BODY_SIZE = 1024 * 1024

REPOSITORY_PATH = re.compile(r"^/api/repositories/([^/]+)$")
REPOSITORY_ACTION_PATH = re.compile(r"^/api/repositories/([^/]+)/(sync|seen)$")
RELEASE_SEEN_PATH = re.compile(r"^/api/releases/([^/]+)/seen$")
BADGE_PATH = re.compile(r"^/badge/([^/]+)/([^/]+)/unseen\.svg$")


def generate_badge_svg(label: str, message: str, color: str) -> str:
    """Generate an SVG badge with the given parameters."""
    label_width = len(label) * 7 + 10
    message_width = len(message) * 7 + 10
    total_width = label_width + message_width

    return f'''<svg xmlns="http://www.w3.org/2000/svg" width="{total_width}" height="20">
        <linearGradient id="b" x2="0" y2="100%">
            <stop offset="0" stop-color="#bbb" stop-opacity=".1"/>
            <stop offset="1" stop-opacity=".1"/>
        </linearGradient>
        <mask id="a">
            <rect width="{total_width}" height="20" rx="3" fill="#fff"/>
        </mask>
        <g mask="url(#a)">
            <rect width="{label_width}" height="20" fill="#555"/>
            <rect x="{label_width}" width="{message_width}" height="20" fill="{color}"/>
            <rect width="{total_width}" height="20" fill="url(#b)"/>
        </g>
        <g fill="#fff" text-anchor="middle" font-family="DejaVu Sans,Verdana,Geneva,sans-serif" font-size="11">
            <text x="{label_width/2}" y="15" fill="#010101" fill-opacity=".3">{label}</text>
            <text x="{label_width/2}" y="14">{label}</text>
            <text x="{label_width + message_width/2}" y="15" fill="#010101" fill-opacity=".3">{message}</text>
            <text x="{label_width + message_width/2}" y="14">{message}</text>
        </g>
        </svg>'''


class ReleaseRequestHandler(http.server.BaseHTTPRequestHandler):
    """Request handler exposing the tracker operations as JSON endpoints."""

    config: Config = Config()
    client_factory: Callable = staticmethod(build_client)

    def log_message(self, format, *args):
        logger.info("%s - %s", self.address_string(), format % args)

    @contextmanager
    def _tracker(self):
        """Open a store for this request and wrap it in a tracker."""
        with get_database_manager(self.config) as store:
            store.setup_database()
            yield ReleaseTracker(self.client_factory(self.config), store,
                                 self.config.refresh_metadata_on_sync)

    def _send_json_response(self, data: dict, status: HTTPStatus = HTTPStatus.OK):
        """Send a JSON response with consistent headers."""
        body = json.dumps(data, indent=2).encode('utf-8')
        self.send_response(status)
        self.send_header("Content-type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_json_error(self, message: str, status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR):
        """Send a JSON error response."""
        self._send_json_response({"success": False, "message": message}, status)

    def _read_json_body(self) -> dict:
        content_length = int(self.headers.get('Content-Length') or 0)
        if content_length > MAX_BODY_SIZE:
            raise ValueError("Request body too large")
        if content_length == 0:
            return {}
        data = json.loads(self.rfile.read(content_length).decode('utf-8'))
        if not isinstance(data, dict):
            raise ValueError("Request body must be a JSON object")
        return data

    def _dispatch(self, action: Callable[[], None]):
        """Run an endpoint and translate tracker errors into HTTP responses."""
        try:
            action()
        except NotFound as e:
            self._send_json_error(str(e), HTTPStatus.NOT_FOUND)
        except json.JSONDecodeError:
            self._send_json_error("Invalid JSON in request body", HTTPStatus.BAD_REQUEST)
        except ValueError as e:
            self._send_json_error(str(e), HTTPStatus.BAD_REQUEST)
        except RemoteError as e:
            status = HTTPStatus.NOT_FOUND if e.status == 404 else HTTPStatus.BAD_GATEWAY
            self._send_json_error(str(e), status)
        except SyncFailed as e:
            self._send_json_error(str(e), HTTPStatus.BAD_GATEWAY)
        except TransportError as e:
            self._send_json_error(str(e), HTTPStatus.GATEWAY_TIMEOUT)
        except Exception as e:
            logger.exception(f"Unhandled error for {self.command} {self.path}")
            self._send_json_error(f"Server error: {e}")

    def do_GET(self):
        """Handle GET requests."""
        path = urllib.parse.urlparse(self.path).path

        if path == "/api/repositories":
            self._dispatch(self.send_repositories)
        elif match := REPOSITORY_PATH.match(path):
            self._dispatch(lambda: self.send_repository(match.group(1)))
        elif match := BADGE_PATH.match(path):
            self._dispatch(lambda: self.send_badge(match.group(1), match.group(2)))
        else:
            self._send_json_error("Endpoint not found", HTTPStatus.NOT_FOUND)

    def do_POST(self):
        """Handle POST requests."""
        path = urllib.parse.urlparse(self.path).path

        if path == "/api/repositories":
            self._dispatch(self.track_repository)
        elif path == "/api/sync":
            self._dispatch(self.sync_all)
        elif match := REPOSITORY_ACTION_PATH.match(path):
            repository_id, action = match.groups()
            if action == "sync":
                self._dispatch(lambda: self.sync_repository(repository_id))
            else:
                self._dispatch(lambda: self.mark_all_seen(repository_id))
        elif match := RELEASE_SEEN_PATH.match(path):
            self._dispatch(lambda: self.mark_release_seen(match.group(1)))
        else:
            self._send_json_error("Endpoint not found", HTTPStatus.NOT_FOUND)

    def do_DELETE(self):
        """Handle DELETE requests."""
        path = urllib.parse.urlparse(self.path).path

        if match := REPOSITORY_PATH.match(path):
            self._dispatch(lambda: self.remove_repository(match.group(1)))
        else:
            self._send_json_error("Endpoint not found", HTTPStatus.NOT_FOUND)

    def send_repositories(self):
        with self._tracker() as tracker:
            repositories = tracker.list_repositories()
        self._send_json_response({
            "success": True,
            "repositories": [repo.to_dict() for repo in repositories]
        })

    def send_repository(self, repository_id: str):
        with self._tracker() as tracker:
            repository = tracker.get_repository(repository_id)
        self._send_json_response({"success": True, "repository": repository.to_dict()})

    def track_repository(self):
        data = self._read_json_body()
        if data.get('full_name'):
            owner, name = split_full_name(data['full_name'])
        else:
            owner, name = data.get('owner'), data.get('name')
        if not owner or not name:
            raise ValueError("Missing 'owner' and 'name' in request body")

        with self._tracker() as tracker:
            already_tracked = tracker.store.find_repository_by_owner_and_name(owner, name) is not None
            repository = tracker.track_repository(owner, name)
        status = HTTPStatus.OK if already_tracked else HTTPStatus.CREATED
        self._send_json_response({"success": True, "repository": repository.to_dict()}, status)

    def remove_repository(self, repository_id: str):
        with self._tracker() as tracker:
            removed = tracker.remove_repository(repository_id)
        if not removed:
            raise NotFound("Repository", repository_id)
        self._send_json_response({"success": True, "message": f"Removed repository {repository_id}"})

    def sync_repository(self, repository_id: str):
        with self._tracker() as tracker:
            repository = tracker.sync_repository(repository_id)
        self._send_json_response({"success": True, "repository": repository.to_dict()})

    def sync_all(self):
        logger.info("Sync requested from API.")
        with self._tracker() as tracker:
            summary = tracker.sync_all_repositories()
        self._send_json_response({"success": True, "summary": summary.to_dict()})

    def mark_all_seen(self, repository_id: str):
        with self._tracker() as tracker:
            repository = tracker.mark_all_releases_seen(repository_id)
        self._send_json_response({"success": True, "repository": repository.to_dict()})

    def mark_release_seen(self, release_id: str):
        with self._tracker() as tracker:
            release = tracker.mark_release_seen(release_id)
        self._send_json_response({"success": True, "release": release.to_dict()})

    def send_badge(self, owner: str, name: str):
        """Serve an SVG badge with the number of unseen releases."""
        with get_database_manager(self.config) as store:
            store.setup_database()
            repository = store.find_repository_by_owner_and_name(owner, name)
            if repository is None:
                raise NotFound("Repository", f"{owner}/{name}")
            unseen = store.count_unseen_for_repository(repository.id)

        message = f"{unseen} new" if unseen else "up to date"
        color = "orange" if unseen else "brightgreen"
        svg_content = generate_badge_svg("releases", message, color).encode('utf-8')

        self.send_response(HTTPStatus.OK)
        self.send_header("Content-type", "image/svg+xml")
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        self.send_header("Content-Length", str(len(svg_content)))
        self.end_headers()
        self.wfile.write(svg_content)


class BackgroundSyncThread(threading.Thread):
    """A background thread to periodically sync all repositories."""

    def __init__(self, config: Config, interval: Optional[int] = None,
                 sync: Callable = run_sync):
        """
        Initialize the background sync thread.

        Args:
            config: Configuration passed on to every sync run
            interval: Sync interval in seconds (default: SYNC_INTERVAL_MINUTES)
            sync: Callable running one bulk sync and returning (success, message)
        """
        super().__init__(daemon=True)
        self.config = config
        self.interval = interval if interval is not None else config.sync_interval_seconds
        self.sync = sync
        self._stopped = threading.Event()

    def run(self):
        """Run the background sync loop."""
        logger.info(f"Starting background sync thread (interval: {self.interval}s)")

        while not self._stopped.wait(self.interval):
            try:
                logger.info("Running scheduled sync...")
                success, message = self.sync(self.config)
                if success:
                    logger.info(f"Scheduled sync completed: {message}")
                else:
                    logger.error(f"Scheduled sync failed: {message}")
            except Exception as e:
                logger.error(f"Error in background sync: {e}")

    def stop(self):
        """Stop the background sync thread."""
        self._stopped.set()


def create_server(config: Config, port: Optional[int] = None,
                  client_factory: Callable = build_client) -> http.server.HTTPServer:
    """Build an HTTP server whose handler is bound to ``config``."""
    handler = type("BoundReleaseRequestHandler", (ReleaseRequestHandler,), {
        "config": config,
        "client_factory": staticmethod(client_factory),
    })
    return http.server.HTTPServer(("", config.port if port is None else port), handler)


def run_server(port: Optional[int] = None, enable_background_sync: bool = True,
               config: Optional[Config] = None):
    """
    Run the release tracker web server.

    Args:
        port: Port to listen on (default: PORT from configuration)
        enable_background_sync: Whether to sync all repositories periodically
        config: Configuration (loaded from the environment when omitted)
    """
    config = config or load_configuration()
    configure_logging(config.log_level)

    sync_thread = None
    if enable_background_sync:
        sync_thread = BackgroundSyncThread(config)
        sync_thread.start()

    with create_server(config, port) as httpd:
        logger.info(f"Starting server on port {httpd.server_address[1]}")
        if sync_thread:
            logger.info(f"Background sync enabled (every {config.sync_interval_minutes} minutes)")

        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("Server stopped by user")
        finally:
            if sync_thread:
                sync_thread.stop()


if __name__ == "__main__":
    run_server()
