"""Cluster topology snapshot fed by pymongo's monitoring events."""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from pymongo import monitoring

logger = logging.getLogger(__name__)


def format_address(address):
    host, port = address
    return f'{host}:{port}'


@dataclass(frozen=True)
class ClusterSnapshot:
    topology_type: str = 'Unknown'
    server_addresses: Tuple[str, ...] = ()
    primary_address: Optional[str] = None
    writable: bool = False

    @classmethod
    def from_description(cls, description):
        servers = description.server_descriptions()
        primary = None
        for address, server in servers.items():
            if server.server_type_name == 'RSPrimary':
                primary = format_address(address)
                break
        return cls(
            topology_type=description.topology_type_name,
            server_addresses=tuple(format_address(address) for address in servers),
            primary_address=primary,
            writable=description.has_writable_server(),
        )

    def __str__(self):
        servers = ', '.join(self.server_addresses) or 'none'
        return (f'Topology: {self.topology_type}, Servers: [{servers}], '
                f'Primary: {self.primary_address}, Writable: {self.writable}')


class ClusterStateTracker:
    """Last-write-wins cache; each update swaps in a whole new snapshot."""

    def __init__(self):
        self._snapshot = ClusterSnapshot()

    def current_snapshot(self):
        return self._snapshot

    def on_topology_change(self, old_description, new_description):
        previous = self._snapshot
        snapshot = ClusterSnapshot.from_description(new_description)
        #single reference assignment, readers see the old or the new snapshot
        self._snapshot = snapshot

        logger.info(f'New cluster state: {snapshot}')
        if previous.topology_type != snapshot.topology_type:
            logger.info(f'Topology changed from {previous.topology_type} to {snapshot.topology_type}')
        if previous.primary_address != snapshot.primary_address:
            logger.info(f'Primary changed from {previous.primary_address or "none"} '
                        f'to {snapshot.primary_address or "none"}')
        if previous.writable != snapshot.writable:
            logger.info(f'Cluster writability changed from {previous.writable} to {snapshot.writable}')
        return snapshot


class TopologyLogger(monitoring.TopologyListener):

    def __init__(self, tracker):
        self.tracker = tracker

    def opened(self, event):
        logger.info(f'Cluster opening - Topology ID: {event.topology_id}')

    def description_changed(self, event):
        self.tracker.on_topology_change(event.previous_description, event.new_description)

    def closed(self, event):
        logger.info(f'Cluster closed - Topology ID: {event.topology_id}')


class CommandLogger(monitoring.CommandListener):

    def started(self, event):
        logger.debug(f'Command started: {event.command_name}')

    def succeeded(self, event):
        logger.debug(f'Command succeeded: {event.command_name}, took {event.duration_micros / 1000:.2f} ms')

    def failed(self, event):
        logger.warning(f'Command failed: {event.command_name}, error: {event.failure}')


class HeartbeatLogger(monitoring.ServerHeartbeatListener):

    def started(self, event):
        logger.debug(f'Starting heartbeat on {format_address(event.connection_id)}')

    def succeeded(self, event):
        logger.debug(f'Server heartbeat succeeded: {format_address(event.connection_id)}, '
                     f'took {event.duration * 1000:.2f} ms')

    def failed(self, event):
        logger.warning(f'Server heartbeat failed: {format_address(event.connection_id)}, error: {event.reply}')


class ServerLogger(monitoring.ServerListener):

    def opened(self, event):
        logger.debug(f'Server opened: {format_address(event.server_address)}')

    def description_changed(self, event):
        previous = event.previous_description.server_type_name
        new = event.new_description.server_type_name
        if previous != new:
            logger.debug(f'Server {format_address(event.server_address)} changed from {previous} to {new}')

    def closed(self, event):
        logger.debug(f'Server closed: {format_address(event.server_address)}')


class PoolLogger(monitoring.ConnectionPoolListener):

    def pool_created(self, event):
        logger.debug(f'Connection pool created: {format_address(event.address)}')

    def pool_ready(self, event):
        logger.debug(f'Connection pool ready: {format_address(event.address)}')

    def pool_cleared(self, event):
        logger.debug(f'Connection pool cleared: {format_address(event.address)}')

    def pool_closed(self, event):
        logger.debug(f'Connection pool closed: {format_address(event.address)}')

    def connection_created(self, event):
        logger.debug(f'Connection {event.connection_id} created: {format_address(event.address)}')

    def connection_ready(self, event):
        logger.debug(f'Connection {event.connection_id} ready: {format_address(event.address)}')

    def connection_closed(self, event):
        logger.debug(f'Connection {event.connection_id} closed: {format_address(event.address)}, '
                     f'reason: {event.reason}')

    def connection_check_out_started(self, event):
        pass

    def connection_check_out_failed(self, event):
        logger.debug(f'Connection check out failed: {format_address(event.address)}, reason: {event.reason}')

    def connection_checked_out(self, event):
        pass

    def connection_checked_in(self, event):
        pass


def event_listeners(tracker):
    return [TopologyLogger(tracker), ServerLogger(), CommandLogger(), HeartbeatLogger(), PoolLogger()]
