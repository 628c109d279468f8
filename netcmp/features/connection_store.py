"""Source and connection registries."""

import logging
from typing import Dict, Iterable, Iterator, List, Optional
from .connection_models import (
    Connection, ConnectionKey, Endpoint, NetstatRecord, Source, parse_endpoint
)


logger = logging.getLogger(__name__)

DEFAULT_LOOPBACK_ADDRESSES = ('127.0.0.1',)


class SourceRegistry:
    """
    Set of hosts we have data for, keyed by local IP address.

    One input file may register several IPs; all share the file's label.
    """

    def __init__(self):
        self._sources: Dict[str, Source] = {}
        self._labels: List[str] = []

    def register(self, ip: str, label: str) -> Source:
        """
        Return the source for an IP, creating it if needed.

        Args:
            ip: Local IP address reported by a host
            label: Label of the input file the IP was seen in

        Returns:
            The existing Source for this IP (label ignored) or a new one
        """
        source = self._sources.get(ip)
        if source is not None:
            return source

        source = Source(ip=ip, label=label)
        self._sources[ip] = source
        if label not in self._labels:
            self._labels.append(label)

        logger.debug(f"Registered source {ip} from {label}")
        return source

    def lookup(self, ip: str) -> Optional[Source]:
        """Get the source registered for an IP, if any."""
        return self._sources.get(ip)

    def labels(self) -> List[str]:
        """Distinct source labels in first-seen order."""
        return list(self._labels)

    def __contains__(self, ip: str) -> bool:
        return ip in self._sources

    def __len__(self) -> int:
        return len(self._sources)

    def __iter__(self) -> Iterator[Source]:
        for ip in sorted(self._sources):
            yield self._sources[ip]


class ConnectionRegistry:
    """
    Deduplicates connection reports from every input file.

    Both hosts' views of a connection collapse into one Connection through the
    canonical ConnectionKey. Each non-loopback observation also registers the
    reporting host's local IP in the SourceRegistry.
    """

    def __init__(self, sources: SourceRegistry,
                 loopback_addresses: Iterable[str] = DEFAULT_LOOPBACK_ADDRESSES):
        """
        Initialize connection registry.

        Args:
            sources: Source registry updated as observations arrive
            loopback_addresses: Addresses that are not unique across hosts
        """
        self.sources = sources
        self.loopback_addresses = frozenset(loopback_addresses)

        self._connections: Dict[ConnectionKey, Connection] = {}

        # Statistics
        self._stats = {
            'observations': 0,
            'localhost_skipped': 0
        }

    @property
    def localhost_skipped(self) -> int:
        return self._stats['localhost_skipped']

    def observe(self, local: Endpoint, remote: Endpoint, state: str,
                label: str) -> Optional[Connection]:
        """
        Record one host's report of a connection.

        Args:
            local: Endpoint the reporting host owns
            remote: Peer endpoint
            state: TCP state reported by this host
            label: Label of the reporting input file

        Returns:
            The updated connection, or None if the row was skipped as loopback
        """
        # Loopback addresses repeat across hosts, so cross-host identity
        # does not hold for them.
        if local.ip in self.loopback_addresses or remote.ip in self.loopback_addresses:
            self._stats['localhost_skipped'] += 1
            logger.debug(f"Skipped localhost connection {local} <-> {remote} from {label}")
            return None

        source = self.sources.register(local.ip, label)

        key = ConnectionKey.from_endpoints(local, remote)
        connection = self._connections.get(key)
        if connection is None:
            connection = Connection(key=key, state=state)
            self._connections[key] = connection

        connection.add_observation(source)
        self._stats['observations'] += 1

        return connection

    def process_record(self, record: NetstatRecord) -> Optional[Connection]:
        """
        Normalize a parsed netstat row and record it.

        Raises:
            ParseError: If either endpoint token is malformed
        """
        local = parse_endpoint(record.local)
        remote = parse_endpoint(record.remote)
        return self.observe(local, remote, record.state, record.label)

    def lookup(self, key: ConnectionKey) -> Optional[Connection]:
        """Get the connection stored under a canonical key, if any."""
        return self._connections.get(key)

    def get_stats(self) -> Dict:
        """Get registry statistics."""
        stats = self._stats.copy()
        stats['connections'] = len(self._connections)
        stats['sources'] = len(self.sources)
        return stats

    def __len__(self) -> int:
        return len(self._connections)

    def __iter__(self) -> Iterator[Connection]:
        for key in sorted(self._connections):
            yield self._connections[key]
