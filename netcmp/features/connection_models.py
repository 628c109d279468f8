"""Connection models for cross-host netstat comparison."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


# Valid values of the netstat "State" column.
TCP_STATES = frozenset([
    'CLOSED', 'IDLE', 'BOUND', 'LISTEN', 'SYN_SENT', 'SYN_RCVD',
    'ESTABLISHED', 'CLOSE_WAIT', 'FIN_WAIT_1', 'CLOSING', 'LAST_ACK',
    'FIN_WAIT_2', 'TIME_WAIT'
])

# Observation counter saturates here; only the first sources are retained.
MAX_OBSERVATIONS = 255
MAX_RETAINED_SOURCES = 2

MAX_PORT = 65535


class ParseError(ValueError):
    """Raised when a netstat token or row cannot be parsed."""


@dataclass(frozen=True, order=True)
class Endpoint:
    """One side of a TCP connection: IPv4 address string and port."""
    ip: str
    port: int

    def __str__(self) -> str:
        return f"{self.ip}:{self.port}"


def parse_endpoint(token: str) -> Endpoint:
    """
    Parse a netstat "address.port" token.

    The address itself contains dots, so the split anchors on the rightmost
    one. The address is taken verbatim.

    Args:
        token: Raw token such as '10.0.0.1.5000'

    Returns:
        Parsed Endpoint

    Raises:
        ParseError: If there is no separator or the port is invalid
    """
    ip, sep, port_str = token.rpartition('.')
    if not sep:
        raise ParseError(f"bad IP/port pair: {token!r}")

    # isdigit() also accepts non-ASCII digits
    if not port_str or not (port_str.isascii() and port_str.isdigit()):
        raise ParseError(f"bad TCP port: {token!r}")

    port = int(port_str)
    if port > MAX_PORT:
        raise ParseError(f"bad TCP port: {token!r}")

    return Endpoint(ip=ip, port=port)


@dataclass(frozen=True, order=True)
class ConnectionKey:
    """
    Canonical four-tuple identifier.

    Endpoints are ordered deterministically so that both hosts' reports of the
    same connection map to the same key. Field order is the sort order:
    (a_ip, a_port, b_ip, b_port).
    """
    a_ip: str
    a_port: int
    b_ip: str
    b_port: int

    @staticmethod
    def from_endpoints(local: Endpoint, remote: Endpoint) -> 'ConnectionKey':
        """
        Create canonical ConnectionKey from one host's view of a connection.

        Either argument order yields the same key.
        """
        if local <= remote:
            first, second = local, remote
        else:
            first, second = remote, local

        return ConnectionKey(
            a_ip=first.ip,
            a_port=first.port,
            b_ip=second.ip,
            b_port=second.port
        )

    @property
    def a(self) -> Endpoint:
        return Endpoint(self.a_ip, self.a_port)

    @property
    def b(self) -> Endpoint:
        return Endpoint(self.b_ip, self.b_port)

    def to_dict(self) -> Dict:
        """Convert to dictionary representation."""
        return {
            'a_ip': self.a_ip,
            'a_port': self.a_port,
            'b_ip': self.b_ip,
            'b_port': self.b_port
        }


@dataclass(frozen=True)
class Source:
    """
    A host we have data for, keyed by a local IP address it reported.

    The label is the base name of the input file the IP was first seen in.
    """
    ip: str
    label: str


@dataclass
class NetstatRecord:
    """One data row of a netstat report, split but not yet normalized."""
    local: str
    remote: str
    state: str
    label: str
    line_number: Optional[int] = None


@dataclass
class Connection:
    """
    Deduplicated record of a four-tuple across all input files.

    The state is the one reported by the first observation; later reports
    never overwrite it. At most MAX_RETAINED_SOURCES sources are kept while
    the observation counter keeps going up to MAX_OBSERVATIONS.
    """
    key: ConnectionKey
    state: str
    observations: int = 0
    sources: List[Source] = field(default_factory=list)

    def add_observation(self, source: Source) -> None:
        """Count one more report of this connection from the given source."""
        if len(self.sources) < MAX_RETAINED_SOURCES:
            self.sources.append(source)

        if self.observations < MAX_OBSERVATIONS:
            self.observations += 1

    def source_labels(self) -> List[str]:
        """Labels of the retained sources, in observation order."""
        return [source.label for source in self.sources]

    def to_dict(self) -> Dict:
        """Convert to dictionary representation."""
        return {
            'key': self.key.to_dict(),
            'state': self.state,
            'observations': self.observations,
            'sources': self.source_labels()
        }
