"""Classification of deduplicated connections."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple
from ..features.connection_models import Connection
from ..features.connection_store import SourceRegistry


logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    """Mutually exclusive verdicts for a connection."""
    PRUNED = 'pruned'
    OVERFLOW = 'overflow'
    SYMMETRIC = 'symmetric'
    EXTERNAL = 'external'
    ASYMMETRIC = 'asymmetric'


@dataclass
class PairSummary:
    """Connections between one unordered pair of IP addresses."""
    a_ip: str
    b_ip: str
    a_label: Optional[str]
    b_label: Optional[str]
    counts: Dict[str, int] = field(default_factory=lambda: {
        outcome.value: 0 for outcome in Outcome if outcome is not Outcome.PRUNED
    })
    examples: List[Connection] = field(default_factory=list)

    def total(self) -> int:
        return sum(self.counts.values())

    def to_dict(self) -> Dict:
        """Convert to dictionary representation."""
        return {
            'a_ip': self.a_ip,
            'b_ip': self.b_ip,
            'a_label': self.a_label,
            'b_label': self.b_label,
            'counts': dict(self.counts),
            'examples': [conn.to_dict() for conn in self.examples]
        }


@dataclass
class ClassificationReport:
    """Outcome counts and detail records of one classification pass."""
    counts: Dict[str, int] = field(default_factory=lambda: {
        outcome.value: 0 for outcome in Outcome
    })
    localhost_skipped: int = 0
    asymmetric: List[Connection] = field(default_factory=list)
    external: List[Connection] = field(default_factory=list)
    overflow: List[Connection] = field(default_factory=list)
    overflow_examples: List[Connection] = field(default_factory=list)
    pairs: List[PairSummary] = field(default_factory=list)

    def count(self, outcome: Outcome) -> int:
        return self.counts[outcome.value]

    def total(self) -> int:
        """Number of connections classified (loopback skips not included)."""
        return sum(self.counts.values())

    def to_dict(self) -> Dict:
        """Convert to dictionary representation."""
        return {
            'counts': dict(self.counts),
            'localhost_skipped': self.localhost_skipped,
            'asymmetric': [conn.to_dict() for conn in self.asymmetric],
            'external': [conn.to_dict() for conn in self.external],
            'overflow_examples': [conn.to_dict() for conn in self.overflow_examples],
            'pairs': [pair.to_dict() for pair in self.pairs]
        }


class Classifier:
    """
    Assigns every connection exactly one Outcome.

    Rules, in priority order:
    - pruned: state is transient (TIME_WAIT by default)
    - overflow: reported more than twice
    - symmetric: reported by both sides
    - external: reported once, and one of the IPs has no report of its own
    - asymmetric: reported once, and both IPs have reports
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize classifier with configuration.

        Args:
            config: Classifier configuration dictionary
        """
        self.config = config or {}

        self.pruned_states = frozenset(self.config.get('pruned_states', ['TIME_WAIT']))
        self.max_overflow_examples = self.config.get('max_overflow_examples', 1)
        self.max_pair_examples = self.config.get('max_pair_examples', 5)

    def classify_connection(self, connection: Connection,
                            sources: SourceRegistry) -> Outcome:
        """
        Classify a single connection.

        Args:
            connection: Deduplicated connection
            sources: Hosts we have data for

        Returns:
            The connection's outcome
        """
        if connection.state in self.pruned_states:
            return Outcome.PRUNED

        if connection.observations > 2:
            return Outcome.OVERFLOW

        if connection.observations == 2:
            return Outcome.SYMMETRIC

        key = connection.key
        if key.a_ip not in sources or key.b_ip not in sources:
            return Outcome.EXTERNAL

        return Outcome.ASYMMETRIC

    def classify(self, connections: Iterable[Connection],
                 sources: SourceRegistry,
                 localhost_skipped: int = 0) -> ClassificationReport:
        """
        Classify every connection in one pass.

        Args:
            connections: Connections in canonical order
            sources: Hosts we have data for
            localhost_skipped: Loopback rows dropped during ingestion

        Returns:
            ClassificationReport with counts and detail records
        """
        report = ClassificationReport(localhost_skipped=localhost_skipped)
        pairs: Dict[Tuple[str, str], PairSummary] = {}

        for connection in connections:
            outcome = self.classify_connection(connection, sources)
            report.counts[outcome.value] += 1

            if outcome is Outcome.PRUNED:
                continue

            if outcome is Outcome.OVERFLOW:
                logger.debug(f"Connection with more than two sources: {connection.key}")
                report.overflow.append(connection)
                if len(report.overflow_examples) < self.max_overflow_examples:
                    report.overflow_examples.append(connection)
            elif outcome is Outcome.EXTERNAL:
                logger.debug(f"Connection involving IPs without data: {connection.key}")
                report.external.append(connection)
            elif outcome is Outcome.ASYMMETRIC:
                report.asymmetric.append(connection)

            self._update_pair(pairs, connection, outcome, sources)

        report.pairs = [pairs[ips] for ips in sorted(pairs)]

        logger.info(
            f"Classified {report.total()} connections: "
            + ", ".join(f"{name}={count}" for name, count in report.counts.items())
        )
        return report

    def _update_pair(self, pairs: Dict[Tuple[str, str], PairSummary],
                     connection: Connection, outcome: Outcome,
                     sources: SourceRegistry) -> None:
        """Fold a classified connection into its IP-pair summary."""
        key = connection.key
        ips = (key.a_ip, key.b_ip)

        pair = pairs.get(ips)
        if pair is None:
            a_source = sources.lookup(key.a_ip)
            b_source = sources.lookup(key.b_ip)
            pair = PairSummary(
                a_ip=key.a_ip,
                b_ip=key.b_ip,
                a_label=a_source.label if a_source else None,
                b_label=b_source.label if b_source else None
            )
            pairs[ips] = pair

        pair.counts[outcome.value] += 1

        if outcome is Outcome.ASYMMETRIC and len(pair.examples) < self.max_pair_examples:
            pair.examples.append(connection)
