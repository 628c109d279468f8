"""Human-readable and machine-readable netcmp reports."""

import csv
import json
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional, TextIO
from colorama import Fore, Style
from ..detection.classifier import ClassificationReport, Outcome, PairSummary
from ..features.connection_models import Connection


logger = logging.getLogger(__name__)


def format_endpoint_pair(connection: Connection) -> str:
    """Render both canonical endpoints as 'a <-> b', padded to line up."""
    key = connection.key
    return f"{str(key.a):>21} <-> {str(key.b):>21}"


def format_connection_dump(connection: Connection) -> str:
    """Render everything known about a connection, one source per line."""
    lines = [f"    {format_endpoint_pair(connection)}"]
    for label in connection.source_labels():
        lines.append(f"        source: {label}")
    return '\n'.join(lines)


def use_color(mode: str, stream: TextIO) -> bool:
    """Resolve a report.color setting against the output stream."""
    if mode == 'always':
        return True
    if mode == 'never':
        return False
    isatty = getattr(stream, 'isatty', None)
    return bool(isatty and isatty())


class ReportPrinter:
    """
    Prints a ClassificationReport.

    Detail and summary lines go to `out`; diagnostics go to `err`.
    """

    def __init__(self, out: Optional[TextIO] = None, err: Optional[TextIO] = None,
                 color: bool = False, debug: bool = False,
                 pruned_states: Iterable[str] = ('TIME_WAIT',)):
        """
        Initialize report printer.

        Args:
            out: Stream for the report itself (defaults to stdout)
            err: Stream for diagnostics (defaults to stderr)
            color: Whether to emit ANSI colors
            debug: Dump every external and overflow connection
            pruned_states: States the classifier prunes, for the summary
        """
        self.out = out if out is not None else sys.stdout
        self.err = err if err is not None else sys.stderr
        self.color = color
        self.debug = debug
        self.pruned_states = sorted(pruned_states)

    def _paint(self, text: str, color: str) -> str:
        if not self.color:
            return text
        return f"{color}{text}{Style.RESET_ALL}"

    def print_report(self, report: ClassificationReport, pairs: bool = False) -> None:
        """Print the full report: details, diagnostics, optional pairs, summary."""
        self.print_asymmetric(report)
        self.print_diagnostics(report)
        if pairs:
            self.print_pairs(report)
        self.print_summary(report)

    def print_asymmetric(self, report: ClassificationReport) -> None:
        """One line per connection only one side knows about."""
        for connection in report.asymmetric:
            label = connection.source_labels()[0]
            line = f"{format_endpoint_pair(connection)} only in {label}"
            print(self._paint(line, Fore.RED), file=self.out)

    def print_diagnostics(self, report: ClassificationReport) -> None:
        """Dump external and overflow connections."""
        if self.debug:
            for connection in report.external:
                print("found connection involving IP for which we have no data:", file=self.err)
                print(format_connection_dump(connection), file=self.err)

            for connection in report.overflow:
                print("found connection with more than two sources:", file=self.err)
                print(format_connection_dump(connection), file=self.err)

        noverflow = report.count(Outcome.OVERFLOW)
        if noverflow:
            plural = '' if noverflow == 1 else 's'
            warning = f"{noverflow} connection{plural} had more than two sources!"
            if report.overflow_examples:
                warning += " example:"
            print(self._paint(warning, Fore.YELLOW + Style.BRIGHT), file=self.err)
            if report.overflow_examples:
                print(format_connection_dump(report.overflow_examples[0]), file=self.err)

    def print_pairs(self, report: ClassificationReport) -> None:
        """Per-IP-pair breakdown."""
        if not report.pairs:
            return

        print("connections by IP pair:", file=self.out)
        for pair in report.pairs:
            print(self._format_pair_header(pair), file=self.out)
            print(
                f"        {pair.counts[Outcome.SYMMETRIC.value]} symmetric, "
                f"{pair.counts[Outcome.ASYMMETRIC.value]} asymmetric, "
                f"{pair.counts[Outcome.EXTERNAL.value]} external, "
                f"{pair.counts[Outcome.OVERFLOW.value]} with more than two sources",
                file=self.out
            )
            for connection in pair.examples:
                print(f"        e.g. {format_endpoint_pair(connection)}", file=self.out)

    def _format_pair_header(self, pair: PairSummary) -> str:
        a_label = pair.a_label or 'no data'
        b_label = pair.b_label or 'no data'
        header = f"    {pair.a_ip} ({a_label}) <-> {pair.b_ip} ({b_label})"
        return self._paint(header, Fore.CYAN)

    def print_summary(self, report: ClassificationReport) -> None:
        """Final counters."""
        rows = [
            (report.localhost_skipped, "localhost connections skipped"),
            (report.count(Outcome.PRUNED), f"pruned (in state {', '.join(self.pruned_states)})"),
            (report.count(Outcome.SYMMETRIC), "symmetric (present on both sides)"),
            (report.count(Outcome.EXTERNAL), "external (only one side's data was supplied)"),
            (report.count(Outcome.ASYMMETRIC), "asymmetric (abandoned by one side)"),
            (report.count(Outcome.OVERFLOW), "with more than two sources"),
        ]

        print("summary of connections found:", file=self.out)
        for count, description in rows:
            print(f"    {count:7d} {description}", file=self.out)


def write_json(report: ClassificationReport, path: str) -> None:
    """
    Write the full report as JSON.

    Args:
        report: Classification result
        path: Output file path
    """
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(report.to_dict(), f, indent=2)
        f.write('\n')

    logger.info(f"Wrote JSON report to {path}")


def write_csv(report: ClassificationReport, path: str) -> None:
    """
    Export asymmetric connections to a CSV file.

    Args:
        report: Classification result
        path: Output CSV file path
    """
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', newline='') as f:
        writer = csv.writer(f)

        # Write header
        writer.writerow(['a_ip', 'a_port', 'b_ip', 'b_port', 'state', 'source'])

        for connection in report.asymmetric:
            key = connection.key
            writer.writerow([
                key.a_ip,
                key.a_port,
                key.b_ip,
                key.b_port,
                connection.state,
                connection.source_labels()[0]
            ])

    logger.info(f"Exported {len(report.asymmetric)} asymmetric connections to {path}")


def asymmetric_labels(report: ClassificationReport) -> List[str]:
    """Labels of the hosts holding abandoned connections, sorted."""
    return sorted({conn.source_labels()[0] for conn in report.asymmetric})
