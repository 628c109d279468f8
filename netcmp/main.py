"""Main orchestration module for netcmp."""

import logging
import sys
from typing import Iterable, Optional
from colorama import just_fix_windows_console

from .utils.config import Config
from .reader.netstat_reader import FormatError, NetstatReader
from .features.connection_models import ParseError
from .features.connection_store import ConnectionRegistry, SourceRegistry
from .detection.classifier import ClassificationReport, Classifier
from .reporting.report import ReportPrinter, asymmetric_labels, use_color


# Enable ANSI colors on Windows consoles
just_fix_windows_console()

logger = logging.getLogger(__name__)


class NetcmpMain:
    """
    Main netcmp orchestrator.

    Folds every input file into the source and connection registries, one file
    at a time, then classifies the result.
    """

    def __init__(self, config: Config, debug: bool = False):
        """
        Initialize netcmp components.

        Args:
            config: Configuration object
            debug: Enable debug logging and diagnostic dumps
        """
        self.config = config
        self.debug = debug

        # Setup logging
        self._setup_logging()

        self.reader = NetstatReader(max_line_length=config.max_line_length)
        self.sources = SourceRegistry()
        self.connections = ConnectionRegistry(
            self.sources,
            loopback_addresses=config.loopback_addresses
        )
        self.classifier = Classifier(config.classifier)

        # Statistics
        self.stats = {
            'files_processed': 0,
            'records_processed': 0
        }

    def _setup_logging(self) -> None:
        """Setup logging configuration."""
        level = logging.DEBUG if self.debug else getattr(
            logging, str(self.config.log_level).upper(), logging.INFO
        )

        handlers = [logging.StreamHandler(sys.stderr)]
        if self.config.log_file:
            handlers.append(logging.FileHandler(self.config.log_file))

        logging.basicConfig(
            level=level,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=handlers
        )
        logging.getLogger('netcmp').setLevel(level)

    def process_file(self, path: str) -> int:
        """
        Read one netstat report into the registries.

        Args:
            path: Report file path

        Returns:
            Number of data rows processed

        Raises:
            OSError: If the file cannot be read
            FormatError: On the first malformed line
        """
        logger.info(f"Processing file {path}")

        count = 0
        for record in self.reader.iter_records(path):
            try:
                self.connections.process_record(record)
            except ParseError as e:
                raise FormatError(f"failed to process line: {e}", path=path,
                                  line_number=record.line_number) from e
            count += 1

        self.stats['files_processed'] += 1
        self.stats['records_processed'] += count

        logger.debug(f"Processed {count} rows from {path}")
        return count

    def run(self, paths: Iterable[str]) -> ClassificationReport:
        """
        Process every report and classify the connections found.

        Args:
            paths: Report file paths, processed in order

        Returns:
            ClassificationReport for the whole run
        """
        for path in paths:
            self.process_file(path)

        registry_stats = self.connections.get_stats()
        logger.info(
            f"Stats: "
            f"Files={self.stats['files_processed']}, "
            f"Rows={self.stats['records_processed']}, "
            f"Connections={registry_stats['connections']}, "
            f"Sources={registry_stats['sources']}, "
            f"Hosts={len(self.sources.labels())}, "
            f"LocalhostSkipped={registry_stats['localhost_skipped']}"
        )

        report = self.classifier.classify(
            self.connections, self.sources,
            localhost_skipped=self.connections.localhost_skipped
        )

        if report.asymmetric:
            logger.info(f"Abandoned connections held by: {', '.join(asymmetric_labels(report))}")

        return report

    def print_report(self, report: ClassificationReport, pairs: bool = False,
                     color: Optional[bool] = None) -> None:
        """
        Print the report to stdout, diagnostics to stderr.

        Args:
            report: Classification result
            pairs: Include the per-IP-pair breakdown
            color: Force color on or off (defaults to the configured mode)
        """
        if color is None:
            color = use_color(self.config.color, sys.stdout)

        printer = ReportPrinter(
            color=color,
            debug=self.debug,
            pruned_states=self.classifier.pruned_states
        )
        printer.print_report(report, pairs=pairs)
