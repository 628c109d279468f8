"""Command-line interface for netcmp."""

import sys
import argparse
import logging
from typing import List, Optional

from .utils.config import load_config
from .main import NetcmpMain
from .reader.netstat_reader import FormatError
from .reporting.report import write_csv, write_json


logger = logging.getLogger(__name__)

EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog='netcmp',
        description='Compare TCP connections reported by netstat on several hosts '
                    'to find connections abandoned by one side.',
        epilog='Each FILE holds the output of "netstat -n -f inet -P tcp" from one host.',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument('files', nargs='*', metavar='FILE', help='netstat report, one per host')
    parser.add_argument('-d', '--debug', action='store_true',
                        help='Enable debug messages and diagnostic dumps')
    parser.add_argument('--config', help='Configuration file path (YAML)')
    parser.add_argument('--pairs', action='store_true', help='Break the report down by IP pair')
    parser.add_argument('--json', metavar='FILE', dest='json_out', help='Write the report as JSON')
    parser.add_argument('--csv', metavar='FILE', dest='csv_out',
                        help='Export asymmetric connections to CSV')
    parser.add_argument('--no-color', action='store_true', help='Disable colored output')

    return parser


def cmd_compare(args) -> int:
    """
    Compare the given netstat reports.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code
    """
    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except (ValueError, OSError) as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 1

    try:
        netcmp = NetcmpMain(config, debug=args.debug)
        report = netcmp.run(args.files)

        netcmp.print_report(report, pairs=args.pairs,
                            color=False if args.no_color else None)

        if args.json_out:
            write_json(report, args.json_out)
        if args.csv_out:
            write_csv(report, args.csv_out)

        return 0

    except FormatError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if len(args.files) < 2:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: need two filenames", file=sys.stderr)
        return EXIT_USAGE

    return cmd_compare(args)


if __name__ == '__main__':
    sys.exit(main())
