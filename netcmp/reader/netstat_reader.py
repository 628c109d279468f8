"""Reader for `netstat -n -f inet -P tcp` reports."""

import logging
import os
from typing import BinaryIO, Iterable, Iterator, List, Optional
from ..features.connection_models import TCP_STATES, NetstatRecord, ParseError


logger = logging.getLogger(__name__)

PROTOCOL_HEADER = 'TCP: IPv4'

REQUIRED_COLUMNS = [
    'Local Address', 'Remote Address', 'Swind', 'Send-Q', 'Rwind', 'Recv-Q', 'State'
]

HEADER_LINES = 4

# Local, Remote, Swind, Send-Q, Rwind, Recv-Q, State
ROW_FIELDS = 7


class FormatError(ParseError):
    """A netstat report is malformed. Carries the file and line number."""

    def __init__(self, reason: str, path: Optional[str] = None,
                 line_number: Optional[int] = None):
        self.reason = reason
        self.path = path
        self.line_number = line_number

        if path is not None and line_number is not None:
            message = f"{path}:{line_number}: {reason}"
        elif path is not None:
            message = f"{path}: {reason}"
        else:
            message = reason
        super().__init__(message)


def source_label(path: str) -> str:
    """Label for a report: the final segment of its path."""
    return os.path.basename(path)


def check_header(lines: List[str]) -> None:
    """
    Validate the four-line preamble of a netstat report.

    Expected layout: a blank line, the 'TCP: IPv4' header, the column names
    and a separator row made of dashes.

    Args:
        lines: The first four lines, without trailing newlines

    Raises:
        FormatError: If a line is missing or does not match
    """
    if len(lines) < 1:
        raise FormatError("reading from stream", line_number=1)
    if lines[0] != '':
        raise FormatError("expected blank line", line_number=1)

    if len(lines) < 2:
        raise FormatError("reading from stream", line_number=2)
    if lines[1] != PROTOCOL_HEADER:
        raise FormatError(f"expected \"{PROTOCOL_HEADER}\" header", line_number=2)

    if len(lines) < 3:
        raise FormatError("reading from stream", line_number=3)
    if not all(column in lines[2] for column in REQUIRED_COLUMNS):
        raise FormatError("expected column headers", line_number=3)

    if len(lines) < 4:
        raise FormatError("reading from stream", line_number=4)
    if any(ch != '-' and not ch.isspace() for ch in lines[3]):
        raise FormatError("expected separator row", line_number=4)


def parse_row(line: str, label: str, line_number: Optional[int] = None) -> NetstatRecord:
    """
    Split one data row into a NetstatRecord.

    The window and queue columns are ignored. Endpoint tokens are left raw.

    Raises:
        ParseError: If the field count is wrong or the state is unknown
    """
    fields = line.split()
    if len(fields) != ROW_FIELDS:
        raise ParseError(f"expected {ROW_FIELDS} fields, got {len(fields)}")

    state = fields[-1]
    if state not in TCP_STATES:
        raise ParseError(f"unexpected TCP state: \"{state}\"")

    return NetstatRecord(
        local=fields[0],
        remote=fields[1],
        state=state,
        label=label,
        line_number=line_number
    )


class NetstatReader:
    """
    Streams records out of netstat report files.

    Processing is strict: the first malformed line aborts the read.
    """

    def __init__(self, max_line_length: int = 255, encoding: str = 'utf-8'):
        """
        Initialize reader.

        Args:
            max_line_length: Longest accepted line, newline included
            encoding: Text encoding of report files
        """
        self.max_line_length = max_line_length
        self.encoding = encoding

    def iter_records(self, path: str) -> Iterator[NetstatRecord]:
        """
        Yield one record per data line of a report.

        Args:
            path: Report file path

        Raises:
            OSError: If the file cannot be opened or read
            FormatError: On the first malformed or undecodable line
        """
        label = source_label(path)
        with open(path, 'rb') as f:
            yield from self.iter_stream(self.decode_lines(f, path), label, path)

    def decode_lines(self, stream: BinaryIO, name: str) -> Iterator[str]:
        """Decode a binary report line by line, so errors keep their line number."""
        for line_number, raw in enumerate(stream, start=1):
            try:
                line = raw.decode(self.encoding)
            except UnicodeDecodeError as e:
                raise FormatError(f"invalid {self.encoding} data at column {e.start + 1}",
                                  path=name, line_number=line_number) from e

            if line.endswith('\r\n'):
                line = line[:-2] + '\n'
            yield line

    def iter_stream(self, stream: Iterable[str], label: str,
                    path: Optional[str] = None) -> Iterator[NetstatRecord]:
        """Yield records from an already open report or any iterable of lines."""
        name = path if path is not None else label
        lines = iter(stream)

        header = []
        for _ in range(HEADER_LINES):
            line = next(lines, '')
            if not line:
                break
            header.append(line.rstrip('\n'))

        try:
            check_header(header)
        except FormatError as e:
            raise FormatError(e.reason, path=name, line_number=e.line_number) from e

        logger.debug(f"Validated header of {name}")

        line_number = HEADER_LINES
        for line in lines:
            line_number += 1

            if len(line) > self.max_line_length:
                raise FormatError("line too long", path=name, line_number=line_number)

            line = line.rstrip('\n')
            if not line:
                continue

            try:
                yield parse_row(line, label, line_number)
            except ParseError as e:
                raise FormatError(f"failed to process line: {e}", path=name,
                                  line_number=line_number) from e
