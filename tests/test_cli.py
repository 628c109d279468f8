"""End-to-end tests for the netcmp command line."""

import json

import pytest

from netcmp.cli import EXIT_USAGE, main


HEADER = (
    "\n"
    "TCP: IPv4\n"
    "   Local Address        Remote Address    Swind Send-Q Rwind Recv-Q    State\n"
    "-------------------- -------------------- ----- ------ ----- ------ -----------\n"
)


def write_report(tmp_path, name, rows):
    """Helper to write a netstat report and return its path."""
    path = tmp_path / name
    path.write_text(HEADER + ''.join(row + '\n' for row in rows))
    return str(path)


class TestUsage:
    """Test argument validation."""

    def test_needs_two_files(self, tmp_path, capsys):
        """Test that a single file is a usage error."""
        path = write_report(tmp_path, 'host1.txt', [])

        assert main([path]) == EXIT_USAGE
        assert 'need two filenames' in capsys.readouterr().err

    def test_unknown_flag(self, tmp_path):
        """Test that unrecognized options are usage errors."""
        with pytest.raises(SystemExit) as exc_info:
            main(['-x', 'a.txt', 'b.txt'])

        assert exc_info.value.code == EXIT_USAGE


class TestCompare:
    """Test full runs over report files."""

    def test_asymmetric_connection(self, tmp_path, capsys):
        """Test a connection reported by file1 but not by file2's host."""
        file1 = write_report(tmp_path, 'file1.txt', [
            '10.0.0.1.5000 10.0.0.2.80 0 0 0 0 ESTABLISHED',
        ])
        file2 = write_report(tmp_path, 'file2.txt', [
            '10.0.0.2.22 10.0.0.5.40000 0 0 0 0 ESTABLISHED',
        ])

        assert main(['--no-color', file1, file2]) == 0

        out = capsys.readouterr().out
        assert f"{'10.0.0.1:5000':>21} <-> {'10.0.0.2:80':>21} only in file1.txt" in out
        assert '      1 asymmetric (abandoned by one side)' in out
        assert "      1 external (only one side's data was supplied)" in out

    def test_symmetric_connection(self, tmp_path, capsys):
        """Test a connection reported by both sides."""
        file1 = write_report(tmp_path, 'file1.txt', [
            '10.0.0.1.5000 10.0.0.2.80 0 0 0 0 ESTABLISHED',
        ])
        file2 = write_report(tmp_path, 'file2.txt', [
            '10.0.0.2.80 10.0.0.1.5000 0 0 0 0 ESTABLISHED',
        ])

        assert main([file1, file2]) == 0

        out = capsys.readouterr().out
        assert 'only in' not in out
        assert '      1 symmetric (present on both sides)' in out
        assert '      0 asymmetric (abandoned by one side)' in out

    def test_peer_without_report_is_external(self, tmp_path, capsys):
        """Test that a connection to a host with no report is not called abandoned."""
        host1 = write_report(tmp_path, 'host1.txt', [
            '10.0.0.1.5000 192.0.2.7.443 0 0 0 0 ESTABLISHED',
            '10.0.0.1.5001 10.0.0.2.80 0 0 0 0 ESTABLISHED',
        ])
        host2 = write_report(tmp_path, 'host2.txt', [
            '10.0.0.2.80 10.0.0.1.5001 0 0 0 0 ESTABLISHED',
        ])

        assert main(['-d', '--no-color', host1, host2]) == 0

        captured = capsys.readouterr()
        assert 'only in' not in captured.out
        assert "      1 external (only one side's data was supplied)" in captured.out
        assert '      1 symmetric (present on both sides)' in captured.out
        assert '      0 asymmetric (abandoned by one side)' in captured.out
        assert 'found connection involving IP for which we have no data:' in captured.err
        assert 'source: host1.txt' in captured.err

    def test_loopback_skipped(self, tmp_path, capsys):
        """Test that loopback rows are only counted."""
        file1 = write_report(tmp_path, 'file1.txt', [
            '127.0.0.1.5000 127.0.0.1.8080 0 0 0 0 ESTABLISHED',
        ])
        file2 = write_report(tmp_path, 'file2.txt', [])

        assert main([file1, file2]) == 0

        out = capsys.readouterr().out
        assert '      1 localhost connections skipped' in out
        assert '      0 external' in out

    def test_three_sources(self, tmp_path, capsys):
        """Test the overflow diagnostic when three files share a tuple."""
        paths = [
            write_report(tmp_path, 'file1.txt', ['10.0.0.1.5000 10.0.0.2.80 0 0 0 0 ESTABLISHED']),
            write_report(tmp_path, 'file2.txt', ['10.0.0.2.80 10.0.0.1.5000 0 0 0 0 ESTABLISHED']),
            write_report(tmp_path, 'file3.txt', ['10.0.0.1.5000 10.0.0.2.80 0 0 0 0 ESTABLISHED']),
        ]

        assert main(paths) == 0

        captured = capsys.readouterr()
        assert '      1 with more than two sources' in captured.out
        assert '1 connection had more than two sources! example:' in captured.err
        assert 'source: file1.txt' in captured.err
        assert 'source: file2.txt' in captured.err
        assert 'source: file3.txt' not in captured.err

    def test_malformed_endpoint(self, tmp_path, capsys):
        """Test that a bad endpoint aborts the run before any report."""
        file1 = write_report(tmp_path, 'file1.txt', [
            'abc 10.0.0.2.80 0 0 0 0 ESTABLISHED',
        ])
        file2 = write_report(tmp_path, 'file2.txt', [])

        assert main([file1, file2]) == 1

        captured = capsys.readouterr()
        assert 'summary of connections found' not in captured.out
        assert f"{file1}:5:" in captured.err

    def test_undecodable_report(self, tmp_path, capsys):
        """Test that invalid bytes abort the run with the file and line."""
        host1 = tmp_path / 'host1.txt'
        host1.write_bytes(
            HEADER.encode('ascii')
            + b'10.0.0.1.5000 10.0.0.2.80 0 0 0 0 ESTABLISHED\n'
            + b'10.0.0.1.5001 10.0.0.2.80 0 0 0 0 \xffSTAB\n'
        )
        host2 = write_report(tmp_path, 'host2.txt', [])

        assert main([str(host1), host2]) == 1

        captured = capsys.readouterr()
        assert 'summary of connections found' not in captured.out
        assert f"{host1}:6:" in captured.err

    def test_missing_file(self, tmp_path, capsys):
        """Test that an unreadable file aborts the run."""
        file1 = write_report(tmp_path, 'file1.txt', [])

        assert main([file1, str(tmp_path / 'missing.txt')]) == 1

        captured = capsys.readouterr()
        assert 'summary of connections found' not in captured.out
        assert 'ERROR' in captured.err

    def test_bad_config(self, tmp_path, capsys):
        """Test that an invalid config file aborts the run."""
        config = tmp_path / 'config.yaml'
        config.write_text("report:\n  color: rainbow\n")
        file1 = write_report(tmp_path, 'file1.txt', [])
        file2 = write_report(tmp_path, 'file2.txt', [])

        assert main(['--config', str(config), file1, file2]) == 1
        assert 'Configuration error' in capsys.readouterr().err

    def test_exports(self, tmp_path, capsys):
        """Test JSON and CSV export alongside the text report."""
        file1 = write_report(tmp_path, 'file1.txt', [
            '10.0.0.1.5000 10.0.0.2.80 0 0 0 0 ESTABLISHED',
            '10.0.0.1.5001 10.0.0.2.80 0 0 0 0 TIME_WAIT',
        ])
        file2 = write_report(tmp_path, 'file2.txt', [
            '10.0.0.2.443 10.0.0.1.6000 0 0 0 0 ESTABLISHED',
        ])
        json_path = tmp_path / 'report.json'
        csv_path = tmp_path / 'report.csv'

        assert main(['--pairs', '--json', str(json_path), '--csv', str(csv_path), file1, file2]) == 0

        data = json.loads(json_path.read_text())
        assert data['counts'] == {
            'pruned': 1,
            'overflow': 0,
            'symmetric': 0,
            'external': 0,
            'asymmetric': 2
        }
        assert len(csv_path.read_text().splitlines()) == 3
        assert 'connections by IP pair:' in capsys.readouterr().out
