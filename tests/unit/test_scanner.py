"""Tests for scanner invocation."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from image_scanner.core.scanner import GrypeScanner, TrivyScanner, get_scanner
from image_scanner.errors import ConfigurationError, ScannerError
from image_scanner.utils.subprocess import CommandResult

REF = "registry.example.com/acme/web"


def writes_output(output_file):
    def _run(args, timeout=None):
        output_file.write_text('{"matches": []}')
        return CommandResult(returncode=0, stdout="", stderr="")
    return _run


def test_grype_command(tmp_path):
    args = GrypeScanner().build_command(REF, tmp_path / "out.json")
    assert args == ["grype", "--quiet", REF, "-o", "json", "--file", str(tmp_path / "out.json")]


def test_grype_command_verbose(tmp_path):
    args = GrypeScanner(verbose=True).build_command(REF, tmp_path / "out.json")
    assert "--quiet" not in args


def test_trivy_command(tmp_path):
    args = TrivyScanner(timeout=120).build_command(REF, tmp_path / "out.json")
    assert args[:3] == ["trivy", "image", "--quiet"]
    assert args[-1] == REF
    assert "--scanners" in args and "vuln" in args
    assert args[args.index("--timeout") + 1] == "120s"


@patch("image_scanner.core.scanner.run_command")
def test_scan_writes_report(mock_run, tmp_path):
    output = tmp_path / "json" / "web-report.json"
    mock_run.side_effect = writes_output(output)

    assert GrypeScanner(timeout=90).scan(REF, output) == output
    assert output.exists()
    assert mock_run.call_args[1]["timeout"] == 90


@patch("image_scanner.core.scanner.run_command")
def test_trivy_outer_timeout_has_grace(mock_run, tmp_path):
    output = tmp_path / "report.json"
    mock_run.side_effect = writes_output(output)

    TrivyScanner(timeout=90).scan(REF, output)
    assert mock_run.call_args[1]["timeout"] == 120


@patch("image_scanner.core.scanner.run_command")
def test_scan_nonzero_exit_raises(mock_run, tmp_path):
    mock_run.return_value = CommandResult(returncode=1, stdout="", stderr="failed to load db\n")
    with pytest.raises(ScannerError, match="failed to load db"):
        GrypeScanner().scan(REF, tmp_path / "report.json")


@patch("image_scanner.core.scanner.run_command")
def test_scan_timeout_raises(mock_run, tmp_path):
    mock_run.return_value = CommandResult(
        returncode=-1, stdout="", stderr="Command timed out after 5 seconds", timed_out=True,
    )
    with pytest.raises(ScannerError, match="timed out"):
        GrypeScanner(timeout=5).scan(REF, tmp_path / "report.json")


@patch("image_scanner.core.scanner.run_command")
def test_scan_without_output_raises(mock_run, tmp_path):
    mock_run.return_value = CommandResult(returncode=0, stdout="", stderr="")
    with pytest.raises(ScannerError, match="did not write"):
        GrypeScanner().scan(REF, tmp_path / "report.json")


def test_get_scanner():
    assert isinstance(get_scanner("grype"), GrypeScanner)
    scanner = get_scanner("Trivy", timeout=30)
    assert isinstance(scanner, TrivyScanner)
    assert scanner.timeout == 30


def test_get_scanner_unknown():
    with pytest.raises(ConfigurationError):
        get_scanner("clair")
