"""Tests for scanner report parsing and aggregation."""

from __future__ import annotations

import json

import pytest

from conftest import grype_match, grype_report
from image_scanner.core.aggregator import (
    aggregate,
    aggregate_findings,
    count_severities,
    deduplicate,
    load_report,
    parse_grype_findings,
    parse_trivy_findings,
    sort_by_severity,
)
from image_scanner.errors import ScannerError
from image_scanner.models.scan_result import Severity


def test_parse_grype_fields():
    report = grype_report(grype_match("openssl", "CVE-2024-0001", "High", "3.0.1", fix="3.0.2"))
    (finding,) = parse_grype_findings(report)
    assert finding.package == "openssl"
    assert finding.vulnerability_id == "CVE-2024-0001"
    assert finding.severity == Severity.HIGH
    assert finding.severity_label == "High"
    assert finding.installed_version == "3.0.1"
    assert finding.fixed_version == "3.0.2"


def test_parse_grype_without_fix():
    (finding,) = parse_grype_findings(grype_report(grype_match("zlib", "CVE-1", "Low")))
    assert finding.fixed_version is None


def test_parse_trivy_fields():
    report = {
        "Results": [
            {"Target": "alpine", "Vulnerabilities": [
                {"PkgName": "musl", "VulnerabilityID": "CVE-2", "Severity": "CRITICAL",
                 "InstalledVersion": "1.2.3", "FixedVersion": "1.2.4"},
            ]},
            {"Target": "python-pkg", "Vulnerabilities": None},
        ]
    }
    (finding,) = parse_trivy_findings(report)
    assert finding.package == "musl"
    assert finding.severity == Severity.CRITICAL
    assert finding.severity_label == "CRITICAL"
    assert finding.fixed_version == "1.2.4"


@pytest.mark.parametrize("report", [{}, {"matches": None}, {"matches": []}])
def test_empty_grype_report(report):
    result = aggregate(report, "grype")
    assert result.counts.total == 0
    assert result.counts.critical == 0
    assert result.findings == []


@pytest.mark.parametrize("report", [{}, {"Results": None}, {"Results": [{"Target": "x"}]}])
def test_empty_trivy_report(report):
    result = aggregate(report, "trivy")
    assert result.counts.total == 0
    assert result.findings == []


def test_counts_total_includes_untracked_severities():
    findings = parse_grype_findings(grype_report(
        grype_match("a", "CVE-1", "Critical"),
        grype_match("b", "CVE-2", "High"),
        grype_match("c", "CVE-3", "Medium"),
        grype_match("d", "CVE-4", "Low"),
        grype_match("e", "CVE-5", "Negligible"),
        grype_match("f", "CVE-6", "Unknown"),
    ))
    counts = count_severities(findings)
    assert (counts.critical, counts.high, counts.medium, counts.low) == (1, 1, 1, 1)
    assert counts.total == 6
    assert counts.total >= counts.tracked_total


def test_counts_equal_when_all_tracked():
    findings = parse_grype_findings(grype_report(
        grype_match("a", "CVE-1", "High"),
        grype_match("b", "CVE-2", "High"),
        grype_match("c", "CVE-3", "Low"),
    ))
    counts = count_severities(findings)
    assert counts.total == counts.tracked_total == 3


def test_deduplicate_keeps_first_occurrence():
    findings = parse_grype_findings(grype_report(
        grype_match("openssl", "CVE-1", "High", "1.0"),
        grype_match("openssl", "CVE-1", "High", "2.0"),
        grype_match("libssl", "CVE-1", "High", "1.0"),
    ))
    unique = deduplicate(findings)
    assert [(f.package, f.installed_version) for f in unique] == [("openssl", "1.0"), ("libssl", "1.0")]


def test_sort_by_severity_is_stable_within_tier():
    findings = parse_grype_findings(grype_report(
        grype_match("low", "CVE-1", "Low"),
        grype_match("high-1", "CVE-2", "High"),
        grype_match("odd", "CVE-3", "Negligible"),
        grype_match("crit", "CVE-4", "Critical"),
        grype_match("high-2", "CVE-5", "High"),
        grype_match("med", "CVE-6", "Medium"),
    ))
    ordered = [f.package for f in sort_by_severity(findings)]
    assert ordered == ["crit", "high-1", "high-2", "med", "low", "odd"]


def test_counts_use_raw_matches_and_table_uses_deduplicated():
    result = aggregate(grype_report(
        grype_match("openssl", "CVE-1", "Critical"),
        grype_match("openssl", "CVE-1", "Critical"),
    ))
    assert result.counts.critical == 2
    assert len(result.findings) == 1


def test_aggregation_is_idempotent_after_dedup():
    once = aggregate(grype_report(
        grype_match("a", "CVE-1", "Medium"),
        grype_match("b", "CVE-2", "Critical"),
        grype_match("a", "CVE-1", "Medium"),
        grype_match("c", "CVE-3", "Unknown"),
    ))
    twice = aggregate_findings(once.findings)
    thrice = aggregate_findings(twice.findings)
    assert twice.findings == once.findings
    assert thrice == twice


def test_aggregate_unknown_scanner():
    with pytest.raises(ValueError):
        aggregate({}, "clair")


def test_load_report_corrupt_file(tmp_path):
    path = tmp_path / "report.json"
    path.write_text("{not json")
    with pytest.raises(ScannerError):
        load_report(path)


def test_load_report_missing_file(tmp_path):
    with pytest.raises(ScannerError):
        load_report(tmp_path / "missing.json")


def test_load_report_roundtrip(tmp_path):
    path = tmp_path / "report.json"
    path.write_text(json.dumps(grype_report(grype_match("a", "CVE-1", "Low"))))
    assert aggregate(load_report(path)).counts.low == 1


def test_load_report_not_utf8(tmp_path):
    path = tmp_path / "report.json"
    path.write_bytes(b'{"matches": "\xff\xfe"}')
    with pytest.raises(ScannerError, match="Failed to parse"):
        load_report(path)


@pytest.mark.parametrize("report,scanner", [
    ({"matches": "oops"}, "grype"),
    ({"matches": ["not-a-match"]}, "grype"),
    ({"matches": [{"artifact": "openssl", "vulnerability": {}}]}, "grype"),
    ({"matches": [{"artifact": {}, "vulnerability": {"fix": {"versions": "1.0"}}}]}, "grype"),
    ({"Results": {"Target": "alpine"}}, "trivy"),
    ({"Results": [{"Vulnerabilities": [42]}]}, "trivy"),
])
def test_unexpected_layout_is_scanner_error(report, scanner):
    with pytest.raises(ScannerError, match="Unexpected scanner report layout"):
        aggregate(report, scanner)
