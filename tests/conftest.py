"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import pytest

from image_scanner.core.config import ImagesConfig
from image_scanner.core.resolver import PullResult
from image_scanner.core.scanner import VulnerabilityScanner
from image_scanner.errors import ScannerError

PREFIX = "registry.example.com/acme"


def grype_match(
    name: str,
    vuln_id: str,
    severity: str,
    version: str = "1.0.0",
    fix: Optional[str] = None,
) -> dict:
    """One entry of a Grype report's ``matches`` array."""
    return {
        "artifact": {"name": name, "version": version},
        "vulnerability": {
            "id": vuln_id,
            "severity": severity,
            "fix": {"versions": [fix] if fix else [], "state": "fixed" if fix else "not-fixed"},
        },
    }


def grype_report(*matches: dict) -> dict:
    return {"matches": list(matches)}


class FakeScanner(VulnerabilityScanner):
    """Writes canned reports instead of running a scanner binary."""

    name = "grype"
    title = "Grype"
    binary = "grype"

    def __init__(
        self,
        reports: Optional[Dict[str, Union[dict, Exception]]] = None,
        before_scan: Optional[Callable[[str], None]] = None,
    ):
        super().__init__(timeout=60)
        self.reports = reports or {}
        self.before_scan = before_scan
        self.scanned: List[str] = []

    def scan(self, reference: str, output_file: Path) -> Path:
        if self.before_scan:
            self.before_scan(reference)
        self.scanned.append(reference)
        report = self.reports.get(reference, grype_report())
        if isinstance(report, Exception):
            raise report
        output_file = Path(output_file)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(json.dumps(report))
        return output_file


class FakeResolver:
    """Resolver whose pull results are configured per reference."""

    def __init__(self, pull_failures: Optional[Dict[str, str]] = None, digest: str = "sha256:abc"):
        self.pull_failures = pull_failures or {}
        self.digest = digest
        self.ensured: List[str] = []

    def ensure_image(self, reference: str) -> PullResult:
        self.ensured.append(reference)
        if reference in self.pull_failures:
            return PullResult(success=False, reason=self.pull_failures[reference])
        return PullResult(success=True)

    def get_digest(self, reference: str) -> str:
        return f"{reference}@{self.digest}"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("FAIL_SEVERITY", raising=False)
    monkeypatch.delenv("IMAGE_SCAN_CONFIG", raising=False)


@pytest.fixture
def images_config() -> ImagesConfig:
    return ImagesConfig(
        prefix=PREFIX,
        organization_name="Acme",
        app_images=["web", "api"],
        base_images=["alpine"],
    )


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "images.yaml"
    path.write_text(
        "organization:\n"
        "  name: Acme\n"
        f"  prefix: {PREFIX}\n"
        "app_images: [web, api]\n"
        "base_images: [alpine]\n"
    )
    return path


@pytest.fixture
def fake_scanner() -> FakeScanner:
    return FakeScanner()


@pytest.fixture
def fake_resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def scanner_error() -> ScannerError:
    return ScannerError("Grype exited with code 1: db update failed")
