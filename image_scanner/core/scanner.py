"""Vulnerability scanner invocation.

Both scanners write their JSON report straight to a file; parsing happens
in :mod:`image_scanner.core.aggregator`.
"""

from pathlib import Path
from typing import List

from ..errors import ScannerError, ConfigurationError
from ..utils.subprocess import run_command
from ..utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 600


class VulnerabilityScanner:
    """Base class for external scanners producing a JSON report."""

    name = ""
    title = ""
    binary = ""
    # Extra seconds on top of the tool's own --timeout flag, if it has one
    timeout_grace = 0

    def __init__(self, timeout: int = DEFAULT_TIMEOUT, verbose: bool = False):
        """
        Initialize scanner.

        Args:
            timeout: Timeout for a single image scan in seconds
            verbose: Whether to let the scanner print progress output
        """
        self.timeout = timeout
        self.verbose = verbose

    def build_command(self, reference: str, output_file: Path) -> List[str]:
        raise NotImplementedError

    def scan(self, reference: str, output_file: Path) -> Path:
        """
        Scan an image and write the JSON report.

        Args:
            reference: Full image reference
            output_file: Where to write the JSON report

        Returns:
            Path of the written report

        Raises:
            ScannerError: On timeout, missing binary, non-zero exit or
                missing output
        """
        output_file = Path(output_file)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        args = self.build_command(reference, output_file)

        result = run_command(args, timeout=self.timeout + self.timeout_grace)

        if result.timed_out:
            raise ScannerError(
                f"{self.title} timed out after {self.timeout}s scanning {reference}"
            )
        if not result.success:
            logger.debug(f"{self.title} stderr for {reference}:\n{result.stderr}")
            raise ScannerError(
                f"{self.title} exited with code {result.returncode}: {result.error_message}"
            )
        if not output_file.exists():
            raise ScannerError(f"{self.title} did not write a report to {output_file}")

        logger.debug(f"{self.title} report written to {output_file}")
        return output_file


class GrypeScanner(VulnerabilityScanner):
    """Anchore Grype."""

    name = "grype"
    title = "Grype"
    binary = "grype"

    def build_command(self, reference: str, output_file: Path) -> List[str]:
        args = ["grype", reference, "-o", "json", "--file", str(output_file)]
        if not self.verbose:
            args.insert(1, "--quiet")
        return args


class TrivyScanner(VulnerabilityScanner):
    """Aqua Trivy, vulnerability scanning only."""

    name = "trivy"
    title = "Trivy"
    binary = "trivy"
    timeout_grace = 30

    def build_command(self, reference: str, output_file: Path) -> List[str]:
        args = [
            "trivy", "image",
            "--scanners", "vuln",
            "--format", "json",
            "--output", str(output_file),
            "--timeout", f"{self.timeout}s",
            reference,
        ]
        if not self.verbose:
            args.insert(2, "--quiet")
        return args


SCANNERS = {
    GrypeScanner.name: GrypeScanner,
    TrivyScanner.name: TrivyScanner,
}


def get_scanner(name: str, timeout: int = DEFAULT_TIMEOUT, verbose: bool = False) -> VulnerabilityScanner:
    """Instantiate a scanner by name (``grype`` or ``trivy``)."""
    try:
        scanner_cls = SCANNERS[name.lower()]
    except KeyError:
        valid = ", ".join(sorted(SCANNERS))
        raise ConfigurationError(f"Unknown scanner '{name}' (expected one of: {valid})") from None
    return scanner_cls(timeout=timeout, verbose=verbose)
