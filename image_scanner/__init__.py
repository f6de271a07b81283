"""
Container Image Vulnerability Scanner

Scans a configured set of Docker images with Grype or Trivy and provides:
- Per-image markdown findings reports
- A plain-text run summary with severity counts
- A pass/fail exit status driven by a configurable severity threshold
"""

__version__ = "1.0.0"

from .core.orchestrator import ScanOrchestrator, RunSelection
from .core.config import ImagesConfig, FailSeverity, load_config
from .core.scanner import GrypeScanner, TrivyScanner

__all__ = [
    "ScanOrchestrator",
    "RunSelection",
    "ImagesConfig",
    "FailSeverity",
    "load_config",
    "GrypeScanner",
    "TrivyScanner",
]
