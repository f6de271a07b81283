"""Data models for the image scanner."""

from .scan_result import (
    ImageCategory,
    ImageSpec,
    ScanTarget,
    Severity,
    Finding,
    SeverityCounts,
    OutcomeStatus,
    ScanOutcome,
    RunResult,
)

__all__ = [
    "ImageCategory",
    "ImageSpec",
    "ScanTarget",
    "Severity",
    "Finding",
    "SeverityCounts",
    "OutcomeStatus",
    "ScanOutcome",
    "RunResult",
]
