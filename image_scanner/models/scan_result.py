"""Data models for image scans."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Dict, Any, Tuple


class ImageCategory(Enum):
    """Group an image belongs to."""
    APPLICATION = "application"
    BASE = "base"
    CUSTOM = "custom"

    @property
    def directory(self) -> str:
        """Directory name used for this category inside a run directory."""
        return {
            ImageCategory.APPLICATION: "app-images",
            ImageCategory.BASE: "base-images",
            ImageCategory.CUSTOM: "custom-images",
        }[self]

    @property
    def title(self) -> str:
        """Section title used in the run summary."""
        return {
            ImageCategory.APPLICATION: "Application Images",
            ImageCategory.BASE: "Base Images",
            ImageCategory.CUSTOM: "Custom Images",
        }[self]


class Severity(Enum):
    """Vulnerability severity levels reported by the scanners."""
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    NEGLIGIBLE = "Negligible"
    UNKNOWN = "Unknown"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "Severity":
        """Convert a scanner label (``High``, ``HIGH``...) to a Severity."""
        if not value:
            return cls.UNKNOWN
        normalized = value.strip().lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        return cls.UNKNOWN

    @property
    def rank(self) -> int:
        """Sort rank; untracked levels share the lowest rank."""
        return SEVERITY_RANK.get(self, 0)

    @property
    def tracked(self) -> bool:
        """Whether this level has its own bucket in SeverityCounts."""
        return self in SEVERITY_RANK


SEVERITY_RANK: Dict[Severity, int] = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}


@dataclass(frozen=True)
class ImageSpec:
    """A repository listed in the image configuration."""
    repository: str
    category: ImageCategory


@dataclass(frozen=True)
class ScanTarget:
    """A resolved image reference ready to be scanned."""
    name: str
    reference: str
    category: ImageCategory
    output_dir: Path

    @property
    def json_dir(self) -> Path:
        return self.output_dir / "json"

    @property
    def reports_dir(self) -> Path:
        return self.output_dir / "reports"


@dataclass(frozen=True)
class Finding:
    """One vulnerability match for one package."""
    package: str
    vulnerability_id: str
    severity: Severity
    severity_label: str
    installed_version: str
    fixed_version: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        """Deduplication key."""
        return (self.vulnerability_id, self.package)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "package": self.package,
            "vulnerability_id": self.vulnerability_id,
            "severity": self.severity_label,
            "installed_version": self.installed_version,
            "fixed_version": self.fixed_version,
        }


@dataclass(frozen=True)
class SeverityCounts:
    """Per-severity counts for one scan."""
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    total: int = 0

    @property
    def tracked_total(self) -> int:
        """Sum of the four tracked buckets."""
        return self.critical + self.high + self.medium + self.low

    def to_dict(self) -> Dict[str, int]:
        """Convert to dictionary."""
        return {
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
            "total": self.total,
        }


class OutcomeStatus(Enum):
    """How a single image scan attempt ended."""
    SCANNED = "scanned"
    PULL_FAILED = "pull_failed"
    SCAN_FAILED = "scan_failed"


@dataclass
class ScanOutcome:
    """Result of one image scan attempt."""
    target: ScanTarget
    status: OutcomeStatus
    digest: str = "unknown"
    counts: SeverityCounts = field(default_factory=SeverityCounts)
    findings: List[Finding] = field(default_factory=list)
    error: Optional[str] = None
    report_file: Optional[Path] = None
    json_file: Optional[Path] = None

    @property
    def pull_succeeded(self) -> bool:
        return self.status != OutcomeStatus.PULL_FAILED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (without the finding list)."""
        return {
            "image": self.target.name,
            "reference": self.target.reference,
            "category": self.target.category.value,
            "status": self.status.value,
            "digest": self.digest,
            "counts": self.counts.to_dict(),
            "error": self.error,
            "report_file": str(self.report_file) if self.report_file else None,
        }


@dataclass
class RunResult:
    """Aggregate outcome of a complete run."""
    total_images_attempted: int = 0
    threshold_exceeded: bool = False
    pull_failures: int = 0
    scan_failures: int = 0
    run_dir: Optional[Path] = None
    summary_file: Optional[Path] = None

    @property
    def exit_code(self) -> int:
        return 1 if self.threshold_exceeded else 0
