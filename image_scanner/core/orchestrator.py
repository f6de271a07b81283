"""Scan orchestration.

Drives a run: plans the targets for the selected images, scans each one
(pull, digest, scanner, aggregation, markdown report) and feeds the outcomes,
in planned order, to a single RunCollector that owns the run summary and the
threshold flag.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..errors import ConfigurationError, ScanAbortedError, ScannerError
from ..models.scan_result import (
    ImageCategory,
    OutcomeStatus,
    RunResult,
    ScanOutcome,
    ScanTarget,
)
from ..utils.logging import get_logger
from ..utils.progress import ScanProgress
from .aggregator import aggregate, load_report
from .config import FailSeverity, ImagesConfig
from .report import SummaryWriter, sanitize_filename, write_json_summary, write_report
from .resolver import ImageResolver
from .scanner import VulnerabilityScanner

logger = get_logger(__name__)

BATCH_ORDER = (ImageCategory.APPLICATION, ImageCategory.BASE)


class SelectionMode(Enum):
    """What a run scans."""
    SINGLE_NAME = "single-name"
    SINGLE_REFERENCE = "single-reference"
    BATCH = "batch"


class ScanErrorPolicy(Enum):
    """What to do when the scanner itself fails on an image."""
    SKIP = "skip"
    ABORT = "abort"


@dataclass(frozen=True)
class RunSelection:
    """Images selected for a run."""
    mode: SelectionMode
    categories: Tuple[ImageCategory, ...] = ()
    value: Optional[str] = None

    @classmethod
    def batch(cls, app: bool, base: bool) -> "RunSelection":
        categories = []
        if app:
            categories.append(ImageCategory.APPLICATION)
        if base:
            categories.append(ImageCategory.BASE)
        if not categories:
            raise ConfigurationError("No image category selected")
        return cls(mode=SelectionMode.BATCH, categories=tuple(categories))

    @classmethod
    def by_name(cls, name: str) -> "RunSelection":
        return cls(mode=SelectionMode.SINGLE_NAME, value=name)

    @classmethod
    def by_reference(cls, reference: str) -> "RunSelection":
        return cls(mode=SelectionMode.SINGLE_REFERENCE, value=reference)


MENU_CHOICES = {
    "1": (True, False),
    "2": (False, True),
    "3": (True, True),
}


def selection_from_menu(choice: str) -> RunSelection:
    """
    Map an interactive menu answer to a batch selection.

    Raises:
        ConfigurationError: For anything but 1, 2 or 3
    """
    try:
        app, base = MENU_CHOICES[choice.strip()]
    except KeyError:
        raise ConfigurationError(f"Invalid choice '{choice.strip()}'. Exiting.") from None
    return RunSelection.batch(app=app, base=base)


class RunCollector:
    """
    Single writer for everything shared across a run.

    Only the orchestrator calls :meth:`record`; per-image workers just
    return outcomes.
    """

    def __init__(self, summary: SummaryWriter, fail_severity: FailSeverity):
        self.summary = summary
        self.fail_severity = fail_severity
        self.result = RunResult(summary_file=summary.path)
        self.entries: List[Dict[str, Any]] = []
        self._section: Optional[ImageCategory] = None

    def record(self, outcome: ScanOutcome) -> bool:
        """
        Append an outcome to the summary and merge it into the run result.

        Returns:
            True if this outcome trips the fail-severity threshold
        """
        category = outcome.target.category
        if category != self._section:
            self.summary.write_section(category)
            self._section = category

        self.summary.write_entry(outcome)
        self.entries.append(outcome.to_dict())
        self.result.total_images_attempted += 1

        if outcome.status == OutcomeStatus.PULL_FAILED:
            self.result.pull_failures += 1
            return False
        if outcome.status == OutcomeStatus.SCAN_FAILED:
            self.result.scan_failures += 1
            return False

        tripped = self.fail_severity.is_exceeded(outcome.counts)
        if tripped:
            self.result.threshold_exceeded = True
        return tripped

    def finish(self) -> RunResult:
        self.summary.write_footer(self.result.threshold_exceeded)
        return self.result


class ScanOrchestrator:
    """Runs a selection of images through pull, scan, aggregation and reporting."""

    def __init__(
        self,
        config: ImagesConfig,
        scanner: VulnerabilityScanner,
        run_dir: Path,
        fail_severity: FailSeverity = FailSeverity.CRITICAL,
        resolver: Optional[ImageResolver] = None,
        keep_json: bool = True,
        parallel: int = 1,
        on_scan_error: ScanErrorPolicy = ScanErrorPolicy.SKIP,
    ):
        """
        Initialize orchestrator.

        Args:
            config: Image lists and organization prefix
            scanner: Scanner used for every image
            run_dir: Timestamped directory receiving all outputs
            fail_severity: Policy deciding the run's exit status
            resolver: Image availability resolver (default: docker CLI)
            keep_json: Keep raw scanner JSON after rendering
            parallel: Number of images scanned concurrently
            on_scan_error: Skip the image or abort the run on scanner failure
        """
        self.config = config
        self.scanner = scanner
        self.run_dir = Path(run_dir)
        self.fail_severity = fail_severity
        self.resolver = resolver or ImageResolver(timeout=scanner.timeout)
        self.keep_json = keep_json
        self.parallel = max(1, parallel)
        self.on_scan_error = on_scan_error

    @property
    def summary_file(self) -> Path:
        return self.run_dir / f"{self.scanner.name}-summary.txt"

    def _target(self, name: str, reference: str, category: ImageCategory) -> ScanTarget:
        return ScanTarget(
            name=name,
            reference=reference,
            category=category,
            output_dir=self.run_dir / category.directory,
        )

    def plan(self, selection: RunSelection) -> List[ScanTarget]:
        """
        Build the ordered target list for a selection.

        Raises:
            ConfigurationError: If a named image is not configured
        """
        if selection.mode == SelectionMode.SINGLE_REFERENCE:
            return [self._target(selection.value, selection.value, ImageCategory.CUSTOM)]

        if selection.mode == SelectionMode.SINGLE_NAME:
            spec = self.config.find(selection.value)
            return [self._target(
                spec.repository,
                self.config.full_reference(spec.repository),
                spec.category,
            )]

        targets = []
        for category in BATCH_ORDER:
            if category not in selection.categories:
                continue
            for spec in self.config.images(category):
                targets.append(self._target(
                    spec.repository,
                    self.config.full_reference(spec.repository),
                    category,
                ))
        return targets

    def scan_target(self, target: ScanTarget) -> ScanOutcome:
        """
        Scan one image and write its markdown report.

        Pull failures, and scanner failures under the skip policy, come back
        as outcomes with zero counts.

        Raises:
            ScanAbortedError: On scanner failure under the abort policy
        """
        pull = self.resolver.ensure_image(target.reference)
        if not pull.success:
            logger.warning(f"  FAILED to pull {target.name}: {pull.reason}")
            return ScanOutcome(
                target=target,
                status=OutcomeStatus.PULL_FAILED,
                error=pull.reason or "pull failed",
            )

        digest = self.resolver.get_digest(target.reference)
        json_file = target.json_dir / f"{sanitize_filename(target.name)}-report.json"

        try:
            self.scanner.scan(target.reference, json_file)
            aggregated = aggregate(load_report(json_file), self.scanner.name)
        except ScannerError as e:
            if self.on_scan_error == ScanErrorPolicy.ABORT:
                raise ScanAbortedError(target.name, str(e)) from e
            logger.error(f"  Scan of {target.name} failed: {e}")
            return ScanOutcome(
                target=target,
                status=OutcomeStatus.SCAN_FAILED,
                digest=digest,
                error=str(e),
            )

        outcome = ScanOutcome(
            target=target,
            status=OutcomeStatus.SCANNED,
            digest=digest,
            counts=aggregated.counts,
            findings=aggregated.findings,
            json_file=json_file,
        )
        outcome.report_file = write_report(outcome, self.scanner.title)

        if not self.keep_json:
            json_file.unlink(missing_ok=True)
            outcome.json_file = None

        logger.success(f"{target.name} scanned successfully")
        return outcome

    def _outcomes(self, targets: List[ScanTarget], progress: ScanProgress) -> Iterator[ScanOutcome]:
        """Yield outcomes in planned order, whatever order the scans finish in."""
        if self.parallel == 1:
            for target in targets:
                progress.start(target.name)
                yield self.scan_target(target)
            return

        with ThreadPoolExecutor(max_workers=self.parallel) as executor:
            futures = [executor.submit(self.scan_target, target) for target in targets]
            try:
                for target, future in zip(targets, futures):
                    progress.start(target.name)
                    yield future.result()
            finally:
                for future in futures:
                    future.cancel()

    def _prepare_dirs(self, targets: List[ScanTarget]) -> None:
        self.run_dir.mkdir(parents=True, exist_ok=True)
        for output_dir in {target.output_dir for target in targets}:
            (output_dir / "json").mkdir(parents=True, exist_ok=True)
            (output_dir / "reports").mkdir(parents=True, exist_ok=True)

    def run(self, selection: RunSelection, targets: Optional[List[ScanTarget]] = None) -> RunResult:
        """
        Execute a complete run.

        Args:
            selection: Images to scan
            targets: Pre-computed plan (default: ``self.plan(selection)``)

        Returns:
            RunResult; its exit_code is 1 when any image tripped the threshold

        Raises:
            ConfigurationError: If the selection names an unknown image
            ScanAbortedError: On scanner failure under the abort policy
        """
        if targets is None:
            targets = self.plan(selection)
        self._prepare_dirs(targets)

        summary = SummaryWriter(self.summary_file, self.scanner.title, self.fail_severity.value)
        summary.write_header(self.config.organization_name, datetime.now())
        collector = RunCollector(summary, self.fail_severity)
        collector.result.run_dir = self.run_dir

        progress = ScanProgress(len(targets))
        try:
            for outcome in self._outcomes(targets, progress):
                progress.complete(outcome.status == OutcomeStatus.SCANNED)
                if collector.record(outcome):
                    logger.warning(
                        f"  {self.fail_severity.value.upper()}+ vulnerabilities found in {outcome.target.name}"
                    )
        except ScanAbortedError as e:
            summary.write_aborted(str(e))
            self._write_json_summary(collector, aborted=str(e))
            raise
        finally:
            progress.finish()

        result = collector.finish()
        self._write_json_summary(collector)
        return result

    def _write_json_summary(self, collector: RunCollector, aborted: Optional[str] = None) -> None:
        write_json_summary(
            self.run_dir / "scan-summary.json",
            collector.result,
            collector.entries,
            scanner=self.scanner.name,
            fail_severity=self.fail_severity.value,
            aborted=aborted,
        )
