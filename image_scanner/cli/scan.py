"""CLI for scanning the configured images."""

import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .. import __version__
from ..core.config import (
    CONFIG_ENV_VAR,
    FAIL_SEVERITY_ENV_VAR,
    load_config,
    resolve_fail_severity,
)
from ..core.orchestrator import (
    RunSelection,
    ScanErrorPolicy,
    ScanOrchestrator,
    selection_from_menu,
)
from ..core.resolver import ImageResolver
from ..core.scanner import DEFAULT_TIMEOUT, SCANNERS, get_scanner
from ..errors import ConfigurationError
from ..utils.logging import setup_logging, LogLevel
from ..utils.subprocess import check_prerequisites

RUN_DIR_FORMAT = "%Y-%m-%d_%H-%M-%S"


def create_scan_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="image-scan",
        description="Scan configured container images for vulnerabilities with Grype or Trivy.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Environment variables:
  {FAIL_SEVERITY_ENV_VAR}      Minimum severity that makes the run exit 1 (default: Critical)
                     Set to 'High' to also fail on High vulnerabilities.
  {CONFIG_ENV_VAR}  Path to the image configuration file

If no selection option is provided, an interactive prompt is shown.

Examples:
  # Scan application images only
  image-scan --app

  # Scan everything and fail on High or Critical findings
  FAIL_SEVERITY=High image-scan --all

  # Scan one configured image with Trivy, dropping raw JSON afterwards
  image-scan --image web --scanner trivy --no-json

  # Scan an arbitrary image reference
  image-scan --image-ref docker.io/library/alpine:3.20
""",
    )

    parser.add_argument(
        "--app",
        action="store_true",
        help="Scan application images (combine with --base to scan both)",
    )
    parser.add_argument(
        "--base",
        action="store_true",
        help="Scan base images (combine with --app to scan both)",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Scan both image groups",
    )

    selection = parser.add_mutually_exclusive_group()
    selection.add_argument(
        "--image",
        metavar="NAME",
        help="Scan a single image from the configured lists",
    )
    selection.add_argument(
        "--image-ref",
        metavar="REF",
        help="Scan an arbitrary image reference (bypasses the configured lists)",
    )

    parser.add_argument(
        "--no-json",
        action="store_true",
        help="Remove raw JSON reports after generating markdown",
    )
    parser.add_argument(
        "--config",
        help="Image configuration file (default: images.yaml, images.yml or images.conf)",
    )
    parser.add_argument(
        "--scanner",
        choices=sorted(SCANNERS),
        default="grype",
        help="Vulnerability scanner to use (default: grype)",
    )
    parser.add_argument(
        "--output-dir",
        default="scan-results",
        help="Directory receiving timestamped run directories (default: scan-results)",
    )
    parser.add_argument(
        "--fail-severity",
        help=f"Override {FAIL_SEVERITY_ENV_VAR} (Critical or High)",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=DEFAULT_TIMEOUT,
        help=f"Timeout per image pull and scan in seconds (default: {DEFAULT_TIMEOUT})",
    )
    parser.add_argument(
        "--parallel",
        type=int,
        default=1,
        help="Number of images scanned concurrently (default: 1)",
    )
    parser.add_argument(
        "--on-scan-error",
        choices=[p.value for p in ScanErrorPolicy],
        default=ScanErrorPolicy.SKIP.value,
        help="Skip the image or abort the run when the scanner fails (default: skip)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging (shows commands and scanner errors)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser


def check_selection_args(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    """Reject single-image flags combined with batch flags (usage error)."""
    single = "--image" if args.image else "--image-ref" if args.image_ref else None
    batch = [flag for flag, on in (("--app", args.app), ("--base", args.base), ("--all", args.all)) if on]
    if single and batch:
        parser.error(f"argument {single}: not allowed with argument {batch[0]}")


def prompt_for_selection(input_func: Optional[Callable[[str], str]] = None) -> RunSelection:
    """Ask which image groups to scan."""
    print("Which images would you like to scan?")
    print("  1) Application images")
    print("  2) Base images")
    print("  3) Both")
    print()
    try:
        choice = (input_func or input)("Enter choice [1/2/3]: ")
    except EOFError:
        raise ConfigurationError("No choice given. Exiting.") from None
    return selection_from_menu(choice)


def selection_from_args(
    args: argparse.Namespace,
    input_func: Optional[Callable[[str], str]] = None,
) -> RunSelection:
    """Turn selection flags into a RunSelection, prompting if none was given."""
    if args.image_ref:
        return RunSelection.by_reference(args.image_ref)
    if args.image:
        return RunSelection.by_name(args.image)
    if args.app or args.base or args.all:
        return RunSelection.batch(app=args.app or args.all, base=args.base or args.all)
    return prompt_for_selection(input_func)


def run_scan(
    args: argparse.Namespace,
    input_func: Optional[Callable[[str], str]] = None,
    now: Optional[datetime] = None,
) -> int:
    """
    Run a scan.

    Args:
        args: Parsed command line arguments
        input_func: Reads the interactive menu answer
        now: Run start time, used for the run directory name

    Returns:
        Exit code

    Raises:
        ConfigurationError: On invalid settings, before any scan starts
    """
    setup_logging(LogLevel.VERBOSE if args.verbose else LogLevel.INFO)

    fail_severity = resolve_fail_severity(args.fail_severity)
    if args.parallel < 1:
        raise ConfigurationError("--parallel must be at least 1")
    if args.timeout < 1:
        raise ConfigurationError("--timeout must be at least 1 second")

    scanner = get_scanner(args.scanner, timeout=args.timeout, verbose=args.verbose)
    config = load_config(args.config)

    missing = check_prerequisites(["docker", scanner.binary])
    if missing:
        print(f"❌ Missing required tools: {', '.join(missing)}", file=sys.stderr)
        return 1

    selection = selection_from_args(args, input_func)

    run_dir = Path(args.output_dir) / (now or datetime.now()).strftime(RUN_DIR_FORMAT)
    orchestrator = ScanOrchestrator(
        config=config,
        scanner=scanner,
        run_dir=run_dir,
        fail_severity=fail_severity,
        resolver=ImageResolver(timeout=args.timeout),
        keep_json=not args.no_json,
        parallel=args.parallel,
        on_scan_error=ScanErrorPolicy(args.on_scan_error),
    )
    targets = orchestrator.plan(selection)

    print("━" * 66)
    print(f"🔍 {scanner.title} Image Scanner - {config.organization_name}")
    print("━" * 66)
    print()
    print("⚙️  Configuration:")
    print(f"   • Images: {len(targets)}")
    print(f"   • Output: {run_dir}")
    print(f"   • Fail severity: {fail_severity.value}")
    if args.parallel > 1:
        print(f"   • Parallel: {args.parallel}")
    if args.no_json:
        print("   • Raw JSON: removed after rendering")
    print()

    result = orchestrator.run(selection, targets)

    print()
    if result.pull_failures or result.scan_failures:
        print(
            f"⚠️  {result.pull_failures} pull failure(s), "
            f"{result.scan_failures} scan failure(s)"
        )
    if result.threshold_exceeded:
        print(f"🚨 {fail_severity.value}+ vulnerabilities detected in one or more images")
        print(f"See {result.summary_file} for details")
    else:
        print(f"✅ Scan complete - no {fail_severity.value}+ vulnerabilities detected")
        print(f"Summary written to {result.summary_file}")

    return result.exit_code
