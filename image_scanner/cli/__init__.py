"""CLI entry point for the image scanner."""

import sys
from typing import List, Optional

from ..errors import ImageScannerError
from ..utils.logging import is_verbose
from .scan import check_selection_args, create_scan_parser, run_scan


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code: 0 when no image reached the fail severity, 1 otherwise
        or on any configuration, dependency or usage error
    """
    parser = create_scan_parser()
    try:
        args = parser.parse_args(argv)
        check_selection_args(parser, args)
    except SystemExit as e:
        # --help and --version exit 0; usage errors exit 1 instead of argparse's 2
        return 0 if e.code in (0, None) else 1

    try:
        return run_scan(args)
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user", file=sys.stderr)
        return 130
    except ImageScannerError as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        if is_verbose():
            raise
        print(f"❌ Unexpected error: {e}", file=sys.stderr)
        return 1


__all__ = ["main", "create_scan_parser"]
