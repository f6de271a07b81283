"""
Main entry point for the image scanner package.

Usage:
    python -m image_scanner [--app | --base | --all | --image NAME | --image-ref REF] [OPTIONS]
"""

import sys


def main() -> int:
    """Main entry point."""
    from .cli import main as cli_main
    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
