"""Progress reporting for batch scans."""

import sys
import time
from typing import Any


class ScanProgress:
    """
    Line-based ``[current/total]`` progress counter.

    The total is only used for display; it never drives scheduling.
    """

    def __init__(self, total: int, file: Any = None):
        """
        Initialize progress counter.

        Args:
            total: Number of images selected for the run
            file: Output stream (default: stderr)
        """
        self.total = total
        self.file = file or sys.stderr
        self.current = 0
        self.start_time = time.time()
        self.scanned_count = 0
        self.failed_count = 0

    @staticmethod
    def _format_time(seconds: float) -> str:
        """Format seconds to human readable."""
        if seconds < 60:
            return f"{seconds:.0f}s"
        elif seconds < 3600:
            return f"{seconds // 60:.0f}m {seconds % 60:.0f}s"
        else:
            return f"{seconds // 3600:.0f}h {(seconds % 3600) // 60:.0f}m"

    def start(self, name: str) -> str:
        """Advance the counter and announce the image about to be processed."""
        self.current += 1
        line = f"[{self.current}/{self.total}] Scanning {name}..."
        self.file.write(f"{line}\n")
        self.file.flush()
        return line

    def complete(self, success: bool) -> None:
        """Record the completion status of the current image."""
        if success:
            self.scanned_count += 1
        else:
            self.failed_count += 1

    def finish(self) -> str:
        """Write the closing line and return it."""
        elapsed = self._format_time(time.time() - self.start_time)
        icon = "✅" if self.failed_count == 0 else "⚠️"
        line = (
            f"{icon} Processed {self.current}/{self.total} images "
            f"({self.scanned_count} scanned, {self.failed_count} failed) in {elapsed}"
        )
        self.file.write(f"{line}\n")
        self.file.flush()
        return line
