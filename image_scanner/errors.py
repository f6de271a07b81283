"""Exception types raised by the image scanner."""


class ImageScannerError(Exception):
    """Base class for all image scanner errors."""


class ConfigurationError(ImageScannerError):
    """Invalid or missing configuration; raised before any scan starts."""


class ScannerError(ImageScannerError):
    """The external vulnerability scanner failed or produced unreadable output."""


class ScanAbortedError(ImageScannerError):
    """A scanner failure stopped the run under the ``abort`` policy."""

    def __init__(self, image: str, reason: str):
        super().__init__(f"Scan of {image} failed, aborting run: {reason}")
        self.image = image
        self.reason = reason
