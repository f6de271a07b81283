"""Core functionality for the image scanner."""

from .config import ImagesConfig, FailSeverity, load_config
from .resolver import ImageResolver
from .scanner import GrypeScanner, TrivyScanner, get_scanner
from .aggregator import aggregate
from .orchestrator import ScanOrchestrator, RunSelection, ScanErrorPolicy

__all__ = [
    "ImagesConfig",
    "FailSeverity",
    "load_config",
    "ImageResolver",
    "GrypeScanner",
    "TrivyScanner",
    "get_scanner",
    "aggregate",
    "ScanOrchestrator",
    "RunSelection",
    "ScanErrorPolicy",
]
