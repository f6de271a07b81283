"""Local image availability and digest lookup via the docker CLI."""

from dataclasses import dataclass

from ..utils.subprocess import run_command
from ..utils.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_DIGEST = "unknown"


@dataclass
class PullResult:
    """Whether an image is available locally, and why not."""
    success: bool
    pulled: bool = False
    reason: str = ""


class ImageResolver:
    """Make sure an image exists in the local docker store before scanning."""

    def __init__(self, timeout: int = 600, inspect_timeout: int = 30):
        """
        Initialize resolver.

        Args:
            timeout: Timeout for ``docker pull`` in seconds
            inspect_timeout: Timeout for ``docker inspect`` calls
        """
        self.timeout = timeout
        self.inspect_timeout = inspect_timeout

    def is_present(self, reference: str) -> bool:
        """Check the local image store."""
        result = run_command(
            ["docker", "image", "inspect", reference],
            timeout=self.inspect_timeout,
        )
        return result.success

    def ensure_image(self, reference: str) -> PullResult:
        """
        Ensure an image is available locally, pulling it once if absent.

        Never raises; a failed pull is reported through PullResult so the
        caller can continue with the next image.
        """
        if self.is_present(reference):
            logger.debug(f"Image already exists locally: {reference}")
            return PullResult(success=True)

        logger.info(f"  Pulling image {reference}...")
        result = run_command(["docker", "pull", reference], timeout=self.timeout)
        if result.success:
            return PullResult(success=True, pulled=True)

        logger.debug(f"docker pull failed for {reference}: {result.stderr.strip()}")
        return PullResult(success=False, reason=result.error_message)

    def get_digest(self, reference: str) -> str:
        """
        Get the repository digest of a local image.

        Returns:
            ``name@sha256:...`` or ``unknown`` when it cannot be determined
        """
        result = run_command(
            ["docker", "inspect", "--format={{index .RepoDigests 0}}", reference],
            timeout=self.inspect_timeout,
        )
        digest = result.stdout.strip()
        if not result.success or not digest:
            logger.debug(f"Could not determine digest for {reference}")
            return UNKNOWN_DIGEST
        return digest
