"""Image list configuration and severity policy.

Image lists are read from a YAML file::

    organization:
      name: Example Corp
      prefix: registry.example.com/example
    app_images: [web, api]
    base_images: [alpine]

The shell-style ``images.conf`` used by the older bash scanner
(``ORG=...``, ``ORG_NAME=...``, ``APP_IMAGES=(...)``, ``BASE_IMAGES=(...)``)
is also accepted; it is parsed, never executed.
"""

import os
import re
import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import yaml

from ..errors import ConfigurationError
from ..models.scan_result import ImageCategory, ImageSpec, SeverityCounts
from ..utils.logging import get_logger

logger = get_logger(__name__)

CONFIG_ENV_VAR = "IMAGE_SCAN_CONFIG"
FAIL_SEVERITY_ENV_VAR = "FAIL_SEVERITY"
DEFAULT_CONFIG_FILES = ("images.yaml", "images.yml", "images.conf")
EXAMPLE_CONFIG_FILE = "images.yaml.example"

_SHELL_ASSIGNMENT = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)=(.*)$", re.DOTALL)


class FailSeverity(Enum):
    """Minimum severity that makes a run fail."""
    CRITICAL = "Critical"
    HIGH = "High"

    def is_exceeded(self, counts: SeverityCounts) -> bool:
        """Check whether a scan's counts trip this policy."""
        if self == FailSeverity.CRITICAL:
            return counts.critical > 0
        return counts.critical + counts.high > 0


def parse_fail_severity(value: Optional[str]) -> FailSeverity:
    """
    Validate a fail-severity setting.

    Args:
        value: ``Critical`` or ``High`` in any case; None selects Critical

    Returns:
        FailSeverity policy

    Raises:
        ConfigurationError: For any other value
    """
    if value is None or not value.strip():
        return FailSeverity.CRITICAL
    normalized = value.strip().lower()
    for policy in FailSeverity:
        if policy.value.lower() == normalized:
            return policy
    valid = ", ".join(p.value for p in FailSeverity)
    raise ConfigurationError(
        f"Invalid fail severity '{value}' (expected one of: {valid})"
    )


def resolve_fail_severity(cli_value: Optional[str] = None) -> FailSeverity:
    """Pick the fail severity from the CLI flag, else the environment."""
    if cli_value:
        return parse_fail_severity(cli_value)
    return parse_fail_severity(os.environ.get(FAIL_SEVERITY_ENV_VAR))


@dataclass
class ImagesConfig:
    """Organization prefix and the two ordered image lists."""
    prefix: str
    organization_name: str
    app_images: List[str] = field(default_factory=list)
    base_images: List[str] = field(default_factory=list)
    source: Optional[Path] = None

    def images(self, category: ImageCategory) -> List[ImageSpec]:
        """Configured images of one category, in configured order."""
        if category == ImageCategory.APPLICATION:
            names = self.app_images
        elif category == ImageCategory.BASE:
            names = self.base_images
        else:
            names = []
        return [ImageSpec(repository=name, category=category) for name in names]

    def full_reference(self, repository: str) -> str:
        """Build the full image reference for a configured repository."""
        return f"{self.prefix.rstrip('/')}/{repository}"

    @property
    def valid_names(self) -> List[str]:
        return list(self.app_images) + list(self.base_images)

    def find(self, name: str) -> ImageSpec:
        """
        Look up a repository by name, application images first.

        Raises:
            ConfigurationError: If the name is in neither list
        """
        if name in self.app_images:
            return ImageSpec(repository=name, category=ImageCategory.APPLICATION)
        if name in self.base_images:
            return ImageSpec(repository=name, category=ImageCategory.BASE)
        valid = ", ".join(self.valid_names) or "(none configured)"
        raise ConfigurationError(
            f"Image '{name}' is not in the configured image lists. "
            f"Valid names: {valid}"
        )


def _string_list(value: object, key: str, path: Path) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigurationError(f"'{key}' in {path} must be a list of image names")
    return [str(item) for item in value]


def _from_mapping(data: Dict, path: Path) -> ImagesConfig:
    org = data.get("organization") or {}
    if isinstance(org, str):
        org = {"prefix": org}
    if not isinstance(org, dict):
        raise ConfigurationError(f"'organization' in {path} must be a mapping")

    prefix = str(org.get("prefix") or "").strip()
    if not prefix:
        raise ConfigurationError(f"Missing organization prefix in {path}")

    return ImagesConfig(
        prefix=prefix,
        organization_name=str(org.get("name") or prefix),
        app_images=_string_list(data.get("app_images"), "app_images", path),
        base_images=_string_list(data.get("base_images"), "base_images", path),
        source=path,
    )


def parse_yaml_config(text: str, path: Path) -> ImagesConfig:
    """Parse the YAML configuration format."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a YAML mapping")
    return _from_mapping(data, path)


def _shell_tokens(text: str) -> List[str]:
    """Split shell text into words, with ``(`` and ``)`` as separate tokens."""
    lexer = shlex.shlex(text, posix=True, punctuation_chars="()")
    lexer.whitespace_split = True
    return list(lexer)


def parse_shell_config(text: str, path: Path) -> ImagesConfig:
    """Parse the legacy shell-style ``images.conf`` format."""
    values: Dict[str, object] = {}

    try:
        tokens = _shell_tokens(text)
    except ValueError as e:
        raise ConfigurationError(f"Failed to parse {path}: {e}") from e

    i = 0
    while i < len(tokens):
        match = _SHELL_ASSIGNMENT.match(tokens[i])
        i += 1
        if not match:
            continue
        name, value = match.groups()
        if value or i >= len(tokens) or tokens[i] not in ("(", "()"):
            values[name] = value
            continue

        if tokens[i] == "()":
            values[name] = []
            i += 1
            continue

        items = []
        i += 1
        while i < len(tokens) and tokens[i] != ")":
            items.append(tokens[i])
            i += 1
        if i >= len(tokens):
            raise ConfigurationError(f"Failed to parse {path}: unterminated array {name}")
        values[name] = items
        i += 1

    return _from_mapping(
        {
            "organization": {"prefix": values.get("ORG"), "name": values.get("ORG_NAME")},
            "app_images": values.get("APP_IMAGES"),
            "base_images": values.get("BASE_IMAGES"),
        },
        path,
    )


def find_config_file(
    explicit: Optional[str] = None,
    search_dirs: Sequence[Path] = (),
) -> Path:
    """
    Locate the image configuration file.

    Order: explicit path, ``$IMAGE_SCAN_CONFIG``, then the default file
    names in each search directory (current directory if none given).

    Raises:
        ConfigurationError: If no file exists
    """
    if explicit is None:
        explicit = os.environ.get(CONFIG_ENV_VAR) or None

    if explicit is not None:
        candidates = [Path(explicit)]
    else:
        dirs = list(search_dirs) or [Path.cwd()]
        candidates = [d / name for d in dirs for name in DEFAULT_CONFIG_FILES]

    for candidate in candidates:
        if candidate.is_file():
            return candidate

    tried = ", ".join(str(c) for c in candidates)
    raise ConfigurationError(
        f"Config file not found (tried: {tried}). "
        f"Copy {EXAMPLE_CONFIG_FILE} to images.yaml and fill in your values."
    )


def load_config(
    explicit: Optional[str] = None,
    search_dirs: Sequence[Path] = (),
) -> ImagesConfig:
    """Find and parse the image configuration."""
    path = find_config_file(explicit, search_dirs)
    logger.debug(f"Loading image configuration from {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

    if path.suffix in (".yaml", ".yml"):
        config = parse_yaml_config(text, path)
    else:
        config = parse_shell_config(text, path)

    logger.debug(
        f"Loaded {len(config.app_images)} application and "
        f"{len(config.base_images)} base images"
    )
    return config
