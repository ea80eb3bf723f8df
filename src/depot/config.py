"""
Service configuration.

Settings are read from DEPOT_* environment variables once, when the
application is created, and passed explicitly to every component.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from depot.core.exceptions import ConfigurationError
from depot.core.models import DeletionBehavior

logger = logging.getLogger(__name__)

# Default maximum package size in bytes (250 MB)
DEFAULT_MAX_PACKAGE_SIZE = 250 * 1024 * 1024

DEFAULT_STORAGE_PATH = Path("var/packages")
DEFAULT_DATABASE_PATH = Path("var/depot.db")

_SIZE_MULTIPLIERS = {
    "K": 1024,
    "M": 1024 * 1024,
    "G": 1024 * 1024 * 1024,
}


def parse_size(value: str) -> int:
    """
    Parse a byte size with an optional K, M or G suffix.

    Raises:
        ValueError: If the value is not a non-negative size
    """
    value = value.strip().upper()
    for suffix, multiplier in _SIZE_MULTIPLIERS.items():
        if value.endswith(suffix):
            size = int(value[:-1]) * multiplier
            break
    else:
        size = int(value)

    if size < 0:
        raise ValueError(f"Size cannot be negative: {value}")
    return size


def get_max_package_size() -> int:
    """
    Get the maximum package size from the environment.

    Reads DEPOT_MAX_PACKAGE_SIZE. Invalid values fall back to the default.

    Returns:
        Maximum package size in bytes
    """
    env_value = os.getenv("DEPOT_MAX_PACKAGE_SIZE", "")
    if not env_value:
        return DEFAULT_MAX_PACKAGE_SIZE

    try:
        return parse_size(env_value)
    except ValueError as e:
        logger.warning(
            f"Invalid DEPOT_MAX_PACKAGE_SIZE value: {env_value}, using default",
            extra={"error": str(e)},
        )
        return DEFAULT_MAX_PACKAGE_SIZE


def parse_deletion_behavior(value: str) -> DeletionBehavior:
    """
    Parse a deletion behavior name.

    Raises:
        ConfigurationError: If the name is not a known behavior
    """
    normalized = value.strip().lower().replace("-", "_")
    try:
        return DeletionBehavior(normalized)
    except ValueError:
        raise ConfigurationError(
            f"Unknown deletion behavior '{value}'",
            setting="DEPOT_DELETION_BEHAVIOR",
            value=value,
        ) from None


@dataclass(frozen=True)
class DepotSettings:
    """
    Immutable service settings.

    Attributes:
        api_key: API key accepted for publishing (empty accepts every caller)
        deletion_behavior: Whether deletes unlist or remove package versions
        storage_path: Root directory for stored package artifacts
        database_path: SQLite file for package metadata
        scratch_path: Directory for temporary upload files (None for system temp)
        max_package_size: Maximum accepted upload size in bytes
        log_level: Root logging level name
    """

    api_key: str = ""
    deletion_behavior: DeletionBehavior = DeletionBehavior.UNLIST
    storage_path: Path = field(default=DEFAULT_STORAGE_PATH)
    database_path: Path = field(default=DEFAULT_DATABASE_PATH)
    scratch_path: Path | None = None
    max_package_size: int = DEFAULT_MAX_PACKAGE_SIZE
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "DepotSettings":
        """
        Build settings from DEPOT_* environment variables.

        Raises:
            ConfigurationError: If a setting has an invalid value
        """
        scratch = os.getenv("DEPOT_SCRATCH_PATH", "").strip()
        log_level = os.getenv("DEPOT_LOG_LEVEL", "INFO").strip().upper() or "INFO"
        if not isinstance(logging.getLevelName(log_level), int):
            raise ConfigurationError(
                f"Unknown log level '{log_level}'",
                setting="DEPOT_LOG_LEVEL",
                value=log_level,
            )

        return cls(
            api_key=os.getenv("DEPOT_API_KEY", ""),
            deletion_behavior=parse_deletion_behavior(
                os.getenv("DEPOT_DELETION_BEHAVIOR", DeletionBehavior.UNLIST.value)
            ),
            storage_path=Path(os.getenv("DEPOT_STORAGE_PATH", "") or DEFAULT_STORAGE_PATH),
            database_path=Path(os.getenv("DEPOT_DATABASE_PATH", "") or DEFAULT_DATABASE_PATH),
            scratch_path=Path(scratch) if scratch else None,
            max_package_size=get_max_package_size(),
            log_level=log_level,
        )
