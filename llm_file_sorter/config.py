"""
Run configuration for the LLM File Sorter.
"""

from dataclasses import dataclass
from pathlib import Path

from .llm.models import (
    DEFAULT_API_URL,
    DEFAULT_BACKOFF_BASE,
    DEFAULT_BACKOFF_MAX,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_WORKERS,
    DEFAULT_MODEL,
    DEFAULT_REQUEST_TIMEOUT,
)
from .models import FALLBACK_CATEGORY, TAXONOMY


DEFAULT_BATCH_SIZE = 15


@dataclass(frozen=True)
class SorterConfig:
    """
    Immutable run configuration.

    Built once by the CLI and passed explicitly to every component; nothing
    downstream reads environment variables or module globals for settings.

    Raises:
        ValueError: If any value is out of range.
    """
    target_dir: Path = Path(".")
    model: str = DEFAULT_MODEL
    api_url: str = DEFAULT_API_URL
    batch_size: int = DEFAULT_BATCH_SIZE
    dry_run: bool = False
    max_workers: int = DEFAULT_MAX_WORKERS
    max_retries: int = DEFAULT_MAX_RETRIES
    backoff_base: float = DEFAULT_BACKOFF_BASE
    backoff_max: float = DEFAULT_BACKOFF_MAX
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    taxonomy: tuple[str, ...] = TAXONOMY

    def __post_init__(self):
        # Absolute from here on, so journal paths do not depend on the cwd
        object.__setattr__(self, "target_dir", Path(self.target_dir).expanduser().resolve())
        if self.batch_size < 1:
            raise ValueError(f"batch size must be at least 1 (got {self.batch_size})")
        if self.max_workers < 1:
            raise ValueError(f"workers must be at least 1 (got {self.max_workers})")
        if self.max_retries < 1:
            raise ValueError(f"retries must be at least 1 (got {self.max_retries})")
        if self.request_timeout <= 0:
            raise ValueError(f"timeout must be positive (got {self.request_timeout})")
        if self.backoff_base < 0 or self.backoff_max < 0:
            raise ValueError("backoff delays must not be negative")
        if not self.model.strip():
            raise ValueError("model name must not be empty")
        if not self.api_url.startswith(("http://", "https://")):
            raise ValueError(f"API URL must start with http:// or https:// (got {self.api_url!r})")
        if FALLBACK_CATEGORY not in self.taxonomy:
            raise ValueError(f"taxonomy must contain the fallback label {FALLBACK_CATEGORY!r}")
