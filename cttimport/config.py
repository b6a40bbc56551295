"""Import settings."""

from dataclasses import dataclass
from pathlib import Path

from cttimport.errors import ConfigurationError

DEFAULT_DATA_DIR = "todos_cp"
SCHEMAS = ("simplified", "extended")


@dataclass
class ImportConfig:
    """Settings for one import run.

    batch_size is the number of staged postal-code entries per transaction;
    chunk_size caps the rows sent in a single INSERT statement.
    """

    data_dir: Path = Path(DEFAULT_DATA_DIR)
    batch_size: int = 5000
    chunk_size: int = 1000
    cache_size: int = 10000
    force: bool = False
    schema: str = "simplified"
    encoding: str = "iso-8859-1"
    memory_limit_mb: int | None = None
    progress_every: int = 10000

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        for name in ("batch_size", "chunk_size", "cache_size", "progress_every"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        if self.memory_limit_mb is not None and self.memory_limit_mb <= 0:
            raise ConfigurationError(
                f"memory_limit_mb must be positive, got {self.memory_limit_mb}"
            )
        if self.schema not in SCHEMAS:
            raise ConfigurationError(
                f"Unknown schema {self.schema!r}; expected one of {', '.join(SCHEMAS)}"
            )

    @property
    def extended(self) -> bool:
        return self.schema == "extended"
