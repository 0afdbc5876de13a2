"""
Configuration settings for peakrefine.

Defaults for the refinement run (permutation rounds, GC kernel, worker
pool) and the location of reference genomes, overridable from the
environment or a ``.env`` file.
"""

import logging
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "peakrefine"
    app_version: str = "0.1.0"
    log_level: str = "INFO"

    # Paths
    references_dir: Path = Field(default_factory=lambda: Path.cwd() / "data" / "references")

    # Refinement defaults
    default_permute: int = Field(default=5, ge=0)
    default_gc_type: str = "ladder"  # or "tricube"
    shuffle_scope: str = "region"  # or "chromosome"
    random_seed: Optional[int] = None

    # GC quantization: bias curve holds bias_resolution + 1 entries
    bias_resolution: int = 1000
    score_decimals: int = 3

    # Parallelism
    max_workers: int = Field(default=4, ge=1)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def get_reference_path(self, genome: str) -> Path:
        """Get path to the FASTA file of a reference genome."""
        return self.references_dir / genome / f"{genome}.fa"

    def configure_logging(self):
        """Attach a basic stderr handler at ``log_level``; for applications, not the library."""
        logging.basicConfig(
            level=getattr(logging, self.log_level.upper(), logging.INFO),
            format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        )


# Global settings instance
settings = Settings()
