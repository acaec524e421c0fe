"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from pharmacore.domain.model.value_objects import Money


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    delivery_fee: Money
    max_attempts: int = 5
    backoff_ms: int = 10
    environment: str = "development"

    @staticmethod
    def from_env() -> Settings:
        return Settings(
            data_dir=Path(os.getenv("PHARMACORE_DATA_DIR", "data")),
            delivery_fee=Money.of(os.getenv("PHARMACORE_DELIVERY_FEE", "2000")),
            max_attempts=int(os.getenv("PHARMACORE_MAX_ATTEMPTS", "5")),
            backoff_ms=int(os.getenv("PHARMACORE_BACKOFF_MS", "10")),
            environment=(os.getenv("ENVIRONMENT") or "development").lower(),
        )
