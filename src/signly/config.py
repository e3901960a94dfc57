"""Typed configuration loaded from the environment via pydantic-settings.

Every setting can be given as ``SIGNLY_<NAME>`` in the environment or in a
``.env`` file in the working directory.
"""

from decimal import Decimal
from pathlib import Path
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .deadlines import DEFAULT_HORIZON_MONTHS
from .engine import DEFAULT_ID_LENGTH, Clock, SigningEngine
from .fees import fee_check_for
from .store import (
    DEFAULT_SIGNLY_DIR,
    CreatorIndex,
    DocumentRepository,
    FileBackend,
    KeyValueBackend,
    MemoryBackend,
)


class SignlySettings(BaseSettings):
    """Deployment settings for the engine and its transports."""

    model_config = SettingsConfigDict(
        env_prefix="SIGNLY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Storage ===
    data_dir: Path = DEFAULT_SIGNLY_DIR
    backend: Literal["file", "memory"] = "file"

    # === Documents ===
    derive_ids: bool = True
    id_length: int = DEFAULT_ID_LENGTH
    deadline_horizon_months: int = DEFAULT_HORIZON_MONTHS
    minimum_fee: Decimal = Decimal(0)

    # === Server ===
    host: str = "127.0.0.1"
    port: int = 8400
    log_level: str = "info"

    @field_validator("id_length")
    @classmethod
    def _id_length_range(cls, v: int) -> int:
        if not 8 <= v <= 44:
            raise ValueError("id_length must be between 8 and 44")
        return v

    @field_validator("deadline_horizon_months")
    @classmethod
    def _horizon_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("deadline_horizon_months must be at least 1")
        return v


def build_backend(settings: SignlySettings) -> KeyValueBackend:
    if settings.backend == "memory":
        return MemoryBackend()
    return FileBackend(settings.data_dir)


def build_engine(
    settings: Optional[SignlySettings] = None,
    clock: Optional[Clock] = None,
) -> SigningEngine:
    """Wire a SigningEngine from settings."""
    settings = settings or SignlySettings()
    backend = build_backend(settings)
    return SigningEngine(
        DocumentRepository(backend),
        CreatorIndex(backend),
        fee_check=fee_check_for(settings.minimum_fee),
        clock=clock,
        derive_ids=settings.derive_ids,
        id_length=settings.id_length,
        horizon_months=settings.deadline_horizon_months,
    )
