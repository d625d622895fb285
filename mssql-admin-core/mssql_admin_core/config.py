"""
Configuration - Explicit settings injected into resolvers, binders and operations.
"""

import tempfile
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

ENV_PREFIX = "MSSQLADMIN_"
DEFAULT_QUERY_TIMEOUT = 600


class ConfirmImpact(str, Enum):
    """How risky an operation is; compared against the confirm threshold."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return list(ConfirmImpact).index(self)


class AdminConfig(BaseSettings):
    """Settings shared by every operation of one process.

    Fields are read from ``MSSQLADMIN_*`` environment variables (for example
    ``MSSQLADMIN_SCRATCH_DIR`` or ``MSSQLADMIN_QUERY_TIMEOUT``), and keyword
    arguments override them. Build it once and pass it down.
    ``MSSQLADMIN_SCRIPT_EXTENSIONS`` is a comma-separated list.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX, case_sensitive=False, env_ignore_empty=True, extra="ignore"
    )

    scratch_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()))
    temp_prefix: str = "mssqladmin"
    legacy_connection: bool = False  # never reuse pooled connections
    query_timeout: int = DEFAULT_QUERY_TIMEOUT
    connect_timeout: int = 15
    download_timeout: float = 30.0
    odbc_driver: str = "ODBC Driver 18 for SQL Server"
    trust_server_certificate: bool = False
    application_name: str = "mssql-admin-kit"
    script_extensions: Annotated[List[str], NoDecode] = Field(default_factory=lambda: [".sql"])
    confirm_threshold: ConfirmImpact = ConfirmImpact.HIGH

    @field_validator("script_extensions", mode="before")
    @classmethod
    def _split_extensions(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [ext.strip() for ext in value.split(",") if ext.strip()]
        return value

    @field_validator("script_extensions")
    @classmethod
    def _normalize_extensions(cls, value: List[str]) -> List[str]:
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in value]

    @field_validator("query_timeout", "connect_timeout")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("timeouts must be zero (no limit) or positive")
        return value

    def requires_confirmation(self, impact: ConfirmImpact) -> bool:
        """True when an operation of this impact needs an explicit confirm."""
        if self.confirm_threshold == ConfirmImpact.NONE:
            return False
        return impact.rank >= self.confirm_threshold.rank

