"""
Configuration data models for swordgate.

These models define the structure of .swordgate.json and
~/.config/swordgate/config.json, with validation via Pydantic.
"""

from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from swordgate.core.models import SearchScope, SearchType


class EngineConfig(BaseModel):
    """
    Which engine backs the interface and how it is built.
    """

    type: str = Field(
        default="catalog",
        description="Registered engine name"
    )
    catalog: Optional[Path] = Field(
        default=None,
        description="Catalog file (JSON or YAML) for the catalog engine"
    )
    step_delay: float = Field(
        default=0.0,
        ge=0.0,
        description="Seconds per install step in the catalog engine"
    )
    options: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra keyword arguments for the engine constructor"
    )


class SignatureConfig(BaseModel):
    """
    Call-shape resolution settings.

    Controls how arguments are matched when several call shapes of an
    operation accept them equally well.
    """

    prefer_repository_first: bool = Field(
        default=False,
        description=(
            "Break ties in favour of (repository, module) over "
            "(module, repository) call shapes"
        )
    )


class SearchDefaults(BaseModel):
    """
    Defaults for search options the caller does not pass.
    """

    search_type: SearchType = Field(default=SearchType.PHRASE)
    scope: SearchScope = Field(default=SearchScope.BIBLE)
    case_sensitive: bool = False
    extended_boundaries: bool = False
    word_boundary_filter: bool = False


class LoggingConfig(BaseModel):
    """Log output settings."""

    level: str = Field(
        default="WARNING",
        description="Root log level when not running with --debug"
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level '{v}'")
        return level


class SwordgateConfig(BaseModel):
    """
    Complete swordgate configuration.

    Merged from defaults, user config, project config and environment.
    """

    model_config = ConfigDict(extra="ignore")

    engine: EngineConfig = Field(default_factory=EngineConfig)
    signatures: SignatureConfig = Field(default_factory=SignatureConfig)
    search: SearchDefaults = Field(default_factory=SearchDefaults)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
