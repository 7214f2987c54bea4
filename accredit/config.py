"""
Accredit -- Configuration System

All configuration is Pydantic-validated and loaded from:
1. default.yaml (defaults)
2. Environment variables (overrides)

Every tunable parameter in the system lives here.
"""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ─── Sub-configs ──────────────────────────────────────────────────


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    # Header carrying the caller's principal on every API request.
    principal_header: str = "X-Accredit-Principal"


class GovernanceConfig(BaseModel):
    chairman: str = "chairman"
    # The chairman is seeded as the first committee member at startup.
    chairman_is_member: bool = True
    application_fee: Decimal = Decimal("5")
    fee_currency: str = "ETH"
    fee_precision: int = 18
    voting_window_seconds: int = 7 * 24 * 3600
    # Pay the fee out as part of closing the poll.
    distribute_on_close: bool = False

    @field_validator("application_fee")
    @classmethod
    def _fee_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("application_fee must be positive")
        return v

    @field_validator("chairman")
    @classmethod
    def _strip_chairman(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("chairman cannot be empty")
        return v


class RegistryConfig(BaseModel):
    credential_min_payment: Decimal = Decimal("0.01")


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "console"  # "console" | "json"


# ─── Root Configuration ──────────────────────────────────────────


class AccreditConfig(BaseSettings):
    """
    Root configuration. Loads from YAML, overridable by env vars.
    """

    model_config = SettingsConfigDict(
        env_prefix="ACCREDIT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    instance_id: str = "accredit-default"

    server: ServerConfig = Field(default_factory=ServerConfig)
    governance: GovernanceConfig = Field(default_factory=GovernanceConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: str | Path | None = None) -> AccreditConfig:
    """
    Load configuration from YAML file, then apply environment variable overrides.
    """
    raw: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                raw = yaml.safe_load(f) or {}

    overrides: dict[str, Any] = {}
    if chairman := os.environ.get("ACCREDIT_CHAIRMAN"):
        overrides.setdefault("governance", {})["chairman"] = chairman
    if window := os.environ.get("ACCREDIT_GOVERNANCE__VOTING_WINDOW_SECONDS"):
        overrides.setdefault("governance", {})["voting_window_seconds"] = int(window)
    if distribute := os.environ.get("ACCREDIT_GOVERNANCE__DISTRIBUTE_ON_CLOSE"):
        overrides.setdefault("governance", {})["distribute_on_close"] = (
            distribute.lower() in ("true", "1", "yes")
        )
    if log_level := os.environ.get("ACCREDIT_LOGGING__LEVEL"):
        overrides.setdefault("logging", {})["level"] = log_level
    if log_format := os.environ.get("ACCREDIT_LOGGING__FORMAT"):
        overrides.setdefault("logging", {})["format"] = log_format
    if instance_id := os.environ.get("ACCREDIT_INSTANCE_ID"):
        overrides["instance_id"] = instance_id

    return AccreditConfig(**_deep_merge(raw, overrides))
