"""
Configuration models for the LP position indexer.

Uses Pydantic for validation and type safety.
"""
import os
import re
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lp_indexer.constants import DEFAULT_DATABASE_URL, DEFAULT_PROTOCOL_ID, ZERO_ADDRESS

CONFIG_SCHEMA_VERSION = "2026-10-01"

_ENV_REF = re.compile(r'\$\{([^}]+)\}|\$([a-zA-Z_][a-zA-Z0-9_]*)')


class IndexerConfig(BaseSettings):
    """Event handling configuration."""
    model_config = SettingsConfigDict(extra="ignore")

    protocol_id: str = Field(default=DEFAULT_PROTOCOL_ID, min_length=1)
    zero_address: str = ZERO_ADDRESS

    # Decoded DecreaseLiquidity records carry an unsigned magnitude that must
    # be negated before it is added to position liquidity
    decrease_liquidity_is_magnitude: bool = False

    snapshots_enabled: bool = True

    @field_validator("zero_address")
    @classmethod
    def validate_zero_address(cls, v: str) -> str:
        if not (v.startswith("0x") and len(v) == 42):
            raise ValueError(f"zero_address must be a 20-byte hex address, got {v!r}")
        return v.lower()


class DataConfig(BaseSettings):
    """Storage configuration."""
    model_config = SettingsConfigDict(extra="ignore")

    database_url: str = DEFAULT_DATABASE_URL
    echo_sql: bool = False


class MonitoringConfig(BaseSettings):
    """Logging configuration."""
    model_config = SettingsConfigDict(extra="ignore")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Optional[str] = None


class SystemConfig(BaseSettings):
    """System metadata."""
    model_config = SettingsConfigDict(extra="ignore")

    name: str = "LP Position Indexer"
    version: str = "0.3.0"


class Config(BaseSettings):
    """Main configuration class."""
    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        extra="ignore",
    )

    system: SystemConfig = Field(default_factory=SystemConfig)
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    data: DataConfig = Field(default_factory=DataConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    environment: Literal["dev", "prod"] = "dev"

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """Load configuration from YAML file, expanding ${VAR} references."""
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        raw_content = yaml_path.read_text()

        def replace_match(match):
            var_name = match.group(1) or match.group(2)
            return os.environ.get(var_name, match.group(0))  # Leave unresolved references as-is

        config_dict = yaml.safe_load(_ENV_REF.sub(replace_match, raw_content)) or {}

        if "ENVIRONMENT" in os.environ:
            config_dict["environment"] = os.environ["ENVIRONMENT"]

        db_url = os.getenv("DATABASE_URL")
        if db_url:
            config_dict.setdefault("data", {})
            config_dict["data"]["database_url"] = db_url

        return cls(**config_dict)

    def validate_config(self) -> None:
        """Perform additional validation checks."""
        if self.environment == "prod" and self.data.database_url.startswith("sqlite"):
            raise ValueError("SQLite is not supported in prod; set DATABASE_URL to a postgresql:// URL")


def load_config(config_path: str | Path | None = None) -> Config:
    """
    Load and validate configuration.

    Args:
        config_path: Path to config.yaml file. If None, uses lp_indexer/config/config.yaml

    Returns:
        Validated Config object

    Raises:
        FileNotFoundError: If config file not found
        ValueError: If configuration validation fails
    """
    if config_path is None:
        config_path = Path(__file__).parent / "config.yaml"

    config = Config.from_yaml(config_path)
    config.validate_config()
    return config
